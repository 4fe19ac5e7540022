from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class ScopeKind(Enum):
    DOMAIN = "Domain"
    ORGANIZATIONAL_UNIT = "OrganizationalUnit"
    SITE = "Site"
    OTHER = "Other"


@dataclass(frozen=True)
class LinkState:
    enabled: bool
    enforced: bool


@dataclass(frozen=True)
class PolicyObject:
    id: str
    name: str


@dataclass(frozen=True)
class DirectoryContext:
    domain_dn: str
    domain_name: str
    source: str = ""


@dataclass(frozen=True)
class LinkedContainer:
    raw_link_text: str
    container_dn: str
    # Either a single class name or the ordered objectClass list.
    container_class: Union[str, tuple[str, ...]]


def _tri_state(value: Optional[bool]) -> str:
    if value is None:
        return "Unknown"
    return "Yes" if value else "No"


@dataclass(frozen=True)
class ScopeRecord:
    scope_type: ScopeKind
    scope_name: str
    scope_dn: str
    object_class: str = ""
    link_enabled: Optional[bool] = None
    link_enforced: Optional[bool] = None

    @property
    def type_label(self) -> str:
        if self.scope_type is ScopeKind.OTHER:
            return self.object_class or ScopeKind.OTHER.value
        return self.scope_type.value

    @property
    def is_empty(self) -> bool:
        return self.scope_dn == ""

    @property
    def enabled_label(self) -> str:
        return _tri_state(self.link_enabled)

    @property
    def enforced_label(self) -> str:
        return _tri_state(self.link_enforced)

    def sort_key(self) -> tuple[str, str, str]:
        return (self.type_label, self.scope_name, self.scope_dn)


# Marker for a content match that is not linked anywhere.
EMPTY_SCOPE = ScopeRecord(scope_type=ScopeKind.OTHER, scope_name="", scope_dn="")


@dataclass(frozen=True)
class MatchRecord:
    policy_id: str
    policy_name: str
    scope: ScopeRecord = EMPTY_SCOPE
    security_filtering_apply: tuple[str, ...] = ()
    wmi_filter_name: Optional[str] = None

    @property
    def is_linked(self) -> bool:
        return not self.scope.is_empty

    def to_row(self) -> dict[str, object]:
        return {
            "policy_id": self.policy_id,
            "policy_name": self.policy_name,
            "scope_type": self.scope.type_label if self.is_linked else "",
            "scope_name": self.scope.scope_name,
            "scope_dn": self.scope.scope_dn,
            "link_enabled": self.scope.link_enabled,
            "link_enforced": self.scope.link_enforced,
            "security_filtering_apply": "; ".join(self.security_filtering_apply),
            "wmi_filter_name": self.wmi_filter_name,
        }


@dataclass(frozen=True)
class SameScopeOverlap:
    scope_type: str
    scope_dn: str
    records: tuple[MatchRecord, ...] = field(default_factory=tuple)

    @property
    def policy_names(self) -> list[str]:
        return [r.policy_name for r in self.records]

    def to_rows(self, group: int) -> list[dict[str, object]]:
        return [
            {
                "group": group,
                "scope_type": self.scope_type,
                "scope_dn": self.scope_dn,
                "policy_id": r.policy_id,
                "policy_name": r.policy_name,
                "link_enabled": r.scope.link_enabled,
                "link_enforced": r.scope.link_enforced,
            }
            for r in self.records
        ]


@dataclass(frozen=True)
class HierarchyOverlap:
    parent: MatchRecord
    child: MatchRecord

    @property
    def same_policy(self) -> bool:
        return self.parent.policy_id.lower() == self.child.policy_id.lower()

    def to_row(self) -> dict[str, object]:
        return {
            "parent_policy_id": self.parent.policy_id,
            "parent_policy_name": self.parent.policy_name,
            "parent_scope_type": self.parent.scope.type_label,
            "parent_scope_dn": self.parent.scope.scope_dn,
            "child_policy_id": self.child.policy_id,
            "child_policy_name": self.child.policy_name,
            "child_scope_dn": self.child.scope.scope_dn,
            "same_policy": self.same_policy,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    policy_id: str
    policy_name: str
    scope_score: int
    broad_apply_score: int
    domain_link_score: int
    enforced_score: int
    total_score: int
    linked_scope_count: int
    has_domain_link: bool
    looks_broad_apply: bool
    enforced_link_count: int

    def to_row(self) -> dict[str, object]:
        return {
            "policy_id": self.policy_id,
            "policy_name": self.policy_name,
            "total_score": self.total_score,
            "scope_score": self.scope_score,
            "broad_apply_score": self.broad_apply_score,
            "domain_link_score": self.domain_link_score,
            "enforced_score": self.enforced_score,
            "linked_scope_count": self.linked_scope_count,
            "has_domain_link": self.has_domain_link,
            "looks_broad_apply": self.looks_broad_apply,
            "enforced_link_count": self.enforced_link_count,
        }
