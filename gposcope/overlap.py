"""Structural redundancy between content-matching policies.

Two signals are reported:

* same-scope: two or more matching policies linked to the identical container;
* hierarchy: a matching policy linked at a domain or OU and another linked at
  an OU below it.

Neither says which setting wins at runtime; they point at places where the
same setting is likely defined more than once.
"""

from __future__ import annotations

import re
from typing import Iterable

from .models import HierarchyOverlap, MatchRecord, SameScopeOverlap, ScopeKind

_SEPARATOR_SPACE_RE = re.compile(r"\s*(?<!\\),\s*")


def normalize_dn(dn: str) -> str:
    return _SEPARATOR_SPACE_RE.sub(",", dn.strip()).lower()


def is_descendant_dn(child_dn: str, parent_dn: str) -> bool:
    """True when ``child_dn`` sits strictly below ``parent_dn``.

    Containment is a suffix match anchored on a component boundary, so
    ``OU=Servers,OU=Corp,...`` is below ``OU=Corp,...`` but
    ``OU=NewCorp,...`` is not.
    """
    child = normalize_dn(child_dn)
    parent = normalize_dn(parent_dn)
    if not child or not parent or child == parent:
        return False
    return child.endswith("," + parent)


def same_scope_overlaps(records: Iterable[MatchRecord]) -> list[SameScopeOverlap]:
    groups: dict[tuple[str, str], list[MatchRecord]] = {}
    for record in records:
        if not record.is_linked:
            continue
        key = (record.scope.type_label, normalize_dn(record.scope.scope_dn))
        members = groups.setdefault(key, [])
        if record not in members:
            members.append(record)

    # Groups report the DN as first seen.
    return [
        SameScopeOverlap(scope_type=scope_type, scope_dn=members[0].scope.scope_dn, records=tuple(members))
        for (scope_type, _), members in groups.items()
        if len(members) >= 2
    ]


def hierarchy_overlaps(records: Iterable[MatchRecord]) -> list[HierarchyOverlap]:
    candidates = [
        r
        for r in records
        if r.is_linked and r.scope.scope_type in (ScopeKind.DOMAIN, ScopeKind.ORGANIZATIONAL_UNIT)
    ]

    pairs: list[HierarchyOverlap] = []
    for parent in candidates:
        for child in candidates:
            if child.scope.scope_type is not ScopeKind.ORGANIZATIONAL_UNIT:
                continue
            if is_descendant_dn(child.scope.scope_dn, parent.scope.scope_dn):
                pairs.append(HierarchyOverlap(parent=parent, child=child))
    return pairs


def analyze_overlaps(records: Iterable[MatchRecord]) -> tuple[list[SameScopeOverlap], list[HierarchyOverlap]]:
    record_list = list(records)
    return same_scope_overlaps(record_list), hierarchy_overlaps(record_list)
