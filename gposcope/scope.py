from __future__ import annotations

import re
from typing import Union

from .directory import PolicyDirectory
from .links import link_state_for
from .models import DirectoryContext, LinkedContainer, ScopeKind, ScopeRecord

# Lower-cased objectClass values, most specific first.
_CLASS_KINDS: tuple[tuple[str, ScopeKind], ...] = (
    ("domaindns", ScopeKind.DOMAIN),
    ("domain", ScopeKind.DOMAIN),
    ("organizationalunit", ScopeKind.ORGANIZATIONAL_UNIT),
    ("site", ScopeKind.SITE),
)
_GENERIC_CLASSES = {"top", "container"}

_DN_SEPARATOR_RE = re.compile(r"(?<!\\),")


def split_dn(dn: str) -> list[str]:
    return [part.strip() for part in _DN_SEPARATOR_RE.split(dn) if part.strip()]


def classify_container(container_class: Union[str, tuple[str, ...], list[str]]) -> tuple[ScopeKind, str]:
    """Map a directory class (or objectClass chain) to a scope kind.

    Returns the kind together with the class name it was decided on, which is
    what an ``Other`` scope reports as its type.
    """
    if isinstance(container_class, str):
        classes = [container_class]
    else:
        classes = list(container_class)
    classes = [c.strip() for c in classes if c and c.strip()]

    lowered = {c.lower() for c in classes}
    for class_name, kind in _CLASS_KINDS:
        if class_name in lowered:
            original = next(c for c in classes if c.lower() == class_name)
            return kind, original

    specific = [c for c in classes if c.lower() not in _GENERIC_CLASSES]
    if specific:
        return ScopeKind.OTHER, specific[-1]
    return ScopeKind.OTHER, classes[-1] if classes else ""


def site_leaf_name(dn: str) -> str:
    parts = split_dn(dn)
    if not parts:
        return dn
    first = parts[0]
    if "=" in first:
        first = first.split("=", 1)[1]
    return first.replace("\\,", ",").strip()


def _scope_name(kind: ScopeKind, container: LinkedContainer, domain_name: str) -> str:
    if kind is ScopeKind.DOMAIN:
        return domain_name
    if kind is ScopeKind.SITE:
        return site_leaf_name(container.container_dn)
    if kind is ScopeKind.ORGANIZATIONAL_UNIT or kind is ScopeKind.OTHER:
        return container.container_dn
    raise AssertionError(f"unhandled scope kind {kind!r}")


def scope_from_container(container: LinkedContainer, policy_id: str, domain_name: str) -> ScopeRecord:
    kind, object_class = classify_container(container.container_class)
    state = link_state_for(container.raw_link_text, policy_id)
    return ScopeRecord(
        scope_type=kind,
        scope_name=_scope_name(kind, container, domain_name),
        scope_dn=container.container_dn,
        object_class=object_class,
        link_enabled=state.enabled if state else None,
        link_enforced=state.enforced if state else None,
    )


def resolve_scopes(directory: PolicyDirectory, ctx: DirectoryContext, policy_id: str) -> list[ScopeRecord]:
    containers = directory.get_linked_containers(ctx, policy_id)
    if not containers:
        return []

    domain_name = ""
    scopes: list[ScopeRecord] = []
    for container in containers:
        if not domain_name and classify_container(container.container_class)[0] is ScopeKind.DOMAIN:
            domain_name = directory.get_domain_display_name(ctx)
        scopes.append(scope_from_container(container, policy_id, domain_name))

    scopes.sort(key=ScopeRecord.sort_key)
    return scopes
