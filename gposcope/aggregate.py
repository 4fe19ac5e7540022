from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from .directory import PolicyDirectory
from .errors import DirectoryError
from .models import EMPTY_SCOPE, DirectoryContext, MatchRecord, PolicyObject
from .scope import resolve_scopes

WarningHook = Optional[Callable[[str], None]]


def records_for_policy(
    directory: PolicyDirectory,
    ctx: DirectoryContext,
    policy: PolicyObject,
    warnings: Optional[list[str]] = None,
) -> list[MatchRecord]:
    scopes = resolve_scopes(directory, ctx, policy.id)

    # Collaborator failures here degrade to empty data plus a warning.
    try:
        principals = tuple(directory.get_security_filtering_apply(ctx, policy.id))
    except DirectoryError as exc:
        principals = ()
        if warnings is not None:
            warnings.append(f"Security filtering unavailable for '{policy.name}' ({policy.id}): {exc}")
    try:
        wmi_filter = directory.get_wmi_filter_name(ctx, policy.id)
    except DirectoryError as exc:
        wmi_filter = None
        if warnings is not None:
            warnings.append(f"WMI filter unavailable for '{policy.name}' ({policy.id}): {exc}")

    return [
        MatchRecord(
            policy_id=policy.id,
            policy_name=policy.name,
            scope=scope,
            security_filtering_apply=principals,
            wmi_filter_name=wmi_filter,
        )
        for scope in (scopes or [EMPTY_SCOPE])
    ]


def aggregate_matches(
    directory: PolicyDirectory,
    ctx: DirectoryContext,
    policies: Iterable[PolicyObject],
    workers: int = 1,
    on_warning: WarningHook = None,
) -> list[MatchRecord]:
    """Build one MatchRecord per (policy, link) for the content-matching policies.

    Unlinked policies contribute a single record with the empty scope. With
    ``workers > 1`` policies are resolved concurrently; records and warnings
    keep the order of ``policies`` either way.
    """
    if workers < 1:
        raise ValueError("workers must be >= 1")
    policy_list = list(policies)

    def resolve(policy: PolicyObject) -> tuple[list[MatchRecord], list[str]]:
        warnings: list[str] = []
        return records_for_policy(directory, ctx, policy, warnings), warnings

    if workers == 1 or len(policy_list) < 2:
        results = [resolve(p) for p in policy_list]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(resolve, policy_list))

    records: list[MatchRecord] = []
    for chunk, warnings in results:
        records.extend(chunk)
        if on_warning is not None:
            for message in warnings:
                on_warning(message)
    return records
