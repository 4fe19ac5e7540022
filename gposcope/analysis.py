from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from .aggregate import WarningHook, aggregate_matches
from .directory import PolicyDirectory
from .errors import DirectoryError
from .models import (
    DirectoryContext,
    HierarchyOverlap,
    MatchRecord,
    PolicyObject,
    SameScopeOverlap,
    ScoreBreakdown,
)
from .overlap import analyze_overlaps
from .scoring import score_baselines


@dataclass
class AnalysisResult:
    pattern: str
    domain_name: str
    policies: list[PolicyObject] = field(default_factory=list)
    matches: list[MatchRecord] = field(default_factory=list)
    same_scope: list[SameScopeOverlap] = field(default_factory=list)
    hierarchy: list[HierarchyOverlap] = field(default_factory=list)
    scores: list[ScoreBreakdown] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {
            "matching_policies": len(self.policies),
            "match_records": len(self.matches),
            "unlinked_policies": len({m.policy_id for m in self.matches if not m.is_linked}),
            "same_scope_overlaps": len(self.same_scope),
            "hierarchy_overlaps": len(self.hierarchy),
        }


def find_matching_policies(
    directory: PolicyDirectory,
    ctx: DirectoryContext,
    pattern: re.Pattern[str],
    name_filter: Optional[re.Pattern[str]] = None,
    on_warning: WarningHook = None,
) -> list[PolicyObject]:
    matching: list[PolicyObject] = []
    for policy in directory.list_policies(ctx):
        if name_filter is not None and not name_filter.search(policy.name):
            continue
        try:
            if directory.has_content_match(ctx, policy.id, pattern):
                matching.append(policy)
        except DirectoryError as exc:
            if on_warning is not None:
                on_warning(f"Skipping '{policy.name}' ({policy.id}): {exc}")
    return matching


def run_analysis(
    directory: PolicyDirectory,
    ctx: DirectoryContext,
    pattern: re.Pattern[str],
    name_filter: Optional[re.Pattern[str]] = None,
    workers: int = 1,
    on_warning: WarningHook = None,
) -> AnalysisResult:
    result = AnalysisResult(pattern=pattern.pattern, domain_name=ctx.domain_name)

    def warn(message: str) -> None:
        result.warnings.append(message)
        if on_warning is not None:
            on_warning(message)

    result.policies = find_matching_policies(directory, ctx, pattern, name_filter, on_warning=warn)
    result.matches = aggregate_matches(directory, ctx, result.policies, workers=workers, on_warning=warn)

    # Overlaps and scores need the complete record set.
    result.same_scope, result.hierarchy = analyze_overlaps(result.matches)
    result.scores = score_baselines(result.matches)
    return result
