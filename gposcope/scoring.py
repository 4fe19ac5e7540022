"""Heuristic ranking of baseline candidates.

Every content-matching policy gets a transparent score:

* ``scope_score``        2 points per distinct linked container
* ``broad_apply_score``  +10 when security filtering targets a broad principal, else -10
* ``domain_link_score``  +8 for a broad domain link, -3 for a narrow one
* ``enforced_score``     one point per enforced link, capped at 3

Disabled links do not count. Links whose state could not be read do.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .models import MatchRecord, ScopeKind, ScoreBreakdown

BROAD_PRINCIPALS: tuple[str, ...] = (
    "Authenticated Users",
    "Domain Computers",
    "Domain Controllers",
    "Enterprise Domain Controllers",
)

SCOPE_POINTS = 2
BROAD_APPLY_POINTS = 10
DOMAIN_BROAD_POINTS = 8
DOMAIN_NARROW_PENALTY = -3
ENFORCED_CAP = 3


@dataclass
class _PolicyTally:
    policy_id: str
    policy_name: str
    principals: list[str] = field(default_factory=list)
    scope_dns: list[str] = field(default_factory=list)
    has_domain_link: bool = False
    enforced_link_count: int = 0


def looks_broad_apply(principals: Iterable[str]) -> bool:
    return any(broad in principal for principal in principals for broad in BROAD_PRINCIPALS)


def breakdown(
    policy_id: str,
    policy_name: str,
    linked_scope_count: int,
    broad: bool,
    has_domain_link: bool,
    enforced_link_count: int,
) -> ScoreBreakdown:
    scope_score = linked_scope_count * SCOPE_POINTS
    broad_apply_score = BROAD_APPLY_POINTS if broad else -BROAD_APPLY_POINTS
    if not has_domain_link:
        domain_link_score = 0
    elif broad:
        domain_link_score = DOMAIN_BROAD_POINTS
    else:
        domain_link_score = DOMAIN_NARROW_PENALTY
    enforced_score = min(enforced_link_count, ENFORCED_CAP)

    return ScoreBreakdown(
        policy_id=policy_id,
        policy_name=policy_name,
        scope_score=scope_score,
        broad_apply_score=broad_apply_score,
        domain_link_score=domain_link_score,
        enforced_score=enforced_score,
        total_score=scope_score + broad_apply_score + domain_link_score + enforced_score,
        linked_scope_count=linked_scope_count,
        has_domain_link=has_domain_link,
        looks_broad_apply=broad,
        enforced_link_count=enforced_link_count,
    )


def _ranking_key(item: ScoreBreakdown) -> tuple[int, str, str]:
    # Equal totals fall back to name, then id, so output never depends on input order.
    return (-item.total_score, item.policy_name.casefold(), item.policy_id.lower())


def score_baselines(records: Iterable[MatchRecord]) -> list[ScoreBreakdown]:
    tallies: dict[str, _PolicyTally] = {}
    for record in records:
        tally = tallies.get(record.policy_id)
        if tally is None:
            tally = tallies[record.policy_id] = _PolicyTally(record.policy_id, record.policy_name)

        for principal in record.security_filtering_apply:
            if principal not in tally.principals:
                tally.principals.append(principal)

        if record.scope.link_enabled is False:
            continue
        if record.is_linked and record.scope.scope_dn not in tally.scope_dns:
            tally.scope_dns.append(record.scope.scope_dn)
        if record.scope.scope_type is ScopeKind.DOMAIN and record.is_linked:
            tally.has_domain_link = True
        if record.scope.link_enforced is True:
            tally.enforced_link_count += 1

    results = [
        breakdown(
            policy_id=t.policy_id,
            policy_name=t.policy_name,
            linked_scope_count=len(t.scope_dns),
            broad=looks_broad_apply(t.principals),
            has_domain_link=t.has_domain_link,
            enforced_link_count=t.enforced_link_count,
        )
        for t in tallies.values()
    ]
    return sorted(results, key=_ranking_key)


def top_candidates(scores: Iterable[ScoreBreakdown], n: int = 3) -> list[ScoreBreakdown]:
    if n < 0:
        raise ValueError("n must be >= 0")
    return list(scores)[:n]
