import pytest

from gposcope.models import MatchRecord, ScopeKind, ScopeRecord
from gposcope.scoring import breakdown, looks_broad_apply, score_baselines, top_candidates

BROAD = ("NT AUTHORITY\\Authenticated Users",)
NARROW = ("EXAMPLE\\Helpdesk",)


def _rec(policy_id, kind, dn, enabled=True, enforced=False, apply_to=BROAD, name=None):
    scope = ScopeRecord(scope_type=kind, scope_name=dn, scope_dn=dn, link_enabled=enabled, link_enforced=enforced)
    return MatchRecord(
        policy_id=policy_id,
        policy_name=name or f"GPO {policy_id}",
        scope=scope,
        security_filtering_apply=apply_to,
    )


def test_breakdown_broad_domain_capped_enforced():
    item = breakdown("A", "A", linked_scope_count=2, broad=True, has_domain_link=True, enforced_link_count=5)
    assert (item.scope_score, item.broad_apply_score, item.domain_link_score, item.enforced_score) == (4, 10, 8, 3)
    assert item.total_score == 25


def test_breakdown_narrow_domain_penalty():
    item = breakdown("A", "A", linked_scope_count=1, broad=False, has_domain_link=True, enforced_link_count=0)
    assert item.total_score == 2 - 10 - 3 + 0 == -11


def test_breakdown_no_domain_link_is_neutral():
    item = breakdown("A", "A", linked_scope_count=0, broad=False, has_domain_link=False, enforced_link_count=0)
    assert item.domain_link_score == 0
    assert item.total_score == -10


@pytest.mark.parametrize(
    "principals,expected",
    [
        (["NT AUTHORITY\\Authenticated Users"], True),
        (["EXAMPLE\\Domain Computers"], True),
        (["EXAMPLE\\Enterprise Domain Controllers"], True),
        (["EXAMPLE\\domain computers"], False),
        (["EXAMPLE\\Helpdesk"], False),
        ([], False),
    ],
)
def test_looks_broad_apply(principals, expected):
    assert looks_broad_apply(principals) is expected


def test_score_from_records_matches_worked_example():
    records = [
        _rec("A", ScopeKind.DOMAIN, "DC=example,DC=com", enforced=True),
        _rec("A", ScopeKind.ORGANIZATIONAL_UNIT, "OU=Corp,DC=example,DC=com", enforced=True),
        _rec("B", ScopeKind.DOMAIN, "DC=example,DC=com", apply_to=NARROW),
    ]

    a, b = score_baselines(records)

    assert a.policy_id == "A"
    assert a.linked_scope_count == 2
    assert a.has_domain_link and a.looks_broad_apply
    assert a.enforced_link_count == 2
    assert a.total_score == 4 + 10 + 8 + 2
    assert b.total_score == -11


def test_disabled_links_do_not_count_but_unknown_do():
    records = [
        _rec("A", ScopeKind.DOMAIN, "DC=example,DC=com", enabled=False, enforced=True),
        _rec("A", ScopeKind.ORGANIZATIONAL_UNIT, "OU=Corp,DC=example,DC=com", enabled=None, enforced=None),
    ]

    (item,) = score_baselines(records)

    assert item.linked_scope_count == 1
    assert not item.has_domain_link
    assert item.enforced_link_count == 0
    assert item.total_score == 2 + 10


def test_unlinked_policy_still_scored():
    records = [MatchRecord(policy_id="Z", policy_name="Dormant", security_filtering_apply=BROAD)]
    (item,) = score_baselines(records)
    assert item.linked_scope_count == 0
    assert item.total_score == 10


def test_ties_break_on_name_then_id():
    records = [
        _rec("2", ScopeKind.ORGANIZATIONAL_UNIT, "OU=B,DC=example,DC=com", name="beta"),
        _rec("1", ScopeKind.ORGANIZATIONAL_UNIT, "OU=A,DC=example,DC=com", name="Alpha"),
        _rec("0", ScopeKind.ORGANIZATIONAL_UNIT, "OU=C,DC=example,DC=com", name="beta"),
    ]

    ranked = score_baselines(records)

    assert [s.policy_id for s in ranked] == ["1", "0", "2"]
    assert score_baselines(list(reversed(records))) == ranked


def test_sorted_descending_and_top_candidates():
    records = [
        _rec("low", ScopeKind.ORGANIZATIONAL_UNIT, "OU=A,DC=example,DC=com", apply_to=NARROW),
        _rec("high", ScopeKind.DOMAIN, "DC=example,DC=com"),
        _rec("mid", ScopeKind.ORGANIZATIONAL_UNIT, "OU=B,DC=example,DC=com"),
    ]
    ranked = score_baselines(records)
    assert [s.policy_id for s in ranked] == ["high", "mid", "low"]
    assert [s.policy_id for s in top_candidates(ranked, 2)] == ["high", "mid"]
    assert len(top_candidates(ranked)) == 3


def test_empty_records():
    assert score_baselines([]) == []
