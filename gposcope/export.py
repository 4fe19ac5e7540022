from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from colorama import Fore, Style

from .analysis import AnalysisResult
from .models import MatchRecord
from .scoring import top_candidates

MATCH_FIELDS = [
    "policy_id",
    "policy_name",
    "scope_type",
    "scope_name",
    "scope_dn",
    "link_enabled",
    "link_enforced",
    "security_filtering_apply",
    "wmi_filter_name",
]
SAME_SCOPE_FIELDS = ["group", "scope_type", "scope_dn", "policy_id", "policy_name", "link_enabled", "link_enforced"]
HIERARCHY_FIELDS = [
    "parent_policy_id",
    "parent_policy_name",
    "parent_scope_type",
    "parent_scope_dn",
    "child_policy_id",
    "child_policy_name",
    "child_scope_dn",
    "same_policy",
]
SCORE_FIELDS = [
    "policy_id",
    "policy_name",
    "total_score",
    "scope_score",
    "broad_apply_score",
    "domain_link_score",
    "enforced_score",
    "linked_scope_count",
    "has_domain_link",
    "looks_broad_apply",
    "enforced_link_count",
]

CSV_FILES = {
    "matches": "matches.csv",
    "same_scope": "same_scope_overlaps.csv",
    "hierarchy": "hierarchy_overlaps.csv",
    "scores": "baseline_scores.csv",
}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _fmt_score(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def tables(result: AnalysisResult) -> dict[str, list[dict[str, object]]]:
    same_scope_rows: list[dict[str, object]] = []
    for idx, group in enumerate(result.same_scope, start=1):
        same_scope_rows.extend(group.to_rows(idx))
    return {
        "matches": [m.to_row() for m in result.matches],
        "same_scope": same_scope_rows,
        "hierarchy": [h.to_row() for h in result.hierarchy],
        "scores": [s.to_row() for s in result.scores],
    }


def _write_csv(output_path: Path, fieldnames: list[str], rows: Iterable[dict[str, object]]) -> None:
    with output_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            # None means unknown and is written as an empty cell.
            writer.writerow({k: ("" if row.get(k) is None else row.get(k)) for k in fieldnames})


def export_csv(result: AnalysisResult, output_dir: Path) -> list[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    data = tables(result)
    fields = {
        "matches": MATCH_FIELDS,
        "same_scope": SAME_SCOPE_FIELDS,
        "hierarchy": HIERARCHY_FIELDS,
        "scores": SCORE_FIELDS,
    }
    written: list[Path] = []
    for key, filename in CSV_FILES.items():
        path = output_dir / filename
        _write_csv(path, fields[key], data[key])
        written.append(path)
    return written


def export_json(result: AnalysisResult, output_path: Path) -> None:
    payload = {
        "generated_at": _utc_now_iso(),
        "tool": "gposcope",
        "pattern": result.pattern,
        "domain": result.domain_name,
        "summary": result.summary(),
        "warnings": list(result.warnings),
        **tables(result),
    }
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def print_banner(pattern: str, domain_name: str) -> None:
    print(f"\n{Fore.CYAN}{'='*60}")
    print(f"{Fore.CYAN} SETTING SCOPE: {Fore.WHITE}{Style.BRIGHT}{pattern}")
    print(f"{Fore.CYAN} DOMAIN:        {Fore.WHITE}{domain_name}")
    print(f"{Fore.CYAN}{'='*60}")


def _link_line(record: MatchRecord) -> str:
    scope = record.scope
    if scope.link_enabled is False:
        color = Fore.YELLOW
    elif scope.link_enabled is None:
        color = Fore.MAGENTA
    else:
        color = Fore.GREEN
    return (
        f"{color}    [{scope.type_label}] {scope.scope_name}"
        f"{Style.RESET_ALL} (enabled: {scope.enabled_label}, enforced: {scope.enforced_label})"
    )


def print_matches(result: AnalysisResult) -> None:
    print(f"\n{Style.BRIGHT}[Step 1] Matching policies and links:")
    if not result.matches:
        print(f"{Fore.GREEN}[+] No policy contains the setting.")
        return

    current: Optional[str] = None
    for record in result.matches:
        if record.policy_id != current:
            current = record.policy_id
            print(f"{Fore.WHITE}{Style.BRIGHT}[+] {record.policy_name} {Style.RESET_ALL}{record.policy_id}")
            apply_to = ", ".join(record.security_filtering_apply) or "(none)"
            print(f"    Security filtering: {apply_to}")
            if record.wmi_filter_name:
                print(f"    WMI filter: {record.wmi_filter_name}")
        if record.is_linked:
            print(_link_line(record))
        else:
            print(f"{Fore.RED}    [!] Not linked anywhere (dormant).")


def print_overlaps(result: AnalysisResult) -> None:
    print(f"\n{Style.BRIGHT}[Step 2] Same-scope overlap:")
    if not result.same_scope:
        print(f"{Fore.GREEN}[+] No container links more than one matching policy.")
    for group in result.same_scope:
        print(f"{Fore.YELLOW}[MED] {len(group.records)} policies linked at [{group.scope_type}] {group.scope_dn}")
        for name in group.policy_names:
            print(f"       - {name}")

    print(f"\n{Style.BRIGHT}[Step 3] Hierarchy overlap:")
    if not result.hierarchy:
        print(f"{Fore.GREEN}[+] No parent/child overlap between matching policies.")
    for pair in result.hierarchy:
        tag = " (same policy)" if pair.same_policy else ""
        print(
            f"{Fore.YELLOW}[MED] {pair.parent.policy_name} @ {pair.parent.scope.scope_name}"
            f" -> {pair.child.policy_name} @ {pair.child.scope.scope_dn}{tag}"
        )


def print_candidates(result: AnalysisResult, top: int = 3) -> None:
    print(f"\n{Style.BRIGHT}[Step 4] Baseline candidates (heuristic):")
    if not result.scores:
        print(f"{Fore.YELLOW}[!] No baseline candidates.")
        return
    for rank, item in enumerate(top_candidates(result.scores, top), start=1):
        color = Fore.GREEN if item.total_score > 0 else Fore.YELLOW
        print(f"{color}{Style.BRIGHT}  #{rank} {item.policy_name}: {item.total_score}")
        print(
            f"       scopes {_fmt_score(item.scope_score)} ({item.linked_scope_count}), "
            f"apply {_fmt_score(item.broad_apply_score)}, "
            f"domain {_fmt_score(item.domain_link_score)}, "
            f"enforced {_fmt_score(item.enforced_score)} ({item.enforced_link_count})"
        )


def print_summary(result: AnalysisResult) -> None:
    counts = result.summary()
    print(f"\n{Style.BRIGHT}[Summary]")
    print(f"  Matching policies:   {counts['matching_policies']}")
    print(f"  Unlinked matches:    {counts['unlinked_policies']}")
    print(f"  Same-scope overlaps: {counts['same_scope_overlaps']}")
    print(f"  Hierarchy overlaps:  {counts['hierarchy_overlaps']}")
    if result.warnings:
        print(f"  {Fore.YELLOW}Warnings{Style.RESET_ALL}:            {len(result.warnings)}")


def print_report(result: AnalysisResult, top: int = 3) -> None:
    print_banner(result.pattern, result.domain_name)
    print_matches(result)
    print_overlaps(result)
    print_candidates(result, top=top)
    print_summary(result)
