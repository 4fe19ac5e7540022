from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import Optional

from colorama import Fore, init

from .analysis import run_analysis
from .directory import SnapshotDirectory
from .errors import GPOScopeError
from .export import export_csv, export_json, print_report


def _warn(message: str) -> None:
    print(f"{Fore.YELLOW}[!] Warning: {message}", file=sys.stderr)


def _compile(pattern: str, ignore_case: bool) -> re.Pattern[str]:
    flags = re.IGNORECASE if ignore_case else 0
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise ValueError(f"invalid regular expression {pattern!r}: {exc}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gposcope",
        description=(
            "GPO Setting Scope Analyzer\n\n"
            "Finds every Group Policy Object whose report mentions a setting, shows where each one is linked, "
            "flags redundant links and ranks the likely baseline policy."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Snapshot layout:\n"
            "  DIR/directory.json        domain, policies and containers with their gPLink text\n"
            "  DIR/reports/<guid>.xml    Get-GPOReport export per policy (.html also accepted)\n\n"
            "Scoring (per policy, disabled links ignored):\n"
            "  +2 per linked scope, +10/-10 broad security filtering,\n"
            "  +8/-3 domain link (broad/narrow), +1 per enforced link (max 3)\n\n"
            "Examples:\n"
            "  gposcope --snapshot ./snap --pattern 'LmCompatibilityLevel'\n"
            "  gposcope --snapshot ./snap --pattern 'smb signing' -i --csv-dir out --json-out out/scope.json\n"
        ),
    )
    parser.add_argument("--snapshot", required=True, help="Snapshot directory containing directory.json")
    parser.add_argument("--pattern", required=True, help="Regular expression searched in each policy report")
    parser.add_argument("-i", "--ignore-case", action="store_true", help="Case-insensitive pattern match")
    parser.add_argument("--name-filter", help="Only consider policies whose name matches this expression")
    parser.add_argument("--top", type=int, default=3, help="Number of baseline candidates to show (default 3)")
    parser.add_argument("--workers", type=int, default=1, help="Resolve scopes with N threads (default 1)")
    parser.add_argument("--csv-dir", help="Write the four result tables as CSV into this directory")
    parser.add_argument("--json-out", help="Write all results to a JSON file")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    init(autoreset=True)
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.top < 0 or args.workers < 1:
        print(f"{Fore.RED}[!] Input error: --top must be >= 0 and --workers >= 1", file=sys.stderr)
        return 2

    try:
        pattern = _compile(args.pattern, args.ignore_case)
        name_filter = _compile(args.name_filter, True) if args.name_filter else None
        directory = SnapshotDirectory(Path(args.snapshot))
    except (ValueError, GPOScopeError) as exc:
        print(f"{Fore.RED}[!] Input error: {exc}", file=sys.stderr)
        return 2

    result = run_analysis(
        directory,
        directory.context(),
        pattern,
        name_filter=name_filter,
        workers=args.workers,
        on_warning=_warn,
    )
    print_report(result, top=args.top)

    if args.csv_dir:
        try:
            for path in export_csv(result, Path(args.csv_dir)):
                print(f"{Fore.GREEN}[+] Wrote CSV: {path}")
        except OSError as exc:
            print(f"{Fore.RED}[!] CSV export error: {exc}", file=sys.stderr)

    if args.json_out:
        try:
            export_json(result, Path(args.json_out))
            print(f"{Fore.GREEN}[+] Wrote JSON: {args.json_out}")
        except OSError as exc:
            print(f"{Fore.RED}[!] JSON export error: {exc}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
