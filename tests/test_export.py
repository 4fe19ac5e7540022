import csv
import json
import re

from gposcope.analysis import AnalysisResult, run_analysis
from gposcope.directory import SnapshotDirectory
from gposcope.export import CSV_FILES, export_csv, export_json, print_report
from gposcope.models import MatchRecord

from .conftest import GUID_A, write_snapshot


def _result(tmp_path):
    snapshot = SnapshotDirectory(write_snapshot(tmp_path / "snap"))
    return run_analysis(snapshot, snapshot.context(), re.compile("LAN Manager"))


def _read_csv(path):
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def test_export_csv_tables(tmp_path):
    result = _result(tmp_path)
    written = export_csv(result, tmp_path / "out")

    assert sorted(p.name for p in written) == sorted(CSV_FILES.values())
    matches = _read_csv(tmp_path / "out" / "matches.csv")
    assert len(matches) == 4
    assert matches[0]["policy_id"] == GUID_A
    assert matches[0]["scope_type"] == "Domain"
    assert matches[0]["link_enabled"] == "True"

    same_scope = _read_csv(tmp_path / "out" / "same_scope_overlaps.csv")
    assert [row["group"] for row in same_scope] == ["1", "1"]

    scores = _read_csv(tmp_path / "out" / "baseline_scores.csv")
    assert scores[0]["total_score"] == "23"


def test_unknown_link_state_is_empty_cell(tmp_path):
    result = AnalysisResult(pattern="x", domain_name="example.com")
    result.matches = [MatchRecord(policy_id="{1}", policy_name="Dormant")]
    export_csv(result, tmp_path / "out")
    (row,) = _read_csv(tmp_path / "out" / "matches.csv")
    assert row["link_enabled"] == ""
    assert row["scope_type"] == ""


def test_export_json(tmp_path):
    result = _result(tmp_path)
    out = tmp_path / "out" / "scope.json"
    export_json(result, out)

    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["tool"] == "gposcope"
    assert payload["domain"] == "example.com"
    assert payload["summary"]["matching_policies"] == 2
    assert payload["summary"]["same_scope_overlaps"] == 1
    assert len(payload["hierarchy"]) == 5
    assert payload["scores"][0]["policy_id"] == GUID_A


def test_print_report_no_candidates(capsys):
    print_report(AnalysisResult(pattern="nothing", domain_name="example.com"))
    out = capsys.readouterr().out
    assert "No policy contains the setting." in out
    assert "No baseline candidates." in out


def test_print_report_top_n(tmp_path, capsys):
    print_report(_result(tmp_path), top=1)
    out = capsys.readouterr().out
    assert "#1 Baseline Security: 23" in out
    assert "#2" not in out


def test_print_candidates_zero_top(tmp_path, capsys):
    print_report(_result(tmp_path), top=0)
    out = capsys.readouterr().out
    assert "#1" not in out
    assert "No baseline candidates." not in out
