from __future__ import annotations

import json

import pytest

from creatoraudit.report import CsvReport, AuditResult, atomic_write_json, build_summary

from fakes import read_rows


HEADER = "Project ID,Created,Creator (from Logs),Current Owner(s) (from IAM)"


def test_header_only_when_no_rows(tmp_path):
    path = tmp_path / "out.csv"
    with CsvReport(str(path)):
        pass
    assert read_rows(path) == [HEADER]


def test_rows_are_quoted_and_flushed_immediately(tmp_path):
    path = tmp_path / "out.csv"
    report = CsvReport(str(path)).open()
    try:
        report.write_row(AuditResult("p1", "2024-01-01T00:00:00Z", "a@x.com", "a@x.com,b@x.com"))
        # Visible before close.
        assert read_rows(path) == [HEADER, '"p1","2024-01-01T00:00:00Z","a@x.com","a@x.com,b@x.com"']
    finally:
        report.close()
    assert report.rows == 1


def test_embedded_quotes_are_escaped(tmp_path):
    path = tmp_path / "out.csv"
    with CsvReport(str(path)) as report:
        report.write_row(AuditResult("p1", "", 'odd"name', "No Owners Found"))
    assert read_rows(path)[1] == '"p1","","odd""name","No Owners Found"'


def test_opening_truncates_previous_output(tmp_path):
    path = tmp_path / "out.csv"
    path.write_text("stale\nrows\n", encoding="utf-8")
    with CsvReport(str(path)):
        pass
    assert read_rows(path) == [HEADER]


def test_write_requires_open(tmp_path):
    report = CsvReport(str(tmp_path / "out.csv"))
    with pytest.raises(RuntimeError):
        report.write_row(AuditResult("p1", "", "", ""))


def test_summary_json(tmp_path):
    path = tmp_path / "summary.json"
    results = [AuditResult("p1", "t", "a@x.com", "b@x.com", retried=True)]
    atomic_write_json(
        str(path),
        build_summary(organization="42", account="me@x.com", results=results, summary={"rows_written": 1}, extra={"k": "v"}),
    )
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["organization"] == "42"
    assert data["projects"] == [
        {"project_id": "p1", "created": "t", "creator": "a@x.com", "owners": "b@x.com", "retried": True}
    ]
    assert data["summary"] == {"rows_written": 1, "k": "v"}
    assert data["generated_at"].endswith("Z")
    assert not (tmp_path / "summary.json.tmp").exists()
