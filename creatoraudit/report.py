from __future__ import annotations

import csv
import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, TextIO


SCHEMA_VERSION = 1
TOOL_NAME = "GCP Creator Audit"

CSV_HEADER = ["Project ID", "Created", "Creator (from Logs)", "Current Owner(s) (from IAM)"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def atomic_write_json(path: str, obj: Any) -> None:
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=False, default=str)
        f.write("\n")
    os.replace(tmp_path, path)


@dataclass(frozen=True)
class AuditResult:
    project_id: str
    create_time: str
    creator: str
    owners: str
    retried: bool = False

    def to_row(self) -> list[str]:
        return [self.project_id, self.create_time, self.creator, self.owners]

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "created": self.create_time,
            "creator": self.creator,
            "owners": self.owners,
            "retried": self.retried,
        }


class CsvReport:
    """
    Append-only CSV writer.

    Opening truncates the file and writes the header. Every row is flushed as
    soon as it is written, so an interrupted run keeps what it had.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.rows = 0
        self._fh: Optional[TextIO] = None
        self._writer = None

    def open(self) -> "CsvReport":
        self._fh = open(self.path, "w", encoding="utf-8", newline="")
        csv.writer(self._fh, lineterminator="\n").writerow(CSV_HEADER)
        self._fh.flush()
        self._writer = csv.writer(self._fh, quoting=csv.QUOTE_ALL, lineterminator="\n")
        return self

    def write_row(self, result: AuditResult) -> None:
        if self._fh is None or self._writer is None:
            raise RuntimeError(f"Report {self.path} is not open")
        self._writer.writerow(result.to_row())
        self._fh.flush()
        self.rows += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._writer = None

    def __enter__(self) -> "CsvReport":
        if self._fh is None:
            self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def build_summary(
    *,
    organization: str,
    account: str,
    results: list[AuditResult],
    summary: dict,
    extra: Optional[dict] = None,
) -> dict:
    report = {
        "tool": TOOL_NAME,
        "schema_version": SCHEMA_VERSION,
        "provider": "gcp",
        "organization": organization,
        "account": account,
        "generated_at": utc_now_iso(),
        "projects": [r.to_dict() for r in results],
        "summary": dict(summary),
    }
    if extra:
        report["summary"].update(extra)
    return report
