from __future__ import annotations

from typing import Optional

import pytest

from creatoraudit.progress import ProgressReporter
from creatoraudit.report import CsvReport
from creatoraudit.run import RunContext, RunOptions

from fakes import FakeClock, FakeGcloud


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_ctx(tmp_path, clock):
    reports: list[CsvReport] = []

    def _make(gcloud: FakeGcloud, *, total: Optional[int] = None, **option_overrides) -> RunContext:
        report = CsvReport(str(tmp_path / "output.csv")).open()
        reports.append(report)
        options = RunOptions(show_progress=False, **option_overrides)
        return RunContext(
            org_id="123456789",
            account=gcloud.account or "me@example.com",
            gcloud=gcloud,
            report=report,
            progress=ProgressReporter(
                total=total if total is not None else len(gcloud.projects),
                clock=clock,
                enabled=False,
            ),
            options=options,
            clock=clock,
            sleep=clock.sleep,
        )

    yield _make
    for r in reports:
        r.close()


