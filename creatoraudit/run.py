from __future__ import annotations

import math
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from creatoraudit.auditor import audit_project
from creatoraudit.classify import CREATOR_SENTINELS, OWNER_SENTINELS
from creatoraudit.console import info, warn
from creatoraudit.gcloud import DEFAULT_LOG_FRESHNESS, Gcloud, Project, member_for_account
from creatoraudit.progress import ProgressReporter, countdown
from creatoraudit.report import AuditResult, CsvReport


DEFAULT_PROPAGATION_WAIT = 60
DEFAULT_LOG_VIEWER_ROLE = "roles/logging.viewer"


@dataclass
class RunOptions:
    propagation_wait: int = DEFAULT_PROPAGATION_WAIT
    log_viewer_role: str = DEFAULT_LOG_VIEWER_ROLE
    log_freshness: str = DEFAULT_LOG_FRESHNESS
    self_heal: bool = True
    show_progress: bool = True


@dataclass
class SelfHealToken:
    triggered_at: Optional[float] = None
    handle: Any = None

    @property
    def fired(self) -> bool:
        return self.triggered_at is not None


@dataclass
class RunSummary:
    total_projects: int
    rows_written: int
    retried: int
    fix_triggered: bool
    creators_resolved: int
    creator_sentinels: dict[str, int]
    owner_sentinels: dict[str, int]

    def to_dict(self) -> dict:
        return {
            "total_projects": self.total_projects,
            "rows_written": self.rows_written,
            "retried": self.retried,
            "fix_triggered": self.fix_triggered,
            "creators_resolved": self.creators_resolved,
            "creator_sentinels": dict(self.creator_sentinels),
            "owner_sentinels": dict(self.owner_sentinels),
        }


@dataclass
class RunContext:
    """All mutable state of one audit run, passed explicitly to each phase."""

    org_id: str
    account: str
    gcloud: Gcloud
    report: CsvReport
    progress: ProgressReporter
    options: RunOptions = field(default_factory=RunOptions)
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    completed: int = 0
    retry_queue: list[Project] = field(default_factory=list)
    retried: int = 0
    results: list[AuditResult] = field(default_factory=list)
    heal: SelfHealToken = field(default_factory=SelfHealToken)


def _status(msg: str) -> None:
    # Leading newline keeps the message off the in-place progress line.
    print(f"\n{msg}", file=sys.stderr)


def trigger_self_heal(ctx: RunContext, project_id: str) -> bool:
    """Dispatch the log-viewer grant once per run. Returns True if it was dispatched now."""
    if ctx.heal.fired or not ctx.options.self_heal:
        return False
    _status(
        warn(
            f"Access denied ({project_id}). Granting {ctx.options.log_viewer_role} on organization "
            f"{ctx.org_id} to {ctx.account}..."
        ),
    )
    ctx.heal.handle = ctx.gcloud.grant_org_role(
        ctx.org_id, member_for_account(ctx.account), ctx.options.log_viewer_role
    )
    ctx.heal.triggered_at = ctx.clock()
    return True


def first_pass(ctx: RunContext, projects: list[Project]) -> None:
    for project in projects:
        result = audit_project(ctx, project, is_retry=False)
        if result is None:
            trigger_self_heal(ctx, project.project_id)
            ctx.retry_queue.append(project)
            continue
        ctx.progress.update(ctx.completed)


def propagation_wait_seconds(ctx: RunContext) -> int:
    if not ctx.heal.fired:
        return 0
    elapsed = ctx.clock() - ctx.heal.triggered_at
    return max(0, math.ceil(ctx.options.propagation_wait - elapsed))


def wait_for_propagation(ctx: RunContext) -> int:
    seconds = propagation_wait_seconds(ctx)
    if seconds > 0:
        countdown(seconds, sleep=ctx.sleep, enabled=ctx.options.show_progress)
    return seconds


def retry_pass(ctx: RunContext) -> None:
    queue, ctx.retry_queue = ctx.retry_queue, []
    for project in queue:
        audit_project(ctx, project, is_retry=True)
        ctx.retried += 1
        ctx.progress.update(ctx.completed)


def summarize(ctx: RunContext, total: int) -> RunSummary:
    if ctx.heal.handle is not None:
        # Reap the grant process if it has exited; never blocks.
        ctx.heal.handle.poll()
    creator_counts = {s: 0 for s in CREATOR_SENTINELS}
    owner_counts = {s: 0 for s in OWNER_SENTINELS}
    resolved = 0
    for r in ctx.results:
        if r.creator in creator_counts:
            creator_counts[r.creator] += 1
        else:
            resolved += 1
        if r.owners in owner_counts:
            owner_counts[r.owners] += 1
    return RunSummary(
        total_projects=total,
        rows_written=ctx.report.rows,
        retried=ctx.retried,
        fix_triggered=ctx.heal.fired,
        creators_resolved=resolved,
        creator_sentinels=creator_counts,
        owner_sentinels=owner_counts,
    )


def run_audit(ctx: RunContext, projects: list[Project]) -> RunSummary:
    first_pass(ctx, projects)

    if ctx.retry_queue:
        _status(info(f"Main list done. Processing {len(ctx.retry_queue)} queued projects..."))
        wait_for_propagation(ctx)
        retry_pass(ctx)

    return summarize(ctx, len(projects))
