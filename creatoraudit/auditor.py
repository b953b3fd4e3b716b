from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from creatoraudit.classify import classify_creator, classify_owners
from creatoraudit.gcloud import Project
from creatoraudit.report import AuditResult

if TYPE_CHECKING:
    from creatoraudit.run import RunContext


def audit_project(ctx: "RunContext", project: Project, *, is_retry: bool) -> Optional[AuditResult]:
    """
    Resolve creator and owners of one project and append its CSV row.

    Returns None, without writing anything, when the log query is denied on a
    first attempt; the caller queues the project for the retry pass. The
    owner lookup runs regardless of how the log query went.
    """
    log_out = ctx.gcloud.read_creator_log(project.project_id, freshness=ctx.options.log_freshness)
    creator = classify_creator(log_out, is_retry=is_retry)
    if creator is None:
        return None

    owners = classify_owners(ctx.gcloud.read_owner_members(project.project_id))

    result = AuditResult(
        project_id=project.project_id,
        create_time=project.create_time,
        creator=creator,
        owners=owners,
        retried=is_retry,
    )
    ctx.report.write_row(result)
    ctx.results.append(result)
    ctx.completed += 1
    return result
