from __future__ import annotations

from typing import Optional

from creatoraudit.gcloud import Gcloud, Project

DENIED = "ERROR: (gcloud.logging.read) PERMISSION_DENIED: Permission denied for all log views."
API_DISABLED = (
    "ERROR: (gcloud.logging.read) Cloud Logging API has not been used in project 123 before or it is disabled."
)
IAM_DENIED = "ERROR: (gcloud.projects.get-iam-policy) [me@example.com] does not have permission: PERMISSION_DENIED"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeGcloud(Gcloud):
    """Canned gcloud responses keyed by project id."""

    def __init__(
        self,
        *,
        account: Optional[str] = "me@example.com",
        projects: Optional[list[Project]] = None,
        logs: Optional[dict[str, list[str]]] = None,
        owners: Optional[dict[str, str]] = None,
        list_error: Optional[str] = None,
        interrupt_on: Optional[str] = None,
    ) -> None:
        super().__init__(binary="gcloud-fake")
        self.account = account
        self.projects = projects or []
        # Each project maps to the successive outputs of its log query.
        self.logs = {k: list(v) for k, v in (logs or {}).items()}
        self.owners = owners or {}
        self.list_error = list_error
        self.interrupt_on = interrupt_on
        self.grant_handle = None
        self.log_calls: list[str] = []
        self.owner_calls: list[str] = []
        self.grants: list[tuple[str, str, str]] = []

    def active_account(self) -> Optional[str]:
        return self.account

    def list_projects(self, filter_expr: Optional[str] = None) -> list[Project]:
        if self.list_error:
            raise RuntimeError(self.list_error)
        return list(self.projects)

    def read_creator_log(self, project_id: str, *, freshness: str = "400d") -> str:
        self.log_calls.append(project_id)
        if project_id == self.interrupt_on:
            raise KeyboardInterrupt
        outputs = self.logs.get(project_id, [""])
        if len(outputs) > 1:
            return outputs.pop(0)
        return outputs[0]

    def read_owner_members(self, project_id: str) -> str:
        self.owner_calls.append(project_id)
        return self.owners.get(project_id, "")

    def grant_org_role(self, org_id: str, member: str, role: str):
        self.grants.append((org_id, member, role))
        return self.grant_handle



def read_rows(path) -> list[str]:
    with open(path, "r", encoding="utf-8") as f:
        return f.read().splitlines()
