from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from typing import Callable, Optional

try:
    import google.auth  # type: ignore
    import google.auth.exceptions  # type: ignore
except Exception as exc:
    raise SystemExit(
        "Missing dependency `google-auth`. Install with `pip3 install -e .`."
    ) from exc


DEFAULT_LOG_FRESHNESS = "400d"
CREATE_PROJECT_FILTER = "protoPayload.methodName:CreateProject"
OWNER_ROLE = "roles/owner"


@dataclass(frozen=True)
class Project:
    project_id: str
    create_time: str


def run_text(cmd: list[str]) -> str:
    try:
        out = subprocess.check_output(cmd, text=True, stdin=subprocess.DEVNULL)
    except subprocess.CalledProcessError as exc:
        raise RuntimeError(f"Command failed: {shlex.join(cmd)}\n{exc.output}") from exc
    except OSError as exc:
        raise RuntimeError(f"Command failed: {shlex.join(cmd)}\n{exc}") from exc
    return out.strip()


def run_capture(cmd: list[str]) -> str:
    # stderr is merged so that error markers are visible to the classifiers.
    try:
        proc = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except OSError as exc:
        return f"Command failed: {shlex.join(cmd)}: {exc}"
    return (proc.stdout or "").strip()


def member_for_account(account: str) -> str:
    if account.endswith(".gserviceaccount.com"):
        return f"serviceAccount:{account}"
    return f"user:{account}"


def parse_project_lines(out: str) -> list[Project]:
    projects: list[Project] = []
    for line in (out or "").splitlines():
        fields = line.split()
        if not fields:
            continue
        create_time = fields[1] if len(fields) > 1 else ""
        projects.append(Project(project_id=fields[0], create_time=create_time))
    return projects


def _account_from_google_auth_default() -> Optional[str]:
    try:
        creds, _ = google.auth.default(scopes=["https://www.googleapis.com/auth/cloud-platform"])
    except google.auth.exceptions.DefaultCredentialsError:
        return None
    email = getattr(creds, "service_account_email", None)
    if isinstance(email, str) and "@" in email:
        return email
    return None


class Gcloud:
    """
    Thin adapter over the `gcloud` CLI.

    Every remote call of the audit goes through one of these methods, so a
    test double only has to override them.
    """

    def __init__(
        self,
        *,
        binary: str = "gcloud",
        runner: Callable[[list[str]], str] = run_capture,
        spawner: Optional[Callable[..., subprocess.Popen]] = None,
    ) -> None:
        self.binary = binary
        self._runner = runner
        self._spawner = spawner or subprocess.Popen

    def _cmd(self, *args: str) -> list[str]:
        return [self.binary, *args]

    def active_account(self) -> Optional[str]:
        try:
            value = run_text(self._cmd("config", "get-value", "account"))
        except RuntimeError:
            value = ""
        if value and value.lower() != "(unset)":
            return value
        return _account_from_google_auth_default()

    def list_projects(self, filter_expr: Optional[str] = None) -> list[Project]:
        cmd = self._cmd(
            "projects",
            "list",
            "--format=value(projectId,createTime)",
            "--sort-by=~createTime",
        )
        if filter_expr:
            cmd.append(f"--filter={filter_expr}")
        return parse_project_lines(run_text(cmd))

    def read_creator_log(self, project_id: str, *, freshness: str = DEFAULT_LOG_FRESHNESS) -> str:
        return self._runner(
            self._cmd(
                "logging",
                "read",
                CREATE_PROJECT_FILTER,
                f"--project={project_id}",
                "--limit=1",
                "--order=asc",
                f"--freshness={freshness}",
                "--format=value(protoPayload.authenticationInfo.principalEmail)",
            )
        )

    def read_owner_members(self, project_id: str) -> str:
        return self._runner(
            self._cmd(
                "projects",
                "get-iam-policy",
                project_id,
                "--flatten=bindings[].members",
                f"--filter=bindings.role:{OWNER_ROLE}",
                "--format=value(bindings.members)",
            )
        )

    def grant_org_role(self, org_id: str, member: str, role: str) -> subprocess.Popen:
        # Fire and forget: the caller never waits on the returned handle.
        return self._spawner(
            self._cmd(
                "organizations",
                "add-iam-policy-binding",
                org_id,
                f"--member={member}",
                f"--role={role}",
                "--quiet",
            ),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
