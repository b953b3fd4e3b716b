from __future__ import annotations

from typing import Optional


# Substrings searched in gcloud's merged stdout/stderr.
#   PERMISSION_DENIED      -> the caller lacks the permission for this call
#   API has not been used  -> the Cloud Logging API is disabled in the project
PERMISSION_DENIED_MARKER = "PERMISSION_DENIED"
API_DISABLED_MARKER = "API has not been used"

CREATOR_FIX_FAILED = "Error: Still No Access (Fix Failed)"
CREATOR_LOGGING_DISABLED = "Error: Logging Disabled"
CREATOR_LOGS_EXPIRED = "Unknown: Logs Expired"

OWNERS_NO_ACCESS = "Error: No IAM Access"
OWNERS_NONE = "No Owners Found"

CREATOR_SENTINELS = (CREATOR_FIX_FAILED, CREATOR_LOGGING_DISABLED, CREATOR_LOGS_EXPIRED)
OWNER_SENTINELS = (OWNERS_NO_ACCESS, OWNERS_NONE)

MEMBER_PREFIXES = ("user:", "serviceAccount:")


def is_permission_denied(output: str) -> bool:
    return PERMISSION_DENIED_MARKER in (output or "")


def classify_creator(output: str, *, is_retry: bool) -> Optional[str]:
    """
    Turn the output of the creation-log query into the creator column.

    Returns None when access was denied on a first attempt: the project must
    be deferred and no row written. On a retry the same denial is terminal.
    """
    output = (output or "").strip()
    if is_permission_denied(output):
        if not is_retry:
            return None
        return CREATOR_FIX_FAILED
    if API_DISABLED_MARKER in output:
        return CREATOR_LOGGING_DISABLED
    if not output:
        return CREATOR_LOGS_EXPIRED
    return output


def strip_member_prefix(member: str) -> str:
    for prefix in MEMBER_PREFIXES:
        member = member.replace(prefix, "")
    return member


def classify_owners(output: str) -> str:
    output = (output or "").strip()
    if is_permission_denied(output):
        return OWNERS_NO_ACCESS
    if not output:
        return OWNERS_NONE
    members = [strip_member_prefix(line.strip()) for line in output.splitlines() if line.strip()]
    return ",".join(members)
