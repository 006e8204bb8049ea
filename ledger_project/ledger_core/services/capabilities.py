"""
Role capabilities for voucher workflow actions.

Pure functions: the caller resolves the actor's role (membership table,
token claim, ...) and passes it in. Nothing here touches the database.

Usage:
    allowed, reason = can_perform(role, WorkflowAction.POST)
    if not allowed:
        ...

    assert_can_perform(role, WorkflowAction.POST)  # raises
"""
from django.db import models

from ..exceptions import ActionPermissionError


class Role(models.TextChoices):
    OWNER = "OWNER", "Owner"
    ADMIN = "ADMIN", "Admin"
    ACCOUNTANT = "ACCOUNTANT", "Accountant"
    ENGINEER = "ENGINEER", "Engineer"
    DATA_ENTRY = "DATA_ENTRY", "Data entry"
    VIEWER = "VIEWER", "Viewer"


class WorkflowAction(models.TextChoices):
    SUBMIT = "SUBMIT", "Submit"
    APPROVE = "APPROVE", "Approve"
    POST = "POST", "Post"
    REJECT = "REJECT", "Reject"
    REVERSE = "REVERSE", "Reverse"


ELEVATED_ROLES = frozenset({Role.OWNER, Role.ADMIN, Role.ACCOUNTANT})

ACTION_ROLES = {
    # anyone who can see a draft may send it for approval
    WorkflowAction.SUBMIT: frozenset(Role),
    WorkflowAction.APPROVE: ELEVATED_ROLES,
    WorkflowAction.POST: ELEVATED_ROLES,
    WorkflowAction.REJECT: ELEVATED_ROLES,
    WorkflowAction.REVERSE: ELEVATED_ROLES,
}


def normalize_role(role):
    """'accountant', ' Accountant ' and Role.ACCOUNTANT are the same role."""
    if role is None:
        return None
    value = str(role).strip().upper()
    return Role(value) if value in Role.values else None


def can_perform(role, action) -> tuple[bool, str]:
    normalized = normalize_role(role)
    if normalized is None:
        return False, f"Unknown role: {role}"
    action = WorkflowAction(str(action).upper())
    if normalized in ACTION_ROLES[action]:
        return True, ""
    return False, (
        f"Role {normalized.label} is not allowed to "
        f"{action.label.lower()} vouchers"
    )


def assert_can_perform(role, action) -> None:
    allowed, reason = can_perform(role, action)
    if not allowed:
        raise ActionPermissionError(reason)
