"""
Role-Authorization Guard for the step workflow.

Single place that answers "may this user do X on this HR project?".
Blueprints and services never call ``user.has_role()`` for workflow
decisions; they go through ``check_permission`` here.

Rules:
    - hr_manager: view, edit, submit            (membership role hr_manager)
    - ceo:        view, verify, request_revision,
                  final_approve, philosophy     (membership role ceo)
    - consultant: view, comment                 (any company)
    - admin:      view, edit, comment, override (any company; bypasses step locks)

Usage:
    from app.services.step_permission import check_permission, PERM_SUBMIT

    check_permission(user, project, PERM_SUBMIT)   # raises ForbiddenError
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import ForbiddenError
from app.models import db
from app.models.auth import (
    ROLE_ADMIN,
    ROLE_CEO,
    ROLE_CONSULTANT,
    ROLE_HR_MANAGER,
    CompanyMember,
    User,
)
from app.models.hr_project import HrProject

logger = logging.getLogger(__name__)

PERM_VIEW = "view"
PERM_EDIT = "edit"
PERM_SUBMIT = "submit"
PERM_VERIFY = "verify"
PERM_REQUEST_REVISION = "request_revision"
PERM_FINAL_APPROVE = "final_approve"
PERM_PHILOSOPHY = "philosophy"
PERM_COMMENT = "comment"
PERM_OVERRIDE = "override"

PERMISSION_MATRIX: dict[str, frozenset[str]] = {
    ROLE_HR_MANAGER: frozenset({PERM_VIEW, PERM_EDIT, PERM_SUBMIT}),
    ROLE_CEO: frozenset({
        PERM_VIEW, PERM_VERIFY, PERM_REQUEST_REVISION, PERM_FINAL_APPROVE, PERM_PHILOSOPHY,
    }),
    ROLE_CONSULTANT: frozenset({PERM_VIEW, PERM_COMMENT}),
    ROLE_ADMIN: frozenset({PERM_VIEW, PERM_EDIT, PERM_COMMENT, PERM_OVERRIDE}),
}

# Roles whose grants only apply inside companies the user belongs to.
MEMBERSHIP_REQUIRED_ROLES = frozenset({ROLE_HR_MANAGER, ROLE_CEO})


def is_company_member(user: User, company_id: int) -> bool:
    """True if ``user`` has a membership row for ``company_id``."""
    return get_membership_role(user, company_id) is not None


def get_membership_role(user: User, company_id: int) -> str | None:
    """The role ``user`` holds inside ``company_id``, or None if not a member."""
    if user is None:
        return None
    return db.session.execute(
        select(CompanyMember.role).where(
            CompanyMember.company_id == company_id,
            CompanyMember.user_id == user.id,
        )
    ).scalar_one_or_none()


def get_user_permissions(user: User, project: HrProject) -> set[str]:
    """Union of the actions ``user`` may perform on ``project``.

    A membership-scoped role (hr_manager, ceo) grants its actions only when
    the user's membership row for the project's company carries that same
    role; holding it globally or in another company is not enough.
    """
    if user is None:
        return set()
    member_role = None
    looked_up = False
    permissions: set[str] = set()
    for role in user.role_names:
        allowed = PERMISSION_MATRIX.get(role)
        if not allowed:
            continue
        if role in MEMBERSHIP_REQUIRED_ROLES:
            if not looked_up:
                member_role = get_membership_role(user, project.company_id)
                looked_up = True
            if member_role != role:
                continue
        permissions.update(allowed)
    return permissions


def has_permission(user: User, project: HrProject, action: str) -> bool:
    return action in get_user_permissions(user, project)


def check_permission(user: User, project: HrProject, action: str) -> None:
    """Assert ``user`` may perform ``action`` on ``project``.

    Raises:
        ForbiddenError: role or company membership does not grant the action.
    """
    if has_permission(user, project, action):
        return
    user_id = user.id if user is not None else None
    logger.warning(
        "User %s denied '%s' on project %s",
        user_id, action, project.id,
        extra={"project_id": project.id, "company_id": project.company_id,
               "event_type": "permission_denied"},
    )
    raise ForbiddenError(user_id, action, reason=_denial_reason(user, project, action))


def _denial_reason(user: User | None, project: HrProject, action: str) -> str:
    if user is None:
        return "no acting user"
    roles = set(user.role_names)
    granting = {r for r, actions in PERMISSION_MATRIX.items() if action in actions}
    scoped = roles & granting & MEMBERSHIP_REQUIRED_ROLES
    if scoped:
        member_role = get_membership_role(user, project.company_id)
        if member_role is None:
            return "not a member of this company"
        return f"company role '{member_role}' does not grant '{action}'"
    return f"requires one of: {', '.join(sorted(granting))}"


def bypasses_step_lock(user: User | None) -> bool:
    """Admins may edit any step regardless of its gate or status."""
    return user is not None and user.has_role(ROLE_ADMIN)


# ── Named predicates ─────────────────────────────────────────────────────────


def can_view(user: User, project: HrProject) -> bool:
    return has_permission(user, project, PERM_VIEW)


def can_edit(user: User, project: HrProject, step: str | None = None) -> bool:
    return has_permission(user, project, PERM_EDIT)


def can_submit(user: User, project: HrProject, step: str | None = None) -> bool:
    return has_permission(user, project, PERM_SUBMIT)


def can_verify(user: User, project: HrProject, step: str | None = None) -> bool:
    return has_permission(user, project, PERM_VERIFY)


def can_comment(user: User, project: HrProject) -> bool:
    return has_permission(user, project, PERM_COMMENT)
