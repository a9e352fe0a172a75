"""
Review Service: consultant comments and the CEO philosophy survey.

Neither touches the step ledger.  Both are audited in the same transaction
as the write and go through the Role-Authorization Guard like every other
project action.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from app.core.exceptions import ValidationError
from app.models import db
from app.models.audit import write_audit
from app.models.auth import User
from app.models.review_comment import ReviewComment
from app.models.step_answers import CeoPhilosophy
from app.services import hr_project_service as store
from app.services import step_gating as gating
from app.services.answer_validation import validate_ceo_philosophy
from app.services.notification import NotificationService, dispatch_after_commit
from app.services.step_permission import PERM_COMMENT, PERM_PHILOSOPHY, PERM_VIEW, check_permission

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000


# ── Review comments ──────────────────────────────────────────────────────────


def list_comments(project_id: int, user: User, step: str | None = None) -> list[dict]:
    project = store.get_project(project_id)
    check_permission(user, project, PERM_VIEW)
    stmt = select(ReviewComment).where(ReviewComment.hr_project_id == project.id)
    if step:
        gating.predecessor(step)
        stmt = stmt.where(ReviewComment.step == step)
    rows = db.session.execute(stmt.order_by(ReviewComment.created_at, ReviewComment.id)).scalars()
    return [c.to_dict() for c in rows]


def _clean_comment(data: dict) -> tuple[str, str]:
    step = (data.get("step") or "").strip()
    comment = (data.get("comment") or "").strip()
    details = {}
    if not step:
        details["step"] = "is required"
    if not comment:
        details["comment"] = "is required"
    elif len(comment) > MAX_COMMENT_LENGTH:
        details["comment"] = f"must be at most {MAX_COMMENT_LENGTH} characters"
    if details:
        raise ValidationError("Comment is invalid", details)
    gating.predecessor(step)
    return step, comment


def add_comment(project_id: int, user: User, data: dict) -> dict:
    """Add a consultant/admin comment (optionally a recommendation) on a step.

    Raises:
        ForbiddenError: the user may not comment.
        ValidationError: missing step/comment, or comment too long.
        UnknownStepError: step is not part of the workflow.
    """
    with store.workflow_transaction(project_id):
        project = store.get_project(project_id)
        check_permission(user, project, PERM_COMMENT)
        step, comment = _clean_comment(data)

        row = ReviewComment(
            hr_project_id=project.id,
            user_id=user.id,
            step=step,
            comment=comment,
            is_recommendation=bool(data.get("is_recommendation")),
            recommended_option=data.get("recommended_option"),
            rationale=data.get("rationale"),
        )
        db.session.add(row)
        db.session.flush()
        write_audit(
            action="comment.create",
            hr_project_id=project.id,
            company_id=project.company_id,
            step=step,
            actor=user,
            after=row.to_dict(),
        )
    logger.info(
        "Review comment %s added", row.id,
        extra={"project_id": project_id, "step": step, "event_type": "comment_created"},
    )
    return row.to_dict()


# ── CEO philosophy survey ────────────────────────────────────────────────────


def get_ceo_philosophy(project_id: int, user: User) -> dict:
    project = store.get_project(project_id)
    check_permission(user, project, PERM_VIEW)
    row = db.session.execute(
        select(CeoPhilosophy).where(CeoPhilosophy.hr_project_id == project.id)
    ).scalar_one_or_none()
    if row is None:
        return {"hr_project_id": project.id, "answers": {}, "completed_at": None}
    return row.to_dict()


def save_ceo_philosophy(project_id: int, user: User, answers: dict) -> dict:
    """Store the CEO's survey.  All required sections must be answered.

    The first completion notifies the company's HR managers.
    """
    with store.workflow_transaction(project_id):
        project = store.get_project(project_id)
        check_permission(user, project, PERM_PHILOSOPHY)
        clean = validate_ceo_philosophy(answers)

        row = db.session.execute(
            select(CeoPhilosophy).where(CeoPhilosophy.hr_project_id == project.id)
        ).scalar_one_or_none()
        first_completion = row is None or row.completed_at is None
        if row is None:
            row = CeoPhilosophy(hr_project_id=project.id)
            db.session.add(row)
        before = dict(row.answers or {})
        row.answers = clean
        row.submitted_by_id = user.id
        if row.completed_at is None:
            row.completed_at = datetime.now(timezone.utc)
        db.session.flush()

        write_audit(
            action="ceo_philosophy.save",
            hr_project_id=project.id,
            company_id=project.company_id,
            actor=user,
            before=before,
            after=clean,
        )

    if first_completion:
        dispatch_after_commit(NotificationService.notify_philosophy_completed, project)
    return row.to_dict()
