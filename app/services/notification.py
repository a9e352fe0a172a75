"""
HR System Design Wizard
Notification Service.

Central service for creating, broadcasting and querying in-app notifications.
Workflow helpers at the bottom are called by the step workflow service
*after* a transition has committed; a failure here never undoes a transition.
"""

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select

from app.models import db
from app.models.auth import ROLE_CEO, ROLE_HR_MANAGER, CompanyMember
from app.models.notification import Notification
from app.services.step_gating import STEP_LABELS

logger = logging.getLogger(__name__)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, recipient_id, title, message="", category="system", severity="info",
               company_id=None, hr_project_id=None, step=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        notif = Notification(
            company_id=company_id,
            recipient_id=recipient_id,
            title=title,
            message=message,
            category=category,
            severity=severity,
            hr_project_id=hr_project_id,
            step=step,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    @staticmethod
    def broadcast(*, recipient_ids, title, message="", category="system", severity="info",
                  company_id=None, hr_project_id=None, step=None):
        """
        Send the same notification to every user in ``recipient_ids``.

        Duplicate ids are collapsed.  Returns the created Notification instances.
        """
        notifications = []
        for rid in dict.fromkeys(recipient_ids):
            notif = Notification(
                company_id=company_id,
                recipient_id=rid,
                title=title,
                message=message,
                category=category,
                severity=severity,
                hr_project_id=hr_project_id,
                step=step,
            )
            db.session.add(notif)
            notifications.append(notif)
        db.session.commit()
        return notifications

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(recipient_id, company_id=None, unread_only=False,
                           limit=50, offset=0):
        """
        Retrieve notifications for a recipient, newest first.
        """
        q = Notification.query.filter_by(recipient_id=recipient_id)
        if company_id:
            q = q.filter_by(company_id=company_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(recipient_id, company_id=None):
        """Return count of unread notifications."""
        q = Notification.query.filter_by(recipient_id=recipient_id, is_read=False)
        if company_id:
            q = q.filter_by(company_id=company_id)
        return q.count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, recipient_id):
        """Mark a single notification as read.  Returns None if it is not the recipient's."""
        notif = db.session.get(Notification, notification_id)
        if notif is None or notif.recipient_id != recipient_id:
            return None
        notif.mark_read()
        db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(recipient_id, company_id=None):
        """Mark all notifications for a recipient as read."""
        q = Notification.query.filter_by(recipient_id=recipient_id, is_read=False)
        if company_id:
            q = q.filter_by(company_id=company_id)
        now = datetime.now(timezone.utc)
        count = q.update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        db.session.commit()
        return count

    # ── Workflow helpers ──────────────────────────────────────────────────

    @staticmethod
    def member_ids(company_id, role=None):
        """User ids of a company's members, optionally filtered by membership role."""
        stmt = select(CompanyMember.user_id).where(CompanyMember.company_id == company_id)
        if role:
            stmt = stmt.where(CompanyMember.role == role)
        return list(db.session.execute(stmt).scalars())

    @staticmethod
    def notify_step_submitted(project, step, actor=None):
        """Tell the company's CEOs a step is waiting for verification."""
        label = STEP_LABELS.get(step, step)
        by = f" by {actor.display_name}" if actor is not None else ""
        return NotificationService.broadcast(
            recipient_ids=NotificationService.member_ids(project.company_id, ROLE_CEO),
            title=f"{label} submitted for review",
            message=f"{label} was submitted{by} and is awaiting your verification.",
            category="step",
            severity="info",
            company_id=project.company_id,
            hr_project_id=project.id,
            step=step,
        )

    @staticmethod
    def notify_step_verified(project, step, unlocked_steps=()):
        """Tell the company's HR managers a step was approved and what it unlocked."""
        label = STEP_LABELS.get(step, step)
        message = f"{label} was verified by the CEO."
        if unlocked_steps:
            names = ", ".join(STEP_LABELS.get(s, s) for s in unlocked_steps)
            message += f" Now available: {names}."
        return NotificationService.broadcast(
            recipient_ids=NotificationService.member_ids(project.company_id, ROLE_HR_MANAGER),
            title=f"{label} verified",
            message=message,
            category="review",
            severity="success",
            company_id=project.company_id,
            hr_project_id=project.id,
            step=step,
        )

    @staticmethod
    def notify_revision_requested(project, step, comment=""):
        """Tell the company's HR managers a step was sent back."""
        label = STEP_LABELS.get(step, step)
        return NotificationService.broadcast(
            recipient_ids=NotificationService.member_ids(project.company_id, ROLE_HR_MANAGER),
            title=f"Revision requested: {label}",
            message=comment or f"The CEO asked for changes to {label}.",
            category="review",
            severity="warning",
            company_id=project.company_id,
            hr_project_id=project.id,
            step=step,
        )

    @staticmethod
    def notify_system_locked(project):
        """Tell every company member the HR system design was signed off."""
        return NotificationService.broadcast(
            recipient_ids=NotificationService.member_ids(project.company_id),
            title="HR system design approved",
            message="The CEO gave final approval. All steps are now locked.",
            category="system",
            severity="success",
            company_id=project.company_id,
            hr_project_id=project.id,
        )

    @staticmethod
    def notify_philosophy_completed(project):
        """Tell the company's HR managers the CEO finished the philosophy survey."""
        return NotificationService.broadcast(
            recipient_ids=NotificationService.member_ids(project.company_id, ROLE_HR_MANAGER),
            title="CEO management philosophy completed",
            message="The CEO completed the management philosophy survey.",
            category="survey",
            severity="info",
            company_id=project.company_id,
            hr_project_id=project.id,
        )


def dispatch_after_commit(fn, *args, **kwargs):
    """Run a notification helper once the workflow transaction has committed.

    Honors WORKFLOW_NOTIFICATIONS_ENABLED.  A failure is logged and the
    session rolled back; it never propagates to the caller.
    """
    if not current_app.config.get("WORKFLOW_NOTIFICATIONS_ENABLED", True):
        return None
    try:
        return fn(*args, **kwargs)
    except Exception:
        db.session.rollback()
        logger.exception("Notification dispatch failed: %s", fn.__name__)
        return None
