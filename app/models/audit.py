"""
HR System Design Wizard
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for every mutating
      workflow action, with before/after snapshots.
"""

import json
from datetime import UTC, datetime

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ACTIONS = {
    # Project lifecycle
    "project.create",
    "project.final_approve",
    # Step workflow
    "step.save",
    "step.submit",
    "step.verify",
    "step.request_revision",
    "step.status_override",
    # Reviews & surveys
    "comment.create",
    "ceo_philosophy.save",
    # Membership
    "company.member_add",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every workflow event.

    One row per action.  ``before_json`` / ``after_json`` carry the snapshot
    of whatever the action changed (ledger, answers, membership).
    Rows are never updated or deleted.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_project", "hr_project_id"),
        db.Index("idx_audit_project_step", "hr_project_id", "step"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer,
        db.ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    hr_project_id = db.Column(
        db.Integer,
        db.ForeignKey("hr_projects.id", ondelete="CASCADE"),
        nullable=True,
    )

    action = db.Column(
        db.String(60), nullable=False,
        comment="step.submit | step.verify | project.final_approve | …",
    )
    step = db.Column(db.String(30), nullable=True)

    actor = db.Column(
        db.String(200), nullable=False, default="system",
        comment="Actor display name snapshot, or 'system'",
    )
    actor_user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    before_json = db.Column(db.Text, default="{}")
    after_json = db.Column(db.Text, default="{}")

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _load(raw):
        try:
            return json.loads(raw or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    @property
    def before(self) -> dict:
        return self._load(self.before_json)

    @property
    def after(self) -> dict:
        return self._load(self.after_json)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "hr_project_id": self.hr_project_id,
            "action": self.action,
            "step": self.step,
            "actor": self.actor,
            "actor_user_id": self.actor_user_id,
            "before": self.before,
            "after": self.after,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on project {self.hr_project_id}/{self.step}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    action: str,
    hr_project_id: int | None = None,
    company_id: int | None = None,
    step: str | None = None,
    actor=None,
    before: dict | None = None,
    after: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control: the row commits or rolls back together with the
    state change it describes.  Errors propagate.

    ``actor`` is a User instance or None for system actions.

    Returns the (flushed) AuditLog instance.
    """
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    log = AuditLog(
        company_id=company_id,
        hr_project_id=hr_project_id,
        action=action,
        step=step,
        actor=actor.display_name if actor is not None else "system",
        actor_user_id=actor.id if actor is not None else None,
        before_json=json.dumps(before or {}, default=str),
        after_json=json.dumps(after or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
