"""
HR System Design Wizard
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
"""

from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_CATEGORIES = {"step", "review", "system", "survey"}
NOTIFICATION_SEVERITIES = {"info", "warning", "error", "success"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient user per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    recipient_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="system")
    severity = db.Column(db.String(20), default="info")

    # Link to source
    hr_project_id = db.Column(db.Integer, nullable=True)
    step = db.Column(db.String(30), nullable=True)

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "recipient_id": self.recipient_id,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "severity": self.severity,
            "hr_project_id": self.hr_project_id,
            "step": self.step,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
