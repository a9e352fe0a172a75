"""Consultant / admin review comments and recommendations on workflow steps."""

from datetime import datetime, timezone

from app.models import db


class ReviewComment(db.Model):
    """
    A reviewer's note on one step of an HR project.

    ``is_recommendation`` rows additionally carry the option the reviewer
    suggests for that step and the rationale.  Comments never change the
    ledger.
    """

    __tablename__ = "review_comments"

    id = db.Column(db.Integer, primary_key=True)
    hr_project_id = db.Column(
        db.Integer,
        db.ForeignKey("hr_projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    step = db.Column(db.String(30), nullable=False)
    comment = db.Column(db.Text, nullable=False)
    is_recommendation = db.Column(db.Boolean, nullable=False, default=False)
    recommended_option = db.Column(db.String(200), nullable=True)
    rationale = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_review_comments_project_step", "hr_project_id", "step"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "hr_project_id": self.hr_project_id,
            "user_id": self.user_id,
            "step": self.step,
            "comment": self.comment,
            "is_recommendation": self.is_recommendation,
            "recommended_option": self.recommended_option,
            "rationale": self.rationale,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
