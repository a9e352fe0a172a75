"""HR project: one workflow instance per company, carrying the step ledger."""

from datetime import datetime, timezone

from app.models import db

PROJECT_STATUSES = {"draft", "active", "completed", "locked"}


class HrProject(db.Model):
    """
    Workflow instance for a company's HR-system design.

    ``step_statuses`` is the ledger: a JSON object step key → status string.
    It is the single source of truth for the workflow; ``current_step`` and
    ``status`` are recomputed from it on every save.

    ``lock_version`` is the mapper version counter, so a write based on a
    stale read fails instead of silently overwriting a concurrent transition.
    """

    __tablename__ = "hr_projects"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer,
        db.ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    status = db.Column(
        db.String(20), nullable=False, default="draft",
        comment="draft | active | completed | locked",
    )
    current_step = db.Column(
        db.String(30), nullable=True, default="diagnosis",
        comment="Derived hint: first main-chain step not yet verified",
    )
    step_statuses = db.Column(db.JSON, nullable=False, default=dict)
    lock_version = db.Column(db.Integer, nullable=False, default=1)
    locked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    company = db.relationship("Company", back_populates="hr_project")

    __mapper_args__ = {"version_id_col": lock_version}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "status": self.status,
            "current_step": self.current_step,
            "step_statuses": dict(self.step_statuses or {}),
            "locked_at": self.locked_at.isoformat() if self.locked_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<HrProject {self.id}: company={self.company_id} {self.status}>"
