"""
Step answer sets: the form data an HR manager fills in per workflow step.

Each step has exactly one answer-set table, 1:1 with the HR project and
created on first save (upsert).  ``answers`` holds the step's fields as a
JSON object; ``status`` mirrors the ledger entry for that step so reports
that read the answer table alone stay consistent.

Models:
    - Diagnosis, OrganizationDesign, PerformanceSystem, CompensationSystem,
      Conclusion, JobAnalysis, TreeReview, HrPolicyOs
    - CeoPhilosophy: the CEO's management-philosophy survey (not a gated step)
"""

from datetime import datetime, timezone

from app.models import db


class StepAnswerSet(db.Model):
    """Abstract base for per-step answer tables."""

    __abstract__ = True

    step_key = ""

    id = db.Column(db.Integer, primary_key=True)
    hr_project_id = db.Column(
        db.Integer,
        db.ForeignKey("hr_projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    status = db.Column(db.String(20), nullable=False, default="not_started")
    answers = db.Column(db.JSON, nullable=False, default=dict)
    updated_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_empty(self) -> bool:
        return not any(v not in (None, "", [], {}) for v in (self.answers or {}).values())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "hr_project_id": self.hr_project_id,
            "step": self.step_key,
            "status": self.status,
            "answers": dict(self.answers or {}),
            "updated_by_id": self.updated_by_id,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Diagnosis(StepAnswerSet):
    __tablename__ = "diagnoses"
    step_key = "diagnosis"


class OrganizationDesign(StepAnswerSet):
    __tablename__ = "organization_designs"
    step_key = "organization"


class PerformanceSystem(StepAnswerSet):
    __tablename__ = "performance_systems"
    step_key = "performance"


class CompensationSystem(StepAnswerSet):
    __tablename__ = "compensation_systems"
    step_key = "compensation"


class Conclusion(StepAnswerSet):
    __tablename__ = "conclusions"
    step_key = "conclusion"


class JobAnalysis(StepAnswerSet):
    __tablename__ = "job_analyses"
    step_key = "job_analysis"


class TreeReview(StepAnswerSet):
    __tablename__ = "tree_reviews"
    step_key = "tree"


class HrPolicyOs(StepAnswerSet):
    __tablename__ = "hr_policy_os"
    step_key = "hr_policy_os"


STEP_ANSWER_MODELS = {
    model.step_key: model
    for model in (
        Diagnosis,
        OrganizationDesign,
        PerformanceSystem,
        CompensationSystem,
        Conclusion,
        JobAnalysis,
        TreeReview,
        HrPolicyOs,
    )
}


class CeoPhilosophy(db.Model):
    """CEO management-philosophy survey, 1:1 with the HR project."""

    __tablename__ = "ceo_philosophies"

    id = db.Column(db.Integer, primary_key=True)
    hr_project_id = db.Column(
        db.Integer,
        db.ForeignKey("hr_projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    answers = db.Column(db.JSON, nullable=False, default=dict)
    submitted_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "hr_project_id": self.hr_project_id,
            "answers": dict(self.answers or {}),
            "submitted_by_id": self.submitted_by_id,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
