"""
Project Store: load, create and persist HR projects and their ledgers.

Design decisions:
    - The ledger column is written only through ``save_project`` so that
      ``current_step`` and ``status`` are always recomputed from it.
    - ``save_project`` flushes; commits belong to the calling service so the
      ledger change and its audit row share one transaction.
    - ``get_project(..., for_update=True)`` takes a row lock.  The mapper's
      ``lock_version`` counter catches concurrent writers on databases that
      ignore ``FOR UPDATE`` (SQLite).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError, NotFoundError, StaleWriteError
from app.models import db
from app.models.audit import AuditLog
from app.models.auth import Company
from app.models.hr_project import HrProject
from app.services import step_gating as gating
from app.services.step_gating import StepStatus

logger = logging.getLogger(__name__)


# ── Read ─────────────────────────────────────────────────────────────────────


def get_project(project_id: int, for_update: bool = False) -> HrProject:
    """Return the project or raise NotFoundError.

    Args:
        project_id: HrProject primary key.
        for_update: Lock the row (``SELECT ... FOR UPDATE``) for the rest of
            the transaction.
    """
    stmt = select(HrProject).where(HrProject.id == project_id)
    if for_update:
        stmt = stmt.with_for_update()
    project = db.session.execute(stmt).scalar_one_or_none()
    if project is None:
        raise NotFoundError(resource="HrProject", resource_id=project_id)
    return project


def get_project_for_company(company_id: int) -> HrProject:
    project = db.session.execute(
        select(HrProject).where(HrProject.company_id == company_id)
    ).scalar_one_or_none()
    if project is None:
        raise NotFoundError(resource="HrProject", company_id=company_id)
    return project


def load_ledger(project: HrProject) -> gating.Ledger:
    """The project's ledger, normalized (every step key present)."""
    return gating.initialize(project.step_statuses)


# ── Write ────────────────────────────────────────────────────────────────────


@contextmanager
def workflow_transaction(project_id: int | None = None):
    """Commit on success; roll back and re-raise on any failure.

    StaleDataError from the ``lock_version`` check becomes StaleWriteError.
    """
    try:
        yield
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning(
            "Concurrent update on project %s", project_id,
            extra={"project_id": project_id, "event_type": "stale_write"},
        )
        raise StaleWriteError("HrProject", project_id) from exc
    except Exception:
        db.session.rollback()
        raise


def create_project(company_id: int) -> HrProject:
    """Create the company's single HR project with a fresh ledger.

    Raises:
        NotFoundError: company does not exist.
        ConflictError: the company already has a project.
    """
    if db.session.get(Company, company_id) is None:
        raise NotFoundError(resource="Company", resource_id=company_id)

    existing = db.session.execute(
        select(HrProject.id).where(HrProject.company_id == company_id)
    ).first()
    if existing is not None:
        raise ConflictError("HrProject", "company_id", str(company_id))

    ledger = gating.initialize({})
    project = HrProject(
        company_id=company_id,
        status="draft",
        current_step=gating.derive_current_step(ledger),
        step_statuses=gating.serialize(ledger),
    )
    db.session.add(project)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("HrProject", "company_id", str(company_id)) from exc

    logger.info(
        "HR project created",
        extra={"project_id": project.id, "company_id": company_id, "event_type": "project_created"},
    )
    return project


def save_project(project: HrProject, ledger: gating.Ledger) -> HrProject:
    """Persist ``ledger`` and the fields derived from it.  Flushes only."""
    normalized = gating.initialize(ledger)
    project.step_statuses = gating.serialize(normalized)
    project.current_step = gating.derive_current_step(normalized)
    project.status = _derive_project_status(project.status, normalized)
    if project.status == "locked" and project.locked_at is None:
        project.locked_at = datetime.now(timezone.utc)
    db.session.flush()
    return project


def _derive_project_status(previous: str, ledger: gating.Ledger) -> str:
    """draft → active on first progress; completed when the main chain is verified;
    locked when every step is locked."""
    if gating.is_fully_locked(ledger):
        return "locked"
    if all(ledger[step] in gating.VERIFIED_STATUSES for step in gating.STEP_ORDER):
        return "completed"
    if any(status != StepStatus.NOT_STARTED for status in ledger.values()):
        return "active"
    return "draft" if previous in (None, "draft") else previous


def initialize_all_ledgers() -> int:
    """Normalize every stored ledger.  Returns the number of rows changed.

    Idempotent; used by the ``flask init-ledgers`` command after legacy
    imports or when new steps are added.
    """
    changed = 0
    for project in db.session.execute(select(HrProject)).scalars():
        before = dict(project.step_statuses or {})
        save_project(project, gating.initialize(before))
        if project.step_statuses != before:
            changed += 1
    db.session.commit()
    logger.info("Initialized ledgers", extra={"event_type": "ledger_backfill"})
    return changed


# ── Audit reader ─────────────────────────────────────────────────────────────


def list_audit(
    project_id: int,
    step: str | None = None,
    action: str | None = None,
    page: int = 1,
    per_page: int = 50,
):
    """Paginated audit trail for a project, newest first."""
    q = AuditLog.query.filter(AuditLog.hr_project_id == project_id)
    if step:
        q = q.filter(AuditLog.step == step)
    if action:
        q = q.filter(AuditLog.action == action)
    return q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).paginate(
        page=page, per_page=per_page, error_out=False,
    )
