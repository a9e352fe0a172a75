"""
Tests for the Project Store (``app/services/hr_project_service.py``).

Covers:
    - create_project: fresh ledger, one project per company, unknown company
    - get_project / get_project_for_company: NotFound
    - save_project: current_step and status recomputed from the ledger
    - workflow_transaction: commit on success, rollback on failure,
      StaleDataError → StaleWriteError
    - initialize_all_ledgers backfill
    - list_audit filtering and paging
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConflictError, NotFoundError, StaleWriteError
from app.models import db as _db
from app.models.audit import write_audit
from app.models.auth import Company
from app.models.hr_project import HrProject
from app.services import hr_project_service as store
from app.services import step_gating as gating
from app.services.step_gating import ALL_STEPS, StepStatus


def _bare_company(name="Bare Co"):
    c = Company(name=name)
    _db.session.add(c)
    _db.session.flush()
    return c


# ═════════════════════════════════════════════════════════════════════════════
# Create / read
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateProject:
    def test_fresh_ledger(self):
        company = _bare_company()
        project = store.create_project(company.id)
        assert project.id is not None
        assert project.status == "draft"
        assert project.current_step == "diagnosis"
        assert project.step_statuses == {step: "not_started" for step in ALL_STEPS}

    def test_company_creation_creates_project(self, company):
        project = store.get_project_for_company(company.id)
        assert project.company_id == company.id
        assert company.hr_project.id == project.id

    def test_second_project_conflicts(self, company):
        with pytest.raises(ConflictError):
            store.create_project(company.id)

    def test_unknown_company(self):
        with pytest.raises(NotFoundError) as exc:
            store.create_project(99999)
        assert exc.value.resource == "Company"


class TestGetProject:
    def test_found(self, project):
        assert store.get_project(project.id).id == project.id

    def test_for_update(self, project):
        assert store.get_project(project.id, for_update=True).id == project.id

    def test_missing(self):
        with pytest.raises(NotFoundError) as exc:
            store.get_project(424242)
        assert exc.value.resource == "HrProject"
        assert exc.value.resource_id == 424242

    def test_missing_for_company(self):
        company = _bare_company()
        with pytest.raises(NotFoundError):
            store.get_project_for_company(company.id)

    def test_load_ledger_fills_gaps(self, project):
        project.step_statuses = {"diagnosis": "submitted"}
        ledger = store.load_ledger(project)
        assert ledger["diagnosis"] is StepStatus.SUBMITTED
        assert ledger["tree"] is StepStatus.NOT_STARTED


# ═════════════════════════════════════════════════════════════════════════════
# save_project
# ═════════════════════════════════════════════════════════════════════════════


class TestSaveProject:
    def test_first_progress_activates(self, project):
        ledger = gating.mark_in_progress(store.load_ledger(project), "diagnosis")
        store.save_project(project, ledger)
        assert project.status == "active"
        assert project.step_statuses["diagnosis"] == "in_progress"

    def test_current_step_recomputed(self, project):
        ledger = store.load_ledger(project)
        ledger["diagnosis"] = StepStatus.APPROVED
        ledger["organization"] = StepStatus.SUBMITTED
        project.current_step = "compensation"  # drifted hint
        store.save_project(project, ledger)
        assert project.current_step == "organization"

    def test_completed_when_main_chain_verified(self, project):
        ledger = store.load_ledger(project)
        for step in gating.STEP_ORDER:
            ledger[step] = StepStatus.APPROVED
        store.save_project(project, ledger)
        assert project.status == "completed"
        assert project.locked_at is None

    def test_locked_sets_timestamp(self, project):
        store.save_project(project, gating.lock_all_steps(store.load_ledger(project)))
        assert project.status == "locked"
        assert project.locked_at is not None

    def test_untouched_ledger_keeps_draft(self, project):
        store.save_project(project, store.load_ledger(project))
        assert project.status == "draft"

    def test_version_increments(self, project):
        before = project.lock_version
        ledger = gating.mark_in_progress(store.load_ledger(project), "diagnosis")
        store.save_project(project, ledger)
        assert project.lock_version == before + 1


# ═════════════════════════════════════════════════════════════════════════════
# workflow_transaction
# ═════════════════════════════════════════════════════════════════════════════


class TestWorkflowTransaction:
    def test_commits(self, project):
        with store.workflow_transaction(project.id):
            store.save_project(project, gating.mark_in_progress(store.load_ledger(project), "diagnosis"))
        _db.session.expire_all()
        assert _db.session.get(HrProject, project.id).step_statuses["diagnosis"] == "in_progress"

    def test_rolls_back_on_error(self, project):
        with pytest.raises(RuntimeError):
            with store.workflow_transaction(project.id):
                store.save_project(
                    project, gating.mark_in_progress(store.load_ledger(project), "diagnosis"),
                )
                raise RuntimeError("boom")
        _db.session.expire_all()
        assert _db.session.get(HrProject, project.id).step_statuses["diagnosis"] == "not_started"

    def test_stale_data_becomes_stale_write(self, project):
        with pytest.raises(StaleWriteError) as exc:
            with store.workflow_transaction(project.id):
                raise StaleDataError("version mismatch")
        assert isinstance(exc.value, ConflictError)
        assert exc.value.field == "lock_version"
        assert exc.value.resource_id == project.id

    def test_concurrent_writer_detected(self, project):
        """A write based on a stale lock_version is refused, not silently applied."""
        project_id = project.id
        stale_version = project.lock_version

        # Another writer bumps the row; a Core update leaves the loaded object stale.
        _db.session.execute(
            HrProject.__table__.update()
            .where(HrProject.__table__.c.id == project_id)
            .values(lock_version=stale_version + 1)
        )

        with pytest.raises(StaleWriteError):
            with store.workflow_transaction(project_id):
                ledger = gating.mark_in_progress(store.load_ledger(project), "diagnosis")
                store.save_project(project, ledger)


# ═════════════════════════════════════════════════════════════════════════════
# Backfill & audit reader
# ═════════════════════════════════════════════════════════════════════════════


class TestInitializeAllLedgers:
    def test_normalizes_partial_ledgers(self, project):
        project.step_statuses = {"diagnosis": "completed"}
        _db.session.commit()

        changed = store.initialize_all_ledgers()

        assert changed == 1
        _db.session.expire_all()
        stored = _db.session.get(HrProject, project.id).step_statuses
        assert stored["diagnosis"] == "approved"
        assert set(stored) == set(ALL_STEPS)

    def test_idempotent(self, project):
        store.initialize_all_ledgers()
        assert store.initialize_all_ledgers() == 0


class TestListAudit:
    def _write(self, project, action, step=None):
        write_audit(action=action, hr_project_id=project.id, company_id=project.company_id, step=step)

    def test_filters_and_pages(self, project):
        for _ in range(3):
            self._write(project, "step.save", "diagnosis")
        self._write(project, "step.submit", "diagnosis")
        self._write(project, "step.save", "organization")
        _db.session.commit()

        page = store.list_audit(project.id, step="diagnosis", per_page=2)
        assert page.total == 4
        assert len(page.items) == 2
        assert page.pages == 2

        submits = store.list_audit(project.id, action="step.submit")
        assert [log.action for log in submits.items] == ["step.submit"]

    def test_newest_first(self, project):
        self._write(project, "step.save", "diagnosis")
        self._write(project, "step.submit", "diagnosis")
        _db.session.commit()
        items = store.list_audit(project.id, step="diagnosis").items
        assert items[0].action == "step.submit"

    def test_unknown_action_rejected(self, project):
        with pytest.raises(ValueError):
            self._write(project, "step.delete")
