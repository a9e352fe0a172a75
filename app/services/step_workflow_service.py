"""
Step Workflow Service: every mutating action on an HR project's steps.

Each public function is one transaction with a fixed order:

    1. lock the project row            (Project Store, FOR UPDATE)
    2. authorize the acting user       (Role-Authorization Guard)
    3. decide the new ledger           (Gating Engine, pure)
    4. mirror status onto the answer set
    5. persist ledger + derived fields (Project Store, flush)
    6. append the audit row            (write_audit, flush)
    7. commit
    8. best-effort notification        (after commit, never rolls back)

Any exception before the commit rolls the whole session back, so a refused
or failed action leaves the ledger, answers and audit trail untouched.
A concurrent writer that slipped past the row lock is caught by the
``lock_version`` mapper check and surfaces as StaleWriteError (409).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select

from app.core.exceptions import ValidationError, WorkflowError
from app.models import db
from app.models.audit import write_audit
from app.models.auth import ROLE_ADMIN, ROLE_CONSULTANT, User
from app.models.hr_project import HrProject
from app.models.step_answers import STEP_ANSWER_MODELS, StepAnswerSet
from app.services import hr_project_service as store
from app.services import step_gating as gating
from app.services.answer_validation import ensure_submittable, validate_answers
from app.services.notification import NotificationService, dispatch_after_commit
from app.services.step_gating import StepStatus
from app.services.step_permission import (
    PERM_EDIT,
    PERM_FINAL_APPROVE,
    PERM_OVERRIDE,
    PERM_REQUEST_REVISION,
    PERM_SUBMIT,
    PERM_VERIFY,
    PERM_VIEW,
    bypasses_step_lock,
    check_permission,
    get_user_permissions,
)

logger = logging.getLogger(__name__)


# ── Private helpers ──────────────────────────────────────────────────────────


def _answer_model(step: str) -> type[StepAnswerSet]:
    gating.predecessor(step)  # raises UnknownStepError
    return STEP_ANSWER_MODELS[step]


def _get_answer_set(project: HrProject, step: str) -> StepAnswerSet | None:
    model = _answer_model(step)
    return db.session.execute(
        select(model).where(model.hr_project_id == project.id)
    ).scalar_one_or_none()


def _get_or_create_answer_set(project: HrProject, step: str) -> StepAnswerSet:
    answer_set = _get_answer_set(project, step)
    if answer_set is None:
        answer_set = _answer_model(step)(hr_project_id=project.id, answers={})
        db.session.add(answer_set)
    return answer_set


def _mirror_status(project: HrProject, ledger: gating.Ledger, steps) -> None:
    """Copy ledger statuses onto existing answer sets."""
    for step in steps:
        answer_set = _get_answer_set(project, step)
        if answer_set is not None:
            answer_set.status = ledger[step].value


def _log_transition(project: HrProject, step: str | None, event: str, user: User | None) -> None:
    logger.info(
        "Workflow %s: project=%s step=%s", event, project.id, step,
        extra={
            "project_id": project.id,
            "company_id": project.company_id,
            "step": step,
            "event_type": event,
            "user_id": user.id if user is not None else None,
        },
    )


def _state_payload(project: HrProject, user: User | None = None) -> dict:
    ledger = store.load_ledger(project)
    payload = {
        "project": project.to_dict(),
        "steps": gating.workflow_state(ledger),
        "can_final_approve": gating.can_final_approve(ledger),
    }
    if user is not None:
        payload["permissions"] = sorted(get_user_permissions(user, project))
    return payload


# ── Read ─────────────────────────────────────────────────────────────────────


def get_workflow_state(project_id: int, user: User) -> dict:
    """Project, per-step gating state and the user's permissions."""
    project = store.get_project(project_id)
    check_permission(user, project, PERM_VIEW)
    return _state_payload(project, user)


def get_step(project_id: int, step: str, user: User) -> dict:
    """Answers and gating state of one step.

    HR managers and CEOs cannot open a step whose gate is still closed;
    consultants and admins can read every step.
    """
    project = store.get_project(project_id)
    check_permission(user, project, PERM_VIEW)
    _answer_model(step)
    ledger = store.load_ledger(project)
    if not user.has_role(ROLE_ADMIN, ROLE_CONSULTANT):
        gating.ensure_unlocked(ledger, step)
    answer_set = _get_answer_set(project, step)
    return {
        "step": step,
        "label": gating.STEP_LABELS[step],
        "status": ledger[step].value,
        "is_unlocked": gating.is_step_unlocked(ledger, step),
        "can_edit": gating.is_step_editable(ledger, step) or bypasses_step_lock(user),
        "answers": dict(answer_set.answers or {}) if answer_set else {},
        "submitted_at": (
            answer_set.submitted_at.isoformat()
            if answer_set is not None and answer_set.submitted_at else None
        ),
    }


# ── Write ────────────────────────────────────────────────────────────────────


def save_answers(project_id: int, step: str, answers: dict, user: User) -> dict:
    """Upsert a step's answers (partial saves merge into what is stored).

    The first save moves the step ``not_started → in_progress``.  Admins may
    edit any step, including submitted and locked ones, without changing its
    status.

    Raises:
        ForbiddenError, StepLockedError, ValidationError, UnknownStepError
    """
    with store.workflow_transaction(project_id):
        project = store.get_project(project_id, for_update=True)
        check_permission(user, project, PERM_EDIT)
        ledger = store.load_ledger(project)
        _answer_model(step)

        if bypasses_step_lock(user):
            new_ledger = ledger
            if ledger[step] == StepStatus.NOT_STARTED:
                new_ledger = gating.set_status(ledger, step, StepStatus.IN_PROGRESS)
        else:
            new_ledger = gating.mark_in_progress(ledger, step)

        clean = validate_answers(step, answers)
        answer_set = _get_or_create_answer_set(project, step)
        before_answers = dict(answer_set.answers or {})
        answer_set.answers = {**before_answers, **clean}
        answer_set.updated_by_id = user.id
        answer_set.status = new_ledger[step].value

        store.save_project(project, new_ledger)
        write_audit(
            action="step.save",
            hr_project_id=project.id,
            company_id=project.company_id,
            step=step,
            actor=user,
            before={"status": ledger[step].value, "answers": before_answers},
            after={"status": new_ledger[step].value, "answers": answer_set.answers},
        )
    _log_transition(project, step, "step_saved", user)
    return get_step(project_id, step, user)


def submit_step(project_id: int, step: str, user: User) -> dict:
    """Hand a step in for CEO review: → ``submitted``.

    Raises:
        ForbiddenError: not an HR manager of this company.
        StepLockedError: predecessor not handed in, or step already submitted.
        ValidationError: answer set empty, invalid or incomplete.
    """
    with store.workflow_transaction(project_id):
        project = store.get_project(project_id, for_update=True)
        check_permission(user, project, PERM_SUBMIT)
        ledger = store.load_ledger(project)
        gating.ensure_editable(ledger, step)

        answer_set = _get_answer_set(project, step)
        ensure_submittable(step, answer_set.answers if answer_set is not None else None)

        new_ledger = gating.submit_step(ledger, step)
        answer_set.status = new_ledger[step].value
        answer_set.submitted_at = datetime.now(timezone.utc)
        answer_set.updated_by_id = user.id

        store.save_project(project, new_ledger)
        write_audit(
            action="step.submit",
            hr_project_id=project.id,
            company_id=project.company_id,
            step=step,
            actor=user,
            before={"status": ledger[step].value},
            after={"status": new_ledger[step].value},
        )
    _log_transition(project, step, "step_submitted", user)
    dispatch_after_commit(NotificationService.notify_step_submitted, project, step, user)
    return _state_payload(project, user)


def verify_step(project_id: int, step: str, user: User, finalize: bool = False) -> dict:
    """CEO confirms a submitted step: → ``approved`` (``locked`` with finalize).

    Raises:
        ForbiddenError: not a CEO of this company.  The ledger is untouched.
        NotSubmittedError: step is not in ``submitted``.
    """
    with store.workflow_transaction(project_id):
        project = store.get_project(project_id, for_update=True)
        check_permission(user, project, PERM_VERIFY)
        ledger = store.load_ledger(project)

        new_ledger = gating.approve_and_lock_step(ledger, step, finalize=finalize)
        _mirror_status(project, new_ledger, [step])

        store.save_project(project, new_ledger)
        write_audit(
            action="step.verify",
            hr_project_id=project.id,
            company_id=project.company_id,
            step=step,
            actor=user,
            before={"status": ledger[step].value},
            after={"status": new_ledger[step].value, "finalize": finalize},
        )
    _log_transition(project, step, "step_verified", user)
    unlocked = [s for s in gating.dependents(step) if gating.is_step_unlocked(new_ledger, s)]
    dispatch_after_commit(NotificationService.notify_step_verified, project, step, unlocked)
    return _state_payload(project, user)


def request_revision(project_id: int, step: str, user: User, comment: str | None = None) -> dict:
    """CEO sends a submitted step back to the HR manager: → ``in_progress``.

    Dependent steps keep their own statuses and answers; their gates close
    again until this step is re-submitted.
    """
    with store.workflow_transaction(project_id):
        project = store.get_project(project_id, for_update=True)
        check_permission(user, project, PERM_REQUEST_REVISION)
        ledger = store.load_ledger(project)

        new_ledger = gating.request_revision(ledger, step)
        _mirror_status(project, new_ledger, [step])

        store.save_project(project, new_ledger)
        write_audit(
            action="step.request_revision",
            hr_project_id=project.id,
            company_id=project.company_id,
            step=step,
            actor=user,
            before={"status": ledger[step].value},
            after={"status": new_ledger[step].value, "comment": comment or ""},
        )
    _log_transition(project, step, "revision_requested", user)
    dispatch_after_commit(NotificationService.notify_revision_requested, project, step, comment or "")
    return _state_payload(project, user)


def override_status(
    project_id: int, step: str, new_status: str, user: User, reason: str | None = None,
) -> dict:
    """Admin override: set any status on any step, bypassing the transition table."""
    with store.workflow_transaction(project_id):
        project = store.get_project(project_id, for_update=True)
        check_permission(user, project, PERM_OVERRIDE)
        try:
            target = gating.coerce_status(new_status)
        except ValueError as exc:
            raise ValidationError(
                "Unknown step status",
                {"status": f"must be one of: {', '.join(s.value for s in StepStatus)}"},
            ) from exc
        ledger = store.load_ledger(project)

        new_ledger = gating.set_status(ledger, step, target, force=True)
        _mirror_status(project, new_ledger, [step])

        store.save_project(project, new_ledger)
        write_audit(
            action="step.status_override",
            hr_project_id=project.id,
            company_id=project.company_id,
            step=step,
            actor=user,
            before={"status": ledger[step].value},
            after={"status": new_ledger[step].value, "reason": reason or ""},
        )
    _log_transition(project, step, "status_overridden", user)
    return _state_payload(project, user)


def final_approve(project_id: int, user: User) -> dict:
    """CEO final sign-off: lock every step and the project.

    Requires every core step to be at least submitted.  Approving an already
    locked project is a no-op.
    """
    with store.workflow_transaction(project_id):
        project = store.get_project(project_id, for_update=True)
        check_permission(user, project, PERM_FINAL_APPROVE)
        ledger = store.load_ledger(project)

        if gating.is_fully_locked(ledger):
            return _state_payload(project, user)

        if not gating.can_final_approve(ledger):
            pending = [s for s in gating.CORE_STEPS if ledger[s] not in gating.UNLOCKING_STATUSES]
            raise WorkflowError(
                "final_review",
                f"Final approval requires all core steps to be submitted; pending: {', '.join(pending)}",
            )

        previous_status = project.status
        new_ledger = gating.lock_all_steps(ledger)
        _mirror_status(project, new_ledger, gating.ALL_STEPS)

        store.save_project(project, new_ledger)
        write_audit(
            action="project.final_approve",
            hr_project_id=project.id,
            company_id=project.company_id,
            actor=user,
            before={"status": previous_status, "step_statuses": gating.serialize(ledger)},
            after={"status": project.status, "step_statuses": gating.serialize(new_ledger)},
        )
    _log_transition(project, None, "final_approved", user)
    dispatch_after_commit(NotificationService.notify_system_locked, project)
    return _state_payload(project, user)
