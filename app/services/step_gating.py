"""
Step Gating Engine: the workflow state machine.

Pure decision logic over a project's step-status ledger.  Nothing in this
module touches the database, Flask or the acting user: callers hand in a
ledger and get back a decision or a *new* ledger.  Inputs are never mutated,
so a failed call can never leave a half-written ledger behind.

Step order (main chain):
    diagnosis → organization → performance → compensation → conclusion

Extension steps hang off their own predecessor:
    job_analysis ← diagnosis
    tree         ← compensation
    hr_policy_os ← compensation

Unlock rule (the only one used anywhere):
    the first step is always unlocked; any other step is unlocked iff its
    predecessor is submitted, approved or locked.

Transition table (STEP_TRANSITIONS):
    not_started → in_progress | submitted
    in_progress → submitted
    submitted   → approved | locked | in_progress   (verify / finalize / revision)
    approved    → locked
    locked      → (terminal)

Usage:
    from app.services import step_gating as gating

    ledger = gating.initialize(project.step_statuses)
    if gating.is_step_unlocked(ledger, "performance"):
        ledger = gating.submit_step(ledger, "performance")
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping

from app.core.exceptions import (
    InvalidTransitionError,
    NotSubmittedError,
    StepLockedError,
    UnknownStepError,
)

logger = logging.getLogger(__name__)


class StepStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    LOCKED = "locked"


Ledger = dict[str, StepStatus]


# ── Step layout ──────────────────────────────────────────────────────────────

STEP_ORDER: tuple[str, ...] = (
    "diagnosis",
    "organization",
    "performance",
    "compensation",
    "conclusion",
)

EXTENSION_STEPS: tuple[str, ...] = ("job_analysis", "tree", "hr_policy_os")

ALL_STEPS: tuple[str, ...] = STEP_ORDER + EXTENSION_STEPS

# Steps that must be at least submitted before the CEO can sign off the system.
CORE_STEPS: tuple[str, ...] = STEP_ORDER[:4]

STEP_PREDECESSOR: dict[str, str | None] = {
    "diagnosis": None,
    "organization": "diagnosis",
    "performance": "organization",
    "compensation": "performance",
    "conclusion": "compensation",
    "job_analysis": "diagnosis",
    "tree": "compensation",
    "hr_policy_os": "compensation",
}

STEP_LABELS = {
    "diagnosis": "Step 1: Diagnosis",
    "organization": "Step 2: Organization Design",
    "performance": "Step 3: Performance System",
    "compensation": "Step 4: Compensation System",
    "conclusion": "Conclusion",
    "job_analysis": "Job Analysis",
    "tree": "TREE Review",
    "hr_policy_os": "HR Policy OS",
}


# ── Status groups & transitions ─────────────────────────────────────────────

UNLOCKING_STATUSES = frozenset({StepStatus.SUBMITTED, StepStatus.APPROVED, StepStatus.LOCKED})
EDITABLE_STATUSES = frozenset({StepStatus.NOT_STARTED, StepStatus.IN_PROGRESS})
VERIFIED_STATUSES = frozenset({StepStatus.APPROVED, StepStatus.LOCKED})

STEP_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.NOT_STARTED: frozenset({StepStatus.IN_PROGRESS, StepStatus.SUBMITTED}),
    StepStatus.IN_PROGRESS: frozenset({StepStatus.SUBMITTED}),
    StepStatus.SUBMITTED: frozenset({StepStatus.APPROVED, StepStatus.LOCKED, StepStatus.IN_PROGRESS}),
    StepStatus.APPROVED: frozenset({StepStatus.LOCKED}),
    StepStatus.LOCKED: frozenset(),
}

# Values written by older ledgers that map onto the closed enum.
_LEGACY_STATUS_ALIASES = {
    "completed": StepStatus.APPROVED,
    "verified": StepStatus.APPROVED,
}


def validate_transition(old_status: StepStatus, new_status: StepStatus) -> bool:
    """Return True if the transition table allows old → new."""
    return new_status in STEP_TRANSITIONS.get(old_status, frozenset())


# ── Helpers ──────────────────────────────────────────────────────────────────


def _require_step(step: str) -> str:
    if step not in STEP_PREDECESSOR:
        raise UnknownStepError(step)
    return step


def coerce_status(value) -> StepStatus:
    """Turn a stored string (or enum) into a StepStatus.

    Raises ValueError for values that are neither a status nor a known alias.
    """
    if isinstance(value, StepStatus):
        return value
    if value in _LEGACY_STATUS_ALIASES:
        return _LEGACY_STATUS_ALIASES[value]
    return StepStatus(value)


def predecessor(step: str) -> str | None:
    """Return the step that gates ``step``; None for the first step."""
    return STEP_PREDECESSOR[_require_step(step)]


def successor(step: str) -> str | None:
    """Return the next main-chain step, or None for the last / extension steps."""
    _require_step(step)
    if step not in STEP_ORDER:
        return None
    idx = STEP_ORDER.index(step)
    return STEP_ORDER[idx + 1] if idx + 1 < len(STEP_ORDER) else None


def dependents(step: str) -> list[str]:
    """All steps whose gate opens off ``step`` (main-chain successor first)."""
    _require_step(step)
    return [s for s in ALL_STEPS if STEP_PREDECESSOR[s] == step]


def serialize(ledger: Mapping[str, StepStatus]) -> dict[str, str]:
    """Ledger → JSON-ready dict of plain strings (column storage format)."""
    return {step: StepStatus(status).value for step, status in ledger.items()}


# ── Ledger operations ────────────────────────────────────────────────────────


def initialize(ledger: Mapping[str, object] | None) -> Ledger:
    """Return a ledger with an entry for every known step.

    Missing keys default to ``not_started``.  Raw strings are coerced; an
    unreadable value is logged and treated as ``not_started``.  Keys that are
    not workflow steps are dropped.  Idempotent: safe to call on every read.
    """
    raw = dict(ledger or {})
    result: Ledger = {}
    for step in ALL_STEPS:
        value = raw.get(step)
        if value is None:
            result[step] = StepStatus.NOT_STARTED
            continue
        try:
            result[step] = coerce_status(value)
        except ValueError:
            logger.warning("Unreadable status %r for step %s: reset to not_started", value, step)
            result[step] = StepStatus.NOT_STARTED
    return result


def get_status(ledger: Mapping[str, object], step: str) -> StepStatus:
    return initialize(ledger)[_require_step(step)]


def is_step_unlocked(ledger: Mapping[str, object], step: str) -> bool:
    """True if ``step`` may be opened for editing.

    Depends only on the predecessor's status, never on the step's own.
    """
    prev = predecessor(step)
    if prev is None:
        return True
    return get_status(ledger, prev) in UNLOCKING_STATUSES


def is_step_editable(ledger: Mapping[str, object], step: str) -> bool:
    """Unlocked and still in an editable status (not yet handed in)."""
    return is_step_unlocked(ledger, step) and get_status(ledger, step) in EDITABLE_STATUSES


def ensure_unlocked(ledger: Mapping[str, object], step: str) -> None:
    """Raise StepLockedError if ``step`` is gated by an unfinished predecessor."""
    if not is_step_unlocked(ledger, step):
        raise StepLockedError(step, predecessor=predecessor(step))


def ensure_editable(ledger: Mapping[str, object], step: str) -> None:
    """Raise StepLockedError unless the step is unlocked and not yet handed in."""
    ensure_unlocked(ledger, step)
    status = get_status(ledger, step)
    if status not in EDITABLE_STATUSES:
        raise StepLockedError(step, status=status.value)


def set_status(
    ledger: Mapping[str, object],
    step: str,
    new_status: StepStatus | str,
    *,
    force: bool = False,
) -> Ledger:
    """Return a new ledger with ``step`` set to ``new_status``.

    The move is checked against STEP_TRANSITIONS; ``force=True`` skips the
    check (admin override).  Setting a step to the status it already has is a
    no-op and always allowed.
    """
    _require_step(step)
    target = coerce_status(new_status)
    result = initialize(ledger)
    current = result[step]
    if current == target:
        return result
    if not force and not validate_transition(current, target):
        raise InvalidTransitionError(step, current.value, target.value)
    result[step] = target
    return result


def mark_in_progress(ledger: Mapping[str, object], step: str) -> Ledger:
    """First save on a step: ``not_started`` → ``in_progress``; otherwise unchanged."""
    ensure_editable(ledger, step)
    if get_status(ledger, step) == StepStatus.NOT_STARTED:
        return set_status(ledger, step, StepStatus.IN_PROGRESS)
    return initialize(ledger)


def submit_step(ledger: Mapping[str, object], step: str) -> Ledger:
    """Hand a step in for review: → ``submitted``.

    The step must be unlocked and still editable.  Whether the answer set is
    complete is the caller's precondition, not the engine's.
    """
    ensure_editable(ledger, step)
    return set_status(ledger, step, StepStatus.SUBMITTED)


def approve_and_lock_step(
    ledger: Mapping[str, object],
    step: str,
    *,
    finalize: bool = False,
) -> Ledger:
    """Reviewer confirms a submitted step: → ``approved`` (``locked`` if finalize).

    The step must still be unlocked: a submitted step whose predecessor was
    sent back for revision waits until the predecessor is handed in again.
    """
    status = get_status(ledger, step)
    if status != StepStatus.SUBMITTED:
        raise NotSubmittedError(step, status.value)
    ensure_unlocked(ledger, step)
    target = StepStatus.LOCKED if finalize else StepStatus.APPROVED
    return set_status(ledger, step, target)


def request_revision(ledger: Mapping[str, object], step: str) -> Ledger:
    """Reviewer sends a submitted step back: → ``in_progress``.

    The only backward transition.  Dependent steps keep their own entries.
    """
    status = get_status(ledger, step)
    if status != StepStatus.SUBMITTED:
        raise NotSubmittedError(step, status.value)
    return set_status(ledger, step, StepStatus.IN_PROGRESS)


def lock_all_steps(ledger: Mapping[str, object]) -> Ledger:
    """Final sign-off: every step → ``locked``.  Idempotent."""
    return {step: StepStatus.LOCKED for step in ALL_STEPS}


# ── Derived views ────────────────────────────────────────────────────────────


def derive_current_step(ledger: Mapping[str, object]) -> str:
    """First main-chain step not yet verified; the last step once all are."""
    current = initialize(ledger)
    for step in STEP_ORDER:
        if current[step] not in VERIFIED_STATUSES:
            return step
    return STEP_ORDER[-1]


def can_final_approve(ledger: Mapping[str, object]) -> bool:
    """All core steps handed in (submitted, approved or locked)."""
    current = initialize(ledger)
    return all(current[step] in UNLOCKING_STATUSES for step in CORE_STEPS)


def is_fully_locked(ledger: Mapping[str, object]) -> bool:
    current = initialize(ledger)
    return all(status == StepStatus.LOCKED for status in current.values())


def workflow_state(ledger: Mapping[str, object]) -> dict[str, dict]:
    """Per-step payload for presentation collaborators.

    Returns:
        {step: {"status", "label", "predecessor", "is_unlocked", "can_edit"}}
    """
    current = initialize(ledger)
    return {
        step: {
            "status": current[step].value,
            "label": STEP_LABELS[step],
            "predecessor": STEP_PREDECESSOR[step],
            "is_unlocked": is_step_unlocked(current, step),
            "can_edit": is_step_editable(current, step),
        }
        for step in ALL_STEPS
    }
