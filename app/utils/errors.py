"""Standardised API error responses.

Usage
-----
    from app.utils.errors import api_error, E, register_service_error_handlers

    return api_error(E.NOT_FOUND, "HR project not found")
    return api_error(E.VALIDATION_INVALID, "Answers are invalid", details={"present_headcount": "..."})

    register_service_error_handlers(hr_project_bp)
"""

from __future__ import annotations

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    AuthenticationRequired,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StaleWriteError,
    ValidationError,
    WorkflowError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_  prefix for standard application errors
    """

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / workflow state – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    CONFLICT_STALE = "ERR_CONFLICT_STALE"
    STEP_LOCKED = "ERR_STEP_LOCKED"
    NOT_SUBMITTED = "ERR_NOT_SUBMITTED"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.CONFLICT_STALE: 409,
    E.STEP_LOCKED: 409,
    E.NOT_SUBMITTED: 409,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, step, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


# ── Blueprint error handlers ──────────────────────────────────────────


def register_service_error_handlers(bp) -> None:
    """Map service-layer exceptions to JSON responses on ``bp``."""

    @bp.errorhandler(AuthenticationRequired)
    def _handle_unauthenticated(e):
        return api_error(E.UNAUTHENTICATED, str(e))

    @bp.errorhandler(ForbiddenError)
    def _handle_forbidden(e):
        return api_error(E.FORBIDDEN, str(e))

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(e):
        return api_error(E.NOT_FOUND, str(e))

    @bp.errorhandler(ValidationError)
    def _handle_validation(e):
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @bp.errorhandler(StaleWriteError)
    def _handle_stale(e):
        return api_error(E.CONFLICT_STALE, str(e))

    @bp.errorhandler(ConflictError)
    def _handle_conflict(e):
        return api_error(E.CONFLICT_DUPLICATE, str(e))

    @bp.errorhandler(WorkflowError)
    def _handle_workflow(e):
        details = {"step": e.step}
        if getattr(e, "predecessor", None):
            details["predecessor"] = e.predecessor
        if getattr(e, "status", None):
            details["status"] = e.status
        return api_error(e.code, str(e), details=details)

    @bp.errorhandler(HTTPException)
    def _handle_http(e):
        code = {401: E.UNAUTHENTICATED, 403: E.FORBIDDEN, 404: E.NOT_FOUND}.get(
            e.code, E.INTERNAL if (e.code or 500) >= 500 else E.VALIDATION_REQUIRED
        )
        return api_error(code, e.description or e.name, status=e.code)

    @bp.errorhandler(Exception)
    def _handle_unexpected(e):
        logger.exception("Unhandled error in %s", bp.name)
        return api_error(E.INTERNAL, "Internal server error")
