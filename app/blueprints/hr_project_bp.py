"""
HR Project Workflow Blueprint.

HTTP surface of the step-gated HR system design workflow.  Every route acts
as the user identified by the bearer token.

Endpoints:
    GET    /api/v1/hr-projects/<pid>
           Project, per-step gating state, caller's permissions.

    GET    /api/v1/hr-projects/<pid>/steps/<step>
    POST   /api/v1/hr-projects/<pid>/steps/<step>
           Body: { "answers": { ...fields } }  : upsert (partial merge)

    POST   /api/v1/hr-projects/<pid>/steps/<step>/submit
    POST   /api/v1/hr-projects/<pid>/steps/<step>/verify
           Body: { "finalize": false }
    POST   /api/v1/hr-projects/<pid>/steps/<step>/request-revision
           Body: { "comment": "..." }
    POST   /api/v1/hr-projects/<pid>/steps/<step>/status      (admin override)
           Body: { "status": "in_progress", "reason": "..." }

    POST   /api/v1/hr-projects/<pid>/final-review/approve

    GET    /api/v1/hr-projects/<pid>/audit?step=&action=&page=&per_page=

    GET    /api/v1/hr-projects/<pid>/ceo-philosophy
    POST   /api/v1/hr-projects/<pid>/ceo-philosophy
           Body: { "answers": { ... } }

    GET    /api/v1/hr-projects/<pid>/comments?step=
    POST   /api/v1/hr-projects/<pid>/comments
           Body: { "step", "comment", "is_recommendation",
                   "recommended_option", "rationale" }

Layer contract:
    - Blueprint: parse input, resolve the acting user, call service, return JSON.
    - NO db.session calls and NO role checks here; the service layer owns both.
"""

import logging

from flask import Blueprint, jsonify, request

from app.middleware.jwt_auth import get_current_user
from app.services import hr_project_service, review_service, step_workflow_service
from app.services.step_permission import PERM_VIEW, check_permission
from app.utils.errors import E, api_error, register_service_error_handlers

logger = logging.getLogger(__name__)

hr_project_bp = Blueprint("hr_project_bp", __name__, url_prefix="/api/v1")

register_service_error_handlers(hr_project_bp)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ═══════════════════════════════════════════════════════════════════════════
#  PROJECT & STEPS
# ═══════════════════════════════════════════════════════════════════════════


@hr_project_bp.route("/hr-projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    user = get_current_user()
    return jsonify(step_workflow_service.get_workflow_state(project_id, user)), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/steps/<step>", methods=["GET"])
def get_step(project_id, step):
    user = get_current_user()
    return jsonify(step_workflow_service.get_step(project_id, step, user)), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/steps/<step>", methods=["POST"])
def save_step(project_id, step):
    """Save (upsert) a step's answers.  Partial payloads merge into stored answers."""
    user = get_current_user()
    data = _json_body()
    answers = data.get("answers")
    if answers is None:
        return api_error(E.VALIDATION_REQUIRED, "answers is required")
    result = step_workflow_service.save_answers(project_id, step, answers, user)
    return jsonify(result), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/steps/<step>/submit", methods=["POST"])
def submit_step(project_id, step):
    user = get_current_user()
    return jsonify(step_workflow_service.submit_step(project_id, step, user)), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/steps/<step>/verify", methods=["POST"])
def verify_step(project_id, step):
    user = get_current_user()
    finalize = bool(_json_body().get("finalize", False))
    return jsonify(step_workflow_service.verify_step(project_id, step, user, finalize=finalize)), 200


@hr_project_bp.route(
    "/hr-projects/<int:project_id>/steps/<step>/request-revision", methods=["POST"],
)
def request_revision(project_id, step):
    user = get_current_user()
    comment = (_json_body().get("comment") or "").strip() or None
    return jsonify(step_workflow_service.request_revision(project_id, step, user, comment=comment)), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/steps/<step>/status", methods=["POST"])
def override_status(project_id, step):
    user = get_current_user()
    data = _json_body()
    new_status = data.get("status")
    if not new_status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    result = step_workflow_service.override_status(
        project_id, step, new_status, user, reason=data.get("reason"),
    )
    return jsonify(result), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/final-review/approve", methods=["POST"])
def final_approve(project_id):
    user = get_current_user()
    return jsonify(step_workflow_service.final_approve(project_id, user)), 200


# ═══════════════════════════════════════════════════════════════════════════
#  AUDIT TRAIL
# ═══════════════════════════════════════════════════════════════════════════


@hr_project_bp.route("/hr-projects/<int:project_id>/audit", methods=["GET"])
def list_audit(project_id):
    user = get_current_user()
    project = hr_project_service.get_project(project_id)
    check_permission(user, project, PERM_VIEW)

    page = request.args.get("page", 1, type=int)
    per_page = min(request.args.get("per_page", 50, type=int), 200)
    paginated = hr_project_service.list_audit(
        project_id,
        step=request.args.get("step"),
        action=request.args.get("action"),
        page=page,
        per_page=per_page,
    )
    return jsonify({
        "items": [log.to_dict() for log in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    }), 200


# ═══════════════════════════════════════════════════════════════════════════
#  CEO PHILOSOPHY & REVIEW COMMENTS
# ═══════════════════════════════════════════════════════════════════════════


@hr_project_bp.route("/hr-projects/<int:project_id>/ceo-philosophy", methods=["GET"])
def get_ceo_philosophy(project_id):
    user = get_current_user()
    return jsonify(review_service.get_ceo_philosophy(project_id, user)), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/ceo-philosophy", methods=["POST"])
def save_ceo_philosophy(project_id):
    user = get_current_user()
    answers = _json_body().get("answers")
    if answers is None:
        return api_error(E.VALIDATION_REQUIRED, "answers is required")
    return jsonify(review_service.save_ceo_philosophy(project_id, user, answers)), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/comments", methods=["GET"])
def list_comments(project_id):
    user = get_current_user()
    items = review_service.list_comments(project_id, user, step=request.args.get("step"))
    return jsonify({"items": items, "total": len(items)}), 200


@hr_project_bp.route("/hr-projects/<int:project_id>/comments", methods=["POST"])
def add_comment(project_id):
    user = get_current_user()
    return jsonify(review_service.add_comment(project_id, user, _json_body())), 201
