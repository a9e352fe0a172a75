"""
HR System Design Wizard
Notification Blueprint.

In-app notifications for the acting user.

Endpoints:
    GET    /api/v1/notifications?unread_only=&company_id=&limit=&offset=
    GET    /api/v1/notifications/unread-count
    POST   /api/v1/notifications/<nid>/read
    POST   /api/v1/notifications/read-all
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from app.middleware.jwt_auth import get_current_user
from app.services.notification import NotificationService
from app.utils.errors import E, api_error, register_service_error_handlers

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")

register_service_error_handlers(notification_bp)


@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    user = get_current_user()
    items, total = NotificationService.list_for_recipient(
        user.id,
        company_id=request.args.get("company_id", type=int),
        unread_only=request.args.get("unread_only", "false").lower() == "true",
        limit=min(request.args.get("limit", 50, type=int), 200),
        offset=request.args.get("offset", 0, type=int),
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "unread_count": NotificationService.unread_count(user.id),
    }), 200


@notification_bp.route("/notifications/unread-count", methods=["GET"])
def unread_count():
    user = get_current_user()
    return jsonify({"unread_count": NotificationService.unread_count(user.id)}), 200


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
def mark_read(notification_id):
    user = get_current_user()
    notif = NotificationService.mark_read(notification_id, user.id)
    if notif is None:
        return api_error(E.NOT_FOUND, "Notification not found")
    return jsonify(notif.to_dict()), 200


@notification_bp.route("/notifications/read-all", methods=["POST"])
def mark_all_read():
    user = get_current_user()
    count = NotificationService.mark_all_read(user.id)
    return jsonify({"marked_read": count}), 200
