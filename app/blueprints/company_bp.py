"""
Company Blueprint: tenant creation and membership.

Endpoints:
    GET    /api/v1/companies                   : companies visible to the caller
    POST   /api/v1/companies                   : create company + HR project
           Body: { "name", "brand_name", "industry", "foundation_date" }
    GET    /api/v1/companies/<cid>             : company with members
    POST   /api/v1/companies/<cid>/members     : add a member
           Body: { "user_id" | "email", "role": "hr_manager|ceo|consultant" }
"""

import logging

from flask import Blueprint, jsonify, request

from app.middleware.jwt_auth import get_current_user
from app.services import company_service
from app.utils.errors import register_service_error_handlers

logger = logging.getLogger(__name__)

company_bp = Blueprint("company_bp", __name__, url_prefix="/api/v1")

register_service_error_handlers(company_bp)


@company_bp.route("/companies", methods=["GET"])
def list_companies():
    user = get_current_user()
    companies = company_service.list_companies(user)
    return jsonify({"items": [c.to_dict() for c in companies], "total": len(companies)}), 200


@company_bp.route("/companies", methods=["POST"])
def create_company():
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    company = company_service.create_company(user, data)
    return jsonify(company.to_dict(include_members=True)), 201


@company_bp.route("/companies/<int:company_id>", methods=["GET"])
def get_company(company_id):
    user = get_current_user()
    company = company_service.get_company(company_id, user)
    return jsonify(company.to_dict(include_members=True)), 200


@company_bp.route("/companies/<int:company_id>/members", methods=["POST"])
def add_member(company_id):
    user = get_current_user()
    data = request.get_json(silent=True) or {}
    member = company_service.add_member(company_id, user, data)
    return jsonify(member.to_dict()), 201
