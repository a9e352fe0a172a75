"""
Company Service: tenant creation and membership.

Creating a company also creates its single HR project and makes the creator
the company's HR manager, all in one transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models import db
from app.models.audit import write_audit
from app.models.auth import (
    ROLE_ADMIN,
    ROLE_CONSULTANT,
    ROLE_HR_MANAGER,
    VALID_MEMBER_ROLES,
    Company,
    CompanyMember,
    User,
)
from app.services import hr_project_service as store
from app.services.step_permission import is_company_member
from app.services.user_service import get_user_by_email
from app.utils.helpers import parse_date

logger = logging.getLogger(__name__)

COMPANY_FIELDS = ("name", "brand_name", "industry", "foundation_date")


def _company_member_row(company_id: int, user_id: int) -> CompanyMember | None:
    return db.session.execute(
        select(CompanyMember).where(
            CompanyMember.company_id == company_id,
            CompanyMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def get_company(company_id: int, user: User) -> Company:
    """Return a company visible to ``user`` (members, consultants, admins)."""
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company", company_id)
    if user.has_role(ROLE_ADMIN, ROLE_CONSULTANT) or is_company_member(user, company_id):
        return company
    raise ForbiddenError(user.id, "view", reason="not a member of this company")


def list_companies(user: User) -> list[Company]:
    """Companies visible to ``user``."""
    q = Company.query
    if not user.has_role(ROLE_ADMIN, ROLE_CONSULTANT):
        q = q.join(CompanyMember, CompanyMember.company_id == Company.id).filter(
            CompanyMember.user_id == user.id
        )
    return q.order_by(Company.name).all()


def create_company(user: User, data: dict) -> Company:
    """Create a company, its HR project and the creator's HR-manager membership.

    Raises:
        ForbiddenError: creator is not an HR manager.
        ValidationError: name missing or too long, bad foundation_date.
    """
    if not user.has_role(ROLE_HR_MANAGER):
        raise ForbiddenError(user.id, "create_company", reason="requires hr_manager")

    name = (data.get("name") or "").strip()
    details = {}
    if not name:
        details["name"] = "is required"
    elif len(name) > 200:
        details["name"] = "must be at most 200 characters"
    foundation_date = None
    if data.get("foundation_date"):
        foundation_date = parse_date(data["foundation_date"])
        if foundation_date is None:
            details["foundation_date"] = "must be a date (YYYY-MM-DD)"
    if details:
        raise ValidationError("Company is invalid", details)

    with store.workflow_transaction():
        company = Company(
            name=name,
            brand_name=data.get("brand_name"),
            industry=data.get("industry"),
            foundation_date=foundation_date,
            created_by_id=user.id,
        )
        db.session.add(company)
        db.session.flush()
        db.session.add(CompanyMember(company_id=company.id, user_id=user.id, role=ROLE_HR_MANAGER))
        project = store.create_project(company.id)
        write_audit(
            action="project.create",
            hr_project_id=project.id,
            company_id=company.id,
            actor=user,
            after={"company": name, "step_statuses": dict(project.step_statuses)},
        )

    logger.info(
        "Company %s created with project %s", company.id, project.id,
        extra={"company_id": company.id, "project_id": project.id, "event_type": "company_created"},
    )
    return company


def add_member(company_id: int, user: User, data: dict) -> CompanyMember:
    """Add a user to a company in the given membership role.

    Allowed for admins and for the company's own HR managers.

    Raises:
        ForbiddenError, NotFoundError, ValidationError, ConflictError
    """
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company", company_id)

    acting_row = _company_member_row(company_id, user.id)
    is_company_hr = (
        acting_row is not None and acting_row.role == ROLE_HR_MANAGER
        and user.has_role(ROLE_HR_MANAGER)
    )
    if not (user.has_role(ROLE_ADMIN) or is_company_hr):
        raise ForbiddenError(user.id, "add_member", reason="requires admin or this company's hr_manager")

    role = data.get("role")
    if role not in VALID_MEMBER_ROLES:
        raise ValidationError(
            "Membership is invalid",
            {"role": f"must be one of: {', '.join(sorted(VALID_MEMBER_ROLES))}"},
        )

    if data.get("user_id"):
        member_user = db.session.get(User, data["user_id"])
    elif data.get("email"):
        member_user = get_user_by_email(data["email"])
    else:
        raise ValidationError("Membership is invalid", {"user_id": "user_id or email is required"})
    if member_user is None:
        raise NotFoundError("User", data.get("user_id") or data.get("email"))

    if _company_member_row(company_id, member_user.id) is not None:
        raise ConflictError("CompanyMember", "user_id", str(member_user.id))

    with store.workflow_transaction():
        member = CompanyMember(company_id=company_id, user_id=member_user.id, role=role)
        db.session.add(member)
        db.session.flush()
        write_audit(
            action="company.member_add",
            hr_project_id=company.hr_project.id if company.hr_project else None,
            company_id=company_id,
            actor=user,
            after={"user_id": member_user.id, "role": role},
        )

    logger.info(
        "User %s joined company %s as %s", member_user.id, company_id, role,
        extra={"company_id": company_id, "event_type": "member_added"},
    )
    return member
