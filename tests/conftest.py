"""
Shared pytest fixtures for the HR System Design Wizard test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user: factory for users with global roles
    - hr_manager, ceo, consultant, admin, outsider_hr, outsider_ceo: users
    - company / project: a company created by ``hr_manager`` with ``ceo`` as member
    - auth_headers: bearer-token headers for a user
    - valid_answers: a submittable answer payload per step
"""

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import ROLE_CEO, ROLE_CONSULTANT, CompanyMember
from app.services import company_service
from app.services.jwt_service import generate_access_token
from app.services.user_service import create_user, seed_roles


VALID_ANSWERS = {
    "diagnosis": {
        "industry_category": "Manufacturing",
        "present_headcount": 120,
        "average_age": 38.5,
        "hr_issues": ["retention", "succession"],
    },
    "organization": {"structure_type": "functional", "job_grade_structure": "single"},
    "performance": {"performance_methods": ["mbo"], "evaluation_units": ["individual"]},
    "compensation": {"compensation_structure": ["base", "bonus"], "salary_adjustment_unit": "percentage"},
    "conclusion": {"summary": "Adopt grade-based pay with MBO reviews."},
    "job_analysis": {"selected_job_keyword_ids": [1, 2, 3]},
    "tree": {"talent_review": ["annual calibration"]},
    "hr_policy_os": {"implementation_roadmap": ["Q1 rollout"]},
}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        seed_roles()
        _db.session.commit()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── User fixtures ────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: make_user("x@example.com", "hr_manager", ...)."""
    def _make(email, *roles, full_name=None):
        return create_user(email, full_name=full_name or email.split("@")[0], role_names=list(roles))
    return _make


@pytest.fixture()
def hr_manager(make_user):
    return make_user("hr@acme.example", "hr_manager", full_name="Hana HR")


@pytest.fixture()
def ceo(make_user):
    return make_user("ceo@acme.example", "ceo", full_name="Chris CEO")


@pytest.fixture()
def consultant(make_user):
    return make_user("consultant@advisors.example", "consultant")


@pytest.fixture()
def admin(make_user):
    return make_user("admin@platform.example", "admin")


@pytest.fixture()
def outsider_hr(make_user):
    """An HR manager who is not a member of ``company``."""
    return make_user("hr@other.example", "hr_manager")


@pytest.fixture()
def outsider_ceo(make_user):
    """A CEO who is not a member of ``company``."""
    return make_user("ceo@other.example", "ceo")


# ── Company / project fixtures ───────────────────────────────────────────


@pytest.fixture()
def company(hr_manager, ceo):
    """Company created by ``hr_manager`` (auto-membership + project), CEO added."""
    c = company_service.create_company(hr_manager, {"name": "Acme Corp", "industry": "Manufacturing"})
    _db.session.add(CompanyMember(company_id=c.id, user_id=ceo.id, role=ROLE_CEO))
    _db.session.commit()
    return c


@pytest.fixture()
def project(company):
    return company.hr_project


@pytest.fixture()
def consultant_member(company, consultant):
    _db.session.add(CompanyMember(company_id=company.id, user_id=consultant.id, role=ROLE_CONSULTANT))
    _db.session.commit()
    return consultant


# ── Auth helpers ─────────────────────────────────────────────────────────


@pytest.fixture()
def auth_headers():
    """auth_headers(user) → {"Authorization": "Bearer <jwt>"}."""
    def _headers(user):
        token = generate_access_token(user.id, user.role_names)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture()
def valid_answers():
    """valid_answers(step) → a fresh copy of a submittable payload."""
    def _answers(step):
        return dict(VALID_ANSWERS[step])
    return _answers
