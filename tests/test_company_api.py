"""
Company API tests: tenant creation, visibility and membership.

    POST /api/v1/companies                  create company + HR project
    GET  /api/v1/companies                  visible companies
    GET  /api/v1/companies/<cid>            one company with members
    POST /api/v1/companies/<cid>/members    add a member
"""

import pytest

from app.models.audit import AuditLog
from app.models.auth import CompanyMember


BASE = "/api/v1/companies"


class TestCreateCompany:
    def test_hr_manager_creates_company_with_project(self, client, auth_headers, hr_manager):
        res = client.post(
            BASE,
            json={"name": "Globex", "industry": "Energy", "foundation_date": "2001-04-01"},
            headers=auth_headers(hr_manager),
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["name"] == "Globex"
        assert body["foundation_date"] == "2001-04-01"
        assert body["hr_project_id"] is not None
        assert [(m["user_id"], m["role"]) for m in body["members"]] == [(hr_manager.id, "hr_manager")]

        project = client.get(
            f"/api/v1/hr-projects/{body['hr_project_id']}", headers=auth_headers(hr_manager),
        ).get_json()
        assert project["project"]["status"] == "draft"
        assert set(project["project"]["step_statuses"].values()) == {"not_started"}

    def test_creation_is_audited(self, client, auth_headers, hr_manager):
        body = client.post(BASE, json={"name": "Initech"}, headers=auth_headers(hr_manager)).get_json()
        log = AuditLog.query.filter_by(action="project.create", company_id=body["id"]).one()
        assert log.actor_user_id == hr_manager.id

    def test_ceo_cannot_create(self, client, auth_headers, ceo):
        res = client.post(BASE, json={"name": "Nope"}, headers=auth_headers(ceo))
        assert res.status_code == 403

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({}, "name"),
            ({"name": "   "}, "name"),
            ({"name": "x" * 201}, "name"),
            ({"name": "Ok", "foundation_date": "yesterday"}, "foundation_date"),
        ],
    )
    def test_validation(self, client, auth_headers, hr_manager, payload, field):
        res = client.post(BASE, json=payload, headers=auth_headers(hr_manager))
        assert res.status_code == 422
        assert field in res.get_json()["details"]


class TestVisibility:
    def test_member_sees_own_company(self, client, auth_headers, ceo, company):
        body = client.get(BASE, headers=auth_headers(ceo)).get_json()
        assert [c["id"] for c in body["items"]] == [company.id]

    def test_outsider_sees_nothing(self, client, auth_headers, outsider_hr, company):
        body = client.get(BASE, headers=auth_headers(outsider_hr)).get_json()
        assert body["total"] == 0

    def test_consultant_sees_all(self, client, auth_headers, consultant, company):
        body = client.get(BASE, headers=auth_headers(consultant)).get_json()
        assert body["total"] == 1

    def test_get_company_with_members(self, client, auth_headers, hr_manager, ceo, company):
        res = client.get(f"{BASE}/{company.id}", headers=auth_headers(hr_manager))
        assert res.status_code == 200
        roles = {m["user_id"]: m["role"] for m in res.get_json()["members"]}
        assert roles == {hr_manager.id: "hr_manager", ceo.id: "ceo"}

    def test_get_company_forbidden_for_outsider(self, client, auth_headers, outsider_ceo, company):
        assert client.get(f"{BASE}/{company.id}", headers=auth_headers(outsider_ceo)).status_code == 403

    def test_get_unknown_company(self, client, auth_headers, admin):
        assert client.get(f"{BASE}/9999", headers=auth_headers(admin)).status_code == 404


class TestMembers:
    def _add(self, client, headers, company_id, **payload):
        return client.post(f"{BASE}/{company_id}/members", json=payload, headers=headers)

    def test_hr_manager_adds_ceo_by_email(self, client, auth_headers, hr_manager, outsider_ceo, company):
        res = self._add(
            client, auth_headers(hr_manager), company.id, email="ceo@other.example", role="ceo",
        )
        assert res.status_code == 201
        assert res.get_json()["user_id"] == outsider_ceo.id

        # the new CEO can now verify steps of this company
        state = client.get(
            f"/api/v1/hr-projects/{company.hr_project.id}", headers=auth_headers(outsider_ceo),
        ).get_json()
        assert "verify" in state["permissions"]

    def test_admin_adds_consultant_by_id(self, client, auth_headers, admin, consultant, company):
        res = self._add(client, auth_headers(admin), company.id, user_id=consultant.id, role="consultant")
        assert res.status_code == 201
        assert AuditLog.query.filter_by(action="company.member_add", company_id=company.id).count() == 1

    def test_ceo_cannot_add(self, client, auth_headers, ceo, consultant, company):
        res = self._add(client, auth_headers(ceo), company.id, user_id=consultant.id, role="consultant")
        assert res.status_code == 403

    def test_outsider_hr_cannot_add(self, client, auth_headers, outsider_hr, consultant, company):
        res = self._add(
            client, auth_headers(outsider_hr), company.id, user_id=consultant.id, role="consultant",
        )
        assert res.status_code == 403

    def test_duplicate_member(self, client, auth_headers, hr_manager, ceo, company):
        res = self._add(client, auth_headers(hr_manager), company.id, user_id=ceo.id, role="ceo")
        assert res.status_code == 409
        assert CompanyMember.query.filter_by(company_id=company.id, user_id=ceo.id).count() == 1

    def test_invalid_role(self, client, auth_headers, hr_manager, consultant, company):
        res = self._add(client, auth_headers(hr_manager), company.id, user_id=consultant.id, role="admin")
        assert res.status_code == 422

    def test_unknown_user(self, client, auth_headers, hr_manager, company):
        res = self._add(client, auth_headers(hr_manager), company.id, email="ghost@acme.example", role="ceo")
        assert res.status_code == 404

    def test_missing_user_reference(self, client, auth_headers, hr_manager, company):
        res = self._add(client, auth_headers(hr_manager), company.id, role="ceo")
        assert res.status_code == 422
