"""
Review API tests: consultant comments and the CEO philosophy survey.

    GET/POST /api/v1/hr-projects/<pid>/comments
    GET/POST /api/v1/hr-projects/<pid>/ceo-philosophy
"""

import pytest

from app.models.audit import AuditLog


PHILOSOPHY = {
    "management_philosophy": ["people first", "long-term growth"],
    "vision_mission": ["best employer in the region"],
    "growth_stage": "expansion",
    "leadership": ["coaching"],
    "general": ["transparent pay"],
    "organizational_issues": ["silos between sales and ops"],
    "concerns": "Retention of senior engineers.",
}


def _comments_url(project_id, query=""):
    return f"/api/v1/hr-projects/{project_id}/comments{query}"


def _philosophy_url(project_id):
    return f"/api/v1/hr-projects/{project_id}/ceo-philosophy"


# ═════════════════════════════════════════════════════════════════════════════
# Comments
# ═════════════════════════════════════════════════════════════════════════════


class TestComments:
    def test_consultant_recommendation(self, client, auth_headers, consultant, project):
        res = client.post(
            _comments_url(project.id),
            json={
                "step": "compensation",
                "comment": "Consider grade-based bands.",
                "is_recommendation": True,
                "recommended_option": "grade_based",
                "rationale": "Matches the multi-grade structure.",
            },
            headers=auth_headers(consultant),
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["is_recommendation"] is True
        assert body["recommended_option"] == "grade_based"
        assert body["user_id"] == consultant.id

        log = AuditLog.query.filter_by(action="comment.create", hr_project_id=project.id).one()
        assert log.step == "compensation"

    def test_comment_does_not_touch_ledger(self, client, auth_headers, consultant, hr_manager, project):
        before = client.get(f"/api/v1/hr-projects/{project.id}", headers=auth_headers(hr_manager)).get_json()
        client.post(
            _comments_url(project.id), json={"step": "diagnosis", "comment": "Looks fine"},
            headers=auth_headers(consultant),
        )
        after = client.get(f"/api/v1/hr-projects/{project.id}", headers=auth_headers(hr_manager)).get_json()
        assert after["project"]["step_statuses"] == before["project"]["step_statuses"]

    def test_admin_may_comment(self, client, auth_headers, admin, project):
        res = client.post(
            _comments_url(project.id), json={"step": "diagnosis", "comment": "ok"},
            headers=auth_headers(admin),
        )
        assert res.status_code == 201

    @pytest.mark.parametrize("fixture", ["hr_manager", "ceo"])
    def test_members_without_comment_permission(self, client, auth_headers, project, fixture, request):
        user = request.getfixturevalue(fixture)
        res = client.post(
            _comments_url(project.id), json={"step": "diagnosis", "comment": "hi"},
            headers=auth_headers(user),
        )
        assert res.status_code == 403

    def test_forbidden_checked_before_validation(self, client, auth_headers, ceo, project):
        res = client.post(_comments_url(project.id), json={}, headers=auth_headers(ceo))
        assert res.status_code == 403

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"comment": "no step"}, "step"),
            ({"step": "diagnosis"}, "comment"),
            ({"step": "diagnosis", "comment": "x" * 5001}, "comment"),
        ],
    )
    def test_validation(self, client, auth_headers, consultant, project, payload, field):
        res = client.post(_comments_url(project.id), json=payload, headers=auth_headers(consultant))
        assert res.status_code == 422
        assert field in res.get_json()["details"]

    def test_unknown_step(self, client, auth_headers, consultant, project):
        res = client.post(
            _comments_url(project.id), json={"step": "payroll", "comment": "?"},
            headers=auth_headers(consultant),
        )
        assert res.status_code == 404

    def test_list_filtered_by_step(self, client, auth_headers, consultant, hr_manager, project):
        headers = auth_headers(consultant)
        for step in ("diagnosis", "organization", "diagnosis"):
            client.post(_comments_url(project.id), json={"step": step, "comment": step}, headers=headers)

        body = client.get(_comments_url(project.id), headers=auth_headers(hr_manager)).get_json()
        assert body["total"] == 3
        body = client.get(_comments_url(project.id, "?step=diagnosis"), headers=headers).get_json()
        assert [c["step"] for c in body["items"]] == ["diagnosis", "diagnosis"]

    def test_list_forbidden_for_outsider(self, client, auth_headers, outsider_hr, project):
        assert client.get(_comments_url(project.id), headers=auth_headers(outsider_hr)).status_code == 403


# ═════════════════════════════════════════════════════════════════════════════
# CEO philosophy
# ═════════════════════════════════════════════════════════════════════════════


class TestCeoPhilosophy:
    def test_empty_before_completion(self, client, auth_headers, hr_manager, project):
        res = client.get(_philosophy_url(project.id), headers=auth_headers(hr_manager))
        assert res.status_code == 200
        assert res.get_json() == {"hr_project_id": project.id, "answers": {}, "completed_at": None}

    def test_ceo_completes_survey(self, client, auth_headers, ceo, hr_manager, project):
        res = client.post(_philosophy_url(project.id), json={"answers": PHILOSOPHY}, headers=auth_headers(ceo))
        assert res.status_code == 200
        body = res.get_json()
        assert body["answers"] == PHILOSOPHY
        assert body["completed_at"] is not None
        assert body["submitted_by_id"] == ceo.id

        stored = client.get(_philosophy_url(project.id), headers=auth_headers(hr_manager)).get_json()
        assert stored["answers"]["growth_stage"] == "expansion"

    def test_resave_keeps_completion_time(self, client, auth_headers, ceo, project):
        headers = auth_headers(ceo)
        first = client.post(_philosophy_url(project.id), json={"answers": PHILOSOPHY}, headers=headers)
        second = client.post(
            _philosophy_url(project.id),
            json={"answers": {**PHILOSOPHY, "concerns": "Hiring"}},
            headers=headers,
        )
        assert second.get_json()["completed_at"] == first.get_json()["completed_at"]
        assert second.get_json()["answers"]["concerns"] == "Hiring"
        logs = (
            AuditLog.query.filter_by(action="ceo_philosophy.save", hr_project_id=project.id)
            .order_by(AuditLog.id).all()
        )
        assert len(logs) == 2
        assert logs[1].before["concerns"] == PHILOSOPHY["concerns"]

    def test_missing_sections(self, client, auth_headers, ceo, project):
        res = client.post(
            _philosophy_url(project.id), json={"answers": {"growth_stage": "startup"}},
            headers=auth_headers(ceo),
        )
        assert res.status_code == 422
        assert "management_philosophy" in res.get_json()["details"]

    def test_answers_required(self, client, auth_headers, ceo, project):
        res = client.post(_philosophy_url(project.id), json={}, headers=auth_headers(ceo))
        assert res.status_code == 400

    @pytest.mark.parametrize("fixture", ["hr_manager", "consultant", "outsider_ceo"])
    def test_only_member_ceo(self, client, auth_headers, project, fixture, request):
        user = request.getfixturevalue(fixture)
        res = client.post(_philosophy_url(project.id), json={"answers": PHILOSOPHY}, headers=auth_headers(user))
        assert res.status_code == 403
