"""
Tests for admin endpoints.

Tests:
- Role enforcement
- User and result listings
- Single and bulk deletes with audit entries
- Question reseeding
"""

import json
import pytest

from core.config import settings

BASE = f"{settings.api_v1_prefix}/admin"
ASSESSMENT = f"{settings.api_v1_prefix}/assessment"


async def _submit(client, headers, answers):
    await client.post(f"{ASSESSMENT}/session", headers=headers)
    response = await client.post(f"{ASSESSMENT}/submit", json={"answers": answers}, headers=headers)
    assert response.status_code == 200


class TestRoleEnforcement:
    @pytest.mark.parametrize("method,path", [
        ("GET", "/users"),
        ("GET", "/results"),
        ("GET", "/admin-logs"),
        ("DELETE", "/users/someone@example.com"),
        ("POST", "/questions/reseed"),
    ])
    async def test_candidate_is_forbidden(self, client, candidate_headers, method, path):
        response = await client.request(method, f"{BASE}{path}", headers=candidate_headers)
        assert response.status_code == 403

    async def test_anonymous_is_unauthorized(self, client):
        response = await client.get(f"{BASE}/users")
        assert response.status_code == 401


class TestListings:
    async def test_users_with_summary(
        self, client, admin_headers, candidate_headers, seeded_questions
    ):
        await _submit(client, candidate_headers, {"1": "4", "2": "Rome"})

        response = await client.get(f"{BASE}/users", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        user = body["items"][0]
        assert user["email"] == "alice@example.com"
        assert user["test_submitted"] is True
        assert (user["correct_count"], user["wrong_count"], user["skipped_count"]) == (1, 1, 2)
        assert user["overall_score"] == 25

    async def test_results_include_responses(
        self, client, admin_headers, candidate_headers, seeded_questions
    ):
        await _submit(client, candidate_headers, {"1": "4"})

        body = (await client.get(f"{BASE}/results", headers=admin_headers)).json()

        record = body["items"][0]
        assert record["applicant_name"] == "Alice"
        assert record["completed"] is True
        assert [r["question_id"] for r in record["responses"]] == [1, 2, 3, 4]
        assert record["responses"][0]["answer"] == "4"

    async def test_pagination(self, client, admin_headers, make_headers, seeded_questions):
        for i in range(3):
            await _submit(client, make_headers(f"user{i}@example.com"), {})

        body = (await client.get(
            f"{BASE}/users", params={"page": 2, "page_size": 2}, headers=admin_headers
        )).json()

        assert body["total"] == 3
        assert body["total_pages"] == 2
        assert len(body["items"]) == 1


class TestDeletes:
    async def test_delete_user(self, client, admin_headers, candidate_headers, seeded_questions):
        await _submit(client, candidate_headers, {"1": "4"})

        response = await client.delete(f"{BASE}/users/Alice@Example.com", headers=admin_headers)

        assert response.status_code == 200
        users = (await client.get(f"{BASE}/users", headers=admin_headers)).json()
        results = (await client.get(f"{BASE}/results", headers=admin_headers)).json()
        assert users["total"] == 0
        assert results["total"] == 0

        logs = (await client.get(f"{BASE}/admin-logs", headers=admin_headers)).json()
        assert logs[0]["email"] == "admin@example.com"
        assert logs[0]["status"] == "Deleted user alice@example.com"

    async def test_delete_unknown_user(self, client, admin_headers):
        response = await client.delete(f"{BASE}/users/ghost@example.com", headers=admin_headers)
        assert response.status_code == 404

    async def test_bulk_delete(self, client, admin_headers, make_headers, seeded_questions):
        await _submit(client, make_headers("a@example.com"), {})
        await _submit(client, make_headers("b@example.com"), {})

        response = await client.post(
            f"{BASE}/users/bulk-delete",
            json={"emails": ["a@example.com", "B@example.com", "ghost@example.com"]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["deleted"] == 2
        assert body["failed"] == 0
        assert [item["deleted"] for item in body["results"]] == [True, True, False]

    async def test_bulk_delete_requires_emails(self, client, admin_headers):
        response = await client.post(
            f"{BASE}/users/bulk-delete", json={"emails": []}, headers=admin_headers
        )
        assert response.status_code == 422

    async def test_delete_result_keeps_user(
        self, client, admin_headers, candidate_headers, seeded_questions
    ):
        await _submit(client, candidate_headers, {"1": "4"})

        response = await client.delete(f"{BASE}/results/alice@example.com", headers=admin_headers)

        assert response.status_code == 200
        assert (await client.get(f"{BASE}/users", headers=admin_headers)).json()["total"] == 1
        assert (await client.get(f"{BASE}/results", headers=admin_headers)).json()["total"] == 0

    async def test_access_log_lifecycle(self, client, admin_headers):
        created = await client.post(f"{BASE}/access", headers=admin_headers)
        assert created.status_code == 201
        entry = created.json()
        assert entry["status"] == "Authorized Access"

        deleted = await client.delete(f"{BASE}/admin-logs/{entry['id']}", headers=admin_headers)
        assert deleted.status_code == 200
        missing = await client.delete(f"{BASE}/admin-logs/{entry['id']}", headers=admin_headers)
        assert missing.status_code == 404


class TestReseed:
    async def test_reseed_from_file(self, client, admin_headers, candidate_headers, tmp_path, monkeypatch):
        path = tmp_path / "questions.json"
        path.write_text(json.dumps([
            {"id": 1, "question": "Only question", "options": ["a", "b"], "answer": "a"},
        ]))
        monkeypatch.setattr(settings, "questions_file", path)

        response = await client.post(f"{BASE}/questions/reseed", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"questions_loaded": 1}
        questions = (await client.get(f"{ASSESSMENT}/questions", headers=candidate_headers)).json()
        assert [q["text"] for q in questions] == ["Only question"]

    async def test_reseed_with_bad_file(self, client, admin_headers, tmp_path, monkeypatch):
        path = tmp_path / "questions.json"
        path.write_text("[{\"id\": 1}]")
        monkeypatch.setattr(settings, "questions_file", path)

        response = await client.post(f"{BASE}/questions/reseed", headers=admin_headers)

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "ANSWER_KEY_MISSING"
