from datetime import timedelta

from kingdomops.core.timeutils import utcnow
from kingdomops.models.orm import Result


def start_and_submit(client, headers, answers):
    r = client.post("/v1/assessments", headers=headers, json={})
    assert r.status_code == 201
    response_id = r.json()["id"]
    r = client.post(f"/v1/assessments/{response_id}/submit", headers=headers, json={"answers": answers})
    assert r.status_code == 200
    return response_id, r.json()


def test_health(client):
    r = client.get("/health"); assert r.status_code == 200 and r.json()["status"] == "ok"


def test_token_is_required(client):
    r = client.get("/v1/me", headers={"Authorization": "Bearer nonsense"})
    assert r.status_code == 401
    assert r.json()["error"] == {"message": "Invalid or expired token", "type": "http_error", "status_code": 401}


def test_mock_login_can_be_switched_off(client, monkeypatch):
    from kingdomops.core.config import settings
    monkeypatch.setattr(settings, "ENABLE_MOCK_LOGIN", False)
    r = client.post("/v1/auth/mock-login", json={"user_id": "tester"})
    assert r.status_code == 404 and r.json()["error"]["status_code"] == 404


def test_submit_flow(client, login, full_answers):
    hdr = login("tester", "PARTICIPANT", "org-a")
    response_id, body = start_and_submit(client, hdr, full_answers())
    assert body["score"]["is_valid"] and body["score"]["top3"][0] == "TEACHING"
    assert body["result"]["gifts"][0] == {"key": "TEACHING", "score": 12, "percentage": 40}
    assert body["result"]["days_until_expiration"] == 90

    r = client.post(f"/v1/assessments/{response_id}/submit", headers=hdr, json={})
    assert r.status_code == 409 and r.json()["error"]["type"] == "invalid_state"

    r = client.get(f"/v1/results/{response_id}", headers=hdr); assert r.status_code == 200
    r = client.get("/v1/results/mine", headers=hdr); assert [x["response_id"] for x in r.json()] == [response_id]
    r = client.get(f"/v1/results/{response_id}", headers=login("someone-else")); assert r.status_code == 404


def test_answers_endpoint_and_strict_submit(client, login):
    hdr = login("tester")
    response_id = client.post("/v1/assessments", headers=hdr, json={"version_id": "kit-gifts-v2"}).json()["id"]
    r = client.post(f"/v1/assessments/{response_id}/answers", headers=hdr,
                    json={"answers": [{"question_id": "q1", "gift_key": "FAITH", "value": 4}]})
    assert r.json() == {"response_id": response_id, "recorded": 1}
    r = client.post(f"/v1/assessments/{response_id}/submit", headers=hdr, json={"strict": True})
    assert r.status_code == 422 and r.json()["error"]["details"]
    r = client.post(f"/v1/assessments/{response_id}/submit", headers=hdr, json={})
    assert r.status_code == 200 and not r.json()["result"]["is_valid"]


def test_expired_result_is_gone(client, login, full_answers, session_factory):
    hdr = login("tester")
    response_id, _ = start_and_submit(client, hdr, full_answers())
    with session_factory() as db:
        result = db.query(Result).filter_by(response_id=response_id).one()
        result.created_at = utcnow() - timedelta(days=100)
        result.expires_at = utcnow() - timedelta(days=10)
        db.commit()
    r = client.get(f"/v1/results/{response_id}", headers=hdr)
    assert r.status_code == 410 and r.json()["error"]["message"] == "Results have expired"
    r = client.get("/v1/results/mine", headers=hdr); assert r.json()[0]["is_expired"]


def test_view_as_requires_super_admin(client, login):
    r = client.post("/v1/super-admin/view-as", headers=login("u1", "ORG_ADMIN", "org-a"), json={"role": "ORG_OWNER"})
    assert r.status_code == 403 and r.json()["error"]["reason"] == "INSUFFICIENT_ROLE"


def test_organization_results_are_scoped(client, login):
    hdr = login("admin-a", "ORG_ADMIN", "org-a")
    assert client.get("/v1/organizations/org-a/results", headers=hdr).status_code == 200
    r = client.get("/v1/organizations/org-b/results", headers=hdr)
    assert r.status_code == 403
    assert r.json()["error"]["reason"] == "ORGANIZATION_MISMATCH" and r.json()["error"]["required"] == "results_view"
    r = client.get("/v1/organizations/org-a/results", headers=login("p1", "PARTICIPANT", "org-a"))
    assert r.json()["error"]["reason"] == "INSUFFICIENT_ROLE"


def test_super_admin_view_as_round_trip(client, login):
    hdr = login("root", "SUPER_ADMIN")
    assert client.get("/v1/organizations/org-b/results", headers=hdr).status_code == 200

    r = client.post("/v1/super-admin/view-as", headers=hdr, json={"organization_id": "org-a"})
    assert r.json()["success"] and r.json()["view_context"]["view_as_organization_id"] == "org-a"
    assert client.get("/v1/organizations/org-b/results", headers=hdr).status_code == 403
    assert client.get("/v1/organizations/org-a/results", headers=hdr).status_code == 200

    client.post("/v1/super-admin/view-as", headers=hdr, json={"role": "ORG_LEADER"})
    me = client.get("/v1/me", headers=hdr).json()
    assert me["role"] == "ORG_LEADER" and me["principal_role"] == "SUPER_ADMIN"
    assert "results_manage" not in me["permissions"]
    assert client.get("/v1/super-admin/view-context", headers=hdr).json()["view_context"]["view_as_role"] == "ORG_LEADER"

    assert client.delete("/v1/super-admin/view-as", headers=hdr).json()["success"]
    assert client.get("/v1/me", headers=hdr).json()["role"] == "SUPER_ADMIN"
    assert client.get("/v1/super-admin/view-context", headers=hdr).json()["view_context"] is None


def test_submit_stores_profile_selections(client, login, full_answers):
    hdr = login("tester")
    response_id = client.post("/v1/assessments", headers=hdr, json={}).json()["id"]
    r = client.post(f"/v1/assessments/{response_id}/submit", headers=hdr, json={
        "answers": full_answers(), "age_groups": ["children"], "ministry_interests": ["missions", "media"],
    })
    assert r.status_code == 200
    result = client.get(f"/v1/results/{response_id}", headers=hdr).json()
    assert result["age_groups"] == ["children"]
    assert result["ministry_interests"] == ["missions", "media"]
    assert result["natural_abilities"] == []
