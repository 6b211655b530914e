# tests/test_api.py
from __future__ import annotations

from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from inspection_engine.auth import Actor, issue_actor_jwt, jwt_sign, jwt_verify
from inspection_engine.cli.__main__ import mint_token
from inspection_engine.config import settings
from inspection_engine.main import create_app
from inspection_engine.middleware.request_id import channel_for, resolve_request_id


def _headers(user_id: str, role: str) -> dict[str, str]:
    return {"X-User-Id": user_id, "X-User-Role": role}


OWNER_H = _headers("owner-1", "owner")
INSPECTOR_H = _headers("insp-1", "inspector")
TENANT_H = _headers("tenant-1", "tenant")


def _client() -> TestClient:
    return TestClient(create_app())


def _scheduled(client: TestClient, world, kind: str = "routine", **extra) -> int:
    r = client.post(
        "/api/inspections",
        json={
            "property_id": world.property_id,
            "inspector_id": "insp-1",
            "inspection_type": kind,
            "scheduled_date": "2026-03-01",
            "tenancy_id": world.tenancy_id,
            **extra,
        },
        headers=OWNER_H,
    )
    assert r.status_code == 200, r.text
    return r.json()["id"]


def test_health():
    r = _client().get("/api/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_missing_identity_is_rejected(world):
    r = _client().post("/api/inspections", json={})
    assert r.status_code in (401, 422)


def test_tenant_cannot_schedule(world):
    client = _client()
    r = client.post(
        "/api/inspections",
        json={"property_id": world.property_id, "inspector_id": "insp-1", "inspection_type": "routine", "scheduled_date": "2026-03-01"},
        headers=TENANT_H,
    )
    assert r.status_code == 403
    assert r.json()["error"] == "forbidden"


def test_validation_errors_name_the_field(world):
    client = _client()
    r = client.post(
        "/api/inspections",
        json={"property_id": world.property_id, "inspector_id": "insp-1", "inspection_type": "party", "scheduled_date": "2026-03-01"},
        headers=OWNER_H,
    )
    assert r.status_code == 422
    assert r.json()["field"] == "inspection_type"


def test_checklist_walkthrough_over_http(world):
    client = _client()
    insp_id = _scheduled(client, world)

    r = client.post(
        f"/api/inspections/{insp_id}/expand-template",
        json={"rooms": [{"name": "Kitchen", "items": ["Oven", "Sink"]}]},
        headers=OWNER_H,
    )
    assert r.status_code == 200, r.text
    room = r.json()[0]
    assert [i["name"] for i in room["items"]] == ["Oven", "Sink"]

    assert client.post(f"/api/inspections/{insp_id}/start", headers=INSPECTOR_H).json()["status"] == "in_progress"
    for item in room["items"]:
        r = client.put(f"/api/inspections/items/{item['id']}/rating", json={"condition": "good"}, headers=INSPECTOR_H)
        assert r.status_code == 200, r.text
    r = client.post(f"/api/inspections/rooms/{room['id']}/complete", json={}, headers=INSPECTOR_H)
    assert r.json()["overall_condition"] == "good"

    r = client.post(f"/api/inspections/{insp_id}/complete", json={"action_items": ["service oven"]}, headers=INSPECTOR_H)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    assert r.json()["action_items"] == ["service oven"]

    r = client.post(f"/api/inspections/{insp_id}/start", headers=INSPECTOR_H)
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_transition"

    tree = client.get(f"/api/inspections/{insp_id}", headers=TENANT_H).json()
    assert tree["inspection"]["overall_condition"] == "good"
    assert len(tree["rooms"][0]["items"]) == 2


def _portal_setup(client: TestClient, world) -> tuple[int, str, dict]:
    insp_id = _scheduled(client, world)
    client.post(
        f"/api/inspections/{insp_id}/expand-template",
        json={"rooms": [{"name": "Kitchen", "items": ["Oven"]}]},
        headers=OWNER_H,
    )
    asg = client.post(
        f"/api/inspections/{insp_id}/assignments",
        json={"inspector_id": "pro-1", "inspector_email": "pro@inspect.co", "fee_amount": 150},
        headers=OWNER_H,
    ).json()
    issued = client.post(
        f"/api/inspections/{insp_id}/access-tokens",
        json={"assignment_id": asg["id"], "email": "pro@inspect.co"},
        headers=OWNER_H,
    )
    assert issued.status_code == 200, issued.text
    return insp_id, issued.json()["token"], issued.json()


def test_issued_link_carries_token(world):
    client = _client()
    _, token, body = _portal_setup(client, world)
    assert len(token) == 32
    assert body["link"].endswith(token)


def test_bad_tokens_get_one_generic_answer(world):
    client = _client()
    _, token, body = _portal_setup(client, world)
    client.post(f"/api/access-tokens/{body['id']}/revoke", headers=OWNER_H)

    revoked = client.get(f"/api/access/{token}")
    unknown = client.get(f"/api/access/{'f' * 32}")
    garbage = client.get("/api/access/hello")

    assert revoked.status_code == unknown.status_code == garbage.status_code == 401
    assert revoked.json() == unknown.json() == garbage.json()
    assert token not in revoked.text


def test_portal_flow_and_scope(world):
    client = _client()
    other_id = _scheduled(client, world)
    other_room = client.post(
        f"/api/inspections/{other_id}/expand-template",
        json={"rooms": [{"name": "Garage", "items": ["Door"]}]},
        headers=OWNER_H,
    ).json()[0]

    insp_id, token, _ = _portal_setup(client, world)

    view = client.get(f"/api/access/{token}")
    assert view.status_code == 200
    assert view.json()["inspection"]["id"] == insp_id
    room = view.json()["rooms"][0]

    assert client.post(f"/api/access/{token}/start").json()["status"] == "in_progress"

    r = client.put(f"/api/access/{token}/items/{other_room['items'][0]['id']}/rating", json={"condition": "damaged"})
    assert r.status_code == 404

    r = client.put(f"/api/access/{token}/items/{room['items'][0]['id']}/rating", json={"condition": "fair"})
    assert r.status_code == 200, r.text
    client.post(f"/api/access/{token}/rooms/{room['id']}/complete", json={})

    r = client.post(f"/api/access/{token}/submit", json={"summary_notes": "done"})
    assert r.status_code == 200, r.text
    assert r.json()["completed_at"] is not None

    assert client.get(f"/api/inspections/{insp_id}", headers=OWNER_H).json()["inspection"]["status"] == "completed"
    assert client.get(f"/api/access/{token}").status_code == 401


def test_comparison_over_http(world):
    client = _client()

    def walk(kind: str, cond: str, **extra) -> int:
        insp_id = _scheduled(client, world, kind, **extra)
        room = client.post(
            f"/api/inspections/{insp_id}/expand-template",
            json={"rooms": [{"name": "Living Room", "items": ["Carpet"]}]},
            headers=OWNER_H,
        ).json()[0]
        client.post(f"/api/inspections/{insp_id}/start", headers=INSPECTOR_H)
        client.put(f"/api/inspections/items/{room['items'][0]['id']}/rating", json={"condition": cond}, headers=INSPECTOR_H)
        client.post(f"/api/inspections/rooms/{room['id']}/complete", json={}, headers=INSPECTOR_H)
        client.post(f"/api/inspections/{insp_id}/complete", json={}, headers=INSPECTOR_H)
        return insp_id

    entry_id = walk("entry", "good")
    exit_id = walk("exit", "damaged", compare_to_inspection_id=entry_id)

    r = client.post("/api/comparisons", json={"entry_inspection_id": entry_id, "exit_inspection_id": exit_id}, headers=OWNER_H)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "completed"
    assert body["total_issues"] == 1
    assert body["bond_deduction_recommended"] == 600.0

    issue_id = body["issues"][0]["id"]
    r = client.post(f"/api/comparisons/issues/{issue_id}/override", json={"owner_agreed": False}, headers=OWNER_H)
    assert r.status_code == 200, r.text

    again = client.get(f"/api/comparisons/{body['id']}", headers=OWNER_H).json()
    assert again["bond_deduction_recommended"] == 0.0
    assert again["bond_deduction_amount"] == 600.0


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _schedule_body(world) -> dict:
    return {"property_id": world.property_id, "inspector_id": "insp-1", "inspection_type": "routine", "scheduled_date": "2026-03-01"}


def test_bearer_jwt_identifies_the_actor(world):
    now = datetime.utcnow()
    token = issue_actor_jwt(Actor(role="owner", user_id="owner-1", email="o@example.com"), now=now)

    claims = jwt_verify(token)
    assert claims["sub"] == "owner-1"
    assert claims["role"] == "owner"
    assert claims["email"] == "o@example.com"
    assert claims["exp"] == int((now + timedelta(minutes=settings.jwt_exp_minutes)).timestamp())

    r = _client().post("/api/inspections", json=_schedule_body(world), headers=_bearer(token))
    assert r.status_code == 200, r.text


def test_expired_jwt_is_rejected(world):
    long_ago = datetime.utcnow() - timedelta(minutes=settings.jwt_exp_minutes + 5)
    token = issue_actor_jwt(Actor(role="owner", user_id="owner-1"), now=long_ago)

    r = _client().post("/api/inspections", json=_schedule_body(world), headers=_bearer(token))
    assert r.status_code == 401
    assert r.json()["detail"] == "Token expired"


def test_jwt_with_swapped_claims_fails_signature(world):
    tenant = issue_actor_jwt(Actor(role="tenant", user_id="tenant-1"))
    admin = issue_actor_jwt(Actor(role="admin", user_id="tenant-1"))
    header, _, sig = tenant.split(".")
    forged = f"{header}.{admin.split('.')[1]}.{sig}"

    r = _client().post("/api/inspections", json=_schedule_body(world), headers=_bearer(forged))
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token signature"

    r = _client().post("/api/inspections", json=_schedule_body(world), headers=_bearer("not-a-jwt"))
    assert r.status_code == 401


def test_jwt_with_unknown_role_is_rejected(world):
    token = jwt_sign({"sub": "someone", "role": "landlord"})
    r = _client().post("/api/inspections", json=_schedule_body(world), headers=_bearer(token))
    assert r.status_code == 401


def test_cli_mints_verifiable_bearer_tokens():
    out = mint_token(user_id="insp-1", role="inspector", email=" Pro@Inspect.co ")
    claims = jwt_verify(out["access_token"])
    assert out["token_type"] == "bearer"
    assert (claims["sub"], claims["role"], claims["email"]) == ("insp-1", "inspector", "pro@inspect.co")


def test_request_id_is_echoed_or_minted():
    client = _client()

    r = client.get("/api/health", headers={"X-Request-ID": "owner-app.42"})
    assert r.headers["X-Request-ID"] == "owner-app.42"

    r = client.get("/api/health", headers={"X-Request-ID": "<script>alert(1)</script>"})
    minted = r.headers["X-Request-ID"]
    assert len(minted) == 32 and minted != "<script>alert(1)</script>"

    assert len(client.get("/api/health").headers["X-Request-ID"]) == 32


def test_request_channel_and_id_rules():
    assert channel_for("/api/access/" + "a" * 32 + "/items/1/rating") == "portal"
    assert channel_for("/api/inspections/1") == "api"
    assert resolve_request_id("  trace-1  ") == "trace-1"
    assert resolve_request_id("x" * 65) != "x" * 65


def test_tenant_review_over_http(db, world, conduct):
    insp_id = conduct("entry", {"Kitchen": {"Oven": "good"}})
    client = _client()
    r = client.post(f"/api/inspections/{insp_id}/send-for-review", headers=OWNER_H)
    assert r.status_code == 200, r.text
    room_id = client.get(f"/api/inspections/{insp_id}", headers=OWNER_H).json()["rooms"][0]["id"]

    r = client.post(
        f"/api/inspections/{insp_id}/submissions",
        json={"room_id": room_id, "submission_type": "new_photo"},
        headers=TENANT_H,
    )
    assert r.status_code == 422
    assert r.json()["field"] == "image_url"

    r = client.post(
        f"/api/inspections/{insp_id}/submissions",
        json={"room_id": room_id, "submission_type": "query", "description": "oven light?"},
        headers=TENANT_H,
    )
    assert r.status_code == 200, r.text
    sub_id = r.json()["id"]

    r = client.post(f"/api/submissions/{sub_id}/review", json={"status": "resolved"}, headers=OWNER_H)
    assert r.status_code == 200, r.text
    assert r.json()["reviewed_by"] == "owner-1"

    r = client.post(f"/api/rooms/{room_id}/acknowledge", json={}, headers=TENANT_H)
    assert r.status_code == 200, r.text
    assert client.post(f"/api/rooms/{room_id}/acknowledge", json={}, headers=TENANT_H).status_code == 422

    progress = client.get(f"/api/inspections/{insp_id}/review-progress", headers=OWNER_H).json()
    assert progress == {
        "inspection_id": insp_id,
        "total_rooms": 1,
        "tenant_reviewed_rooms": 1,
        "owner_reviewed_rooms": 0,
        "pending_submissions": 0,
    }
