from __future__ import annotations

from collections.abc import Callable

from fastapi.testclient import TestClient

from office_console.models.entities import User, UserRole

URL = "/api/v1/requirements"


def _headers(email: str) -> dict[str, str]:
    return {"X-USER-EMAIL": email}


def _create(client: TestClient, email: str, **payload: object):
    body = {"type": "NEW_PROJECT", "title": "Portal", **payload}
    return client.post(URL, headers=_headers(email), json=body)


def test_change_request_requires_parent(client: TestClient, admin: User) -> None:
    response = _create(client, admin.email, type="CHANGE_REQUEST", title="Tweak")

    assert response.status_code == 422


def test_parent_must_be_project_or_feature(client: TestClient, admin: User) -> None:
    bug = _create(client, admin.email, type="BUG", title="Crash").json()

    response = _create(client, admin.email, type="CHANGE_REQUEST", title="Tweak", parent_id=bug["id"])

    assert response.status_code == 422


def test_parent_candidates_and_child_creation(client: TestClient, admin: User) -> None:
    parent = _create(client, admin.email).json()
    _create(client, admin.email, type="BUG", title="Crash")

    candidates = client.get(f"{URL}/parent-candidates", headers=_headers(admin.email)).json()["items"]
    child = _create(client, admin.email, type="CHANGE_REQUEST", title="Tweak", parent_id=parent["id"])

    assert [row["id"] for row in candidates] == [parent["id"]]
    assert child.status_code == 201
    assert child.json()["parent_id"] == parent["id"]


def test_requirement_with_children_cannot_be_deleted(client: TestClient, admin: User) -> None:
    parent = _create(client, admin.email).json()
    child = _create(client, admin.email, type="CHANGE_REQUEST", title="Tweak", parent_id=parent["id"]).json()

    blocked = client.delete(f"{URL}/{parent['id']}", headers=_headers(admin.email))
    assert blocked.status_code == 409

    assert client.delete(f"{URL}/{child['id']}", headers=_headers(admin.email)).status_code == 204
    assert client.delete(f"{URL}/{parent['id']}", headers=_headers(admin.email)).status_code == 204


def test_update_records_activity(client: TestClient, admin: User) -> None:
    created = _create(client, admin.email, type="FEATURE_REQUEST").json()

    response = client.patch(
        f"{URL}/{created['id']}",
        headers=_headers(admin.email),
        json={"status": "SUBMITTED", "title": "Portal v2"},
    )
    activity = client.get(f"{URL}/{created['id']}/activity", headers=_headers(admin.email)).json()["items"]

    assert response.status_code == 200
    assert response.json()["status"] == "SUBMITTED"
    recorded = {(row["type"], row["field"], row["old_value"], row["new_value"]) for row in activity}
    assert recorded == {
        ("CREATED", None, None, None),
        ("FIELD_CHANGE", "status", "DRAFT", "SUBMITTED"),
        ("UPDATED", "title", None, None),
    }


def test_clearing_parent_of_change_request_is_rejected(client: TestClient, admin: User) -> None:
    parent = _create(client, admin.email).json()
    child = _create(client, admin.email, type="CHANGE_REQUEST", title="Tweak", parent_id=parent["id"]).json()

    response = client.patch(f"{URL}/{child['id']}", headers=_headers(admin.email), json={"parent_id": None})

    assert response.status_code == 422


def test_client_requirements_are_tenant_scoped(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    acme = client.post("/api/v1/clients", headers=_headers(admin.email), json={"name": "Acme"}).json()["id"]
    globex = client.post("/api/v1/clients", headers=_headers(admin.email), json={"name": "Globex"}).json()["id"]
    make_user(email="cu@test.local", role=UserRole.CLIENT_USER, client_id=acme)
    foreign = _create(client, admin.email, title="Globex portal", client_id=globex).json()

    own = _create(client, "cu@test.local", title="Acme portal", client_id=globex)
    assert own.status_code == 201
    assert own.json()["client_id"] == acme

    listing = client.get(URL, headers=_headers("cu@test.local")).json()["items"]
    assert [row["title"] for row in listing] == ["Acme portal"]

    update = client.patch(f"{URL}/{foreign['id']}", headers=_headers("cu@test.local"), json={"title": "Mine"})
    assert update.status_code == 403

    reassign = client.patch(
        f"{URL}/{own.json()['id']}",
        headers=_headers("cu@test.local"),
        json={"client_id": globex},
    )
    assert reassign.status_code == 403
