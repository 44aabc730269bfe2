from __future__ import annotations

from collections.abc import Callable

from fastapi.testclient import TestClient
from office_console.models.entities import User, UserRole


def _headers(email: str) -> dict[str, str]:
    return {"X-USER-EMAIL": email}


def _create_client(client: TestClient, admin: User, name: str) -> dict[str, object]:
    response = client.post("/api/v1/clients", headers=_headers(admin.email), json={"name": name})
    assert response.status_code == 201
    return response.json()


def test_unknown_user_is_rejected(client: TestClient, admin: User) -> None:
    response = client.get("/api/v1/me", headers=_headers("nobody@test.local"))

    assert response.status_code == 401


def test_inactive_user_is_rejected(client: TestClient, make_user: Callable[..., User]) -> None:
    make_user(email="gone@test.local", is_active=False)

    response = client.get("/api/v1/me", headers=_headers("gone@test.local"))

    assert response.status_code == 403


def test_legacy_client_role_reads_as_client_user(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    tenant = _create_client(client, admin, "Acme")
    make_user(email="legacy@test.local", role="CLIENT", client_id=tenant["id"])

    me = client.get("/api/v1/me", headers=_headers("legacy@test.local"))
    assert me.status_code == 200
    assert me.json()["role"] == "CLIENT_USER"

    filtered = client.get("/api/v1/users", headers=_headers(admin.email), params={"role": "CLIENT_USER"})
    assert filtered.status_code == 200
    assert [row["email"] for row in filtered.json()["items"]] == ["legacy@test.local"]


def test_client_crud_and_duplicate_name(client: TestClient, admin: User) -> None:
    created = _create_client(client, admin, "Acme")
    assert created["show_assignees"] is True

    duplicate = client.post("/api/v1/clients", headers=_headers(admin.email), json={"name": "acme"})
    assert duplicate.status_code == 422

    updated = client.patch(
        f"/api/v1/clients/{created['id']}",
        headers=_headers(admin.email),
        json={"show_assignees": False},
    )
    assert updated.status_code == 200
    assert updated.json()["show_assignees"] is False

    listing = client.get("/api/v1/clients", headers=_headers(admin.email))
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 1
    assert body["page"] == 1
    assert body["total_pages"] == 1

    deleted = client.delete(f"/api/v1/clients/{created['id']}", headers=_headers(admin.email))
    assert deleted.status_code == 204


def test_client_with_users_cannot_be_deleted(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    tenant = _create_client(client, admin, "Acme")
    make_user(email="cu@test.local", role=UserRole.CLIENT_USER, client_id=tenant["id"])

    response = client.delete(f"/api/v1/clients/{tenant['id']}", headers=_headers(admin.email))

    assert response.status_code == 409


def test_staff_cannot_manage_clients_or_users(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    make_user(email="staff@test.local")

    create_client = client.post("/api/v1/clients", headers=_headers("staff@test.local"), json={"name": "X"})
    create_user = client.post(
        "/api/v1/users",
        headers=_headers("staff@test.local"),
        json={"name": "New", "email": "new@test.local"},
    )

    assert create_client.status_code == 403
    assert create_user.status_code == 403


def test_user_creation_requires_client_for_client_roles(client: TestClient, admin: User) -> None:
    response = client.post(
        "/api/v1/users",
        headers=_headers(admin.email),
        json={"name": "Client", "email": "c@test.local", "role": "CLIENT_USER"},
    )

    assert response.status_code == 422


def test_duplicate_email_is_rejected(client: TestClient, admin: User) -> None:
    payload = {"name": "Dup", "email": "dup@test.local"}
    first = client.post("/api/v1/users", headers=_headers(admin.email), json=payload)
    second = client.post("/api/v1/users", headers=_headers(admin.email), json={**payload, "email": "DUP@test.local"})

    assert first.status_code == 201
    assert second.status_code == 422


def test_client_admin_manages_only_own_client_users(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    acme = _create_client(client, admin, "Acme")
    globex = _create_client(client, admin, "Globex")
    make_user(email="ca@test.local", role=UserRole.CLIENT_ADMIN, client_id=acme["id"])
    other = make_user(email="other@test.local", role=UserRole.CLIENT_USER, client_id=globex["id"])
    headers = _headers("ca@test.local")

    own = client.post(
        "/api/v1/users",
        headers=headers,
        json={"name": "Teammate", "email": "mate@test.local", "role": "CLIENT_USER"},
    )
    assert own.status_code == 201
    assert own.json()["client_id"] == acme["id"]

    staff = client.post(
        "/api/v1/users",
        headers=headers,
        json={"name": "Sneaky", "email": "sneaky@test.local", "role": "STAFF"},
    )
    assert staff.status_code == 403

    foreign = client.patch(f"/api/v1/users/{other.id}", headers=headers, json={"name": "Renamed"})
    assert foreign.status_code == 403

    listing = client.get("/api/v1/users", headers=headers)
    assert {row["email"] for row in listing.json()["items"]} == {"ca@test.local", "mate@test.local"}


def test_user_list_paginates(client: TestClient, admin: User, make_user: Callable[..., User]) -> None:
    for index in range(3):
        make_user(email=f"user{index}@test.local", name=f"User {index}")

    response = client.get(
        "/api/v1/users",
        headers=_headers(admin.email),
        params={"page": 2, "page_size": 3, "sort_by": "email"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 4
    assert body["total_pages"] == 2
    assert [row["email"] for row in body["items"]] == ["user2@test.local"]


def test_unknown_sort_key_is_rejected(client: TestClient, admin: User) -> None:
    response = client.get("/api/v1/users", headers=_headers(admin.email), params={"sort_by": "password"})

    assert response.status_code == 422


def test_user_with_assigned_tasks_cannot_be_deleted(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    worker = make_user(email="worker@test.local")
    project = client.post(
        "/api/v1/projects",
        headers=_headers(admin.email),
        json={"name": "Internal", "member_ids": [str(worker.id)]},
    ).json()
    task = client.post(
        "/api/v1/tasks",
        headers=_headers(admin.email),
        json={"project_id": project["id"], "title": "Do it", "assignee_ids": [str(worker.id)]},
    )
    assert task.status_code == 201

    response = client.delete(f"/api/v1/users/{worker.id}", headers=_headers(admin.email))

    assert response.status_code == 409
