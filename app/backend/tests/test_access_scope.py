from __future__ import annotations

import uuid
from collections.abc import Callable

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from office_console.core.access import (
    AdminScope,
    ClientAdminScope,
    ClientUserScope,
    StaffScope,
    scope_for,
)
from office_console.core.auth import RequestUserContext
from office_console.models.entities import User, UserRole


def _headers(email: str) -> dict[str, str]:
    return {"X-USER-EMAIL": email}


def _context(role: UserRole, client_id: uuid.UUID | None = None) -> RequestUserContext:
    return RequestUserContext(
        user_id=uuid.uuid4(),
        email="someone@test.local",
        display_name="Someone",
        role=role,
        client_id=client_id,
    )


def _tenant(client: TestClient, admin: User, name: str) -> str:
    response = client.post("/api/v1/clients", headers=_headers(admin.email), json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


def _project(client: TestClient, email: str, name: str, **extra: object) -> dict[str, object]:
    response = client.post("/api/v1/projects", headers=_headers(email), json={"name": name, **extra})
    assert response.status_code == 201
    return response.json()


def test_scope_for_picks_variant_by_role() -> None:
    client_id = uuid.uuid4()

    assert isinstance(scope_for(_context(UserRole.ADMIN)), AdminScope)
    assert isinstance(scope_for(_context(UserRole.STAFF)), StaffScope)
    assert isinstance(scope_for(_context(UserRole.CLIENT_ADMIN, client_id)), ClientAdminScope)
    assert isinstance(scope_for(_context(UserRole.CLIENT_USER, client_id)), ClientUserScope)


def test_staff_sees_created_and_member_projects_only(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    staff = make_user(email="staff@test.local")
    _project(client, admin.email, "Hidden")
    _project(client, admin.email, "Shared", member_ids=[str(staff.id)])
    _project(client, staff.email, "Own")

    response = client.get("/api/v1/projects", headers=_headers(staff.email))

    assert response.status_code == 200
    assert sorted(row["name"] for row in response.json()["items"]) == ["Own", "Shared"]


def test_staff_member_sees_only_created_or_assigned_tasks(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    staff = make_user(email="staff@test.local")
    shared = _project(client, admin.email, "Shared", member_ids=[str(staff.id)])
    for title, assignees, email in (
        ("Unassigned", [], admin.email),
        ("Assigned", [str(staff.id)], admin.email),
        ("Self made", [], staff.email),
    ):
        response = client.post(
            "/api/v1/tasks",
            headers=_headers(email),
            json={"project_id": shared["id"], "title": title, "assignee_ids": assignees},
        )
        assert response.status_code == 201

    response = client.get("/api/v1/tasks", headers=_headers(staff.email))

    assert response.status_code == 200
    rows = response.json()["items"]
    assert sorted(row["title"] for row in rows) == ["Assigned", "Self made"]
    for row in rows:
        assignee_ids = {assignee["id"] for assignee in row["assignees"]}
        assert row["created_by_id"] == str(staff.id) or str(staff.id) in assignee_ids


def test_staff_is_forbidden_from_unrelated_project(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    make_user(email="staff@test.local")
    hidden = _project(client, admin.email, "Hidden")

    response = client.get(f"/api/v1/projects/{hidden['id']}", headers=_headers("staff@test.local"))

    assert response.status_code == 403


def test_missing_entity_is_not_found_before_access_check(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    make_user(email="staff@test.local")

    response = client.patch(
        f"/api/v1/projects/{uuid.uuid4()}",
        headers=_headers("staff@test.local"),
        json={"name": "Nope"},
    )

    assert response.status_code == 404


def test_client_user_is_confined_to_own_tenant(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    acme = _tenant(client, admin, "Acme")
    globex = _tenant(client, admin, "Globex")
    make_user(email="cu@test.local", role=UserRole.CLIENT_USER, client_id=acme)
    own = _project(client, admin.email, "Acme site", client_id=acme)
    foreign = _project(client, admin.email, "Globex site", client_id=globex)
    foreign_task = client.post(
        "/api/v1/tasks",
        headers=_headers(admin.email),
        json={"project_id": foreign["id"], "title": "Secret"},
    ).json()
    headers = _headers("cu@test.local")

    projects = client.get("/api/v1/projects", headers=headers).json()["items"]
    clients = client.get("/api/v1/clients", headers=headers).json()["items"]

    assert [row["id"] for row in projects] == [own["id"]]
    assert [row["id"] for row in clients] == [acme]
    assert client.get(f"/api/v1/tasks/{foreign_task['id']}", headers=headers).status_code == 403
    assert client.get(f"/api/v1/clients/{globex}", headers=headers).status_code == 403


def test_client_user_can_work_on_own_tenant_tasks(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    acme = _tenant(client, admin, "Acme")
    make_user(email="cu@test.local", role=UserRole.CLIENT_USER, client_id=acme)
    project = _project(client, admin.email, "Acme site", client_id=acme)

    response = client.post(
        "/api/v1/tasks",
        headers=_headers("cu@test.local"),
        json={"project_id": project["id"], "title": "Client request"},
    )

    assert response.status_code == 201


def test_client_roles_cannot_manage_structure(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    acme = _tenant(client, admin, "Acme")
    make_user(email="ca@test.local", role=UserRole.CLIENT_ADMIN, client_id=acme)
    project = _project(client, admin.email, "Acme site", client_id=acme)
    headers = _headers("ca@test.local")

    create = client.post("/api/v1/projects", headers=headers, json={"name": "Mine"})
    rename = client.patch(f"/api/v1/projects/{project['id']}", headers=headers, json={"name": "Renamed"})
    module = client.post(f"/api/v1/projects/{project['id']}/modules", headers=headers, json={"name": "M"})

    assert create.status_code == 403
    assert rename.status_code == 403
    assert module.status_code == 403


def test_client_account_without_client_is_rejected(
    client: TestClient,
    make_user: Callable[..., User],
) -> None:
    make_user(email="orphan@test.local", role=UserRole.CLIENT_USER)

    response = client.get("/api/v1/projects", headers=_headers("orphan@test.local"))

    assert response.status_code == 403


def test_client_admin_scope_rejects_non_client_targets() -> None:
    client_id = uuid.uuid4()
    scope = ClientAdminScope(_context(UserRole.CLIENT_ADMIN, client_id))

    scope.ensure_can_manage_user(target_role=UserRole.CLIENT_USER, target_client_id=client_id)

    with pytest.raises(HTTPException) as other_role:
        scope.ensure_can_manage_user(target_role=UserRole.STAFF, target_client_id=client_id)
    with pytest.raises(HTTPException) as other_tenant:
        scope.ensure_can_manage_user(target_role=UserRole.CLIENT_USER, target_client_id=uuid.uuid4())

    assert other_role.value.status_code == 403
    assert other_tenant.value.status_code == 403
