from __future__ import annotations

from collections.abc import Callable

from fastapi.testclient import TestClient

from office_console.models.entities import User


def _headers(email: str) -> dict[str, str]:
    return {"X-USER-EMAIL": email}


def _create_project(client: TestClient, email: str, *, member_ids: list[str] | None = None) -> dict[str, object]:
    response = client.post(
        "/api/v1/projects",
        headers=_headers(email),
        json={"name": "Website", "member_ids": member_ids or []},
    )
    assert response.status_code == 201
    return response.json()


def _create_task(client: TestClient, email: str, project_id: str, **extra: object) -> dict[str, object]:
    response = client.post(
        "/api/v1/tasks",
        headers=_headers(email),
        json={"project_id": project_id, "title": "Landing page", **extra},
    )
    assert response.status_code == 201
    return response.json()


def _activity(client: TestClient, email: str, task_id: str) -> list[dict[str, object]]:
    response = client.get(f"/api/v1/tasks/{task_id}/activity", headers=_headers(email))
    assert response.status_code == 200
    return response.json()["items"]


def test_create_task_records_creation_activity(client: TestClient, admin: User) -> None:
    project = _create_project(client, admin.email)
    task = _create_task(client, admin.email, project["id"])

    assert task["status"] == "TODO"
    assert task["completed_at"] is None
    activity = _activity(client, admin.email, task["id"])
    assert [row["type"] for row in activity] == ["CREATED"]


def test_status_transitions_drive_completed_at(client: TestClient, admin: User) -> None:
    project = _create_project(client, admin.email)
    task = _create_task(client, admin.email, project["id"])
    url = f"/api/v1/tasks/{task['id']}"

    done = client.patch(url, headers=_headers(admin.email), json={"status": "DONE"})
    assert done.status_code == 200
    assert done.json()["completed_at"] is not None

    reopened = client.patch(url, headers=_headers(admin.email), json={"status": "IN_PROGRESS"})
    assert reopened.status_code == 200
    assert reopened.json()["completed_at"] is None

    changes = [
        (row["field"], row["old_value"], row["new_value"])
        for row in _activity(client, admin.email, task["id"])
        if row["type"] == "FIELD_CHANGE"
    ]
    assert sorted(changes) == [("status", "DONE", "IN_PROGRESS"), ("status", "TODO", "DONE")]


def test_no_op_update_records_no_activity(client: TestClient, admin: User) -> None:
    project = _create_project(client, admin.email)
    task = _create_task(client, admin.email, project["id"], priority="HIGH")

    response = client.patch(
        f"/api/v1/tasks/{task['id']}",
        headers=_headers(admin.email),
        json={"title": "Landing page", "priority": "HIGH", "status": "TODO"},
    )

    assert response.status_code == 200
    assert len(_activity(client, admin.email, task["id"])) == 1


def test_due_date_can_be_cleared_explicitly(client: TestClient, admin: User) -> None:
    project = _create_project(client, admin.email)
    task = _create_task(client, admin.email, project["id"], due_date="2026-04-01")
    url = f"/api/v1/tasks/{task['id']}"

    untouched = client.patch(url, headers=_headers(admin.email), json={"title": "Landing page v2"})
    assert untouched.json()["due_date"] == "2026-04-01"

    cleared = client.patch(url, headers=_headers(admin.email), json={"due_date": None})
    assert cleared.status_code == 200
    assert cleared.json()["due_date"] is None

    due_changes = [row for row in _activity(client, admin.email, task["id"]) if row["field"] == "due_date"]
    assert len(due_changes) == 1
    assert due_changes[0]["old_value"] == "2026-04-01"
    assert due_changes[0]["new_value"] is None


def test_assignee_changes_record_names(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    alice = make_user(email="alice@test.local", name="Alice")
    bob = make_user(email="bob@test.local", name="Bob")
    carol = make_user(email="carol@test.local", name="Carol")
    project = _create_project(client, admin.email, member_ids=[str(alice.id), str(bob.id), str(carol.id)])
    task = _create_task(client, admin.email, project["id"], assignee_ids=[str(alice.id), str(bob.id)])

    response = client.patch(
        f"/api/v1/tasks/{task['id']}",
        headers=_headers(admin.email),
        json={"assignee_ids": [str(bob.id), str(carol.id)]},
    )

    assert response.status_code == 200
    assert [row["name"] for row in response.json()["assignees"]] == ["Bob", "Carol"]
    records = [
        (row["type"], row["old_value"], row["new_value"])
        for row in _activity(client, admin.email, task["id"])
        if row["field"] == "assignees"
    ]
    assert sorted(records) == [("ASSIGNED", None, "Carol"), ("UNASSIGNED", "Alice", None)]


def test_activity_from_one_update_keeps_recorded_order(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    alice = make_user(email="alice@test.local", name="Alice")
    project = _create_project(client, admin.email, member_ids=[str(alice.id)])
    task = _create_task(client, admin.email, project["id"])

    response = client.patch(
        f"/api/v1/tasks/{task['id']}",
        headers=_headers(admin.email),
        json={
            "assignee_ids": [str(alice.id)],
            "title": "Pricing page",
            "priority": "HIGH",
            "status": "IN_PROGRESS",
        },
    )

    assert response.status_code == 200
    first = [(row["type"], row["field"]) for row in _activity(client, admin.email, task["id"])]
    second = [(row["type"], row["field"]) for row in _activity(client, admin.email, task["id"])]
    assert first == second
    assert [entry for entry in first if entry[0] != "CREATED"] == [
        ("FIELD_CHANGE", "status"),
        ("FIELD_CHANGE", "priority"),
        ("UPDATED", "title"),
        ("ASSIGNED", "assignees"),
    ]


def test_assignees_must_be_project_members(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    outsider = make_user(email="outsider@test.local")
    project = _create_project(client, admin.email)

    response = client.post(
        "/api/v1/tasks",
        headers=_headers(admin.email),
        json={"project_id": project["id"], "title": "X", "assignee_ids": [str(outsider.id)]},
    )

    assert response.status_code == 422


def test_module_must_belong_to_task_project(client: TestClient, admin: User) -> None:
    first = _create_project(client, admin.email)
    second = _create_project(client, admin.email)
    module = client.post(
        f"/api/v1/projects/{second['id']}/modules",
        headers=_headers(admin.email),
        json={"name": "Backend"},
    ).json()

    response = client.post(
        "/api/v1/tasks",
        headers=_headers(admin.email),
        json={"project_id": first["id"], "module_id": module["id"], "title": "X"},
    )

    assert response.status_code == 422


def test_task_list_filters_by_status(client: TestClient, admin: User) -> None:
    project = _create_project(client, admin.email)
    _create_task(client, admin.email, project["id"], title="Open")
    _create_task(client, admin.email, project["id"], title="Closed", status="DONE")

    response = client.get(
        "/api/v1/tasks",
        headers=_headers(admin.email),
        params={"project_id": project["id"], "status": ["DONE"]},
    )

    assert response.status_code == 200
    assert [row["title"] for row in response.json()["items"]] == ["Closed"]
    assert response.json()["items"][0]["completed_at"] is not None


def test_comments_are_author_only(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    project = _create_project(client, admin.email)
    task = _create_task(client, admin.email, project["id"])
    make_user(email="staff@test.local")
    comment = client.post(
        f"/api/v1/tasks/{task['id']}/comments",
        headers=_headers(admin.email),
        json={"content": "First!"},
    )
    assert comment.status_code == 201
    comment_url = f"/api/v1/tasks/{task['id']}/comments/{comment.json()['id']}"

    edited = client.patch(comment_url, headers=_headers(admin.email), json={"content": "Edited"})
    assert edited.json()["content"] == "Edited"

    # Staff cannot see a task they neither created nor are assigned to.
    foreign = client.delete(comment_url, headers=_headers("staff@test.local"))
    assert foreign.status_code == 403

    removed = client.delete(comment_url, headers=_headers(admin.email))
    assert removed.status_code == 204


def test_task_links(client: TestClient, admin: User) -> None:
    project = _create_project(client, admin.email)
    first = _create_task(client, admin.email, project["id"], title="A")
    second = _create_task(client, admin.email, project["id"], title="B")
    links_url = f"/api/v1/tasks/{first['id']}/links"

    self_link = client.post(links_url, headers=_headers(admin.email), json={"target_task_id": first["id"]})
    assert self_link.status_code == 422

    created = client.post(
        links_url,
        headers=_headers(admin.email),
        json={"target_task_id": second["id"], "type": "BLOCKS"},
    )
    assert created.status_code == 201

    duplicate = client.post(
        links_url,
        headers=_headers(admin.email),
        json={"target_task_id": second["id"], "type": "BLOCKS"},
    )
    assert duplicate.status_code == 409

    from_target = client.get(f"/api/v1/tasks/{second['id']}/links", headers=_headers(admin.email))
    assert len(from_target.json()["items"]) == 1


def test_task_delete_removes_comments_and_activity(client: TestClient, admin: User) -> None:
    project = _create_project(client, admin.email)
    task = _create_task(client, admin.email, project["id"])
    client.post(f"/api/v1/tasks/{task['id']}/comments", headers=_headers(admin.email), json={"content": "hi"})

    response = client.delete(f"/api/v1/tasks/{task['id']}", headers=_headers(admin.email))
    assert response.status_code == 204

    missing = client.get(f"/api/v1/tasks/{task['id']}", headers=_headers(admin.email))
    assert missing.status_code == 404
