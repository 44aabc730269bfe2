from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from office_console.models.entities import User


def _headers(email: str) -> dict[str, str]:
    return {"X-USER-EMAIL": email}


def _base_time() -> datetime:
    return (datetime.utcnow() - timedelta(days=3)).replace(hour=9, minute=0, second=0, microsecond=0)


def _task(client: TestClient, email: str, *, project_multiplier: str | None = None) -> dict[str, object]:
    project_payload: dict[str, object] = {"name": "Billing"}
    if project_multiplier is not None:
        project_payload["time_display_multiplier"] = project_multiplier
    project = client.post("/api/v1/projects", headers=_headers(email), json=project_payload).json()
    response = client.post(
        "/api/v1/tasks",
        headers=_headers(email),
        json={"project_id": project["id"], "title": "Invoices"},
    )
    assert response.status_code == 201
    return response.json()


def _log(client: TestClient, email: str, task_id: str, start: datetime, minutes: int):
    return client.post(
        "/api/v1/work-logs",
        headers=_headers(email),
        json={
            "task_id": task_id,
            "start_time": start.isoformat(),
            "end_time": (start + timedelta(minutes=minutes)).isoformat(),
        },
    )


def test_work_log_stores_raw_and_adjusted_minutes(client: TestClient, admin: User) -> None:
    task = _task(client, admin.email, project_multiplier="1.5")

    response = _log(client, admin.email, task["id"], _base_time(), 40)

    assert response.status_code == 201
    body = response.json()
    assert body["duration_min"] == "40.00"
    assert body["client_adjusted_duration_min"] == "60.00"
    assert body["duration_formatted"] == "1h"


def test_future_work_log_is_rejected(client: TestClient, admin: User) -> None:
    task = _task(client, admin.email)

    response = _log(client, admin.email, task["id"], datetime.utcnow() + timedelta(hours=1), 30)

    assert response.status_code == 422


@pytest.mark.parametrize("minutes", [0, -15])
def test_work_log_ending_before_start_is_rejected_and_not_stored(
    client: TestClient, admin: User, minutes: int
) -> None:
    task = _task(client, admin.email)

    response = _log(client, admin.email, task["id"], _base_time(), minutes)
    listing = client.get(f"/api/v1/tasks/{task['id']}/work-logs", headers=_headers(admin.email))

    assert response.status_code == 422
    assert listing.json()["total"] == 0
    assert listing.json()["items"] == []


def test_cleared_project_multiplier_falls_back_to_client(client: TestClient, admin: User) -> None:
    tenant = client.post(
        "/api/v1/clients",
        headers=_headers(admin.email),
        json={"name": "Acme", "time_display_multiplier": "1.5"},
    ).json()
    project = client.post(
        "/api/v1/projects",
        headers=_headers(admin.email),
        json={"name": "Billing", "client_id": tenant["id"], "time_display_multiplier": "2"},
    ).json()
    task = client.post(
        "/api/v1/tasks",
        headers=_headers(admin.email),
        json={"project_id": project["id"], "title": "Invoices"},
    ).json()
    base = _base_time()
    assert _log(client, admin.email, task["id"], base, 40).json()["client_adjusted_duration_min"] == "80.00"

    cleared = client.patch(
        f"/api/v1/projects/{project['id']}",
        headers=_headers(admin.email),
        json={"time_display_multiplier": None},
    )
    after = _log(client, admin.email, task["id"], base + timedelta(hours=2), 40)

    assert cleared.status_code == 200
    assert cleared.json()["time_display_multiplier"] is None
    assert cleared.json()["client_id"] == tenant["id"]
    assert after.json()["client_adjusted_duration_min"] == "60.00"


def test_cleared_module_multiplier_falls_back_to_project(client: TestClient, admin: User) -> None:
    project = client.post(
        "/api/v1/projects",
        headers=_headers(admin.email),
        json={"name": "Billing", "time_display_multiplier": "1.5"},
    ).json()
    module = client.post(
        f"/api/v1/projects/{project['id']}/modules",
        headers=_headers(admin.email),
        json={"name": "Core", "time_display_multiplier": "3"},
    ).json()
    task = client.post(
        "/api/v1/tasks",
        headers=_headers(admin.email),
        json={"project_id": project["id"], "module_id": module["id"], "title": "Invoices"},
    ).json()

    renamed = client.patch(f"/api/v1/modules/{module['id']}", headers=_headers(admin.email), json={"name": "Kernel"})
    cleared = client.patch(
        f"/api/v1/modules/{module['id']}",
        headers=_headers(admin.email),
        json={"time_display_multiplier": None},
    )
    response = _log(client, admin.email, task["id"], _base_time(), 40)

    assert renamed.json()["time_display_multiplier"] == "3.00"
    assert cleared.status_code == 200
    assert cleared.json()["time_display_multiplier"] is None
    assert response.json()["client_adjusted_duration_min"] == "60.00"


def test_project_client_can_be_cleared(client: TestClient, admin: User) -> None:
    tenant = client.post("/api/v1/clients", headers=_headers(admin.email), json={"name": "Acme"}).json()
    project = client.post(
        "/api/v1/projects",
        headers=_headers(admin.email),
        json={"name": "Billing", "client_id": tenant["id"]},
    ).json()

    response = client.patch(
        f"/api/v1/projects/{project['id']}",
        headers=_headers(admin.email),
        json={"client_id": None},
    )

    assert response.status_code == 200
    assert response.json()["client_id"] is None


def test_overlapping_work_log_is_rejected(client: TestClient, admin: User) -> None:
    task = _task(client, admin.email)
    base = _base_time()
    assert _log(client, admin.email, task["id"], base, 60).status_code == 201

    overlapping = _log(client, admin.email, task["id"], base + timedelta(minutes=30), 60)
    adjacent = _log(client, admin.email, task["id"], base + timedelta(minutes=60), 30)

    assert overlapping.status_code == 409
    assert '"Invoices"' in overlapping.json()["detail"]
    assert adjacent.status_code == 201


def test_only_owner_can_delete_work_log(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    make_user(email="second.admin@test.local", role="ADMIN")
    task = _task(client, admin.email)
    work_log = _log(client, admin.email, task["id"], _base_time(), 30).json()
    url = f"/api/v1/work-logs/{work_log['id']}"

    foreign = client.delete(url, headers=_headers("second.admin@test.local"))
    assert foreign.status_code == 403

    own = client.delete(url, headers=_headers(admin.email))
    assert own.status_code == 204


def test_staff_cannot_log_on_invisible_task(
    client: TestClient,
    admin: User,
    make_user: Callable[..., User],
) -> None:
    make_user(email="staff@test.local")
    task = _task(client, admin.email)

    response = _log(client, "staff@test.local", task["id"], _base_time(), 30)

    assert response.status_code == 403


def test_task_with_work_logs_cannot_be_deleted(client: TestClient, admin: User) -> None:
    task = _task(client, admin.email)
    _log(client, admin.email, task["id"], _base_time(), 30)

    response = client.delete(f"/api/v1/tasks/{task['id']}", headers=_headers(admin.email))

    assert response.status_code == 409


def test_work_log_listings(client: TestClient, admin: User) -> None:
    task = _task(client, admin.email)
    base = _base_time()
    _log(client, admin.email, task["id"], base, 30)
    _log(client, admin.email, task["id"], base + timedelta(hours=2), 30)

    by_task = client.get(f"/api/v1/tasks/{task['id']}/work-logs", headers=_headers(admin.email))
    by_user = client.get(f"/api/v1/users/{admin.id}/work-logs", headers=_headers(admin.email))

    assert by_task.json()["total"] == 2
    starts = [row["start_time"] for row in by_user.json()["items"]]
    assert starts == sorted(starts, reverse=True)
