from __future__ import annotations

import uuid
from datetime import date
from types import SimpleNamespace

from office_console.models.entities import ActivityType, TaskPriority, TaskStatus
from office_console.services.activity import (
    CLEARED,
    TASK_SOFT_FIELDS,
    TASK_VALUE_FIELDS,
    diff_assignees,
    diff_fields,
)
from office_console.services.task_service import completion_timestamp


def _task(**overrides: object) -> SimpleNamespace:
    values = {
        "title": "Write report",
        "description": "Quarterly",
        "status": TaskStatus.TODO,
        "priority": TaskPriority.MEDIUM,
        "due_date": date(2026, 4, 1),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _diff(task: SimpleNamespace, incoming: dict[str, object]):
    return diff_fields(task, incoming, value_fields=TASK_VALUE_FIELDS, soft_fields=TASK_SOFT_FIELDS)


def test_identical_update_records_nothing() -> None:
    task = _task()
    incoming = {
        "title": "Write report",
        "description": "Quarterly",
        "status": TaskStatus.TODO,
        "priority": TaskPriority.MEDIUM,
        "due_date": date(2026, 4, 1),
    }

    assert _diff(task, incoming) == []


def test_missing_fields_are_not_compared() -> None:
    assert _diff(_task(), {"status": None, "title": None}) == []


def test_value_fields_record_old_and_new_strings() -> None:
    records = _diff(_task(), {"status": TaskStatus.DONE, "due_date": date(2026, 5, 2)})

    assert [(r.type, r.field, r.old_value, r.new_value) for r in records] == [
        (ActivityType.FIELD_CHANGE, "status", "TODO", "DONE"),
        (ActivityType.FIELD_CHANGE, "due_date", "2026-04-01", "2026-05-02"),
    ]


def test_cleared_due_date_renders_as_null() -> None:
    records = _diff(_task(), {"due_date": CLEARED})

    assert len(records) == 1
    assert records[0].old_value == "2026-04-01"
    assert records[0].new_value is None


def test_soft_fields_record_field_name_only() -> None:
    records = _diff(_task(), {"title": "Write final report", "status": TaskStatus.IN_PROGRESS})

    assert [(r.type, r.field) for r in records] == [
        (ActivityType.FIELD_CHANGE, "status"),
        (ActivityType.UPDATED, "title"),
    ]
    assert records[1].old_value is None
    assert records[1].new_value is None


def test_assignee_set_change_records_only_the_difference() -> None:
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    names = {a: "Alice", b: "Bob", c: "Carol"}

    records = diff_assignees({a, b}, {b, c}, names)

    assert [(r.type, r.old_value, r.new_value) for r in records] == [
        (ActivityType.ASSIGNED, None, "Carol"),
        (ActivityType.UNASSIGNED, "Alice", None),
    ]
    assert all(r.field == "assignees" for r in records)


def test_assignees_not_provided_records_nothing() -> None:
    assert diff_assignees({uuid.uuid4()}, None, {}) == []


def test_completion_timestamp_follows_done_status() -> None:
    first = date(2026, 1, 1)
    second = date(2026, 1, 2)

    assert completion_timestamp(TaskStatus.TODO, TaskStatus.DONE, None, first) == first
    assert completion_timestamp(TaskStatus.DONE, TaskStatus.DONE, first, second) == first
    assert completion_timestamp(TaskStatus.DONE, TaskStatus.IN_PROGRESS, first, second) is None
    assert completion_timestamp(TaskStatus.IN_PROGRESS, TaskStatus.CANCELED, None, second) is None
