"""Audit-trail diffing for task and requirement mutations.

Old and new values are stored as display strings. Each tracked field names the
single conversion used to render it, so a value type is formatted the same way
wherever it is recorded.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from office_console.models.entities import ActivityType


def stringify_enum(value: enum.Enum) -> str:
    return str(value.value)


def stringify_date(value: date | datetime) -> str:
    return value.isoformat()


def stringify_text(value: object) -> str:
    return str(value)


def stringify_uuid(value: UUID) -> str:
    return str(value)


@dataclass(frozen=True, slots=True)
class TrackedField:
    name: str
    stringify: Callable[[object], str] = stringify_text

    def render(self, value: object) -> str | None:
        if value is None:
            return None
        return self.stringify(value)


@dataclass(slots=True)
class ActivityRecord:
    type: ActivityType
    field: str | None = None
    old_value: str | None = None
    new_value: str | None = None


TASK_VALUE_FIELDS = (
    TrackedField("status", stringify_enum),
    TrackedField("priority", stringify_enum),
    TrackedField("due_date", stringify_date),
)
TASK_SOFT_FIELDS = (
    TrackedField("title"),
    TrackedField("description"),
)

REQUIREMENT_VALUE_FIELDS = (
    TrackedField("type", stringify_enum),
    TrackedField("status", stringify_enum),
    TrackedField("priority", stringify_enum),
)
REQUIREMENT_SOFT_FIELDS = (
    TrackedField("title"),
    TrackedField("description"),
    TrackedField("parent_id", stringify_uuid),
)

# Marks a field as explicitly cleared; plain None means "not provided".
CLEARED = object()


def creation_record() -> ActivityRecord:
    return ActivityRecord(type=ActivityType.CREATED)


def diff_fields(
    existing: object,
    incoming: Mapping[str, object],
    *,
    value_fields: Iterable[TrackedField],
    soft_fields: Iterable[TrackedField],
) -> list[ActivityRecord]:
    """Compare incoming values against the current entity state.

    Value fields produce FIELD_CHANGE records with both renderings; soft fields
    produce UPDATED records naming the field only. Missing or None incoming
    entries are skipped; ``CLEARED`` compares as None.
    """

    records: list[ActivityRecord] = []
    for tracked in value_fields:
        changed, old, new = _compare(existing, incoming, tracked.name)
        if changed:
            records.append(
                ActivityRecord(
                    type=ActivityType.FIELD_CHANGE,
                    field=tracked.name,
                    old_value=tracked.render(old),
                    new_value=tracked.render(new),
                )
            )
    for tracked in soft_fields:
        changed, _, _ = _compare(existing, incoming, tracked.name)
        if changed:
            records.append(ActivityRecord(type=ActivityType.UPDATED, field=tracked.name))
    return records


def _compare(existing: object, incoming: Mapping[str, object], name: str) -> tuple[bool, object, object]:
    new = incoming.get(name)
    if new is None:
        return False, None, None
    if new is CLEARED:
        new = None
    old = getattr(existing, name)
    return old != new, old, new


def diff_assignees(
    existing_ids: Iterable[UUID],
    incoming_ids: Iterable[UUID] | None,
    display_names: Mapping[UUID, str],
) -> list[ActivityRecord]:
    """ASSIGNED for added users then UNASSIGNED for removed ones, each by name."""

    if incoming_ids is None:
        return []
    before = set(existing_ids)
    after = set(incoming_ids)

    def name_of(user_id: UUID) -> str:
        return display_names.get(user_id, str(user_id))

    added = sorted(after - before, key=name_of)
    removed = sorted(before - after, key=name_of)
    records = [ActivityRecord(type=ActivityType.ASSIGNED, field="assignees", new_value=name_of(uid)) for uid in added]
    records.extend(
        ActivityRecord(type=ActivityType.UNASSIGNED, field="assignees", old_value=name_of(uid)) for uid in removed
    )
    return records
