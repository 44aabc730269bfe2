from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException

from office_console.services.durations import (
    compute_work_log_duration,
    format_duration_from_minutes,
    minutes_to_hours,
    resolve_multiplier,
    validate_multiplier,
)

NOW = datetime(2026, 3, 10, 12, 0, 0)


def test_multiplier_prefers_most_specific_level() -> None:
    assert resolve_multiplier(Decimal("2"), Decimal("1.5"), Decimal("3")) == Decimal("2")
    assert resolve_multiplier(None, Decimal("1.5"), Decimal("3")) == Decimal("1.5")
    assert resolve_multiplier(None, None, Decimal("3")) == Decimal("3")
    assert resolve_multiplier(None, None, None) == Decimal("1")


def test_duration_applies_module_multiplier() -> None:
    start = NOW - timedelta(hours=2)
    result = compute_work_log_duration(
        start,
        start + timedelta(minutes=90),
        module_multiplier=Decimal("2.00"),
        project_multiplier=Decimal("1.50"),
        now=NOW,
    )

    assert result.raw_minutes == Decimal("90.0000")
    assert result.adjusted_minutes == Decimal("180.0000")
    assert result.multiplier == Decimal("2.00")


def test_duration_normalizes_aware_datetimes() -> None:
    start = datetime(2026, 3, 10, 10, 0, tzinfo=timezone(timedelta(hours=2)))
    end = datetime(2026, 3, 10, 8, 45, tzinfo=timezone.utc)

    result = compute_work_log_duration(start, end, now=NOW)

    assert result.raw_minutes == Decimal("45.0000")


def test_duration_rejects_end_before_start() -> None:
    with pytest.raises(HTTPException) as exc_info:
        compute_work_log_duration(NOW - timedelta(hours=1), NOW - timedelta(hours=2), now=NOW)
    assert exc_info.value.status_code == 422

    with pytest.raises(HTTPException):
        compute_work_log_duration(NOW - timedelta(hours=1), NOW - timedelta(hours=1), now=NOW)


def test_duration_rejects_future_bounds() -> None:
    with pytest.raises(HTTPException) as exc_info:
        compute_work_log_duration(NOW - timedelta(minutes=30), NOW + timedelta(minutes=5), now=NOW)

    assert exc_info.value.status_code == 422
    assert "future" in exc_info.value.detail


def test_duration_rejects_entries_over_limit() -> None:
    with pytest.raises(HTTPException) as exc_info:
        compute_work_log_duration(
            NOW - timedelta(hours=30),
            NOW - timedelta(hours=1),
            now=NOW,
            max_minutes=Decimal(24 * 60),
        )

    assert exc_info.value.status_code == 422


@pytest.mark.parametrize(
    ("minutes", "expected"),
    [
        (90, "1h 30m"),
        (45, "45m"),
        (120, "2h"),
        (0, ""),
        (Decimal("59.6"), "1h"),
        (Decimal("30.4"), "30m"),
    ],
)
def test_format_duration_from_minutes(minutes: object, expected: str) -> None:
    assert format_duration_from_minutes(minutes) == expected


def test_format_duration_can_keep_zero_parts() -> None:
    assert format_duration_from_minutes(45, omit_zero_hours=False) == "0h 45m"
    assert format_duration_from_minutes(120, omit_zero_minutes=False) == "2h 0m"


def test_minutes_to_hours_rounds_to_two_places() -> None:
    assert minutes_to_hours(Decimal("100")) == 1.67
    assert minutes_to_hours(Decimal("0")) == 0.0


def test_validate_multiplier_bounds() -> None:
    assert validate_multiplier(None) is None
    assert validate_multiplier(Decimal("1.255")) == Decimal("1.26")
    with pytest.raises(HTTPException):
        validate_multiplier(Decimal("0.05"))
    with pytest.raises(HTTPException):
        validate_multiplier(Decimal("10.5"))
