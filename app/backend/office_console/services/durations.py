"""Work-log duration arithmetic and display formatting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException, status

from office_console.core.clock import to_naive_utc, utcnow

DEFAULT_MULTIPLIER = Decimal("1")
Q4 = Decimal("0.0001")
SECONDS_PER_MINUTE = Decimal("60")
MINUTES_PER_HOUR = Decimal("60")


def _q4(value: Decimal) -> Decimal:
    return value.quantize(Q4, rounding=ROUND_HALF_UP)


def resolve_multiplier(
    module_multiplier: Decimal | None,
    project_multiplier: Decimal | None,
    client_multiplier: Decimal | None,
) -> Decimal:
    """Return the first configured multiplier, most specific level first."""

    for candidate in (module_multiplier, project_multiplier, client_multiplier):
        if candidate is not None:
            return Decimal(str(candidate))
    return DEFAULT_MULTIPLIER


@dataclass(frozen=True, slots=True)
class WorkLogDuration:
    raw_minutes: Decimal
    adjusted_minutes: Decimal
    multiplier: Decimal


def elapsed_minutes(start: datetime, end: datetime) -> Decimal:
    delta = to_naive_utc(end) - to_naive_utc(start)
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
    return _q4(seconds / SECONDS_PER_MINUTE)


def compute_work_log_duration(
    start: datetime,
    end: datetime,
    *,
    module_multiplier: Decimal | None = None,
    project_multiplier: Decimal | None = None,
    client_multiplier: Decimal | None = None,
    now: datetime | None = None,
    max_minutes: Decimal | None = None,
) -> WorkLogDuration:
    start_utc = to_naive_utc(start)
    end_utc = to_naive_utc(end)
    current = to_naive_utc(now) if now is not None else utcnow()

    if end_utc <= start_utc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_time must be after start_time.",
        )
    if start_utc > current or end_utc > current:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Work log times cannot be in the future.",
        )

    raw = elapsed_minutes(start_utc, end_utc)
    if max_minutes is not None and raw > max_minutes:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Work log duration cannot exceed {format_duration_from_minutes(max_minutes)}.",
        )

    multiplier = resolve_multiplier(module_multiplier, project_multiplier, client_multiplier)
    return WorkLogDuration(raw_minutes=raw, adjusted_minutes=_q4(raw * multiplier), multiplier=multiplier)


def format_duration_from_minutes(
    minutes: Decimal | float | int,
    omit_zero_hours: bool = True,
    omit_zero_minutes: bool = True,
) -> str:
    """Render minutes as ``"Xh Ym"``; ``90 -> "1h 30m"``, ``45 -> "45m"``, ``0 -> ""``."""

    total = int(Decimal(str(minutes)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    hours, remainder = divmod(total, 60)

    parts: list[str] = []
    if hours or not omit_zero_hours:
        parts.append(f"{hours}h")
    if remainder or not omit_zero_minutes:
        parts.append(f"{remainder}m")
    return " ".join(parts)


def minutes_to_hours(minutes: Decimal) -> float:
    return float((Decimal(minutes) / MINUTES_PER_HOUR).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


MIN_MULTIPLIER = Decimal("0.1")
MAX_MULTIPLIER = Decimal("10")


def validate_multiplier(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    if value < MIN_MULTIPLIER or value > MAX_MULTIPLIER:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="time_display_multiplier must be between 0.1 and 10.",
        )
    return value.quantize(Decimal("0.01"))
