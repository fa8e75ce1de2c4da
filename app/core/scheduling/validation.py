"""
Booking validation rules.

Pure checks on dates, times and their combination. Failures carry the
Spanish copy shown to the customer; nothing here raises on bad input.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Optional

from app.config import settings

logger = logging.getLogger(__name__)

TIME_FORMAT = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass
class ValidationResult:
    """Outcome of a validation check."""

    valid: bool
    error: Optional[str] = None
    normalized: Any = None

    @classmethod
    def ok(cls, normalized: Any = None) -> "ValidationResult":
        return cls(valid=True, normalized=normalized)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


def parse_time(value: str) -> Optional[tuple[int, int]]:
    """Split "HH:MM" into (hour, minute); None if it is not that shape."""
    found = TIME_FORMAT.match(value or "")
    if not found:
        return None
    return int(found.group(1)), int(found.group(2))


def combine_date_time(day: date, time_str: str, tz: Optional[tzinfo] = None) -> datetime:
    """
    Build an aware datetime from a date and "HH:MM".

    Args:
        day: Calendar date
        time_str: 24h time
        tz: Timezone (defaults to the business timezone)

    Raises:
        ValueError: If time_str is not a valid "HH:MM"
    """
    parts = parse_time(time_str)
    if parts is None:
        raise ValueError(f"Invalid time: {time_str!r}")
    hour, minute = parts
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=tz or settings.tzinfo)


def validate_date(
    day: Any,
    today: Optional[date] = None,
    horizon_days: Optional[int] = None,
) -> ValidationResult:
    """
    Validate a requested appointment date.

    Past dates are rejected by calendar day (time of day is ignored);
    dates beyond the booking horizon are rejected too.

    Args:
        day: Candidate date
        today: Reference date (defaults to business-local today)
        horizon_days: Booking horizon (defaults to settings.booking_horizon_days)

    Returns:
        ValidationResult with the date as normalized value
    """
    if isinstance(day, datetime):
        day = day.date()
    if not isinstance(day, date):
        return ValidationResult.fail("La fecha no es válida.")

    today = today or datetime.now(settings.tzinfo).date()
    horizon_days = settings.booking_horizon_days if horizon_days is None else horizon_days

    if day < today:
        return ValidationResult.fail(
            "No puedo agendar para fechas pasadas 😅. ¿Para qué día te gustaría?"
        )

    if day > today + timedelta(days=horizon_days):
        return ValidationResult.fail(
            f"Solo puedo agendar hasta {horizon_days} días adelante. "
            "¿Quieres elegir otra fecha?"
        )

    return ValidationResult.ok(day)


def validate_time(
    time_str: str,
    business_hours: Optional[tuple[str, str]] = None,
) -> ValidationResult:
    """
    Validate a "HH:MM" time.

    Args:
        time_str: Time to check
        business_hours: Optional (start, end) "HH:MM" window; the hour must
            fall in [start hour, end hour)

    Returns:
        ValidationResult with the time string as normalized value
    """
    parts = parse_time(time_str)
    if parts is None:
        return ValidationResult.fail("La hora no es válida.")

    hours, minutes = parts
    if hours > 23 or minutes > 59:
        return ValidationResult.fail(
            "Esa hora no es válida 🤔. Por favor elige una hora válida."
        )

    if business_hours:
        start, end = business_hours
        start_hour = int(start.split(":")[0])
        end_hour = int(end.split(":")[0])
        if hours < start_hour or hours >= end_hour:
            return ValidationResult.fail(
                f"Nuestro horario de atención es de {start} a {end}. "
                "¿Qué hora te viene bien?"
            )

    return ValidationResult.ok(time_str)


def validate_date_time(
    day: date,
    time_str: str,
    now: Optional[datetime] = None,
    min_lead_minutes: Optional[int] = None,
) -> ValidationResult:
    """
    Validate the combined start instant.

    Args:
        day: Appointment date
        time_str: Appointment time "HH:MM"
        now: Reference instant (defaults to business-local now)
        min_lead_minutes: Required notice (defaults to settings.min_lead_time_minutes)

    Returns:
        ValidationResult with the aware start datetime as normalized value
    """
    now = now or datetime.now(settings.tzinfo)
    min_lead_minutes = (
        settings.min_lead_time_minutes if min_lead_minutes is None else min_lead_minutes
    )

    try:
        start = combine_date_time(day, time_str, now.tzinfo or settings.tzinfo)
    except ValueError as e:
        logger.debug(f"Unparseable appointment time: {e}")
        return ValidationResult.fail("La hora no es válida.")

    if start <= now:
        return ValidationResult.fail(
            "Ese horario ya pasó. Por favor elige un horario futuro."
        )

    if start < now + timedelta(minutes=min_lead_minutes):
        return ValidationResult.fail(
            "Necesito al menos 1 hora de anticipación. ¿Puedes elegir otro horario?"
        )

    return ValidationResult.ok(start)
