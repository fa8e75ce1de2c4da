"""
Availability engine.

Turns an employee's weekly availability rules into concrete bookable
slots for a date, removing anything that overlaps a live appointment.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from app.config import settings
from app.core.clock import Clock, local_now
from app.core.scheduling.store import EntityStore, AvailabilityRule
from app.core.scheduling.validation import combine_date_time

logger = logging.getLogger(__name__)


@dataclass
class TimeSlot:
    """Candidate appointment window. Generated on demand, never stored."""

    employee_id: str
    start_time: datetime
    end_time: datetime
    available: bool = True

    @property
    def time(self) -> str:
        """Start as "HH:MM"."""
        return self.start_time.strftime("%H:%M")

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "employee_id": self.employee_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "available": self.available,
        }


class AvailabilityEngine:
    """
    Computes free slots from availability rules and booked appointments.

    Slot generation is local to each rule window: overlapping rules for the
    same day are not merged, so the same start time can appear twice.
    """

    def __init__(self, store: EntityStore, clock: Optional[Clock] = None):
        """Initialize engine.

        Args:
            store: Entity store for rules and appointments
            clock: Returns the current aware datetime (defaults to business-local now)
        """
        self._store = store
        self._clock = clock or local_now

    def _window_candidates(
        self,
        rule: AvailabilityRule,
        day: date,
        duration: timedelta,
    ) -> list[tuple[datetime, datetime]]:
        """Back-to-back windows that fit entirely inside the rule."""
        tz = self._clock().tzinfo or settings.tzinfo
        window_start = combine_date_time(day, rule.start_time, tz)
        window_end = combine_date_time(day, rule.end_time, tz)

        candidates = []
        cursor = window_start
        while cursor + duration <= window_end:
            candidates.append((cursor, cursor + duration))
            cursor += duration
        return candidates

    async def get_available_slots(
        self,
        employee_id: str,
        day: date,
        duration_minutes: Optional[int] = None,
    ) -> list[TimeSlot]:
        """
        Free slots for an employee on a date.

        Args:
            employee_id: Employee identifier
            day: Calendar date
            duration_minutes: Slot length (defaults to the appointment duration)

        Returns:
            Slots sorted by start, all strictly after now
        """
        duration = timedelta(
            minutes=duration_minutes or settings.appointment_duration_minutes
        )

        rules = [
            rule
            for rule in await self._store.get_availability_by_employee(employee_id)
            if rule.applies_to(day)
        ]
        if not rules:
            logger.debug(f"No availability rules for employee {employee_id} on {day}")
            return []

        now = self._clock()
        tz = now.tzinfo or settings.tzinfo
        day_start = datetime(day.year, day.month, day.day, tzinfo=tz)
        appointments = [
            appointment
            for appointment in await self._store.get_appointments_by_employee_and_range(
                employee_id, day_start, day_start + timedelta(days=1)
            )
            if not appointment.is_cancelled
        ]

        slots: list[TimeSlot] = []
        for rule in rules:
            for start, end in self._window_candidates(rule, day, duration):
                if any(appointment.overlaps(start, end) for appointment in appointments):
                    continue
                if start <= now:
                    continue
                slots.append(TimeSlot(employee_id=employee_id, start_time=start, end_time=end))

        slots.sort(key=lambda slot: slot.start_time)

        logger.debug(f"{len(slots)} free slots for employee {employee_id} on {day}")
        return slots

    async def is_employee_available(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
    ) -> bool:
        """
        Check a specific interval.

        True when some rule for that weekday contains [start, end] and no
        live appointment overlaps it.
        """
        day = start.date()
        start_hm = start.strftime("%H:%M")
        end_hm = end.strftime("%H:%M")

        rules = await self._store.get_availability_by_employee(employee_id)
        covered = any(
            rule.applies_to(day)
            and rule.start_time <= start_hm
            and rule.end_time >= end_hm
            for rule in rules
        )
        if not covered:
            return False

        return not await self._store.check_conflict(employee_id, start, end)

    async def get_next_available_slot(
        self,
        employee_id: str,
        from_day: Optional[date] = None,
        duration_minutes: Optional[int] = None,
        max_days: int = 30,
    ) -> Optional[TimeSlot]:
        """
        First free slot scanning forward one day at a time.

        Args:
            employee_id: Employee identifier
            from_day: First day to look at (defaults to today)
            duration_minutes: Slot length
            max_days: How many days to scan

        Returns:
            Earliest TimeSlot, or None if nothing is free within max_days
        """
        day = from_day or self._clock().date()

        for offset in range(max_days):
            slots = await self.get_available_slots(
                employee_id, day + timedelta(days=offset), duration_minutes
            )
            if slots:
                return slots[0]

        return None
