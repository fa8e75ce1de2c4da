"""Tests for slot generation."""

from datetime import date, datetime, timedelta

import pytest

from app.core.scheduling.availability import AvailabilityEngine, TimeSlot
from app.core.scheduling.store import day_of_week_for
from app.models.database import AppointmentStatus
from tests.conftest import NOW, PHONE, TZ

TOMORROW = date(2026, 10, 16)  # Friday
FRIDAY = 5
THURSDAY = 4


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=TZ)


class TestAvailabilityEngine:

    @pytest.fixture
    def employee(self, store):
        return store.add_employee("Ana")

    @pytest.fixture
    def customer(self, store):
        return store.add_customer(PHONE, "Juan")

    @pytest.mark.asyncio
    async def test_slots_from_rule(self, store, availability, employee):
        store.add_rule(employee, FRIDAY, "09:00", "12:00")

        slots = await availability.get_available_slots(employee.id, TOMORROW, 60)

        assert [slot.time for slot in slots] == ["09:00", "10:00", "11:00"]
        assert all(slot.end_time - slot.start_time == timedelta(hours=1) for slot in slots)

    @pytest.mark.asyncio
    async def test_partial_window_is_dropped(self, store, availability, employee):
        store.add_rule(employee, FRIDAY, "09:00", "10:30")

        slots = await availability.get_available_slots(employee.id, TOMORROW, 60)

        assert [slot.time for slot in slots] == ["09:00"]

    @pytest.mark.asyncio
    async def test_shorter_duration(self, store, availability, employee):
        store.add_rule(employee, FRIDAY, "09:00", "10:00")

        slots = await availability.get_available_slots(employee.id, TOMORROW, 30)

        assert [slot.time for slot in slots] == ["09:00", "09:30"]

    @pytest.mark.asyncio
    async def test_booked_slot_removed(self, store, availability, employee, customer):
        store.add_rule(employee, FRIDAY, "09:00", "12:00")
        store.add_appointment(employee, customer, at(TOMORROW, 10))

        slots = await availability.get_available_slots(employee.id, TOMORROW, 60)

        assert [slot.time for slot in slots] == ["09:00", "11:00"]

    @pytest.mark.asyncio
    async def test_partial_overlap_removes_slot(self, store, availability, employee, customer):
        store.add_rule(employee, FRIDAY, "09:00", "12:00")
        store.add_appointment(employee, customer, at(TOMORROW, 10, 30), minutes=30)

        slots = await availability.get_available_slots(employee.id, TOMORROW, 60)

        assert [slot.time for slot in slots] == ["09:00", "11:00"]

    @pytest.mark.asyncio
    async def test_cancelled_appointment_frees_slot(self, store, availability, employee, customer):
        store.add_rule(employee, FRIDAY, "09:00", "12:00")
        store.add_appointment(
            employee, customer, at(TOMORROW, 10), status=AppointmentStatus.CANCELLED
        )

        slots = await availability.get_available_slots(employee.id, TOMORROW, 60)

        assert len(slots) == 3

    @pytest.mark.asyncio
    async def test_same_day_only_future_slots(self, store, availability, employee):
        store.add_rule(employee, THURSDAY, "09:00", "13:00")

        slots = await availability.get_available_slots(employee.id, NOW.date(), 60)

        # 10:00 starts exactly now and is excluded
        assert [slot.time for slot in slots] == ["11:00", "12:00"]

    @pytest.mark.asyncio
    async def test_no_rule_for_weekday(self, store, availability, employee):
        store.add_rule(employee, FRIDAY, "09:00", "12:00")

        assert await availability.get_available_slots(employee.id, date(2026, 10, 17)) == []

    @pytest.mark.asyncio
    async def test_overlapping_rules_are_not_merged(self, store, availability, employee):
        store.add_rule(employee, FRIDAY, "09:00", "11:00")
        store.add_rule(employee, FRIDAY, "10:00", "12:00")

        slots = await availability.get_available_slots(employee.id, TOMORROW, 60)

        assert [slot.time for slot in slots] == ["09:00", "10:00", "10:00", "11:00"]

    @pytest.mark.asyncio
    async def test_is_employee_available(self, store, availability, employee, customer):
        store.add_rule(employee, FRIDAY, "09:00", "12:00")

        assert await availability.is_employee_available(
            employee.id, at(TOMORROW, 9), at(TOMORROW, 10)
        )
        assert not await availability.is_employee_available(
            employee.id, at(TOMORROW, 11, 30), at(TOMORROW, 12, 30)
        )

        store.add_appointment(employee, customer, at(TOMORROW, 9))
        assert not await availability.is_employee_available(
            employee.id, at(TOMORROW, 9), at(TOMORROW, 10)
        )

    @pytest.mark.asyncio
    async def test_next_available_slot(self, store, availability, employee):
        store.add_rule(employee, FRIDAY, "14:00", "16:00")

        slot = await availability.get_next_available_slot(employee.id, NOW.date(), 60)

        assert slot is not None
        assert slot.start_time == at(TOMORROW, 14)

    @pytest.mark.asyncio
    async def test_next_available_slot_none(self, availability, employee):
        assert await availability.get_next_available_slot(employee.id, max_days=7) is None

    def test_day_of_week_numbering(self):
        assert day_of_week_for(date(2026, 10, 18)) == 0  # Sunday
        assert day_of_week_for(TOMORROW) == FRIDAY
        assert day_of_week_for(date(2026, 10, 17)) == 6  # Saturday

    def test_time_slot_time(self):
        slot = TimeSlot("e1", at(TOMORROW, 9, 30), at(TOMORROW, 10, 30))

        assert slot.time == "09:30"
        assert slot.to_dict()["available"] is True


class TestEngineDefaults:

    @pytest.mark.asyncio
    async def test_uses_configured_duration(self, store, clock):
        employee = store.add_employee("Luis")
        store.add_rule(employee, FRIDAY, "09:00", "11:00")

        engine = AvailabilityEngine(store, clock)
        slots = await engine.get_available_slots(employee.id, TOMORROW)

        assert [slot.time for slot in slots] == ["09:00", "10:00"]
