"""Shared fixtures: in-memory entity store, fixed clock, message recorder."""

import uuid
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from app.core.intelligence.session.manager import SessionManager
from app.core.scheduling.availability import AvailabilityEngine
from app.core.scheduling.store import (
    Appointment,
    AppointmentInput,
    AvailabilityRule,
    Customer,
    Employee,
    EntityNotFoundError,
    EntityStore,
    SchedulingConflictError,
)
from app.models.database import AppointmentStatus

TZ = ZoneInfo("America/Argentina/Buenos_Aires")

# Thursday 15 October 2026, 10:00 local
NOW = datetime(2026, 10, 15, 10, 0, tzinfo=TZ)

BUSINESS_ID = "00000000-0000-0000-0000-000000000001"
PHONE = "+5491155550000"


class FakeEntityStore(EntityStore):
    """EntityStore kept in dictionaries."""

    def __init__(self):
        self.customers: dict[str, Customer] = {}
        self.employees: list[Employee] = []
        self.rules: list[AvailabilityRule] = []
        self.appointments: dict[str, Appointment] = {}
        self.fail_next_create = False

    # === Seeding helpers ===

    def add_employee(self, name: str, role: Optional[str] = None, is_active: bool = True) -> Employee:
        employee = Employee(
            id=str(uuid.uuid4()),
            business_id=BUSINESS_ID,
            name=name,
            role=role,
            is_active=is_active,
        )
        self.employees.append(employee)
        return employee

    def add_rule(self, employee: Employee, day_of_week: int, start: str, end: str) -> AvailabilityRule:
        rule = AvailabilityRule(
            employee_id=employee.id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
        )
        self.rules.append(rule)
        return rule

    def add_customer(self, phone: str, name: str) -> Customer:
        customer = Customer(id=str(uuid.uuid4()), phone=phone, name=name)
        self.customers[phone] = customer
        return customer

    def add_appointment(
        self,
        employee: Employee,
        customer: Customer,
        start: datetime,
        minutes: int = 60,
        status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    ) -> Appointment:
        appointment = Appointment(
            id=str(uuid.uuid4()),
            business_id=BUSINESS_ID,
            employee_id=employee.id,
            customer_id=customer.id,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            status=status,
            employee_name=employee.name,
            customer_name=customer.name,
        )
        self.appointments[appointment.id] = appointment
        return appointment

    # === EntityStore ===

    async def get_active_employees_by_business(self, business_id):
        return sorted(
            (e for e in self.employees if e.business_id == business_id and e.is_active),
            key=lambda e: e.name,
        )

    async def get_availability_by_employee(self, employee_id):
        return [r for r in self.rules if r.employee_id == employee_id]

    async def get_appointments_by_customer(self, customer_id):
        return sorted(
            (a for a in self.appointments.values() if a.customer_id == customer_id),
            key=lambda a: a.start_time,
        )

    async def get_appointments_by_employee_and_range(self, employee_id, start, end):
        return [
            a
            for a in self.appointments.values()
            if a.employee_id == employee_id and start <= a.start_time < end
        ]

    async def check_conflict(self, employee_id, start, end, exclude_id=None):
        return any(
            a.employee_id == employee_id
            and not a.is_cancelled
            and a.id != exclude_id
            and a.overlaps(start, end)
            for a in self.appointments.values()
        )

    async def get_appointment(self, appointment_id):
        return self.appointments.get(appointment_id)

    async def create_appointment(self, data: AppointmentInput):
        if self.fail_next_create or await self.check_conflict(
            data.employee_id, data.start_time, data.end_time
        ):
            self.fail_next_create = False
            raise SchedulingConflictError(data.employee_id, data.start_time)

        employee = next(e for e in self.employees if e.id == data.employee_id)
        customer = next(c for c in self.customers.values() if c.id == data.customer_id)
        appointment = Appointment(
            id=str(uuid.uuid4()),
            business_id=data.business_id,
            employee_id=data.employee_id,
            customer_id=data.customer_id,
            start_time=data.start_time,
            end_time=data.end_time,
            status=data.status,
            employee_name=employee.name,
            customer_name=customer.name,
        )
        self.appointments[appointment.id] = appointment
        return appointment

    async def cancel_appointment(self, appointment_id):
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            raise EntityNotFoundError("Appointment", appointment_id)
        appointment.status = AppointmentStatus.CANCELLED
        return appointment

    async def get_customer_by_phone(self, phone):
        return self.customers.get(phone)

    async def create_customer(self, phone, name):
        return self.add_customer(phone, name)


class MessageRecorder:
    """Stands in for the WhatsApp transport."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    async def __call__(self, phone: str, text: str) -> None:
        self.messages.append((phone, text))

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.messages]

    @property
    def last(self) -> str:
        return self.messages[-1][1]

    def clear(self) -> None:
        self.messages.clear()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    return FakeEntityStore()


@pytest.fixture
def sent():
    return MessageRecorder()


@pytest.fixture
def sessions():
    return SessionManager(ttl=1800, use_redis=False)


@pytest.fixture
def availability(store, clock):
    return AvailabilityEngine(store, clock)
