"""
Entity store contract.

The conversation engine reads employees, availability and appointments
and writes appointments and customers only through this interface.
Records are plain dataclasses so they can be cached in the session bag.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from app.models.database import AppointmentStatus


class EntityStoreError(Exception):
    """Base error for entity store failures."""
    pass


class SchedulingConflictError(EntityStoreError):
    """Raised when an appointment overlaps another one of the same employee."""

    def __init__(self, employee_id: str, start_time: datetime):
        self.employee_id = employee_id
        self.start_time = start_time
        super().__init__(
            f"Employee {employee_id} already has an appointment at {start_time.isoformat()}"
        )


class EntityNotFoundError(EntityStoreError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


def day_of_week_for(day: date) -> int:
    """Availability numbering for a date: 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


@dataclass
class Customer:
    """Customer identified by phone."""

    id: str
    phone: str
    name: Optional[str] = None


@dataclass
class Employee:
    """Professional who takes appointments."""

    id: str
    business_id: str
    name: str
    role: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Employee":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            business_id=data.get("business_id", ""),
            name=data["name"],
            role=data.get("role"),
            is_active=data.get("is_active", True),
        )


@dataclass
class AvailabilityRule:
    """Recurring weekly window in which an employee can be booked."""

    employee_id: str
    day_of_week: int  # 0=Sunday .. 6=Saturday
    start_time: str   # "HH:MM"
    end_time: str     # "HH:MM"
    slot_duration_minutes: int = 30

    def applies_to(self, day: date) -> bool:
        """Check whether this rule covers the given date's weekday."""
        return self.day_of_week == day_of_week_for(day)


@dataclass
class Appointment:
    """Booked appointment."""

    id: str
    business_id: str
    employee_id: str
    customer_id: str
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.PENDING
    employee_name: Optional[str] = None
    customer_name: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED

    @property
    def is_upcoming_active(self) -> bool:
        """Still going to happen: pending or confirmed."""
        return self.status in {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval intersection with [start, end)."""
        return start < self.end_time and end > self.start_time

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary."""
        return {
            "id": self.id,
            "business_id": self.business_id,
            "employee_id": self.employee_id,
            "customer_id": self.customer_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "status": self.status.value,
            "employee_name": self.employee_name,
            "customer_name": self.customer_name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Appointment":
        """Create from dictionary produced by to_dict."""
        return cls(
            id=data["id"],
            business_id=data.get("business_id", ""),
            employee_id=data["employee_id"],
            customer_id=data.get("customer_id", ""),
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(data["end_time"]),
            status=AppointmentStatus(data.get("status", AppointmentStatus.PENDING.value)),
            employee_name=data.get("employee_name"),
            customer_name=data.get("customer_name"),
        )


@dataclass
class AppointmentInput:
    """Data needed to create an appointment."""

    business_id: str
    customer_id: str
    employee_id: str
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    notes: Optional[str] = None


class EntityStore(ABC):
    """
    Persistent customers, employees, availability and appointments.

    Implementations:
    - SqlEntityStore: PostgreSQL through SQLAlchemy
    """

    @abstractmethod
    async def get_active_employees_by_business(self, business_id: str) -> list[Employee]:
        """Active employees of a business, ordered by name."""
        pass

    @abstractmethod
    async def get_availability_by_employee(self, employee_id: str) -> list[AvailabilityRule]:
        """Every weekly availability rule of an employee."""
        pass

    @abstractmethod
    async def get_appointments_by_customer(self, customer_id: str) -> list[Appointment]:
        """All appointments of a customer, any status, with employee names."""
        pass

    @abstractmethod
    async def get_appointments_by_employee_and_range(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        """Appointments of an employee starting within [start, end)."""
        pass

    @abstractmethod
    async def check_conflict(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> bool:
        """Whether a non-cancelled appointment of the employee overlaps [start, end)."""
        pass

    @abstractmethod
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Single appointment by id."""
        pass

    @abstractmethod
    async def create_appointment(self, data: AppointmentInput) -> Appointment:
        """
        Create an appointment.

        Raises:
            SchedulingConflictError: If the employee is already booked then
        """
        pass

    @abstractmethod
    async def cancel_appointment(self, appointment_id: str) -> Appointment:
        """
        Mark an appointment cancelled and drop its pending reminders.

        Raises:
            EntityNotFoundError: If the appointment does not exist
        """
        pass

    @abstractmethod
    async def get_customer_by_phone(self, phone: str) -> Optional[Customer]:
        """Customer registered with this phone, if any."""
        pass

    @abstractmethod
    async def create_customer(self, phone: str, name: str) -> Customer:
        """Register a new customer."""
        pass
