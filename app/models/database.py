"""
Database Models

SQLAlchemy ORM models for businesses, their employees and weekly
availability, customers and appointments.
"""

import uuid
from datetime import datetime, time
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text,
    Time, Enum as SQLEnum, text
)
from sqlalchemy.dialects.postgresql import UUID, JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class Business(Base, TimestampMixin):
    """
    Business model (Tenant).

    Every employee, availability window and appointment belongs to one
    business.
    """

    __tablename__ = "businesses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    settings: Mapped[dict] = mapped_column(JSON, default=dict)
    whatsapp_phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    whatsapp_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    employees: Mapped[List["Employee"]] = relationship(
        "Employee",
        back_populates="business"
    )
    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="business"
    )

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name='{self.name}')>"


class Employee(Base, TimestampMixin):
    """
    Employee model (professionals who take appointments).

    Only active employees are offered in the chat.
    """

    __tablename__ = "employees"
    __table_args__ = (
        Index("idx_employees_business", "business_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Relationships
    business: Mapped["Business"] = relationship("Business", back_populates="employees")
    availability: Mapped[List["Availability"]] = relationship(
        "Availability",
        back_populates="employee"
    )
    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="employee"
    )

    def __repr__(self) -> str:
        return f"<Employee(id={self.id}, name='{self.name}', active={self.is_active})>"


class Availability(Base, TimestampMixin):
    """
    Weekly availability window of an employee.

    day_of_week uses 0=Sunday through 6=Saturday.
    """

    __tablename__ = "availability"
    __table_args__ = (
        Index("idx_availability_employee", "employee_id"),
        Index("idx_availability_day", "day_of_week"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="valid_day_of_week"),
        CheckConstraint("end_time > start_time", name="valid_availability_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, default=30)

    # Relationships
    employee: Mapped["Employee"] = relationship("Employee", back_populates="availability")

    def __repr__(self) -> str:
        return (
            f"<Availability(employee_id={self.employee_id}, day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time})>"
        )


class Customer(Base, TimestampMixin):
    """
    Customer model.

    Identified by the WhatsApp phone number they write from.
    """

    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customers_phone", "phone"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    phone: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="customer"
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, phone='{self.phone}')>"


class Appointment(Base, TimestampMixin):
    """
    Appointment model.

    Cancelled appointments are kept with status CANCELLED and never
    block availability.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_business", "business_id"),
        Index("idx_appointments_employee", "employee_id"),
        Index("idx_appointments_customer", "customer_id"),
        Index("idx_appointments_start_time", "start_time"),
        CheckConstraint("end_time > start_time", name="valid_appointment_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus, values_callable=lambda e: [m.value for m in e]),
        default=AppointmentStatus.PENDING
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    business: Mapped["Business"] = relationship("Business", back_populates="appointments")
    employee: Mapped["Employee"] = relationship("Employee", back_populates="appointments")
    customer: Mapped["Customer"] = relationship("Customer", back_populates="appointments")

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, start={self.start_time}, "
            f"status={self.status.value})>"
        )
