"""
PostgreSQL entity store.

EntityStore implementation over the SQLAlchemy models. Each call opens
its own session through get_db_context (commit on success, rollback on
error) and returns plain records, never ORM objects.
"""

import logging
import uuid
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.database import get_db_context
from app.infra.reminders import ReminderScheduler, get_reminder_scheduler
from app.models.database import (
    Appointment as AppointmentModel,
    AppointmentStatus,
    Availability as AvailabilityModel,
    Customer as CustomerModel,
    Employee as EmployeeModel,
)
from .store import (
    Appointment,
    AppointmentInput,
    AvailabilityRule,
    Customer,
    Employee,
    EntityNotFoundError,
    EntityStore,
    SchedulingConflictError,
)

logger = logging.getLogger(__name__)


def _to_employee(model: EmployeeModel) -> Employee:
    return Employee(
        id=str(model.id),
        business_id=str(model.business_id),
        name=model.name,
        role=model.role,
        is_active=model.is_active,
    )


def _to_rule(model: AvailabilityModel) -> AvailabilityRule:
    return AvailabilityRule(
        employee_id=str(model.employee_id),
        day_of_week=model.day_of_week,
        start_time=model.start_time.strftime("%H:%M"),
        end_time=model.end_time.strftime("%H:%M"),
        slot_duration_minutes=model.slot_duration_minutes,
    )


def _to_appointment(
    model: AppointmentModel,
    employee_name: Optional[str] = None,
    customer_name: Optional[str] = None,
) -> Appointment:
    return Appointment(
        id=str(model.id),
        business_id=str(model.business_id),
        employee_id=str(model.employee_id),
        customer_id=str(model.customer_id),
        start_time=model.start_time,
        end_time=model.end_time,
        status=AppointmentStatus(model.status),
        employee_name=employee_name,
        customer_name=customer_name,
    )


def _to_customer(model: CustomerModel) -> Customer:
    return Customer(id=str(model.id), phone=model.phone, name=model.name)


def _appointments_with_names():
    """Appointment rows joined with employee and customer names."""
    return (
        select(AppointmentModel, EmployeeModel.name, CustomerModel.name)
        .join(EmployeeModel, AppointmentModel.employee_id == EmployeeModel.id)
        .join(CustomerModel, AppointmentModel.customer_id == CustomerModel.id)
    )


class SqlEntityStore(EntityStore):
    """EntityStore backed by PostgreSQL."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] = get_db_context,
        reminders: Optional[ReminderScheduler] = None,
    ):
        """Initialize store.

        Args:
            session_factory: Context manager yielding a transactional session
            reminders: Scheduler notified on create/cancel (None disables reminders)
        """
        self._session_factory = session_factory
        self._reminders = reminders

    # === Reads ===

    async def get_active_employees_by_business(self, business_id: str) -> list[Employee]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(EmployeeModel)
                .where(
                    EmployeeModel.business_id == uuid.UUID(business_id),
                    EmployeeModel.is_active.is_(True),
                )
                .order_by(EmployeeModel.name)
            )
            return [_to_employee(model) for model in result.scalars().all()]

    async def get_availability_by_employee(self, employee_id: str) -> list[AvailabilityRule]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AvailabilityModel)
                .where(AvailabilityModel.employee_id == uuid.UUID(employee_id))
                .order_by(AvailabilityModel.day_of_week, AvailabilityModel.start_time)
            )
            return [_to_rule(model) for model in result.scalars().all()]

    async def get_appointments_by_customer(self, customer_id: str) -> list[Appointment]:
        async with self._session_factory() as db:
            result = await db.execute(
                _appointments_with_names()
                .where(AppointmentModel.customer_id == uuid.UUID(customer_id))
                .order_by(AppointmentModel.start_time)
            )
            return [_to_appointment(*row) for row in result.all()]

    async def get_appointments_by_employee_and_range(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        async with self._session_factory() as db:
            result = await db.execute(
                _appointments_with_names()
                .where(
                    AppointmentModel.employee_id == uuid.UUID(employee_id),
                    AppointmentModel.start_time >= start,
                    AppointmentModel.start_time < end,
                )
                .order_by(AppointmentModel.start_time)
            )
            return [_to_appointment(*row) for row in result.all()]

    async def _count_conflicts(
        self,
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> int:
        query = select(func.count(AppointmentModel.id)).where(
            AppointmentModel.employee_id == employee_id,
            AppointmentModel.status != AppointmentStatus.CANCELLED,
            AppointmentModel.start_time < end,
            AppointmentModel.end_time > start,
        )
        if exclude_id:
            query = query.where(AppointmentModel.id != uuid.UUID(exclude_id))

        result = await db.execute(query)
        return result.scalar_one()

    async def check_conflict(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> bool:
        async with self._session_factory() as db:
            count = await self._count_conflicts(
                db, uuid.UUID(employee_id), start, end, exclude_id
            )
            return count > 0

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        async with self._session_factory() as db:
            result = await db.execute(
                _appointments_with_names().where(
                    AppointmentModel.id == uuid.UUID(appointment_id)
                )
            )
            row = result.first()
            return _to_appointment(*row) if row else None

    async def get_customer_by_phone(self, phone: str) -> Optional[Customer]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(CustomerModel).where(CustomerModel.phone == phone)
            )
            model = result.scalar_one_or_none()
            return _to_customer(model) if model else None

    # === Writes ===

    async def create_customer(self, phone: str, name: str) -> Customer:
        async with self._session_factory() as db:
            model = CustomerModel(phone=phone, name=name)
            db.add(model)
            await db.flush()
            customer = _to_customer(model)

        logger.info(f"Customer {customer.id} registered for {phone}")
        return customer

    async def create_appointment(self, data: AppointmentInput) -> Appointment:
        employee_id = uuid.UUID(data.employee_id)

        async with self._session_factory() as db:
            # Row lock on the employee serialises concurrent bookings for them
            employee = (
                await db.execute(
                    select(EmployeeModel)
                    .where(EmployeeModel.id == employee_id)
                    .with_for_update()
                )
            ).scalar_one_or_none()
            if employee is None:
                raise EntityNotFoundError("Employee", data.employee_id)

            if await self._count_conflicts(db, employee_id, data.start_time, data.end_time):
                raise SchedulingConflictError(data.employee_id, data.start_time)

            customer = await db.get(CustomerModel, uuid.UUID(data.customer_id))
            if customer is None:
                raise EntityNotFoundError("Customer", data.customer_id)

            model = AppointmentModel(
                business_id=uuid.UUID(data.business_id),
                employee_id=employee_id,
                customer_id=customer.id,
                start_time=data.start_time,
                end_time=data.end_time,
                status=data.status,
                notes=data.notes,
            )
            db.add(model)
            await db.flush()

            appointment = _to_appointment(model, employee.name, customer.name)
            customer_phone = customer.phone

        logger.info(
            f"Appointment {appointment.id} created: employee={appointment.employee_id} "
            f"start={appointment.start_time.isoformat()}"
        )

        if self._reminders:
            try:
                await self._reminders.schedule_reminders(
                    appointment_id=appointment.id,
                    customer_phone=customer_phone,
                    customer_name=appointment.customer_name,
                    employee_name=appointment.employee_name or "",
                    start_time=appointment.start_time,
                    end_time=appointment.end_time,
                )
            except Exception as e:
                logger.error(f"Failed to schedule reminders for {appointment.id}: {e}")

        return appointment

    async def cancel_appointment(self, appointment_id: str) -> Appointment:
        async with self._session_factory() as db:
            model = await db.get(AppointmentModel, uuid.UUID(appointment_id))
            if model is None:
                raise EntityNotFoundError("Appointment", appointment_id)

            model.status = AppointmentStatus.CANCELLED
            await db.flush()
            appointment = _to_appointment(model)

        logger.info(f"Appointment {appointment_id} cancelled")

        if self._reminders:
            try:
                await self._reminders.cancel_reminders(appointment_id)
            except Exception as e:
                logger.error(f"Failed to cancel reminders for {appointment_id}: {e}")

        return appointment


# Singleton
_store: Optional[SqlEntityStore] = None


def get_entity_store() -> SqlEntityStore:
    """Get singleton SqlEntityStore with reminders enabled."""
    global _store
    if _store is None:
        _store = SqlEntityStore(reminders=get_reminder_scheduler())
    return _store
