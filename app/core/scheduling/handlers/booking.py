"""
Booking dialogue.

Collects employee, date and time (in that order, skipping whatever the
customer already gave), validates the combination and writes the
appointment once the customer confirms.
"""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Optional

from app.config import settings
from app.core.clock import Clock
from app.core.intelligence.session.manager import SessionManager
from app.core.intelligence.session.models import (
    AVAILABLE_SLOTS,
    BOOKING,
    BUSINESS_ID,
    EMPLOYEES,
    MISSING_STEPS,
    Session,
)
from app.core.intelligence.session.state import ConversationState
from app.core.intelligence.slots import (
    BookingData,
    DataCollectionStep,
    extract_booking_data,
    extract_date,
    extract_employee_name,
    extract_selection,
    extract_time,
    find_employee_by_name,
    is_affirmative,
    is_negative,
)
from app.core.scheduling.availability import AvailabilityEngine
from app.core.scheduling.response import (
    BOOKING_ABORTED,
    CONFIRM_PROMPT,
    DATE_NOT_UNDERSTOOD,
    NO_EMPLOYEES,
    SLOT_TAKEN,
    SLOT_UNAVAILABLE,
    MessageFormatter,
)
from app.core.scheduling.store import (
    Appointment,
    AppointmentInput,
    Employee,
    EntityStore,
    SchedulingConflictError,
)
from app.core.scheduling.validation import (
    combine_date_time,
    validate_date,
    validate_date_time,
    validate_time,
)
from .base import DialogueHandler, MessageSender

logger = logging.getLogger(__name__)

ANY_EMPLOYEE_WORDS = ["cualquiera", "el que sea", "la que sea", "indistinto"]


class BookingHandler(DialogueHandler):
    """Drives the collecting_data and confirming states."""

    def __init__(
        self,
        sessions: SessionManager,
        store: EntityStore,
        availability: AvailabilityEngine,
        send_message: MessageSender,
        clock: Optional[Clock] = None,
        appointment_minutes: Optional[int] = None,
    ):
        super().__init__(sessions, store, send_message, clock)
        self._availability = availability
        self._duration = timedelta(
            minutes=appointment_minutes or settings.appointment_duration_minutes
        )

    @staticmethod
    def determine_missing_data(booking: BookingData) -> list[DataCollectionStep]:
        """Fields still to collect, in asking order."""
        missing = []
        if not booking.employee_id:
            missing.append(DataCollectionStep.EMPLOYEE)
        if not booking.date:
            missing.append(DataCollectionStep.DATE)
        if not booking.time:
            missing.append(DataCollectionStep.TIME)
        return missing

    # === Entry point ===

    async def start_booking(self, phone: str, text: str, business_id: str) -> None:
        """
        Begin a booking from the message that expressed the intent.

        Whatever the message already says ("mañana a las 3pm con Ana") is
        kept; the rest goes into the collection queue.
        """
        try:
            today = self._clock().date()
            extracted = extract_booking_data(text, today)

            employees = await self._store.get_active_employees_by_business(business_id)
            if not employees:
                logger.warning(f"No active employees for business {business_id}")
                await self._send(phone, NO_EMPLOYEES)
                await self._sessions.reset(phone)
                return

            booking = BookingData(date=extracted.date, time=extracted.time)

            if extracted.employee_name:
                match = find_employee_by_name(extracted.employee_name, employees)
                if match:
                    booking = replace(booking, employee_id=match.id, employee_name=match.name)

            if not booking.employee_id and len(employees) == 1:
                booking = replace(
                    booking, employee_id=employees[0].id, employee_name=employees[0].name
                )

            if booking.date:
                date_check = validate_date(booking.date, today)
                if not date_check.valid:
                    await self._send(phone, MessageFormatter.format_error(date_check.error))
                    booking = replace(booking, date=None)

            missing = self.determine_missing_data(booking)
            logger.info(
                f"Booking started for {phone}: "
                f"missing={[step.value for step in missing]}"
            )

            await self._sessions.set(
                phone,
                data={
                    BUSINESS_ID: business_id,
                    EMPLOYEES: [employee.to_dict() for employee in employees],
                    BOOKING: booking.to_dict(),
                    MISSING_STEPS: [step.value for step in missing],
                    AVAILABLE_SLOTS: [],
                },
            )

            if not missing:
                await self.validate_and_confirm(phone)
                return

            await self._sessions.update_state(phone, ConversationState.COLLECTING_DATA)
            await self._prompt_step(phone, missing[0], booking)

        except Exception as e:
            await self._abort(phone, e, "start_booking")

    # === collecting_data ===

    async def handle_data_collection(self, phone: str, text: str) -> None:
        """Fill the step at the front of the queue from the customer's reply."""
        try:
            session = await self._sessions.get_or_create(phone)
            missing = session.missing_steps

            if not missing:
                await self.validate_and_confirm(phone)
                return

            step = missing[0]
            collectors = {
                DataCollectionStep.EMPLOYEE: self._collect_employee,
                DataCollectionStep.DATE: self._collect_date,
                DataCollectionStep.TIME: self._collect_time,
            }
            updated = await collectors[step](phone, text, session)
            if updated is None:
                # Customer was re-prompted; queue unchanged
                return

            remaining = missing[1:]
            await self._sessions.update_data(
                phone,
                {
                    BOOKING: updated.to_dict(),
                    MISSING_STEPS: [s.value for s in remaining],
                },
            )
            logger.debug(f"Collected {step.value} for {phone}")

            if remaining:
                await self._prompt_step(phone, remaining[0], updated)
            else:
                await self.validate_and_confirm(phone)

        except Exception as e:
            await self._abort(phone, e, "data collection")

    async def _collect_employee(
        self, phone: str, text: str, session: Session
    ) -> Optional[BookingData]:
        employees = [Employee.from_dict(item) for item in session.employees]
        booking = session.booking
        normalized = text.lower().strip()

        if employees and any(word in normalized for word in ANY_EMPLOYEE_WORDS):
            chosen = employees[0]
        else:
            # "con Ana a las 3" names Ana; the 3 is not a list choice
            named = extract_employee_name(text)
            chosen = find_employee_by_name(named, employees) if named else None

        if chosen is None:
            selection = extract_selection(text, len(employees) + 1)
            if selection:
                # The extra last option is "any available"
                chosen = employees[selection - 1] if selection <= len(employees) else employees[0]
            else:
                chosen = find_employee_by_name(text, employees)

        if chosen is None:
            await self._send(phone, MessageFormatter.format_employee_retry(len(employees) + 1))
            return None

        return replace(booking, employee_id=chosen.id, employee_name=chosen.name)

    async def _collect_date(
        self, phone: str, text: str, session: Session
    ) -> Optional[BookingData]:
        today = self._clock().date()
        day = extract_date(text, today)

        if day is None:
            await self._send(phone, DATE_NOT_UNDERSTOOD)
            return None

        result = validate_date(day, today)
        if not result.valid:
            await self._send(phone, MessageFormatter.format_error(result.error))
            return None

        return replace(session.booking, date=day)

    async def _collect_time(
        self, phone: str, text: str, session: Session
    ) -> Optional[BookingData]:
        booking = session.booking
        typed = extract_time(text)

        if typed:
            for result in (
                validate_time(typed),
                validate_date_time(booking.date, typed, self._clock()),
            ):
                if not result.valid:
                    await self._send(phone, MessageFormatter.format_error(result.error))
                    return None

            if typed not in await self._free_times(booking):
                await self._send(phone, SLOT_UNAVAILABLE)
                await self._show_slots(phone, booking)
                return None

            return replace(booking, time=typed)

        slots = session.available_slots
        if not slots:
            await self._show_slots(phone, booking)
            return None

        selection = extract_selection(text, len(slots))
        if selection is None:
            await self._send(phone, MessageFormatter.format_slot_retry(len(slots)))
            return None

        return replace(booking, time=slots[selection - 1])

    # === Prompts ===

    async def _prompt_step(
        self, phone: str, step: DataCollectionStep, booking: BookingData
    ) -> None:
        if step == DataCollectionStep.EMPLOYEE:
            session = await self._sessions.get_or_create(phone)
            employees = [Employee.from_dict(item) for item in session.employees]
            await self._send(phone, MessageFormatter.format_employee_list(employees))
        elif step == DataCollectionStep.DATE:
            await self._send(phone, MessageFormatter.format_ask_for_date())
        else:
            await self._show_slots(phone, booking)

    async def _free_times(self, booking: BookingData) -> list[str]:
        """Free start times for the booking's employee and date, without repeats."""
        slots = await self._availability.get_available_slots(
            booking.employee_id,
            booking.date,
            int(self._duration.total_seconds() // 60),
        )
        return list(dict.fromkeys(slot.time for slot in slots))

    async def _show_slots(self, phone: str, booking: BookingData) -> list[str]:
        """Send the numbered slot list and remember what was shown."""
        times = await self._free_times(booking)
        await self._sessions.update_data(phone, {AVAILABLE_SLOTS: times})
        await self._send(phone, MessageFormatter.format_time_slots(booking.date, times))
        return times

    async def _return_to_step(
        self,
        phone: str,
        booking: BookingData,
        step: DataCollectionStep,
        message: str,
    ) -> None:
        """Drop one field and ask for it again."""
        if step == DataCollectionStep.DATE:
            booking = replace(booking, date=None)
        else:
            booking = replace(booking, time=None)

        missing = self.determine_missing_data(booking)
        await self._sessions.set(
            phone,
            state=ConversationState.COLLECTING_DATA,
            data={
                BOOKING: booking.to_dict(),
                MISSING_STEPS: [s.value for s in missing],
            },
        )
        await self._send(phone, message)
        await self._prompt_step(phone, missing[0], booking)

    # === Validation and confirmation ===

    async def validate_and_confirm(self, phone: str) -> bool:
        """
        Re-validate the complete booking and ask for confirmation.

        A field that no longer holds (past date, lead time, slot gone) is
        dropped and asked for again.

        Returns:
            True if the confirmation summary was sent
        """
        session = await self._sessions.get_or_create(phone)
        booking = session.booking
        now = self._clock()

        date_check = validate_date(booking.date, now.date())
        if not date_check.valid:
            await self._return_to_step(
                phone, booking, DataCollectionStep.DATE,
                MessageFormatter.format_error(date_check.error),
            )
            return False

        for result in (
            validate_time(booking.time),
            validate_date_time(booking.date, booking.time, now),
        ):
            if not result.valid:
                await self._return_to_step(
                    phone, booking, DataCollectionStep.TIME,
                    MessageFormatter.format_error(result.error),
                )
                return False

        if booking.time not in await self._free_times(booking):
            logger.info(f"Slot {booking.date} {booking.time} not free for {phone}")
            await self._return_to_step(phone, booking, DataCollectionStep.TIME, SLOT_UNAVAILABLE)
            return False

        await self._sessions.set(
            phone,
            state=ConversationState.CONFIRMING,
            data={MISSING_STEPS: []},
        )
        await self._send(
            phone,
            MessageFormatter.format_confirmation(
                booking.date, booking.time, booking.employee_name or ""
            ),
        )
        return True

    async def handle_confirmation(self, phone: str, text: str) -> None:
        """Yes books, no aborts, anything else re-asks."""
        try:
            if is_affirmative(text):
                await self.create_appointment(phone)
            elif is_negative(text):
                await self._send(phone, BOOKING_ABORTED)
                await self._sessions.reset(phone)
            else:
                await self._send(phone, CONFIRM_PROMPT)

        except Exception as e:
            await self._abort(phone, e, "confirmation")

    async def create_appointment(
        self, phone: str, session: Optional[Session] = None
    ) -> Optional[Appointment]:
        """
        Write the confirmed booking.

        Args:
            phone: Customer phone
            session: Current session (re-read from the store when omitted)

        Returns:
            The appointment, or None if the slot was taken in the meantime
            (the customer is sent back to slot selection)

        Raises:
            ValueError: If the session has no customer bound
        """
        session = session or await self._sessions.get_or_create(phone)
        booking = session.booking

        if not session.customer_id:
            raise ValueError(f"No customer bound to session {phone}")

        start = combine_date_time(booking.date, booking.time, self._clock().tzinfo)
        data = AppointmentInput(
            business_id=session.business_id or settings.default_business_id,
            customer_id=session.customer_id,
            employee_id=booking.employee_id,
            start_time=start,
            end_time=start + self._duration,
        )

        try:
            appointment = await self._store.create_appointment(data)
        except SchedulingConflictError as e:
            logger.info(f"Booking conflict for {phone}: {e}")
            await self._return_to_step(phone, booking, DataCollectionStep.TIME, SLOT_TAKEN)
            return None

        logger.info(f"Appointment {appointment.id} created for {phone}")

        await self._send(
            phone,
            MessageFormatter.format_appointment_confirmed(
                appointment.id, booking.date, booking.time, booking.employee_name or ""
            ),
        )
        await self._sessions.reset(phone)
        return appointment
