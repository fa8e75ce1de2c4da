"""Cancellation dialogue: list upcoming appointments, pick one, confirm."""

import logging

from app.core.intelligence.session.models import APPOINTMENTS, PENDING_CANCELLATION_ID
from app.core.intelligence.session.state import ConversationState
from app.core.intelligence.slots import extract_selection, is_affirmative, is_negative
from app.core.scheduling.response import (
    APPOINTMENT_KEPT,
    CANCEL_CONFIRM_PROMPT,
    NO_APPOINTMENTS_TO_CANCEL,
    MessageFormatter,
)
from app.core.scheduling.store import Appointment
from .base import DialogueHandler

logger = logging.getLogger(__name__)


class CancellationHandler(DialogueHandler):
    """Drives the cancelling and confirming_cancellation states."""

    async def _upcoming(self, customer_id: str) -> list[Appointment]:
        now = self._clock()
        appointments = await self._store.get_appointments_by_customer(customer_id)
        upcoming = [a for a in appointments if a.is_upcoming_active and a.start_time > now]
        upcoming.sort(key=lambda a: a.start_time)
        return upcoming

    async def start_cancellation(self, phone: str, customer_id: str) -> None:
        """Show the customer's cancellable appointments."""
        try:
            appointments = await self._upcoming(customer_id)

            if not appointments:
                await self._send(phone, NO_APPOINTMENTS_TO_CANCEL)
                await self._sessions.reset(phone)
                return

            await self._sessions.set(
                phone,
                state=ConversationState.CANCELLING,
                data={APPOINTMENTS: [a.to_dict() for a in appointments]},
            )
            await self._send(phone, MessageFormatter.format_cancellation_list(appointments))

        except Exception as e:
            await self._abort(phone, e, "start_cancellation")

    async def handle_appointment_selection(self, phone: str, text: str) -> None:
        """Resolve the numbered choice against the cached list."""
        try:
            session = await self._sessions.get_or_create(phone)
            appointments = [Appointment.from_dict(item) for item in session.appointments]

            if not appointments:
                await self._send(phone, NO_APPOINTMENTS_TO_CANCEL)
                await self._sessions.reset(phone)
                return

            selection = extract_selection(text, len(appointments))
            if selection is None:
                await self._send(phone, MessageFormatter.format_cancellation_retry(len(appointments)))
                return

            chosen = appointments[selection - 1]
            await self._sessions.set(
                phone,
                state=ConversationState.CONFIRMING_CANCELLATION,
                data={PENDING_CANCELLATION_ID: chosen.id},
            )
            await self._send(phone, MessageFormatter.format_cancellation_confirmation(chosen))

        except Exception as e:
            await self._abort(phone, e, "appointment selection")

    async def handle_cancellation_confirmation(self, phone: str, text: str) -> None:
        """Yes cancels the pending appointment, no keeps it."""
        try:
            if is_affirmative(text):
                session = await self._sessions.get_or_create(phone)
                appointment_id = session.pending_cancellation_id
                if not appointment_id:
                    raise ValueError(f"No pending cancellation for {phone}")

                await self._store.cancel_appointment(appointment_id)
                logger.info(f"Appointment {appointment_id} cancelled by {phone}")

                await self._send(phone, MessageFormatter.format_cancellation_success())
                await self._sessions.reset(phone)

            elif is_negative(text):
                await self._send(phone, APPOINTMENT_KEPT)
                await self._sessions.reset(phone)

            else:
                await self._send(phone, CANCEL_CONFIRM_PROMPT)

        except Exception as e:
            await self._abort(phone, e, "cancellation confirmation")
