"""Read-only listing of a customer's upcoming appointments."""

import logging

from app.core.intelligence.session.models import APPOINTMENTS
from app.core.intelligence.session.state import ConversationState
from app.core.scheduling.response import MessageFormatter
from .base import DialogueHandler

logger = logging.getLogger(__name__)


class ViewHandler(DialogueHandler):

    async def show_appointments(self, phone: str, customer_id: str) -> None:
        try:
            now = self._clock()
            appointments = [
                a
                for a in await self._store.get_appointments_by_customer(customer_id)
                if a.start_time > now and not a.is_cancelled
            ]
            appointments.sort(key=lambda a: a.start_time)

            await self._send(phone, MessageFormatter.format_appointment_list(appointments))

            if appointments:
                await self._sessions.set(
                    phone,
                    state=ConversationState.VIEWING,
                    data={APPOINTMENTS: [a.to_dict() for a in appointments]},
                )
            else:
                await self._sessions.reset(phone)

            logger.debug(f"Listed {len(appointments)} appointments for {phone}")

        except Exception as e:
            await self._abort(phone, e, "show_appointments")
