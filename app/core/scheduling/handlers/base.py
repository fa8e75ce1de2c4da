"""Shared plumbing for the dialogue handlers."""

import logging
from typing import Awaitable, Callable, Optional

from app.core.clock import Clock, local_now
from app.core.intelligence.session.manager import SessionManager
from app.core.scheduling.response import GENERIC_ERROR
from app.core.scheduling.store import EntityStore

logger = logging.getLogger(__name__)

# send_message(phone, text)
MessageSender = Callable[[str, str], Awaitable[object]]


class DialogueHandler:
    """
    Base for multi-turn handlers.

    Collaborators are injected once; handlers keep no per-conversation
    state of their own and always go back to the session store.
    """

    def __init__(
        self,
        sessions: SessionManager,
        store: EntityStore,
        send_message: MessageSender,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            sessions: Session store
            store: Entity store
            send_message: Outbound transport, called as send_message(phone, text)
            clock: Returns the current aware datetime
        """
        self._sessions = sessions
        self._store = store
        self._send = send_message
        self._clock = clock or local_now

    async def _abort(self, phone: str, error: Exception, step: str) -> None:
        """Apologise and reset after an unexpected failure."""
        logger.error(f"{type(self).__name__} failed during {step} for {phone}: {error}", exc_info=True)
        try:
            await self._send(phone, GENERIC_ERROR)
        finally:
            await self._sessions.reset(phone)
