"""
Conversation Engine - Main Orchestrator.

Entry point for every inbound WhatsApp message. Handles the global
commands, onboarding and the intent menu itself and dispatches every
other state to the booking, cancellation or viewing handler.

Messages from the same phone are processed one at a time; different
phones run concurrently.
"""

import asyncio
import logging
import weakref
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from app.config import settings
from app.core.clock import Clock, local_now
from app.core.intelligence import (
    ConversationState,
    IntentClassifier,
    IntentType,
    SessionManager,
    extract_selection,
    get_intent_classifier,
    get_session_manager,
)
from app.core.intelligence.session.models import BUSINESS_ID, CUSTOMER_ID, CUSTOMER_NAME
from app.core.scheduling.availability import AvailabilityEngine
from app.core.scheduling.handlers import (
    BookingHandler,
    CancellationHandler,
    MessageSender,
    ViewHandler,
)
from app.core.scheduling.response import (
    GENERIC_ERROR,
    INVALID_NAME,
    UNEXPECTED_ERROR,
    MessageFormatter,
)
from app.core.scheduling.store import Customer, EntityStore
from app.core.scheduling.sql_store import get_entity_store
from app.infra.twilio import get_whatsapp_client, normalize_phone

logger = logging.getLogger(__name__)

# Commands honoured in every state
RESTART_COMMANDS = {"inicio", "menu", "menú", "reiniciar", "start"}
HELP_COMMANDS = {"ayuda", "help", "?"}

# Numbered options of the welcome menu
MENU_OPTIONS = {
    1: IntentType.BOOK,
    2: IntentType.CANCEL,
    3: IntentType.VIEW,
}
HANDOFF_OPTION = 4

# How many MessageSids to remember for redelivery detection
RECENT_MESSAGE_LIMIT = 1000


@dataclass
class IncomingMessage:
    """Inbound WhatsApp message as delivered by the webhook."""

    from_: str
    body: str
    to: str = ""
    message_sid: Optional[str] = None

    @property
    def phone(self) -> str:
        """Sender phone without the channel prefix."""
        return normalize_phone(self.from_)


class ConversationEngine:
    """
    Routes each message to the handler for the phone's current state.

    Usage:
        engine = ConversationEngine(store, send_message)
        await engine.handle_incoming_message(
            IncomingMessage(from_="whatsapp:+5491155550000", body="hola")
        )
    """

    def __init__(
        self,
        store: EntityStore,
        send_message: MessageSender,
        sessions: Optional[SessionManager] = None,
        classifier: Optional[IntentClassifier] = None,
        clock: Optional[Clock] = None,
        business_id: Optional[str] = None,
    ):
        """Initialize engine.

        Args:
            store: Entity store
            send_message: Outbound transport, called as send_message(phone, text)
            sessions: Session store (defaults to the shared one)
            classifier: Intent classifier (defaults to the shared one)
            clock: Returns the current aware datetime
            business_id: Business served by this engine (defaults to settings)
        """
        self._store = store
        self._send = send_message
        self._sessions = sessions or get_session_manager()
        self._classifier = classifier or get_intent_classifier()
        self._clock = clock or local_now
        self._business_id = business_id or settings.default_business_id

        availability = AvailabilityEngine(store, self._clock)
        self.booking = BookingHandler(
            self._sessions, store, availability, send_message, self._clock
        )
        self.cancellation = CancellationHandler(
            self._sessions, store, send_message, self._clock
        )
        self.viewing = ViewHandler(self._sessions, store, send_message, self._clock)

        self._routes: dict[ConversationState, Callable[[str, str], Awaitable[None]]] = {
            ConversationState.INITIAL: self.handle_initial_state,
            ConversationState.ASKING_NAME: self.handle_initial_state,
            ConversationState.INTENT_DETECTED: self.handle_initial_state,
            ConversationState.COLLECTING_DATA: self.booking.handle_data_collection,
            ConversationState.CONFIRMING: self.booking.handle_confirmation,
            ConversationState.CANCELLING: self.cancellation.handle_appointment_selection,
            ConversationState.CONFIRMING_CANCELLATION: (
                self.cancellation.handle_cancellation_confirmation
            ),
            ConversationState.VIEWING: self._restart,
            ConversationState.COMPLETED: self._restart,
            ConversationState.CANCELLED: self._restart,
        }

        # Lock objects disappear once no message of that phone is in flight
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._recent_message_sids: OrderedDict[str, None] = OrderedDict()

    # === Entry point ===

    async def handle_incoming_message(self, message: IncomingMessage) -> None:
        """
        Process one inbound message end to end.

        Never raises: any failure is logged, the customer gets an apology
        and the session is reset.
        """
        phone = message.phone
        text = (message.body or "").strip()

        if self._is_duplicate(message.message_sid):
            logger.info(f"Ignoring redelivered message {message.message_sid} from {phone}")
            return

        lock = self._locks.get(phone)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[phone] = lock

        async with lock:
            try:
                await self._process(phone, text)
            except Exception as e:
                logger.error(f"Unhandled error processing message from {phone}: {e}", exc_info=True)
                await self._recover(phone)

    def _is_duplicate(self, message_sid: Optional[str]) -> bool:
        if not message_sid:
            return False
        if message_sid in self._recent_message_sids:
            return True

        self._recent_message_sids[message_sid] = None
        if len(self._recent_message_sids) > RECENT_MESSAGE_LIMIT:
            self._recent_message_sids.popitem(last=False)
        return False

    async def _recover(self, phone: str) -> None:
        try:
            await self._send(phone, UNEXPECTED_ERROR)
        except Exception as e:
            logger.error(f"Could not notify {phone} of failure: {e}")

        try:
            await self._sessions.reset(phone)
        except Exception as e:
            logger.error(f"Could not reset session for {phone}: {e}", exc_info=True)

    async def _process(self, phone: str, text: str) -> None:
        command = text.lower()

        if command in RESTART_COMMANDS:
            await self._sessions.reset(phone)
            await self.handle_initial_state(phone, text)
            return

        if command in HELP_COMMANDS:
            await self._send(phone, MessageFormatter.format_help())
            return

        session = await self._sessions.get_or_create(phone)
        logger.debug(f"Message from {phone} in state {session.state.value}")

        route = self._routes.get(session.state)
        if route is None:
            logger.error(f"No handler for state {session.state.value} ({phone})")
            await self._send(phone, GENERIC_ERROR)
            await self._sessions.reset(phone)
            return

        await route(phone, text)

    async def _restart(self, phone: str, text: str) -> None:
        """Leave a finished dialogue and treat the message as a fresh start."""
        await self._sessions.reset(phone)
        await self.handle_initial_state(phone, text)

    # === Neutral states ===

    async def handle_initial_state(self, phone: str, text: str) -> None:
        """
        Onboard unknown phones, then detect what the customer wants.

        In intent_detected a bare menu number picks the option directly.
        """
        session = await self._sessions.get_or_create(phone)
        customer = await self._store.get_customer_by_phone(phone)

        if customer is None:
            await self._onboard(phone, text, session.state)
            return

        await self._bind_customer(phone, customer)

        if session.state == ConversationState.INTENT_DETECTED and len(text) <= 3:
            option = extract_selection(text, HANDOFF_OPTION)
            if option == HANDOFF_OPTION:
                logger.info(f"Handoff requested by {phone}")
                await self._send(phone, MessageFormatter.format_handoff())
                await self._sessions.reset(phone)
                return
            if option in MENU_OPTIONS:
                await self.route_by_intent(phone, text, MENU_OPTIONS[option], customer)
                return

        intent = self._classifier.detect_intent(text)
        logger.info(
            f"Intent for {phone}: {intent.type.value} (confidence={intent.confidence})"
        )

        if self._classifier.is_intent_clear(intent):
            await self.route_by_intent(phone, text, intent.type, customer)
        else:
            await self._show_menu(phone, customer.name)

    async def _onboard(self, phone: str, text: str, state: ConversationState) -> None:
        if state != ConversationState.ASKING_NAME:
            await self._sessions.update_state(phone, ConversationState.ASKING_NAME)
            await self._send(phone, MessageFormatter.format_welcome())
            return

        name = " ".join(text.split())
        if len(name) < 2:
            await self._send(phone, INVALID_NAME)
            return

        customer = await self._store.create_customer(phone, name)
        logger.info(f"Onboarded customer {customer.id} for {phone}")

        await self._bind_customer(phone, customer)
        await self._show_menu(phone, customer.name)

    async def _bind_customer(self, phone: str, customer: Customer) -> None:
        await self._sessions.update_data(
            phone,
            {
                CUSTOMER_ID: customer.id,
                CUSTOMER_NAME: customer.name,
                BUSINESS_ID: self._business_id,
            },
        )

    async def _show_menu(self, phone: str, name: Optional[str]) -> None:
        await self._sessions.update_state(phone, ConversationState.INTENT_DETECTED)
        await self._send(phone, MessageFormatter.format_welcome(name or "de nuevo"))

    async def route_by_intent(
        self,
        phone: str,
        text: str,
        intent: IntentType,
        customer: Customer,
    ) -> None:
        """Start the flow for a recognised intent."""
        if intent == IntentType.BOOK:
            await self.booking.start_booking(phone, text, self._business_id)

        elif intent == IntentType.CANCEL:
            await self.cancellation.start_cancellation(phone, customer.id)

        elif intent == IntentType.VIEW:
            await self.viewing.show_appointments(phone, customer.id)

        elif intent == IntentType.RESCHEDULE:
            await self._send(phone, MessageFormatter.format_reschedule_hint())
            await self.cancellation.start_cancellation(phone, customer.id)

        elif intent == IntentType.HELP:
            await self._send(phone, MessageFormatter.format_help())
            await self._sessions.reset(phone)

        elif intent == IntentType.GREETING:
            await self._show_menu(phone, customer.name)

        else:
            await self._send(phone, MessageFormatter.format_not_understood())
            await self._sessions.reset(phone)


# Singleton
_engine: Optional[ConversationEngine] = None


def get_conversation_engine() -> ConversationEngine:
    """Get singleton ConversationEngine wired to PostgreSQL and Twilio."""
    global _engine
    if _engine is None:
        _engine = ConversationEngine(
            store=get_entity_store(),
            send_message=get_whatsapp_client().send_message,
        )
    return _engine
