"""Tests for the cancellation and viewing dialogues."""

from datetime import datetime

import pytest

from app.core.intelligence.session.models import CUSTOMER_ID
from app.core.intelligence.session.state import ConversationState
from app.core.scheduling.handlers import CancellationHandler, ViewHandler
from app.core.scheduling.response import (
    APPOINTMENT_KEPT,
    CANCEL_CONFIRM_PROMPT,
    GENERIC_ERROR,
    NO_APPOINTMENTS_TO_CANCEL,
)
from app.models.database import AppointmentStatus
from tests.conftest import PHONE, TZ


@pytest.fixture
def employee(store):
    return store.add_employee("Ana")


@pytest.fixture
def customer(store):
    return store.add_customer(PHONE, "Juan")


@pytest.fixture
def booked(store, employee, customer):
    """Two upcoming appointments, one past and one cancelled."""
    later = store.add_appointment(employee, customer, datetime(2026, 10, 20, 11, 0, tzinfo=TZ))
    sooner = store.add_appointment(employee, customer, datetime(2026, 10, 16, 15, 0, tzinfo=TZ))
    store.add_appointment(employee, customer, datetime(2026, 10, 14, 9, 0, tzinfo=TZ))
    store.add_appointment(
        employee, customer, datetime(2026, 10, 17, 9, 0, tzinfo=TZ),
        status=AppointmentStatus.CANCELLED,
    )
    return [sooner, later]


class TestCancellationHandler:

    @pytest.fixture
    def handler(self, sessions, store, sent, clock):
        return CancellationHandler(sessions, store, sent, clock)

    @pytest.mark.asyncio
    async def test_lists_upcoming_active_only(self, handler, sessions, sent, customer, booked):
        await sessions.set(PHONE, data={CUSTOMER_ID: customer.id})

        await handler.start_cancellation(PHONE, customer.id)

        session = await sessions.get(PHONE)
        assert session.state == ConversationState.CANCELLING
        assert [item["id"] for item in session.appointments] == [a.id for a in booked]
        assert "1. ✅ vie 16/10 - 15:00" in sent.last
        assert "2. ✅ mar 20/10 - 11:00" in sent.last
        assert "14/10" not in sent.last
        assert "¿Cuál quieres cancelar?" in sent.last

    @pytest.mark.asyncio
    async def test_nothing_to_cancel(self, handler, sessions, sent, customer):
        await handler.start_cancellation(PHONE, customer.id)

        assert sent.texts == [NO_APPOINTMENTS_TO_CANCEL]
        assert (await sessions.get(PHONE)).state == ConversationState.INITIAL

    @pytest.mark.asyncio
    async def test_select_then_confirm(self, handler, sessions, store, sent, customer, booked):
        await handler.start_cancellation(PHONE, customer.id)

        await handler.handle_appointment_selection(PHONE, "2")

        session = await sessions.get(PHONE)
        assert session.state == ConversationState.CONFIRMING_CANCELLATION
        assert session.pending_cancellation_id == booked[1].id
        assert "¿Seguro que quieres cancelar este turno?" in sent.last

        await handler.handle_cancellation_confirmation(PHONE, "sí")

        assert store.appointments[booked[1].id].status == AppointmentStatus.CANCELLED
        assert store.appointments[booked[0].id].status == AppointmentStatus.CONFIRMED
        assert "Turno cancelado exitosamente" in sent.last
        assert (await sessions.get(PHONE)).state == ConversationState.INITIAL

    @pytest.mark.asyncio
    async def test_invalid_selection_retries(self, handler, sessions, sent, customer, booked):
        await handler.start_cancellation(PHONE, customer.id)

        await handler.handle_appointment_selection(PHONE, "5")

        assert sent.last == "Por favor selecciona un número del 1 al 2."
        assert (await sessions.get(PHONE)).state == ConversationState.CANCELLING

    @pytest.mark.asyncio
    async def test_keep_appointment(self, handler, sessions, store, sent, customer, booked):
        await handler.start_cancellation(PHONE, customer.id)
        await handler.handle_appointment_selection(PHONE, "1")

        await handler.handle_cancellation_confirmation(PHONE, "no")

        assert sent.last == APPOINTMENT_KEPT
        assert store.appointments[booked[0].id].status == AppointmentStatus.CONFIRMED
        assert (await sessions.get(PHONE)).state == ConversationState.INITIAL

    @pytest.mark.asyncio
    async def test_unclear_confirmation(self, handler, sessions, sent, customer, booked):
        await handler.start_cancellation(PHONE, customer.id)
        await handler.handle_appointment_selection(PHONE, "1")

        await handler.handle_cancellation_confirmation(PHONE, "tal vez")

        assert sent.last == CANCEL_CONFIRM_PROMPT
        assert (await sessions.get(PHONE)).state == ConversationState.CONFIRMING_CANCELLATION

    @pytest.mark.asyncio
    async def test_vanished_appointment_aborts(self, handler, sessions, store, sent, customer, booked):
        await handler.start_cancellation(PHONE, customer.id)
        await handler.handle_appointment_selection(PHONE, "1")
        del store.appointments[booked[0].id]

        await handler.handle_cancellation_confirmation(PHONE, "si")

        assert sent.last == GENERIC_ERROR
        assert (await sessions.get(PHONE)).state == ConversationState.INITIAL


class TestViewHandler:

    @pytest.fixture
    def handler(self, sessions, store, sent, clock):
        return ViewHandler(sessions, store, sent, clock)

    @pytest.mark.asyncio
    async def test_shows_future_appointments(self, handler, sessions, sent, customer, booked):
        await handler.show_appointments(PHONE, customer.id)

        assert "1. ✅ vie 16/10 - 15:00" in sent.last
        assert "2. ✅ mar 20/10 - 11:00" in sent.last
        assert "17/10" not in sent.last

        session = await sessions.get(PHONE)
        assert session.state == ConversationState.VIEWING
        assert len(session.appointments) == 2

    @pytest.mark.asyncio
    async def test_no_appointments(self, handler, sessions, sent, customer):
        await handler.show_appointments(PHONE, customer.id)

        assert "No tienes turnos agendados" in sent.last
        assert (await sessions.get(PHONE)).state == ConversationState.INITIAL
