"""Tests for the WhatsApp webhook routes."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routes import whatsapp
from app.core.intelligence import get_session_manager
from app.core.intelligence.session.state import ConversationState
from app.core.scheduling.engine import get_conversation_engine


class RecordingEngine:
    """Collects the messages the webhook hands over."""

    def __init__(self):
        self.received = []

    async def handle_incoming_message(self, message):
        self.received.append(message)


@pytest.fixture
def engine():
    return RecordingEngine()


@pytest.fixture
def client(engine, sessions):
    app = FastAPI()
    app.include_router(whatsapp.router)
    app.dependency_overrides[get_conversation_engine] = lambda: engine
    app.dependency_overrides[get_session_manager] = lambda: sessions
    return TestClient(app)


class TestWebhook:

    def test_acknowledges_with_empty_twiml(self, client, engine):
        response = client.post(
            "/webhooks/whatsapp",
            data={
                "From": "whatsapp:+5491155550000",
                "To": "whatsapp:+14155238886",
                "Body": "hola",
                "MessageSid": "SM1",
            },
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert response.text == whatsapp.EMPTY_TWIML

        [message] = engine.received
        assert message.phone == "+5491155550000"
        assert message.body == "hola"
        assert message.message_sid == "SM1"

    def test_missing_body_is_empty_text(self, client, engine):
        response = client.post("/webhooks/whatsapp", data={"From": "whatsapp:+1"})

        assert response.status_code == 200
        assert engine.received[0].body == ""

    def test_sender_required(self, client, engine):
        response = client.post("/webhooks/whatsapp", data={"Body": "hola"})

        assert response.status_code == 422
        assert engine.received == []


class TestStatus:

    @pytest.mark.asyncio
    async def test_counts_sessions_by_state(self, client, sessions):
        await sessions.get_or_create("+1")
        await sessions.update_state("+2", ConversationState.INTENT_DETECTED)

        response = client.get("/webhooks/whatsapp/status")

        assert response.status_code == 200
        payload = response.json()
        assert payload["active_sessions"] == 2
        assert payload["by_state"] == {"initial": 1, "intent_detected": 1}
