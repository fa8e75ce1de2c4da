"""
WhatsApp Webhook Endpoint.

Twilio posts every inbound WhatsApp message here as form data. The
request is acknowledged immediately with empty TwiML and the message is
processed in the background; replies go out through the Messages API.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Response
from pydantic import BaseModel, Field

from app.core.intelligence import SessionManager, get_session_manager
from app.core.scheduling.engine import (
    ConversationEngine,
    IncomingMessage,
    get_conversation_engine,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/whatsapp", tags=["WhatsApp"])

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


class SessionStatsResponse(BaseModel):
    """Live conversation counters."""

    active_sessions: int = Field(..., description="Sessions not yet expired")
    by_state: dict[str, int] = Field(
        default_factory=dict,
        description="Active sessions per conversation state",
    )
    timestamp: datetime


@router.post(
    "",
    summary="Receive WhatsApp message",
    description="Twilio webhook for inbound WhatsApp messages.",
    response_class=Response,
)
async def receive_message(
    background_tasks: BackgroundTasks,
    from_: str = Form(..., alias="From"),
    body: str = Form("", alias="Body"),
    to: str = Form("", alias="To"),
    message_sid: Optional[str] = Form(None, alias="MessageSid"),
    engine: ConversationEngine = Depends(get_conversation_engine),
) -> Response:
    """
    Accept an inbound message.

    Processing happens after the response is sent so Twilio never times
    out waiting on the database.
    """
    message = IncomingMessage(from_=from_, body=body, to=to, message_sid=message_sid)
    logger.info(f"Inbound message {message_sid} from {message.phone}")

    background_tasks.add_task(engine.handle_incoming_message, message)

    return Response(content=EMPTY_TWIML, media_type="application/xml")


@router.get(
    "/status",
    response_model=SessionStatsResponse,
    summary="Conversation stats",
)
async def session_status(
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionStatsResponse:
    stats = await sessions.get_stats()
    return SessionStatsResponse(
        active_sessions=stats["active_sessions"],
        by_state=stats["by_state"],
        timestamp=datetime.now(timezone.utc),
    )
