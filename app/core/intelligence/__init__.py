"""
Intelligence Layer Module

Rule-based understanding of customer messages plus per-phone session
state for the booking engine.

Usage:
    from app.core.intelligence import (
        detect_intent,
        extract_booking_data,
        get_session_manager,
    )

    intent = detect_intent("quiero turno mañana a las 3pm")
    print(intent.type)  # IntentType.BOOK

    data = extract_booking_data("quiero turno mañana a las 3pm")
    print(data.time)  # "15:00"

    manager = get_session_manager()
    session = await manager.get_or_create("+5491155550000")
"""

# Intent Classification
from app.core.intelligence.intent.types import Intent, IntentType
from app.core.intelligence.intent.classifier import (
    IntentClassifier,
    get_intent_classifier,
    detect_intent,
)

# Booking Data Extraction
from app.core.intelligence.slots.types import BookingData, DataCollectionStep
from app.core.intelligence.slots.dates import extract_date, get_next_weekday
from app.core.intelligence.slots.times import extract_time
from app.core.intelligence.slots.extractor import (
    extract_booking_data,
    extract_employee_name,
    extract_selection,
    find_employee_by_name,
    is_affirmative,
    is_negative,
)

# Session Management
from app.core.intelligence.session.state import (
    ConversationState,
    InvalidTransitionError,
    can_transition,
)
from app.core.intelligence.session.models import Session
from app.core.intelligence.session.manager import SessionManager, get_session_manager

__all__ = [
    # Intent
    "Intent",
    "IntentType",
    "IntentClassifier",
    "get_intent_classifier",
    "detect_intent",
    # Extraction
    "BookingData",
    "DataCollectionStep",
    "extract_date",
    "get_next_weekday",
    "extract_time",
    "extract_booking_data",
    "extract_employee_name",
    "extract_selection",
    "find_employee_by_name",
    "is_affirmative",
    "is_negative",
    # Session
    "ConversationState",
    "InvalidTransitionError",
    "can_transition",
    "Session",
    "SessionManager",
    "get_session_manager",
]
