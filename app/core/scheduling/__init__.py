"""
Scheduling Module

Booking rules, slot generation, message copy and the dialogue handlers.
The orchestrator and the PostgreSQL store pull in infrastructure and are
imported from their own modules.

Usage:
    from app.core.scheduling.engine import IncomingMessage, get_conversation_engine

    engine = get_conversation_engine()
    await engine.handle_incoming_message(
        IncomingMessage(from_="whatsapp:+5491155550000", body="quiero turno mañana")
    )
"""

# Entity store contract
from app.core.scheduling.store import (
    Appointment,
    AppointmentInput,
    AvailabilityRule,
    Customer,
    Employee,
    EntityNotFoundError,
    EntityStore,
    EntityStoreError,
    SchedulingConflictError,
    day_of_week_for,
)

# Validation
from app.core.scheduling.validation import (
    ValidationResult,
    combine_date_time,
    validate_date,
    validate_date_time,
    validate_time,
)

# Availability
from app.core.scheduling.availability import AvailabilityEngine, TimeSlot

# Message copy
from app.core.scheduling.response import MessageFormatter

# Dialogue handlers
from app.core.scheduling.handlers import (
    BookingHandler,
    CancellationHandler,
    ViewHandler,
)

__all__ = [
    # Store
    "Appointment",
    "AppointmentInput",
    "AvailabilityRule",
    "Customer",
    "Employee",
    "EntityNotFoundError",
    "EntityStore",
    "EntityStoreError",
    "SchedulingConflictError",
    "day_of_week_for",
    # Validation
    "ValidationResult",
    "combine_date_time",
    "validate_date",
    "validate_date_time",
    "validate_time",
    # Availability
    "AvailabilityEngine",
    "TimeSlot",
    # Response
    "MessageFormatter",
    # Handlers
    "BookingHandler",
    "CancellationHandler",
    "ViewHandler",
]
