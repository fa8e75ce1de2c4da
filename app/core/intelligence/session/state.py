"""Conversation state machine."""

from enum import Enum
from typing import Set


class ConversationState(str, Enum):
    """Position of a phone's conversation in the dialogue."""

    # Neutral
    INITIAL = "initial"
    ASKING_NAME = "asking_name"          # New customer onboarding
    INTENT_DETECTED = "intent_detected"  # Menu shown, waiting for a choice

    # Booking
    COLLECTING_DATA = "collecting_data"
    CONFIRMING = "confirming"

    # Cancellation
    CANCELLING = "cancelling"
    CONFIRMING_CANCELLATION = "confirming_cancellation"

    # Viewing
    VIEWING = "viewing"

    # Terminal states
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvalidTransitionError(ValueError):
    """Raised when a handler tries an illegal state change."""

    def __init__(self, current: ConversationState, target: ConversationState):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition: {current.value} -> {target.value}")


# Valid state transitions (a state may always stay where it is)
VALID_TRANSITIONS: dict[ConversationState, Set[ConversationState]] = {
    ConversationState.INITIAL: {
        ConversationState.ASKING_NAME,
        ConversationState.INTENT_DETECTED,
        ConversationState.COLLECTING_DATA,
        ConversationState.CONFIRMING,
        ConversationState.CANCELLING,
        ConversationState.VIEWING,
    },
    ConversationState.ASKING_NAME: {
        ConversationState.INTENT_DETECTED,
        ConversationState.INITIAL,
    },
    ConversationState.INTENT_DETECTED: {
        ConversationState.ASKING_NAME,
        ConversationState.COLLECTING_DATA,
        ConversationState.CONFIRMING,
        ConversationState.CANCELLING,
        ConversationState.VIEWING,
        ConversationState.INITIAL,
    },
    ConversationState.COLLECTING_DATA: {
        ConversationState.CONFIRMING,
        ConversationState.INITIAL,
    },
    ConversationState.CONFIRMING: {
        ConversationState.COLLECTING_DATA,  # Slot taken meanwhile, pick again
        ConversationState.COMPLETED,
        ConversationState.INITIAL,
    },
    ConversationState.CANCELLING: {
        ConversationState.CONFIRMING_CANCELLATION,
        ConversationState.INITIAL,
    },
    ConversationState.CONFIRMING_CANCELLATION: {
        ConversationState.CANCELLED,
        ConversationState.INITIAL,
    },
    ConversationState.VIEWING: {
        ConversationState.INITIAL,
    },
    ConversationState.COMPLETED: {
        ConversationState.INITIAL,
    },
    ConversationState.CANCELLED: {
        ConversationState.INITIAL,
    },
}


def can_transition(current: ConversationState, target: ConversationState) -> bool:
    """
    Check if transition is valid.

    Args:
        current: Current state
        target: Target state

    Returns:
        True if transition is allowed
    """
    if current == target:
        return True
    return target in VALID_TRANSITIONS.get(current, set())
