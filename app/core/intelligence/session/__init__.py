"""
Session management module.

One session per phone number, holding the conversation state and the
data collected so far. Sessions expire after 30 minutes of inactivity.
"""

from .state import (
    ConversationState,
    InvalidTransitionError,
    can_transition,
)
from .models import Session
from .manager import SessionManager, get_session_manager

__all__ = [
    # State
    "ConversationState",
    "InvalidTransitionError",
    "can_transition",
    # Models
    "Session",
    # Manager
    "SessionManager",
    "get_session_manager",
]
