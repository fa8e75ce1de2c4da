"""Dialogue handlers for the booking, cancellation and viewing flows."""

from .base import DialogueHandler, MessageSender
from .booking import BookingHandler
from .cancellation import CancellationHandler
from .viewing import ViewHandler

__all__ = [
    "DialogueHandler",
    "MessageSender",
    "BookingHandler",
    "CancellationHandler",
    "ViewHandler",
]
