"""
Keyword-based intent classification.

Rules are checked in a fixed order and the first matching keyword set
wins with that set's confidence. Order matters: "cancelar mi turno"
contains a booking keyword too, so cancel is tested before book.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from .types import INTENT_DESCRIPTIONS, Intent, IntentType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntentRule:
    """One keyword set mapped to an intent."""

    intent: IntentType
    confidence: float
    keywords: tuple[str, ...]


INTENT_RULES: list[IntentRule] = [
    IntentRule(
        IntentType.HELP,
        0.95,
        (
            "ayuda", "help", "info", "información", "cómo", "como",
            "qué puedes hacer", "opciones", "commands",
        ),
    ),
    IntentRule(
        IntentType.CANCEL,
        0.9,
        (
            "cancelar", "eliminar", "borrar", "anular", "quitar",
            "cancel", "delete", "remove",
        ),
    ),
    IntentRule(
        IntentType.RESCHEDULE,
        0.85,
        (
            "cambiar", "mover", "reprogramar", "modificar",
            "reschedule", "change", "move",
        ),
    ),
    IntentRule(
        IntentType.VIEW,
        0.9,
        (
            "mis turnos", "mis citas", "ver turnos", "ver citas", "mis reservas",
            "próximos turnos", "próximas citas", "my appointments", "view appointments",
        ),
    ),
    IntentRule(
        IntentType.BOOK,
        0.8,
        (
            "turno", "cita", "agendar", "reservar", "quiero", "necesito",
            "appointment", "book", "schedule", "hora", "dia",
        ),
    ),
    IntentRule(
        IntentType.GREETING,
        0.7,
        (
            "hola", "buenos días", "buenas tardes", "buenas noches",
            "hello", "hi", "hey", "good morning", "good afternoon",
        ),
    ),
]


class IntentClassifier:
    """Maps a free-text message to a coarse intent."""

    def __init__(self, rules: Optional[list[IntentRule]] = None):
        """Initialize classifier.

        Args:
            rules: Ordered rules (defaults to INTENT_RULES)
        """
        self._rules = rules or INTENT_RULES
        self._patterns: dict[str, re.Pattern] = {}

    def _pattern(self, keyword: str) -> re.Pattern:
        if keyword not in self._patterns:
            self._patterns[keyword] = re.compile(rf"\b{re.escape(keyword)}\b")
        return self._patterns[keyword]

    def _matches(self, text: str, keywords: tuple[str, ...]) -> bool:
        """Word-boundary match or plain substring containment."""
        return any(
            self._pattern(keyword).search(text) or keyword in text
            for keyword in keywords
        )

    def detect_intent(self, message: str) -> Intent:
        """
        Classify a message.

        Args:
            message: Customer's message

        Returns:
            Intent with type and confidence; UNKNOWN/0.0 when nothing matches
        """
        text = (message or "").lower().strip()

        if text:
            for rule in self._rules:
                if self._matches(text, rule.keywords):
                    logger.debug(
                        f"Intent: {rule.intent.value} ({rule.confidence}) for '{text[:50]}'"
                    )
                    return Intent(type=rule.intent, confidence=rule.confidence)

        return Intent(type=IntentType.UNKNOWN, confidence=0.0)

    @staticmethod
    def is_intent_clear(intent: Intent) -> bool:
        """Whether the orchestrator should route directly on this intent."""
        return intent.is_clear

    @staticmethod
    def describe(intent_type: IntentType) -> str:
        """Spanish description, e.g. "cancelar un turno"."""
        return INTENT_DESCRIPTIONS[intent_type]


# Singleton
_classifier: Optional[IntentClassifier] = None


def get_intent_classifier() -> IntentClassifier:
    """Get singleton IntentClassifier."""
    global _classifier
    if _classifier is None:
        _classifier = IntentClassifier()
    return _classifier


def detect_intent(message: str) -> Intent:
    """Convenience function to classify intent."""
    return get_intent_classifier().detect_intent(message)
