"""Intent classification module."""

from .types import Intent, IntentType, INTENT_DESCRIPTIONS, CLEAR_INTENT_THRESHOLD
from .classifier import (
    IntentClassifier,
    IntentRule,
    INTENT_RULES,
    get_intent_classifier,
    detect_intent,
)

__all__ = [
    # Types
    "Intent",
    "IntentType",
    "INTENT_DESCRIPTIONS",
    "CLEAR_INTENT_THRESHOLD",
    # Classifier
    "IntentClassifier",
    "IntentRule",
    "INTENT_RULES",
    "get_intent_classifier",
    "detect_intent",
]
