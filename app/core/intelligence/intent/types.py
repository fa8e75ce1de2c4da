"""Intent types for conversation classification."""

from dataclasses import dataclass
from enum import Enum

# Below this confidence the orchestrator shows the menu instead of routing
CLEAR_INTENT_THRESHOLD = 0.7


class IntentType(str, Enum):
    """Customer intent categories."""

    BOOK = "book"                  # Book new appointment
    CANCEL = "cancel"              # Cancel existing
    VIEW = "view"                  # List upcoming appointments
    RESCHEDULE = "reschedule"      # Change existing
    GREETING = "greeting"          # Hola, hi
    HELP = "help"                  # What can you do

    # Fallback
    UNKNOWN = "unknown"


INTENT_DESCRIPTIONS: dict[IntentType, str] = {
    IntentType.BOOK: "agendar un turno",
    IntentType.CANCEL: "cancelar un turno",
    IntentType.VIEW: "ver tus turnos",
    IntentType.RESCHEDULE: "reprogramar un turno",
    IntentType.GREETING: "saludar",
    IntentType.HELP: "obtener ayuda",
    IntentType.UNKNOWN: "algo que no entendí",
}


@dataclass(frozen=True)
class Intent:
    """Result of intent classification. Computed per message, never stored."""

    type: IntentType
    confidence: float  # 0.0 - 1.0

    @property
    def is_clear(self) -> bool:
        """Check if the intent is confident enough to route on."""
        return self.confidence >= CLEAR_INTENT_THRESHOLD

    @property
    def description(self) -> str:
        """Human-readable (Spanish) description."""
        return INTENT_DESCRIPTIONS[self.type]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "confidence": self.confidence,
        }
