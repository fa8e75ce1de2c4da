"""
Session data model.

One Session per phone number. The ``data`` bag is a plain JSON-safe dict
so the same payload works for the in-memory map and for Redis.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from app.core.intelligence.slots.types import BookingData, DataCollectionStep
from .state import ConversationState


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# Keys of the session data bag
CUSTOMER_ID = "customer_id"
CUSTOMER_NAME = "customer_name"
BUSINESS_ID = "business_id"
BOOKING = "booking"
MISSING_STEPS = "missing_steps"
EMPLOYEES = "employees"
AVAILABLE_SLOTS = "available_slots"
APPOINTMENTS = "appointments"
PENDING_CANCELLATION_ID = "pending_cancellation_id"


@dataclass
class Session:
    """Conversation state and accumulated data for one phone number."""

    phone: str
    state: ConversationState = ConversationState.INITIAL
    data: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)

    # Typed views over the data bag

    @property
    def customer_id(self) -> Optional[str]:
        return self.data.get(CUSTOMER_ID)

    @property
    def customer_name(self) -> Optional[str]:
        return self.data.get(CUSTOMER_NAME)

    @property
    def business_id(self) -> Optional[str]:
        return self.data.get(BUSINESS_ID)

    @property
    def booking(self) -> BookingData:
        """Booking collected so far."""
        return BookingData.from_dict(self.data.get(BOOKING))

    @property
    def missing_steps(self) -> list[DataCollectionStep]:
        """Remaining collection queue, front first."""
        return [DataCollectionStep(step) for step in self.data.get(MISSING_STEPS, [])]

    @property
    def employees(self) -> list[dict]:
        return self.data.get(EMPLOYEES, [])

    @property
    def available_slots(self) -> list[str]:
        """Slot times ("HH:MM") last shown to the customer."""
        return self.data.get(AVAILABLE_SLOTS, [])

    @property
    def appointments(self) -> list[dict]:
        return self.data.get(APPOINTMENTS, [])

    @property
    def pending_cancellation_id(self) -> Optional[str]:
        return self.data.get(PENDING_CANCELLATION_ID)

    def is_expired(self, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
        """Check whether the session has been idle longer than ttl_seconds."""
        now = now or _utcnow()
        return now - self.last_activity > timedelta(seconds=ttl_seconds)

    def touch(self) -> None:
        """Mark activity now."""
        self.last_activity = _utcnow()

    def merge_data(self, updates: dict[str, Any]) -> None:
        """Shallow-merge updates into the data bag."""
        self.data.update(updates)

    def to_json(self) -> str:
        """Convert to JSON string for storage."""
        return json.dumps(
            {
                "phone": self.phone,
                "state": self.state.value,
                "data": self.data,
                "created_at": self.created_at.isoformat(),
                "last_activity": self.last_activity.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, json_str: str) -> "Session":
        """Create from JSON string."""
        data = json.loads(json_str)
        return cls(
            phone=data["phone"],
            state=ConversationState(data.get("state", ConversationState.INITIAL.value)),
            data=data.get("data", {}),
            created_at=datetime.fromisoformat(data["created_at"]),
            last_activity=datetime.fromisoformat(data["last_activity"]),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return json.loads(self.to_json())
