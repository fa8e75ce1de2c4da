"""Slot types for booking data extraction."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class DataCollectionStep(str, Enum):
    """Fields the booking dialogue still has to collect, in asking order."""

    EMPLOYEE = "employee"
    DATE = "date"
    TIME = "time"


@dataclass
class BookingData:
    """Partial booking assembled across turns.

    Never persisted to the entity store until validated and confirmed.
    """

    date: Optional[date] = None
    time: Optional[str] = None           # "HH:MM", 24h
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None

    def has_any(self) -> bool:
        """Check if anything was extracted."""
        return any([self.date, self.time, self.employee_id, self.employee_name])

    @property
    def is_complete(self) -> bool:
        """All three bookable fields are present."""
        return bool(self.employee_id and self.date and self.time)

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary."""
        return {
            "date": self.date.isoformat() if self.date else None,
            "time": self.time,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "BookingData":
        """Create from a dictionary produced by to_dict."""
        if not data:
            return cls()
        raw_date = data.get("date")
        return cls(
            date=date.fromisoformat(raw_date) if raw_date else None,
            time=data.get("time"),
            employee_id=data.get("employee_id"),
            employee_name=data.get("employee_name"),
        )
