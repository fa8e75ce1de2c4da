"""
Rule-based booking data extraction.

Composes the date, time and employee-name extractors and provides the
small parsers the dialogue handlers need for replies: yes/no detection,
numbered-option selection and employee lookup by name.

None of these functions raise on unrecognised input; they return None.
"""

import logging
import re
import unicodedata
from datetime import date
from typing import Any, Optional, Sequence

from .dates import extract_date
from .times import extract_time
from .types import BookingData

logger = logging.getLogger(__name__)


EMPLOYEE_NAME_PATTERN = re.compile(
    r"\b(?:con|empleado|profesional)\s+([A-ZÁÉÍÓÚÑ][a-záéíóúñ]+)",
    re.IGNORECASE,
)

AFFIRMATIVE_WORDS = [
    "si", "sí", "yes", "ok", "okay", "dale", "confirmar", "confirmo",
    "perfecto", "genial", "acepto", "afirmativo",
    "✓", "✔", "👍", "1",
]

NEGATIVE_WORDS = [
    "no", "nope", "cancelar", "no quiero", "cambiar", "negativo", "rechazar",
    "❌", "✗", "👎", "0",
]

SELECTION_PATTERN = re.compile(r"\b(\d+)\b")


def _fold(text: str) -> str:
    """Lower-case, trim and strip accents for lenient comparisons."""
    decomposed = unicodedata.normalize("NFD", text.lower().strip())
    return "".join(c for c in decomposed if unicodedata.category(c) != "Mn")


def extract_employee_name(text: str) -> Optional[str]:
    """Employee name referenced as "con Ana", "profesional Luis", etc."""
    if not text:
        return None
    found = EMPLOYEE_NAME_PATTERN.search(text)
    return found.group(1) if found else None


def extract_booking_data(text: str, today: Optional[date] = None) -> BookingData:
    """
    Extract every booking field present in one message.

    The employee is returned by name only; resolving it to an id needs the
    business roster and is done by the booking handler.

    Args:
        text: User message
        today: Reference date for relative expressions

    Returns:
        BookingData with whatever was found
    """
    data = BookingData(
        date=extract_date(text, today),
        time=extract_time(text),
        employee_name=extract_employee_name(text),
    )

    if data.has_any():
        logger.debug(
            f"Extracted booking data: date={data.date}, time={data.time}, "
            f"employee={data.employee_name}"
        )

    return data


def find_employee_by_name(name: str, employees: Sequence[Any]) -> Optional[Any]:
    """
    Find an employee by name.

    Exact match wins; otherwise the first employee whose name contains the
    query or is contained in it. Comparison ignores case and accents.

    Args:
        name: Name as typed by the customer
        employees: Objects with a ``name`` attribute

    Returns:
        Matching employee or None
    """
    wanted = _fold(name or "")
    if not wanted:
        return None

    for employee in employees:
        if _fold(employee.name) == wanted:
            return employee

    for employee in employees:
        candidate = _fold(employee.name)
        if wanted in candidate or candidate in wanted:
            return employee

    return None


def _matches_any(text: str, words: list[str]) -> bool:
    normalized = text.lower().strip()
    if not normalized:
        return False
    return any(normalized == word or word in normalized for word in words)


def is_affirmative(text: str) -> bool:
    """Check whether a reply means yes ("sí", "dale", "👍", "1", ...)."""
    return _matches_any(text or "", AFFIRMATIVE_WORDS)


def is_negative(text: str) -> bool:
    """Check whether a reply means no ("no", "cancelar", "👎", "0", ...)."""
    return _matches_any(text or "", NEGATIVE_WORDS)


def extract_selection(text: str, max_options: int) -> Optional[int]:
    """
    Pick a 1-based option number out of a reply.

    Only the first integer in the text is considered.

    Returns:
        The number if it lies within [1, max_options], else None
    """
    found = SELECTION_PATTERN.search(text or "")
    if not found:
        return None

    number = int(found.group(1))
    if 1 <= number <= max_options:
        return number
    return None
