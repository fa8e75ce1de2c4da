"""
Spanish date extraction.

Each recognised form is a DatePattern: one regex plus the resolver that
turns its match into a calendar date relative to "today". Patterns are
tried in order and the first one that resolves wins.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Optional

from app.core.clock import local_today

logger = logging.getLogger(__name__)


# date.weekday() numbering (Monday=0)
WEEKDAYS: dict[str, int] = {
    "lunes": 0,
    "martes": 1,
    "miércoles": 2,
    "miercoles": 2,
    "jueves": 3,
    "viernes": 4,
    "sábado": 5,
    "sabado": 5,
    "domingo": 6,
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

MONTHS: dict[str, int] = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "septiembre": 9,
    "setiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
}

# Word forms accepted as day-of-month, up to the tenth
DAY_WORDS: dict[str, int] = {
    "primero": 1,
    "primer": 1,
    "uno": 1,
    "segundo": 2,
    "dos": 2,
    "tercero": 3,
    "tercer": 3,
    "tres": 3,
    "cuarto": 4,
    "cuatro": 4,
    "quinto": 5,
    "cinco": 5,
    "sexto": 6,
    "seis": 6,
    "séptimo": 7,
    "septimo": 7,
    "siete": 7,
    "octavo": 8,
    "ocho": 8,
    "noveno": 9,
    "nueve": 9,
    "décimo": 10,
    "decimo": 10,
    "diez": 10,
}


def _alternation(words) -> str:
    """Regex alternation, longest first so prefixes never shadow full words."""
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


@dataclass(frozen=True)
class DatePattern:
    """A single date form: regex plus resolver."""

    name: str
    regex: re.Pattern
    resolve: Callable[[re.Match, date], Optional[date]]

    def match(self, text: str, today: date) -> Optional[date]:
        """Resolve the first occurrence of this form in text, if any."""
        found = self.regex.search(text)
        if not found:
            return None
        return self.resolve(found, today)


def get_next_weekday(weekday: int, today: Optional[date] = None) -> date:
    """
    Next occurrence of a weekday, strictly after today.

    Naming today's weekday yields the same day next week.

    Args:
        weekday: date.weekday() number (Monday=0)
        today: Reference date (defaults to business-local today)

    Returns:
        A date between 1 and 7 days after today
    """
    today = today or local_today()
    days_ahead = weekday - today.weekday()
    if days_ahead <= 0:
        days_ahead += 7
    return today + timedelta(days=days_ahead)


def _resolve_numeric(found: re.Match, today: date) -> Optional[date]:
    day, month, year = (int(g) for g in found.groups())
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _resolve_month_name(found: re.Match, today: date) -> Optional[date]:
    raw_day, raw_month, raw_year = found.groups()
    day = int(raw_day) if raw_day.isdigit() else DAY_WORDS[raw_day]
    month = MONTHS[raw_month]
    year = int(raw_year) if raw_year else today.year

    try:
        result = date(year, month, day)
        # Already gone this year and no year given: they mean next year
        if raw_year is None and result < today:
            result = date(year + 1, month, day)
    except ValueError:
        return None
    return result


def _resolve_weekday(found: re.Match, today: date) -> Optional[date]:
    return get_next_weekday(WEEKDAYS[found.group(1)], today)


DATE_PATTERNS: list[DatePattern] = [
    DatePattern(
        name="numeric",
        regex=re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})\b"),
        resolve=_resolve_numeric,
    ),
    DatePattern(
        name="month_name",
        regex=re.compile(
            rf"\b(\d{{1,2}}|{_alternation(DAY_WORDS)})\s+de\s+"
            rf"({_alternation(MONTHS)})\b"
            r"(?:\s+(?:de|del)\s+(\d{4}))?"
        ),
        resolve=_resolve_month_name,
    ),
    DatePattern(
        name="day_after_tomorrow",
        regex=re.compile(r"\bpasado\s+ma[ñn]ana\b"),
        resolve=lambda found, today: today + timedelta(days=2),
    ),
    DatePattern(
        name="today",
        regex=re.compile(r"\b(?:hoy|today)\b"),
        resolve=lambda found, today: today,
    ),
    DatePattern(
        name="tomorrow",
        # "de la mañana" / "por la mañana" is a time of day, not a date
        regex=re.compile(r"(?<!la )\b(?:mañana|manana|tomorrow)\b"),
        resolve=lambda found, today: today + timedelta(days=1),
    ),
    DatePattern(
        name="weekday",
        regex=re.compile(
            r"\b(?:(?:pr[oó]xim[oa]|este|esta|next|this)\s+)?"
            rf"({_alternation(WEEKDAYS)})\b"
        ),
        resolve=_resolve_weekday,
    ),
]


def extract_date(text: str, today: Optional[date] = None) -> Optional[date]:
    """
    Extract a calendar date from free text.

    Understands "hoy", "mañana", "pasado mañana", weekday names
    ("viernes", "el próximo lunes"), "20 de noviembre [de 2026]",
    "primero de marzo" and DD/MM/YYYY or DD/MM/YY.

    Args:
        text: User message
        today: Reference date (defaults to business-local today)

    Returns:
        The date, or None when nothing recognisable was found
    """
    if not text:
        return None

    today = today or local_today()
    normalized = text.lower().strip()

    for pattern in DATE_PATTERNS:
        result = pattern.match(normalized, today)
        if result is not None:
            logger.debug(f"Date pattern '{pattern.name}' matched: {result}")
            return result

    return None
