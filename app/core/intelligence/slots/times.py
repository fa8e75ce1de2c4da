"""
Time-of-day extraction.

Ordered TimePattern cascade; every pattern exposes named groups
hour/minute/period so one normalizer serves them all.
"""

import re
from dataclasses import dataclass
from typing import Optional

# Day parts that imply a period when no am/pm is given
DAYPART_PERIODS = {
    "mañana": "am",
    "manana": "am",
    "tarde": "pm",
    "noche": "pm",
}


def normalize_time(
    hour: int,
    minute: int = 0,
    period: Optional[str] = None,
) -> Optional[str]:
    """
    Convert hour/minute/period to zero-padded 24h "HH:MM".

    Returns:
        "HH:MM", or None when minute > 59 or the hour ends outside 0-23
    """
    if period == "pm" and hour < 12:
        hour += 12
    elif period == "am" and hour == 12:
        hour = 0

    if minute > 59 or hour < 0 or hour > 23:
        return None

    return f"{hour:02d}:{minute:02d}"


@dataclass(frozen=True)
class TimePattern:
    """A single time form."""

    name: str
    regex: re.Pattern

    def match(self, text: str) -> Optional[re.Match]:
        """First occurrence of this form in text."""
        return self.regex.search(text)

    def normalize(self, found: re.Match) -> Optional[str]:
        """Turn a match into "HH:MM"."""
        groups = found.groupdict()
        minute = int(groups["minute"]) if groups.get("minute") else 0
        period = groups.get("period")
        if not period and groups.get("daypart"):
            period = DAYPART_PERIODS[groups["daypart"]]
        return normalize_time(int(groups["hour"]), minute, period)


TIME_PATTERNS: list[TimePattern] = [
    TimePattern(
        name="a_las",
        regex=re.compile(
            r"a\s+las?\s+(?P<hour>\d{1,2})(?::?(?P<minute>\d{2}))?(?:\s?(?P<period>am|pm)\b)?"
            r"(?:\s+de\s+la\s+(?P<daypart>mañana|manana|tarde|noche))?"
        ),
    ),
    TimePattern(
        name="clock",
        regex=re.compile(r"\b(?P<hour>\d{1,2}):(?P<minute>\d{2})(?:\s?(?P<period>am|pm))?\b"),
    ),
    TimePattern(
        name="hour_period",
        regex=re.compile(r"\b(?P<hour>\d{1,2})\s?(?P<period>am|pm)\b"),
    ),
    TimePattern(
        name="hours_suffix",
        regex=re.compile(r"\b(?P<hour>[0-2]?[0-9])hs?\b"),
    ),
]


def extract_time(text: str) -> Optional[str]:
    """
    Extract a time of day as 24h "HH:MM".

    Patterns are tried in order. A match with an out-of-range value is
    skipped and the next pattern gets its turn.

    Examples:
        "a las 3pm" -> "15:00"
        "10:30 am" -> "10:30"
        "a las 2 de la tarde" -> "14:00"
        "18hs" -> "18:00"
    """
    if not text:
        return None

    normalized = text.lower().strip()

    for pattern in TIME_PATTERNS:
        found = pattern.match(normalized)
        if not found:
            continue
        result = pattern.normalize(found)
        if result:
            return result

    return None
