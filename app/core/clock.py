"""Business-local time helpers.

Everything conversational (relative dates, lead time, same-day slot
filtering) is evaluated in the business timezone, not UTC.
"""

from datetime import date, datetime
from typing import Callable

from app.config import settings

# Zero-argument callable returning an aware "now"; injected into handlers.
Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Current time in the business timezone."""
    return datetime.now(settings.tzinfo)


def local_today() -> date:
    """Current calendar date in the business timezone."""
    return local_now().date()
