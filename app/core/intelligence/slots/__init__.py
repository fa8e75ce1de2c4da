"""Booking data extraction module."""

from .types import BookingData, DataCollectionStep
from .dates import DatePattern, DATE_PATTERNS, extract_date, get_next_weekday
from .times import TimePattern, TIME_PATTERNS, extract_time, normalize_time
from .extractor import (
    extract_booking_data,
    extract_employee_name,
    extract_selection,
    find_employee_by_name,
    is_affirmative,
    is_negative,
)

__all__ = [
    # Types
    "BookingData",
    "DataCollectionStep",
    # Dates
    "DatePattern",
    "DATE_PATTERNS",
    "extract_date",
    "get_next_weekday",
    # Times
    "TimePattern",
    "TIME_PATTERNS",
    "extract_time",
    "normalize_time",
    # Extractor
    "extract_booking_data",
    "extract_employee_name",
    "extract_selection",
    "find_employee_by_name",
    "is_affirmative",
    "is_negative",
]
