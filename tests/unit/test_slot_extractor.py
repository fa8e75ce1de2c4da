"""Tests for date, time and reply extraction."""

from datetime import date, timedelta

import pytest

from app.core.intelligence.slots import (
    BookingData,
    extract_booking_data,
    extract_date,
    extract_employee_name,
    extract_selection,
    extract_time,
    find_employee_by_name,
    get_next_weekday,
    is_affirmative,
    is_negative,
    normalize_time,
)
from app.core.scheduling.store import Employee

# Thursday
TODAY = date(2026, 10, 15)


class TestExtractDate:
    """Test Spanish date expressions."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("hoy", date(2026, 10, 15)),
            ("mañana", date(2026, 10, 16)),
            ("Manana", date(2026, 10, 16)),
            ("pasado mañana", date(2026, 10, 17)),
            ("el viernes", date(2026, 10, 16)),
            ("el próximo lunes", date(2026, 10, 19)),
            ("sabado", date(2026, 10, 17)),
            ("20 de noviembre", date(2026, 11, 20)),
            ("20 de noviembre de 2027", date(2027, 11, 20)),
            ("25/12/2026", date(2026, 12, 25)),
            ("25/12/26", date(2026, 12, 25)),
        ],
    )
    def test_expressions(self, text, expected):
        assert extract_date(text, TODAY) == expected

    def test_same_weekday_means_next_week(self):
        assert extract_date("jueves", TODAY) == date(2026, 10, 22)

    def test_past_month_day_rolls_to_next_year(self):
        assert extract_date("5 de octubre", TODAY) == date(2027, 10, 5)
        assert extract_date("primero de marzo", TODAY) == date(2027, 3, 1)

    def test_morning_is_not_tomorrow(self):
        assert extract_date("a las 10 de la mañana", TODAY) is None

    def test_impossible_numeric_date(self):
        assert extract_date("31/02/2026", TODAY) is None

    def test_nothing_recognisable(self):
        assert extract_date("quiero un turno", TODAY) is None
        assert extract_date("", TODAY) is None

    def test_numeric_date_is_idempotent(self):
        """Formatting a parsed date back to DD/MM/YYYY parses to the same date."""
        for offset in range(0, 400, 37):
            day = TODAY + timedelta(days=offset)
            assert extract_date(day.strftime("%d/%m/%Y"), TODAY) == day

    def test_next_weekday_always_within_a_week(self):
        for offset in range(7):
            today = TODAY + timedelta(days=offset)
            for weekday in range(7):
                result = get_next_weekday(weekday, today)
                assert result.weekday() == weekday
                assert 1 <= (result - today).days <= 7


class TestExtractTime:
    """Test time-of-day expressions."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("a las 3pm", "15:00"),
            ("a las 3 pm", "15:00"),
            ("a las 10:30", "10:30"),
            ("a las 2 de la tarde", "14:00"),
            ("a las 9 de la noche", "21:00"),
            ("a las 10 de la mañana", "10:00"),
            ("15:30", "15:30"),
            ("10:30 am", "10:30"),
            ("3pm", "15:00"),
            ("12am", "00:00"),
            ("12pm", "12:00"),
            ("18hs", "18:00"),
            ("9h", "09:00"),
        ],
    )
    def test_expressions(self, text, expected):
        assert extract_time(text) == expected

    def test_out_of_range_is_none(self):
        assert extract_time("a las 25") is None
        assert extract_time("10:75") is None

    def test_out_of_range_falls_through_to_next_form(self):
        assert extract_time("a las 25, si no 10:30") == "10:30"
        assert extract_time("10:75 o 18hs") == "18:00"

    def test_no_time(self):
        assert extract_time("mañana") is None
        assert extract_time("2") is None

    def test_normalize_time(self):
        assert normalize_time(3, 0, "pm") == "15:00"
        assert normalize_time(12, 15, "am") == "00:15"
        assert normalize_time(9, 5) == "09:05"
        assert normalize_time(24, 0) is None


class TestBookingExtraction:
    """Test whole-message extraction and employee lookup."""

    @pytest.fixture
    def employees(self):
        return [
            Employee(id="e1", business_id="b", name="Ana García"),
            Employee(id="e2", business_id="b", name="José Pérez"),
        ]

    def test_full_request(self):
        data = extract_booking_data("quiero turno mañana a las 3pm con Ana", TODAY)

        assert data.date == date(2026, 10, 16)
        assert data.time == "15:00"
        assert data.employee_name == "Ana"
        assert data.employee_id is None

    def test_partial_request(self):
        data = extract_booking_data("quiero un turno", TODAY)

        assert not data.has_any()

    def test_employee_name(self):
        assert extract_employee_name("con Luis por favor") == "Luis"
        assert extract_employee_name("profesional maría") == "maría"
        assert extract_employee_name("cualquiera") is None

    def test_find_exact_and_partial(self, employees):
        assert find_employee_by_name("ana garcía", employees).id == "e1"
        assert find_employee_by_name("Ana", employees).id == "e1"
        assert find_employee_by_name("quiero con jose perez", employees).id == "e2"

    def test_find_ignores_accents(self, employees):
        assert find_employee_by_name("Jose", employees).id == "e2"

    def test_find_no_match(self, employees):
        assert find_employee_by_name("Luis", employees) is None
        assert find_employee_by_name("", employees) is None


class TestReplies:
    """Test yes/no and numbered selection."""

    @pytest.mark.parametrize("text", ["si", "Sí", "dale", "OK", "confirmo", "👍", "1"])
    def test_affirmative(self, text):
        assert is_affirmative(text)

    @pytest.mark.parametrize("text", ["no", "No gracias", "cancelar", "👎", "0"])
    def test_negative(self, text):
        assert is_negative(text)

    def test_neither(self):
        assert not is_affirmative("tal vez")
        assert not is_negative("tal vez")
        assert not is_affirmative("")

    def test_selection(self):
        assert extract_selection("2", 3) == 2
        assert extract_selection("la 3 por favor", 3) == 3
        assert extract_selection("1️⃣", 4) == 1

    def test_selection_out_of_range(self):
        assert extract_selection("4", 3) is None
        assert extract_selection("0", 3) is None
        assert extract_selection("ninguno", 3) is None


class TestBookingData:
    """Test the partial booking record."""

    def test_complete(self):
        assert BookingData(date=TODAY, time="10:00", employee_id="e1").is_complete
        assert not BookingData(date=TODAY, time="10:00").is_complete

    def test_dict_round_trip(self):
        data = BookingData(date=TODAY, time="10:00", employee_id="e1", employee_name="Ana")

        assert data.to_dict()["date"] == "2026-10-15"
        assert BookingData.from_dict(data.to_dict()) == data
        assert BookingData.from_dict(None) == BookingData()
