"""Tests for booking validation rules."""

from datetime import date, datetime, timedelta

import pytest

from app.core.scheduling.validation import (
    ValidationResult,
    combine_date_time,
    parse_time,
    validate_date,
    validate_date_time,
    validate_time,
)
from tests.conftest import NOW, TZ

TODAY = NOW.date()


class TestValidateDate:

    def test_today_is_valid(self):
        result = validate_date(TODAY, TODAY)

        assert result.valid
        assert result.normalized == TODAY

    def test_past_date(self):
        result = validate_date(TODAY - timedelta(days=1), TODAY)

        assert not result.valid
        assert "fechas pasadas" in result.error

    def test_horizon(self):
        assert validate_date(TODAY + timedelta(days=90), TODAY, horizon_days=90).valid

        result = validate_date(TODAY + timedelta(days=91), TODAY, horizon_days=90)
        assert not result.valid
        assert "90 días" in result.error

    def test_datetime_uses_calendar_day(self):
        assert validate_date(datetime(2026, 10, 15, 0, 1, tzinfo=TZ), TODAY).valid

    def test_not_a_date(self):
        assert not validate_date(None, TODAY).valid
        assert not validate_date("2026-10-20", TODAY).valid


class TestValidateTime:

    @pytest.mark.parametrize("value", ["00:00", "9:30", "23:59"])
    def test_valid(self, value):
        assert validate_time(value).valid

    @pytest.mark.parametrize("value", ["24:00", "10:60"])
    def test_out_of_range(self, value):
        result = validate_time(value)

        assert not result.valid
        assert "no es válida" in result.error

    def test_malformed(self):
        assert not validate_time("3pm").valid
        assert not validate_time(None).valid

    def test_business_hours(self):
        assert validate_time("09:00", ("09:00", "18:00")).valid
        assert not validate_time("18:00", ("09:00", "18:00")).valid

        result = validate_time("08:30", ("09:00", "18:00"))
        assert "09:00 a 18:00" in result.error


class TestValidateDateTime:

    def test_future_with_lead_time(self):
        result = validate_date_time(TODAY, "12:00", NOW, min_lead_minutes=60)

        assert result.valid
        assert result.normalized == datetime(2026, 10, 15, 12, 0, tzinfo=TZ)

    def test_past_instant(self):
        result = validate_date_time(TODAY, "09:00", NOW)

        assert not result.valid
        assert "ya pasó" in result.error

    def test_exactly_now_is_past(self):
        assert "ya pasó" in validate_date_time(TODAY, "10:00", NOW).error

    def test_inside_lead_time(self):
        result = validate_date_time(TODAY, "10:30", NOW, min_lead_minutes=60)

        assert not result.valid
        assert "anticipación" in result.error

    def test_lead_time_boundary(self):
        assert validate_date_time(TODAY, "11:00", NOW, min_lead_minutes=60).valid

    def test_bad_time(self):
        assert not validate_date_time(TODAY, "25:00", NOW).valid


class TestHelpers:

    def test_parse_time(self):
        assert parse_time("09:05") == (9, 5)
        assert parse_time("9") is None

    def test_combine_date_time(self):
        result = combine_date_time(date(2026, 10, 16), "15:00", TZ)

        assert result == datetime(2026, 10, 16, 15, 0, tzinfo=TZ)
        assert result.tzinfo is TZ

    def test_combine_rejects_bad_time(self):
        with pytest.raises(ValueError):
            combine_date_time(TODAY, "nope")

    def test_result_constructors(self):
        assert ValidationResult.ok(1).normalized == 1
        assert ValidationResult.fail("x").error == "x"
