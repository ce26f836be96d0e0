"""
Test suite for numeric and date utilities
"""

import pytest
from decimal import Decimal
from datetime import date, datetime, timezone

from ngna_soro.exceptions import InvalidArgumentError
from ngna_soro.utils import to_decimal, round_money, add_months, days_between, as_date


class TestRounding:
    """Test Decimal conversion and money rounding"""

    def test_to_decimal_avoids_float_artifacts(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("120000") == Decimal("120000")
        assert to_decimal(7) == Decimal("7")

    def test_round_half_up(self):
        assert round_money(Decimal("2.675")) == Decimal("2.68")
        assert round_money(Decimal("2.665")) == Decimal("2.67")
        assert round_money(Decimal("-1.005")) == Decimal("-1.01")

    def test_round_keeps_two_places(self):
        assert str(round_money(500)) == "500.00"


class TestAddMonths:
    """Test calendar month arithmetic"""

    def test_same_day_next_month(self):
        assert add_months(date(2024, 1, 15), 1) == date(2024, 2, 15)

    def test_year_rollover(self):
        assert add_months(date(2024, 1, 15), 12) == date(2025, 1, 15)
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)

    def test_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 1, 31), 3) == date(2024, 4, 30)

    def test_offsets_from_original_day(self):
        """Months after a short month go back to the original day"""
        assert add_months(date(2024, 1, 31), 2) == date(2024, 3, 31)


class TestDates:
    """Test day counting and date normalization"""

    def test_days_between(self):
        assert days_between(date(2024, 1, 1), date(2024, 1, 9)) == 8
        assert days_between(date(2024, 1, 1), date(2024, 2, 5)) == 35
        assert days_between(date(2024, 1, 9), date(2024, 1, 1)) == -8

    def test_as_date_accepts_datetime_and_strings(self):
        assert as_date(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)) == date(2024, 1, 15)
        assert as_date("2024-01-15") == date(2024, 1, 15)
        assert as_date("2024-01-15T08:00:00+00:00") == date(2024, 1, 15)

    def test_as_date_rejects_other_types(self):
        with pytest.raises(TypeError):
            as_date(20240115)


class TestInvalidNumbers:
    """Test rejection of malformed amounts"""

    def test_to_decimal_rejects_text(self):
        with pytest.raises(InvalidArgumentError):
            to_decimal("cent mille")
