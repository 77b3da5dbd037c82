"""
Unit tests for dates module.
"""

from datetime import date
import pytest

from capvol.dates import DateUtils


class TestDateUtils:
    """Tests for DateUtils class."""

    def test_parse_tenor(self):
        """Test parsing tenors of every unit."""
        assert DateUtils.parse_tenor("3M") == (3, 'M')
        assert DateUtils.parse_tenor("10Y") == (10, 'Y')
        assert DateUtils.parse_tenor("2W") == (2, 'W')
        assert DateUtils.parse_tenor("5y") == (5, 'Y')

    def test_parse_tenor_invalid(self):
        """Test invalid tenor raises error."""
        with pytest.raises(ValueError):
            DateUtils.parse_tenor("invalid")
        with pytest.raises(ValueError):
            DateUtils.parse_tenor("3X")

    def test_tenor_months(self):
        """Test month length of month and year tenors."""
        assert DateUtils.tenor_months("18M") == 18
        assert DateUtils.tenor_months("2Y") == 24
        with pytest.raises(ValueError):
            DateUtils.tenor_months("1W")

    def test_add_tenor(self):
        """Test adding month and year tenors."""
        base = date(2024, 1, 15)
        assert DateUtils.add_tenor(base, "3M") == date(2024, 4, 15)
        assert DateUtils.add_tenor(base, "5Y") == date(2029, 1, 15)

    def test_add_months_clips_month_end(self):
        """Test adding a month at the end of January."""
        assert DateUtils.add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_add_business_days(self):
        """Test business day steps skip weekends."""
        assert DateUtils.add_business_days(date(2024, 1, 12), 1) == date(2024, 1, 15)
        assert DateUtils.add_business_days(date(2024, 1, 15), -1) == date(2024, 1, 12)

    def test_tenor_to_years(self):
        """Test converting tenor to years."""
        assert abs(DateUtils.tenor_to_years("1Y") - 1.0) < 1e-10
        assert abs(DateUtils.tenor_to_years("18M") - 1.5) < 1e-10


class TestPeriodGeneration:
    """Tests for accrual period generation."""

    def test_quarterly_periods(self):
        """A one year range has four quarterly periods."""
        periods = DateUtils.generate_periods(date(2024, 1, 17), date(2025, 1, 17), "3M")
        assert len(periods) == 4
        assert periods[0][0] == date(2024, 1, 17)
        assert periods[-1][1] == date(2025, 1, 17)
        for (_, end), (start, _) in zip(periods[:-1], periods[1:]):
            assert end == start

    def test_periods_are_adjusted(self):
        """Period ends falling on a weekend are moved to a business day."""
        periods = DateUtils.generate_periods(date(2024, 1, 17), date(2026, 1, 17), "3M")
        for start, end in periods:
            assert end.weekday() < 5

    def test_invalid_range(self):
        """End before start raises."""
        with pytest.raises(ValueError):
            DateUtils.generate_periods(date(2025, 1, 1), date(2024, 1, 1), "3M")
