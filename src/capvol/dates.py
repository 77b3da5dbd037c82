"""
Date utilities for cap/floor schedules.

Provides:
- Tenor parsing and tenor arithmetic
- Business day stepping
- Regular period generation for caplet schedules
"""

from datetime import date, timedelta
from typing import List, Optional, Tuple
import calendar
import re

from .conventions import (
    BusinessDayConvention,
    adjust_business_day,
    is_business_day,
)


class DateUtils:
    """Utility class for date manipulation in rates contexts."""

    # Tenor regex pattern: number + unit (D/W/M/Y)
    TENOR_PATTERN = re.compile(r'^(\d+)([DWMY])$', re.IGNORECASE)

    @staticmethod
    def parse_tenor(tenor: str) -> Tuple[int, str]:
        """
        Parse a tenor string into (amount, unit).

        Args:
            tenor: Tenor string like "1D", "3M", "2Y"

        Returns:
            Tuple of (amount, unit) where unit is D/W/M/Y

        Raises:
            ValueError: If tenor format is invalid
        """
        match = DateUtils.TENOR_PATTERN.match(tenor.upper().strip())
        if not match:
            raise ValueError(f"Invalid tenor format: {tenor}. Expected format like '3M', '2Y'")

        return int(match.group(1)), match.group(2).upper()

    @staticmethod
    def tenor_months(tenor: str) -> int:
        """Length of a month or year tenor in months."""
        amount, unit = DateUtils.parse_tenor(tenor)
        if unit == 'M':
            return amount
        if unit == 'Y':
            return 12 * amount
        raise ValueError(f"Tenor {tenor} is not expressed in months or years")

    @staticmethod
    def add_months(start: date, months: int) -> date:
        """Add calendar months, clipping the day to the target month length."""
        year = start.year + (start.month + months - 1) // 12
        month = (start.month + months - 1) % 12 + 1
        day = min(start.day, calendar.monthrange(year, month)[1])
        return date(year, month, day)

    @staticmethod
    def add_tenor(start: date, tenor: str, holidays: Optional[set] = None) -> date:
        """
        Add a tenor to a date.

        Days are business days; weeks, months and years are calendar periods.

        Args:
            start: Starting date
            tenor: Tenor string (e.g., "1D", "3M", "2Y")
            holidays: Optional holiday calendar

        Returns:
            End date (unadjusted for month and year tenors)
        """
        amount, unit = DateUtils.parse_tenor(tenor)

        if unit == 'D':
            return DateUtils.add_business_days(start, amount, holidays)
        if unit == 'W':
            return start + timedelta(weeks=amount)
        if unit == 'M':
            return DateUtils.add_months(start, amount)
        return DateUtils.add_months(start, 12 * amount)

    @staticmethod
    def add_business_days(start: date, days: int, holidays: Optional[set] = None) -> date:
        """Move a signed number of business days from start."""
        step = timedelta(days=1 if days >= 0 else -1)
        result = start
        moved = 0
        while moved < abs(days):
            result += step
            if is_business_day(result, holidays):
                moved += 1
        return result

    @staticmethod
    def tenor_to_years(tenor: str) -> float:
        """
        Convert tenor to approximate year fraction.

        Args:
            tenor: Tenor string

        Returns:
            Approximate years as float
        """
        amount, unit = DateUtils.parse_tenor(tenor)

        if unit == 'D':
            return amount / 365.0
        elif unit == 'W':
            return amount * 7 / 365.0
        elif unit == 'M':
            return amount / 12.0
        return float(amount)

    @staticmethod
    def generate_periods(
        start: date,
        end: date,
        tenor: str,
        convention: BusinessDayConvention = BusinessDayConvention.MODIFIED_FOLLOWING,
        holidays: Optional[set] = None
    ) -> List[Tuple[date, date]]:
        """
        Generate regular accrual periods forward from start.

        Unadjusted dates are rolled from the start date by whole multiples of
        the tenor so that month-end clipping does not accumulate. The last
        period is cut at end when the tenor does not divide the range.

        Args:
            start: Accrual start of the first period
            end: Accrual end of the last period
            tenor: Period length, e.g. "3M"
            convention: Business day adjustment for period boundaries
            holidays: Holiday calendar

        Returns:
            List of adjusted (start, end) pairs
        """
        if end <= start:
            raise ValueError(f"Schedule end {end} must be after start {start}")
        months = DateUtils.tenor_months(tenor)

        unadjusted = [start]
        k = 1
        while True:
            d = DateUtils.add_months(start, k * months)
            if d >= end:
                break
            unadjusted.append(d)
            k += 1
        unadjusted.append(end)

        adjusted = [unadjusted[0]] + [adjust_business_day(d, convention, holidays) for d in unadjusted[1:]]
        return list(zip(adjusted[:-1], adjusted[1:]))


__all__ = [
    "DateUtils",
]
