"""
Ibor index definitions.

An Ibor index fixes on a fixing date, accrues from the effective date
(spot lag business days later) to the maturity date (one index tenor
after the effective date, modified following) under the index day count.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict

from .conventions import (
    BusinessDayConvention,
    DayCount,
    adjust_business_day,
    year_fraction,
)
from .dates import DateUtils


@dataclass(frozen=True)
class IborIndex:
    """
    Ibor index description.

    Attributes:
        name: Index name, e.g. "USD-LIBOR-3M"
        currency: Currency code
        tenor: Index tenor, e.g. "3M"
        day_count: Accrual day count
        fixing_offset_days: Business days from fixing to effective date
    """
    name: str
    currency: str
    tenor: str
    day_count: DayCount = DayCount.ACT_360
    fixing_offset_days: int = 2

    def __post_init__(self):
        DateUtils.tenor_months(self.tenor)
        if self.fixing_offset_days < 0:
            raise ValueError(f"Fixing offset must be non-negative, got {self.fixing_offset_days}")

    def effective_date(self, fixing_date: date) -> date:
        """Accrual start for a given fixing date."""
        return DateUtils.add_business_days(fixing_date, self.fixing_offset_days)

    def fixing_date(self, effective_date: date) -> date:
        """Fixing date for a given accrual start."""
        adjusted = adjust_business_day(effective_date, BusinessDayConvention.FOLLOWING)
        return DateUtils.add_business_days(adjusted, -self.fixing_offset_days)

    def maturity_date(self, fixing_date: date) -> date:
        """Accrual end for a given fixing date."""
        end = DateUtils.add_tenor(self.effective_date(fixing_date), self.tenor)
        return adjust_business_day(end, BusinessDayConvention.MODIFIED_FOLLOWING)

    def accrual_year_fraction(self, fixing_date: date) -> float:
        """Year fraction of the rate period starting at the fixing's effective date."""
        return year_fraction(
            self.effective_date(fixing_date), self.maturity_date(fixing_date), self.day_count
        )

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return {
            'name': self.name,
            'currency': self.currency,
            'tenor': self.tenor,
            'day_count': self.day_count.value,
            'fixing_offset_days': self.fixing_offset_days,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "IborIndex":
        """Deserialize from dictionary."""
        return cls(
            name=data['name'],
            currency=data['currency'],
            tenor=data['tenor'],
            day_count=DayCount.from_string(data['day_count']),
            fixing_offset_days=int(data['fixing_offset_days']),
        )


USD_LIBOR_3M = IborIndex("USD-LIBOR-3M", "USD", "3M", DayCount.ACT_360, 2)
USD_LIBOR_6M = IborIndex("USD-LIBOR-6M", "USD", "6M", DayCount.ACT_360, 2)
EUR_EURIBOR_3M = IborIndex("EUR-EURIBOR-3M", "EUR", "3M", DayCount.ACT_360, 2)
EUR_EURIBOR_6M = IborIndex("EUR-EURIBOR-6M", "EUR", "6M", DayCount.ACT_360, 2)
GBP_LIBOR_3M = IborIndex("GBP-LIBOR-3M", "GBP", "3M", DayCount.ACT_365, 0)


__all__ = [
    "IborIndex",
    "USD_LIBOR_3M",
    "USD_LIBOR_6M",
    "EUR_EURIBOR_3M",
    "EUR_EURIBOR_6M",
    "GBP_LIBOR_3M",
]
