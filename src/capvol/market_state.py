"""
Rates market state.

RatesProvider supplies what cap/floor pricing needs from the rates market:
- Discount factors to payment dates
- Ibor forward rates for a fixing date

Forwarding curves are looked up by index name and fall back to the
discount curve (single-curve setup).
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional

from .conventions import year_fraction
from .curves.curve import Curve
from .index import IborIndex


@dataclass
class RatesProvider:
    """
    Encapsulates curve market data.

    Attributes:
        valuation_date: Market valuation date
        discount_curve: Curve for discounting
        forward_curves: Forwarding curves keyed by index name
    """
    valuation_date: date
    discount_curve: Curve
    forward_curves: Dict[str, Curve] = field(default_factory=dict)

    def __post_init__(self):
        if self.discount_curve.anchor_date != self.valuation_date:
            raise ValueError(
                f"Discount curve anchor {self.discount_curve.anchor_date} "
                f"differs from valuation date {self.valuation_date}"
            )

    def discount_factor(self, payment_date: date) -> float:
        """Discount factor from the valuation date to payment_date."""
        return self.discount_curve.discount_factor(payment_date)

    def forward_curve(self, index: IborIndex) -> Curve:
        """Forwarding curve of an index."""
        return self.forward_curves.get(index.name, self.discount_curve)

    def ibor_rate(self, index: IborIndex, fixing_date: date) -> float:
        """
        Forward rate of the index fixing on fixing_date.

        The rate is simply compounded over the index period under the index
        day count.
        """
        start = index.effective_date(fixing_date)
        end = index.maturity_date(fixing_date)
        accrual = year_fraction(start, end, index.day_count)
        curve = self.forward_curve(index)
        return (curve.discount_factor(start) / curve.discount_factor(end) - 1.0) / accrual

    def with_forward_curve(self, index: IborIndex, curve: Optional[Curve]) -> "RatesProvider":
        """Copy with the forwarding curve of an index replaced (None removes it)."""
        curves = dict(self.forward_curves)
        if curve is None:
            curves.pop(index.name, None)
        else:
            curves[index.name] = curve
        return RatesProvider(self.valuation_date, self.discount_curve, curves)


__all__ = [
    "RatesProvider",
]
