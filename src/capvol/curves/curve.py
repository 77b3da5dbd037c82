"""
Discount curve representation.

The Curve class provides:
- Discount factor P(0,t)
- Zero rate z(t)
- Simple forward rate f(t1, t2)

Internal representation uses year fractions from the anchor date and
interpolates continuously compounded zero rates.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union
import numpy as np

from ..conventions import DayCount, year_fraction
from .interpolation import BoundInterpolator, FLAT, LINEAR


@dataclass
class CurveNode:
    """A single point on the curve."""
    time: float  # Year fraction from anchor
    discount_factor: float
    zero_rate: float  # Continuously compounded

    @classmethod
    def from_discount_factor(cls, time: float, df: float) -> "CurveNode":
        """Create node from discount factor."""
        if time <= 0:
            return cls(time=time, discount_factor=df, zero_rate=0.0)
        zr = -np.log(df) / time
        return cls(time=time, discount_factor=df, zero_rate=zr)


class Curve:
    """
    Discount curve with interpolation on zero rates.

    Attributes:
        anchor_date: Valuation date (time 0)
        currency: Currency code (default "USD")
        day_count: Day count for time calculations
        interpolation_method: Name of interpolation method

    Conventions:
        - Zero rates are continuously compounded
        - Times are year fractions from anchor date
        - Discount factor at t=0 is 1.0
        - Zero rates are held flat beyond the last node
    """

    def __init__(
        self,
        anchor_date: date,
        currency: str = "USD",
        day_count: DayCount = DayCount.ACT_365,
        interpolation_method: str = LINEAR
    ):
        self.anchor_date = anchor_date
        self.currency = currency
        self.day_count = day_count
        self.interpolation_method = interpolation_method

        self._nodes: List[CurveNode] = [CurveNode(time=0.0, discount_factor=1.0, zero_rate=0.0)]
        self._interpolator: Optional[BoundInterpolator] = None

    def add_node(self, time: float, discount_factor: float) -> None:
        """
        Add a discount factor node to the curve.

        Args:
            time: Year fraction from anchor date
            discount_factor: Discount factor P(0,t)
        """
        if time < 0:
            raise ValueError("Time must be non-negative")
        if discount_factor <= 0:
            raise ValueError(f"Invalid discount factor: {discount_factor}")

        node = CurveNode.from_discount_factor(time, discount_factor)
        for i, existing in enumerate(self._nodes):
            if abs(existing.time - time) < 1e-10:
                self._nodes[i] = node
                break
        else:
            self._nodes.append(node)
            self._nodes.sort(key=lambda n: n.time)
        self._interpolator = None

    def build(self) -> None:
        """
        Build the interpolator from current nodes.

        The t=0 node only anchors P(0,0)=1, so the short end holds the first
        positive node's zero rate.
        """
        nodes = [n for n in self._nodes if n.time > 0]
        if not nodes:
            raise ValueError("Need at least 1 node with positive time to build curve")
        times = np.array([n.time for n in nodes])
        zero_rates = np.array([n.zero_rate for n in nodes])
        self._interpolator = BoundInterpolator(times, zero_rates, self.interpolation_method, FLAT, FLAT)

    def _to_time(self, t: Union[float, date]) -> float:
        if isinstance(t, date):
            return year_fraction(self.anchor_date, t, self.day_count)
        return float(t)

    def zero_rate(self, t: Union[float, date]) -> float:
        """Continuously compounded zero rate z(t)."""
        if self._interpolator is None:
            self.build()
        return self._interpolator.value(max(self._to_time(t), 0.0))

    def discount_factor(self, t: Union[float, date]) -> float:
        """
        Get discount factor P(0,t).

        Args:
            t: Year fraction or date

        Returns:
            Discount factor
        """
        t = self._to_time(t)
        if t <= 0:
            return 1.0
        return float(np.exp(-self.zero_rate(t) * t))

    def forward_rate(self, t1: Union[float, date], t2: Union[float, date]) -> float:
        """
        Simply compounded forward rate between t1 and t2 on this curve's time basis.

        Args:
            t1: Start time (year fraction or date)
            t2: End time (year fraction or date)

        Returns:
            (P(t1)/P(t2) - 1) / (t2 - t1)
        """
        t1 = self._to_time(t1)
        t2 = self._to_time(t2)
        if t2 <= t1:
            raise ValueError("t2 must be greater than t1")
        return (self.discount_factor(t1) / self.discount_factor(t2) - 1) / (t2 - t1)

    def __repr__(self) -> str:
        return (f"Curve(anchor={self.anchor_date}, currency={self.currency}, "
                f"nodes={len(self._nodes)}, method={self.interpolation_method})")


def create_flat_curve(
    anchor_date: date,
    rate: float,
    max_tenor_years: float = 30.0,
    currency: str = "USD",
    day_count: DayCount = DayCount.ACT_365
) -> Curve:
    """
    Create a flat yield curve.

    Args:
        anchor_date: Valuation date
        rate: Flat continuously compounded rate
        max_tenor_years: Maximum tenor in years
        currency: Currency code
        day_count: Day count for time calculations

    Returns:
        Flat curve
    """
    curve = Curve(anchor_date, currency, day_count, interpolation_method=LINEAR)

    for t in [0.25, 0.5, 1, 2, 5, 10, 20, max_tenor_years]:
        curve.add_node(t, np.exp(-rate * t))

    curve.build()
    return curve


def create_curve_from_zero_rates(
    anchor_date: date,
    times: List[float],
    zero_rates: List[float],
    currency: str = "USD",
    day_count: DayCount = DayCount.ACT_365,
    interpolation_method: str = LINEAR
) -> Curve:
    """Create a curve from continuously compounded zero rates at the given times."""
    if len(times) != len(zero_rates):
        raise ValueError("Times and zero rates must have same length")
    curve = Curve(anchor_date, currency, day_count, interpolation_method)
    for t, z in zip(times, zero_rates):
        curve.add_node(t, np.exp(-z * t))
    curve.build()
    return curve


__all__ = [
    "Curve",
    "CurveNode",
    "create_flat_curve",
    "create_curve_from_zero_rates",
]
