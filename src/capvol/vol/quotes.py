"""
Cap/floor volatility quote handling and loading.

RawOptionData holds a grid of quotes by (expiry tenor, strike):
- Black (optionally shifted) or Normal implied volatilities, or prices
- Missing cells are NaN and are skipped by calibration
- An optional error matrix gives per-quote measurement errors
- A grid without strikes is a flat (ATM) grid with one column

Provides utilities for:
- Loading quotes from CSV or a long-format DataFrame
- Exporting to a long-format DataFrame
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np
import pandas as pd

from ..curves.metadata import ValueType
from ..dates import DateUtils


QUOTE_TYPES = (ValueType.BLACK_VOLATILITY, ValueType.NORMAL_VOLATILITY, ValueType.PRICE)


def _to_cells(matrix: Any, shape: Tuple[int, int], label: str) -> Tuple[Tuple[Optional[float], ...], ...]:
    values = np.asarray(matrix, dtype=np.float64)
    if values.ndim == 1 and shape[1] == 1:
        values = values.reshape(-1, 1)
    if values.shape != shape:
        raise ValueError(f"{label} shape {values.shape} does not match grid shape {shape}")
    return tuple(
        tuple(None if np.isnan(v) else float(v) for v in row)
        for row in values
    )


@dataclass(frozen=True)
class RawOptionData:
    """
    Grid of cap/floor quotes.

    Attributes:
        expiries: Cap tenors (e.g. "1Y", "18M"), strictly increasing
        strikes: Strictly increasing strikes; empty for a flat (ATM) grid
        data_type: BLACK_VOLATILITY, NORMAL_VOLATILITY or PRICE
        data: Rows per expiry, columns per strike (one column if flat);
            None marks a missing quote
        error: Optional matrix of quote errors with the same layout
        shift: Shift of shifted Black quotes
    """
    expiries: Tuple[str, ...]
    strikes: Tuple[float, ...]
    data_type: ValueType
    data: Tuple[Tuple[Optional[float], ...], ...]
    error: Optional[Tuple[Tuple[Optional[float], ...], ...]] = None
    shift: float = 0.0

    def __post_init__(self):
        expiries = tuple(str(e).strip().upper() for e in self.expiries)
        strikes = tuple(float(k) for k in self.strikes)
        if len(expiries) == 0:
            raise ValueError("Quote grid needs at least one expiry")
        years = [DateUtils.tenor_to_years(e) for e in expiries]
        if any(b <= a for a, b in zip(years[:-1], years[1:])):
            raise ValueError(f"Expiries must be strictly increasing, got {expiries}")
        if any(b <= a for a, b in zip(strikes[:-1], strikes[1:])):
            raise ValueError(f"Strikes must be strictly increasing, got {strikes}")
        if self.data_type not in QUOTE_TYPES:
            raise ValueError(f"Unsupported quote type: {self.data_type}")

        shape = (len(expiries), max(1, len(strikes)))
        data = _to_cells(self.data, shape, "Data")
        error = None
        if self.error is not None:
            error = _to_cells(self.error, shape, "Error")
            for row_d, row_e in zip(data, error):
                for d, e in zip(row_d, row_e):
                    if d is not None and (e is None or e <= 0):
                        raise ValueError("Errors must be positive wherever data is present")

        object.__setattr__(self, 'expiries', expiries)
        object.__setattr__(self, 'strikes', strikes)
        object.__setattr__(self, 'data', data)
        object.__setattr__(self, 'error', error)
        object.__setattr__(self, 'shift', float(self.shift))

    @classmethod
    def of(
        cls,
        expiries: Sequence[str],
        strikes: Sequence[float],
        data_type: ValueType,
        data: Any,
        error: Any = None,
        shift: float = 0.0
    ) -> "RawOptionData":
        """Create from array-like data; NaN marks a missing quote."""
        return cls(tuple(expiries), tuple(strikes), data_type, data, error, shift)

    @property
    def is_flat(self) -> bool:
        """True for a grid without strikes (one ATM quote per expiry)."""
        return len(self.strikes) == 0

    @property
    def values(self) -> np.ndarray:
        """Data as a float matrix with NaN for missing quotes."""
        return np.array(self.data, dtype=np.float64)

    @property
    def errors(self) -> Optional[np.ndarray]:
        return None if self.error is None else np.array(self.error, dtype=np.float64)

    @property
    def quote_count(self) -> int:
        return int(np.sum(~np.isnan(self.values)))

    def available_smile_at_expiry(self, expiry_index: int) -> Tuple[np.ndarray, np.ndarray]:
        """(strikes, values) of the non-missing quotes for one expiry."""
        row = self.values[expiry_index]
        mask = ~np.isnan(row)
        if self.is_flat:
            return np.array([]), row[mask]
        return np.array(self.strikes)[mask], row[mask]

    def to_dataframe(self) -> pd.DataFrame:
        """
        Long-format table of the available quotes.

        Columns: expiry, strike (NaN for a flat grid), value, error
        """
        rows: List[Dict[str, Any]] = []
        for i, expiry in enumerate(self.expiries):
            for j, value in enumerate(self.data[i]):
                if value is None:
                    continue
                rows.append({
                    'expiry': expiry,
                    'strike': np.nan if self.is_flat else self.strikes[j],
                    'value': value,
                    'error': np.nan if self.error is None else self.error[i][j],
                })
        return pd.DataFrame(rows, columns=['expiry', 'strike', 'value', 'error'])

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        data_type: ValueType,
        shift: float = 0.0
    ) -> "RawOptionData":
        """
        Build a grid from a long-format DataFrame.

        Required columns: expiry, value. Optional: strike (absent or all NaN
        for a flat grid), error. Expiries are ordered by tenor length.
        """
        df = df.copy()
        df.columns = [c.strip().lower() for c in df.columns]
        if 'expiry' not in df.columns or 'value' not in df.columns:
            raise ValueError("Quote table needs 'expiry' and 'value' columns")
        df['expiry'] = df['expiry'].astype(str).str.strip().str.upper()
        expiries = sorted(df['expiry'].unique(), key=DateUtils.tenor_to_years)

        flat = 'strike' not in df.columns or df['strike'].isna().all()
        has_error = 'error' in df.columns and not df['error'].isna().all()
        if flat:
            grouped = df.groupby('expiry')
            if (grouped.size() > 1).any():
                raise ValueError("Flat quote table has more than one quote for an expiry")
            values = grouped['value'].first().reindex(expiries).to_numpy().reshape(-1, 1)
            errors = grouped['error'].first().reindex(expiries).to_numpy().reshape(-1, 1) if has_error else None
            return cls.of(expiries, (), data_type, values, errors, shift)

        strikes = sorted(df['strike'].astype(float).unique())
        table = df.pivot_table(index='expiry', columns='strike', values='value', aggfunc='first')
        values = table.reindex(index=expiries, columns=strikes).to_numpy()
        errors = None
        if has_error:
            err_table = df.pivot_table(index='expiry', columns='strike', values='error', aggfunc='first')
            errors = err_table.reindex(index=expiries, columns=strikes).to_numpy()
        return cls.of(expiries, strikes, data_type, values, errors, shift)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            'expiries': list(self.expiries),
            'strikes': list(self.strikes),
            'data_type': self.data_type.value,
            'data': [list(row) for row in self.data],
            'error': None if self.error is None else [list(row) for row in self.error],
            'shift': self.shift,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawOptionData":
        """Deserialize from dictionary; None cells become missing quotes."""
        return cls.of(
            data['expiries'],
            data['strikes'],
            ValueType(data['data_type']),
            data['data'],
            data.get('error'),
            data.get('shift', 0.0),
        )


def load_option_data(
    filepath: str,
    data_type: ValueType = ValueType.BLACK_VOLATILITY,
    shift: float = 0.0
) -> RawOptionData:
    """
    Load a quote grid from a long-format CSV file.

    Expected CSV format:
    expiry, strike, value[, error]

    Args:
        filepath: Path to CSV file
        data_type: Quote type of the value column
        shift: Shift of shifted Black quotes

    Returns:
        RawOptionData
    """
    return RawOptionData.from_dataframe(pd.read_csv(filepath), data_type, shift)


__all__ = [
    "RawOptionData",
    "load_option_data",
]
