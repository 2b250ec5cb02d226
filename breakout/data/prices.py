"""
Immutable log-price series and bounded windows into it.

A PriceSeries is created once (by the market file loader or directly
from an array) and is read-only for the whole run. Components never
receive raw offsets into a shared buffer: they receive a PriceWindow,
which carries its own start and length and checks every access.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd


class PriceSeries:
    """
    Ordered, immutable sequence of natural-log prices.

    The underlying numpy array has its writeable flag cleared, so any
    attempt to mutate prices after loading raises.
    """

    def __init__(
        self,
        log_prices: Sequence[float],
        dates: Optional[pd.DatetimeIndex] = None,
    ):
        """
        Initialize price series.

        Args:
            log_prices: Natural-log prices in chronological order
            dates: Optional dates aligned with the prices
        """
        values = np.array(log_prices, dtype=float)
        if values.ndim != 1:
            raise ValueError("Log prices must be one-dimensional")
        if not np.all(np.isfinite(values)):
            raise ValueError("Log prices must be finite")
        if dates is not None and len(dates) != len(values):
            raise ValueError(
                f"Got {len(dates)} dates for {len(values)} prices"
            )

        values.flags.writeable = False
        self._values = values
        self.dates = dates

    @classmethod
    def from_raw_prices(
        cls,
        prices: Sequence[float],
        dates: Optional[pd.DatetimeIndex] = None,
    ) -> "PriceSeries":
        """Build a series from raw (positive) prices by taking natural logs."""
        raw = np.asarray(prices, dtype=float)
        if np.any(raw <= 0.0):
            raise ValueError("Raw prices must be positive")
        return cls(np.log(raw), dates=dates)

    @classmethod
    def from_log_prices(cls, log_prices: Sequence[float]) -> "PriceSeries":
        """Build a series from values that are already log prices."""
        return cls(log_prices)

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the log prices."""
        return self._values

    def __len__(self) -> int:
        return len(self._values)

    def __getitem__(self, index: int) -> float:
        return float(self._values[index])

    def window(self, start: int, length: int) -> "PriceWindow":
        """Bounded view of `length` prices beginning at `start`."""
        return PriceWindow(self, start, length)

    def to_series(self) -> pd.Series:
        """Log prices as a pandas Series (indexed by date when available)."""
        index = self.dates if self.dates is not None else pd.RangeIndex(len(self))
        return pd.Series(self._values, index=index, name="log_price")


@dataclass(frozen=True)
class PriceWindow:
    """
    Contiguous half-open range [start, start + length) of a PriceSeries.

    Local index 0 is the window's first bar.
    """
    series: PriceSeries
    start: int
    length: int

    def __post_init__(self):
        if self.start < 0 or self.length < 0:
            raise ValueError(
                f"Invalid window start={self.start} length={self.length}"
            )
        if self.start + self.length > len(self.series):
            raise ValueError(
                f"Window [{self.start}, {self.end}) exceeds "
                f"series of {len(self.series)} prices"
            )

    @property
    def end(self) -> int:
        """Exclusive end index in series coordinates."""
        return self.start + self.length

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the prices inside the window."""
        return self.series.values[self.start:self.end]

    def __len__(self) -> int:
        return self.length

    def __getitem__(self, index: int) -> float:
        if not 0 <= index < self.length:
            raise IndexError(
                f"Index {index} outside window of length {self.length}"
            )
        return self.series[self.start + index]

    def contains(self, index: int) -> bool:
        """Whether a series-coordinate index falls inside the window."""
        return self.start <= index < self.end
