"""
Position states and per-bar decisions shared by the strategy and the backtester.
"""

from dataclasses import dataclass
from enum import Enum


class PositionState(Enum):
    """Position held after a bar's decision. Long-only: no short state."""
    FLAT = "flat"
    LONG = "long"

    @property
    def is_long(self) -> bool:
        return self is PositionState.LONG


@dataclass(frozen=True)
class BarDecision:
    """
    Outcome of the decision made at one bar.

    The decision uses prices through `index` only; `bar_return` is
    realized on the following bar (`next_price - price` when long).
    """
    index: int
    price: float
    next_price: float
    moving_average: float
    state: PositionState
    bar_return: float
