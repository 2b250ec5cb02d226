"""
Moving-Average Breakout rule (long-only).

- Go long when price breaks above the moving average by the threshold
- Go flat when price falls below the moving average
- Otherwise hold whatever position we had

The rule has two parameters: the moving-average lookback and the
breakout threshold (a fraction of the moving average).
"""

from dataclasses import dataclass
from typing import Sequence
import structlog

from breakout.strategy.base import BarDecision, PositionState

logger = structlog.get_logger(__name__)

MIN_LOOKBACK = 2
THRESHOLD_STEPS = 10
THRESHOLD_UNIT = 0.01


@dataclass(frozen=True)
class BreakoutParams:
    """One (lookback, threshold) candidate."""
    lookback: int
    threshold_index: int  # 1..THRESHOLD_STEPS

    def __post_init__(self):
        if self.lookback < MIN_LOOKBACK:
            raise ValueError(f"lookback must be >= {MIN_LOOKBACK}, got {self.lookback}")
        if not 1 <= self.threshold_index <= THRESHOLD_STEPS:
            raise ValueError(
                f"threshold_index must be in [1, {THRESHOLD_STEPS}], "
                f"got {self.threshold_index}"
            )

    @property
    def threshold(self) -> float:
        """Breakout threshold as a fraction of the moving average."""
        return THRESHOLD_UNIT * self.threshold_index

    @property
    def multiplier(self) -> float:
        """Multiplicative entry level relative to the moving average."""
        return 1.0 + self.threshold


class MovingAverageTracker:
    """
    Sliding-window moving average with O(1) updates.

    The window sum is computed in full once, at construction or reset();
    each advance() adds the newest price and drops the one leaving the
    window. Incremental updates are only valid within one contiguous
    scan at a fixed lookback.
    """

    def __init__(self, prices: Sequence[float], lookback: int, end_index: int):
        """
        Initialize tracker.

        Args:
            prices: Price buffer (read only)
            lookback: Number of prices averaged
            end_index: Index of the newest price in the first window
        """
        if lookback < 1:
            raise ValueError(f"lookback must be >= 1, got {lookback}")

        self.prices = prices
        self.lookback = lookback
        self.reset(end_index)

    def reset(self, end_index: int) -> None:
        """Recompute the window sum from scratch ending at `end_index`."""
        if end_index - self.lookback + 1 < 0:
            raise ValueError(
                f"Window of {self.lookback} ending at {end_index} starts before the data"
            )
        if end_index >= len(self.prices):
            raise ValueError(f"end_index {end_index} is past the end of the data")

        self.index = end_index
        self._sum = 0.0
        for j in range(end_index, end_index - self.lookback, -1):
            self._sum += self.prices[j]

    def advance(self) -> float:
        """Slide the window forward one bar and return the new mean."""
        i = self.index + 1
        if i >= len(self.prices):
            raise ValueError("Cannot advance moving average past the end of the data")

        self._sum += self.prices[i] - self.prices[i - self.lookback]
        self.index = i
        return self.mean

    @property
    def mean(self) -> float:
        """Mean of the `lookback` prices ending at the current index."""
        return self._sum / self.lookback


class TradingDecisionEngine:
    """
    Two-state (FLAT / LONG) breakout state machine.

    Entry: price > (1 + threshold) * MA
    Exit:  price < MA
    Neither fires: state is unchanged
    """

    def __init__(
        self,
        params: BreakoutParams,
        initial_state: PositionState = PositionState.FLAT,
    ):
        """
        Initialize decision engine.

        Args:
            params: Lookback and threshold to trade with
            initial_state: Position carried in from the previous bar
        """
        self.params = params
        self.state = PositionState(initial_state)

    def transition(self, price: float, moving_average: float) -> PositionState:
        """Apply the entry/exit rules to the current state."""
        if price > self.params.multiplier * moving_average:
            self.state = PositionState.LONG
        elif price < moving_average:
            self.state = PositionState.FLAT
        return self.state

    def decide(
        self,
        index: int,
        price: float,
        next_price: float,
        moving_average: float,
    ) -> BarDecision:
        """
        Make the decision at bar `index` and realize its return on the next bar.

        Args:
            index: Bar index of the decision
            price: Price at the decision bar
            next_price: Price at the following bar
            moving_average: MA over the lookback prices ending at `index`

        Returns:
            BarDecision with the new state and the bar's return
        """
        state = self.transition(price, moving_average)
        bar_return = next_price - price if state is PositionState.LONG else 0.0

        return BarDecision(
            index=index,
            price=price,
            next_price=next_price,
            moving_average=moving_average,
            state=state,
            bar_return=bar_return,
        )
