"""
Backtesting engine.

Runs the breakout decision engine across a contiguous range of bars and
records the per-bar (state, return) stream. Both the in-sample optimizer
and the out-of-sample accountant are built on this scan, so the two
can never disagree about what the rule did on a given bar.
"""

from dataclasses import dataclass
from typing import Sequence
import structlog

from breakout.strategy.base import BarDecision, PositionState
from breakout.strategy.ma_breakout import (
    BreakoutParams,
    MovingAverageTracker,
    TradingDecisionEngine,
)

logger = structlog.get_logger(__name__)


@dataclass
class ScanResult:
    """Results from one scan of the rule over a bar range."""
    decisions: list[BarDecision]
    final_state: PositionState

    @property
    def bar_returns(self) -> list[float]:
        """Return of every bar, zero while flat."""
        return [d.bar_return for d in self.decisions]

    @property
    def position_returns(self) -> list[float]:
        """Returns of the bars where the rule was long."""
        return [d.bar_return for d in self.decisions if d.state.is_long]

    @property
    def bars_long(self) -> int:
        return sum(1 for d in self.decisions if d.state.is_long)


class BacktestEngine:
    """
    Bar-by-bar scanner for the moving-average breakout rule.

    Key principles:
    - Decision at bar i sees prices through i only
    - Return is realized on bar i + 1
    - Moving average is summed in full once per scan, then updated in O(1)
    """

    def scan(
        self,
        prices: Sequence[float],
        params: BreakoutParams,
        first_bar: int,
        last_bar: int,
        initial_state: PositionState = PositionState.FLAT,
    ) -> ScanResult:
        """
        Run the rule over decision bars [first_bar, last_bar].

        Args:
            prices: Log prices (read only)
            params: Lookback and threshold
            first_bar: First decision bar; needs `lookback - 1` prior prices
            last_bar: Last decision bar; needs the price after it
            initial_state: Position held before the first decision

        Returns:
            ScanResult with one BarDecision per bar and the ending state
        """
        if last_bar < first_bar:
            raise ValueError(
                f"Empty scan: first_bar={first_bar} last_bar={last_bar}"
            )
        if last_bar + 1 >= len(prices):
            raise ValueError(
                f"Decision at bar {last_bar} needs price {last_bar + 1}, "
                f"but only {len(prices)} prices exist"
            )

        tracker = MovingAverageTracker(prices, params.lookback, first_bar)
        engine = TradingDecisionEngine(params, initial_state)

        decisions = []
        for i in range(first_bar, last_bar + 1):
            if i > first_bar:
                tracker.advance()
            decisions.append(
                engine.decide(
                    index=i,
                    price=prices[i],
                    next_price=prices[i + 1],
                    moving_average=tracker.mean,
                )
            )

        return ScanResult(decisions=decisions, final_state=engine.state)
