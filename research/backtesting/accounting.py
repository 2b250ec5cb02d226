"""
Out-of-sample return accounting.

The same per-bar decision stream can be reported three ways:
- ALL_BARS: one return per bar, zero while flat
- POSITION_BARS: one return per bar held long
- COMPLETED_TRADES: one return per round trip (entry to exit)

The first OOS decision is made on the last in-sample bar: its return is
earned on the first OOS bar, and it may simply continue the position
the rule held at the end of training.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import structlog

from breakout.data.prices import PriceSeries
from breakout.strategy.base import BarDecision, PositionState
from breakout.strategy.ma_breakout import BreakoutParams
from research.backtesting.engine import BacktestEngine

logger = structlog.get_logger(__name__)


class ReturnType(Enum):
    """OOS return convention. Values are the integer codes used on the command line."""
    ALL_BARS = 0
    POSITION_BARS = 1
    COMPLETED_TRADES = 2

    @classmethod
    def from_code(cls, code: int) -> "ReturnType":
        try:
            return cls(int(code))
        except ValueError:
            raise ValueError(
                f"Unknown return type code {code}: "
                "0=all bars, 1=bars with position open, 2=completed trades"
            ) from None


@dataclass
class AccountingResult:
    """OOS returns for one test window."""
    returns: list[float]
    final_state: PositionState
    decisions: list[BarDecision]
    n_trades: int = 0
    forced_close_return: Optional[float] = None

    @property
    def forced_close(self) -> bool:
        return self.forced_close_return is not None


def all_bar_returns(decisions: list[BarDecision]) -> list[float]:
    return [d.bar_return for d in decisions]


def position_bar_returns(decisions: list[BarDecision]) -> list[float]:
    return [d.bar_return for d in decisions if d.state.is_long]


def completed_trade_returns(
    decisions: list[BarDecision],
) -> tuple[list[float], Optional[float]]:
    """
    Collapse a decision stream into completed-trade returns.

    The trade tracker always starts out of the market, so a long
    position carried in from training opens a trade at the first bar.
    A position still open at the last bar is marked to market against
    the price following that bar.

    Returns:
        (trade returns, forced-close return or None)
    """
    returns = []
    forced = None
    prior = PositionState.FLAT
    open_price = 0.0
    last = len(decisions) - 1

    for k, d in enumerate(decisions):
        if d.state.is_long and not prior.is_long:  # Just opened
            open_price = d.price
        elif prior.is_long and not d.state.is_long:  # Just closed
            returns.append(d.price - open_price)

        if d.state.is_long and k == last:  # Force close at end of window
            forced = d.next_price - open_price
            returns.append(forced)

        prior = d.state

    return returns, forced


_ACCOUNTANTS = {
    ReturnType.ALL_BARS: lambda decisions: (all_bar_returns(decisions), None),
    ReturnType.POSITION_BARS: lambda decisions: (position_bar_returns(decisions), None),
    ReturnType.COMPLETED_TRADES: completed_trade_returns,
}


class ReturnAccountant:
    """
    Applies frozen parameters to an OOS window and reports its returns.
    """

    def __init__(
        self,
        return_type: ReturnType,
        engine: Optional[BacktestEngine] = None,
    ):
        """
        Initialize accountant.

        Args:
            return_type: Which convention to report returns in
            engine: Scanner to run the rule with (defaults to a new one)
        """
        self.return_type = return_type
        self.engine = engine or BacktestEngine()

    def account(
        self,
        series: PriceSeries,
        test_start: int,
        n_test: int,
        params: BreakoutParams,
        initial_state: PositionState,
    ) -> AccountingResult:
        """
        Compute OOS returns for test bars [test_start, test_start + n_test).

        Decisions run from bar test_start - 1 through test_start + n_test - 2,
        so the returns earned cover exactly the test bars.

        Args:
            series: Full price history
            test_start: First OOS bar
            n_test: Number of OOS bars
            params: Parameters frozen from the in-sample window
            initial_state: Position at the end of the in-sample window

        Returns:
            AccountingResult with the selected returns and ending state
        """
        if n_test < 1:
            raise ValueError(f"n_test must be >= 1, got {n_test}")
        if test_start - params.lookback < 0:
            raise ValueError(
                f"Test window at {test_start} lacks {params.lookback} bars of history"
            )

        scan = self.engine.scan(
            series.values,
            params,
            first_bar=test_start - 1,
            last_bar=test_start + n_test - 2,
            initial_state=initial_state,
        )

        returns, forced = _ACCOUNTANTS[self.return_type](scan.decisions)
        n_trades = (
            len(returns)
            if self.return_type is ReturnType.COMPLETED_TRADES
            else _count_entries(scan.decisions)
        )

        logger.debug(
            "oos_window_accounted",
            test_start=test_start,
            n_test=n_test,
            return_type=self.return_type.name,
            n_returns=len(returns),
            forced_close=forced is not None,
        )

        return AccountingResult(
            returns=returns,
            final_state=scan.final_state,
            decisions=scan.decisions,
            n_trades=n_trades,
            forced_close_return=forced,
        )


def _count_entries(decisions: list[BarDecision]) -> int:
    """Number of flat-to-long transitions (the tracker starts flat)."""
    count = 0
    prior = PositionState.FLAT
    for d in decisions:
        if d.state.is_long and not prior.is_long:
            count += 1
        prior = d.state
    return count
