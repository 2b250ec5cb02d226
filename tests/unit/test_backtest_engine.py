"""
Tests for the bar-by-bar backtest scan.
"""

import pytest

from breakout.strategy.base import PositionState
from breakout.strategy.ma_breakout import BreakoutParams
from research.backtesting.engine import BacktestEngine

# Hand-checked path for lookback=2, threshold=0.01:
# bar 2 enters (12 > 1.01 * 11), bar 4 exits (11 < 12), bar 6 re-enters
PRICES = [10.0, 10.0, 12.0, 13.0, 11.0, 9.0, 10.0, 12.0, 13.0, 14.0]
PARAMS = BreakoutParams(lookback=2, threshold_index=1)


class TestBacktestEngine:
    """Tests for BacktestEngine.scan."""

    def test_decision_path(self):
        """Test states and returns along a hand-checked path."""
        result = BacktestEngine().scan(PRICES, PARAMS, first_bar=1, last_bar=8)

        states = [d.state for d in result.decisions]
        assert [d.index for d in result.decisions] == list(range(1, 9))
        assert states == [
            PositionState.FLAT,
            PositionState.LONG,
            PositionState.LONG,
            PositionState.FLAT,
            PositionState.FLAT,
            PositionState.LONG,
            PositionState.LONG,
            PositionState.LONG,
        ]
        assert result.bar_returns == pytest.approx([0.0, 1.0, -2.0, 0.0, 0.0, 2.0, 1.0, 1.0])
        assert result.position_returns == pytest.approx([1.0, -2.0, 2.0, 1.0, 1.0])
        assert result.bars_long == 5
        assert result.final_state is PositionState.LONG

    def test_moving_average_recorded(self):
        result = BacktestEngine().scan(PRICES, PARAMS, first_bar=1, last_bar=3)
        assert [d.moving_average for d in result.decisions] == pytest.approx([10.0, 11.0, 12.5])

    def test_initial_state_carried(self):
        """Test a long seed is held when no rule fires on the first bar."""
        result = BacktestEngine().scan(
            PRICES, PARAMS, first_bar=1, last_bar=1, initial_state=PositionState.LONG,
        )
        assert result.decisions[0].state is PositionState.LONG
        assert result.bar_returns == pytest.approx([2.0])

    def test_last_bar_needs_next_price(self):
        """Test the scan refuses to read past the end of the prices."""
        with pytest.raises(ValueError, match="needs price"):
            BacktestEngine().scan(PRICES, PARAMS, first_bar=1, last_bar=9)

    def test_empty_scan(self):
        with pytest.raises(ValueError, match="Empty scan"):
            BacktestEngine().scan(PRICES, PARAMS, first_bar=5, last_bar=4)

    def test_first_bar_needs_history(self):
        with pytest.raises(ValueError):
            BacktestEngine().scan(PRICES, BreakoutParams(lookback=5, threshold_index=1), 2, 6)
