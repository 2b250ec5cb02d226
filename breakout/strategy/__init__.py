"""
Strategy module.

Only one rule family exists: the long-only moving-average breakout.
"""

from breakout.strategy.base import BarDecision, PositionState
from breakout.strategy.ma_breakout import (
    BreakoutParams,
    MovingAverageTracker,
    TradingDecisionEngine,
)

__all__ = [
    "BarDecision",
    "PositionState",
    "BreakoutParams",
    "MovingAverageTracker",
    "TradingDecisionEngine",
]
