"""
In-sample parameter optimization.

Exhaustive grid search over (lookback, threshold). Every candidate is
scanned from the same first bar (max_lookback - 1) so that candidates
with short lookbacks are not scored over more bars than long ones.
"""

from dataclasses import dataclass
from typing import Iterator, Optional
import structlog

from breakout.data.prices import PriceWindow
from breakout.strategy.base import PositionState
from breakout.strategy.ma_breakout import (
    MIN_LOOKBACK,
    THRESHOLD_STEPS,
    BreakoutParams,
)
from research.backtesting.engine import BacktestEngine
from research.backtesting.objectives import ObjectiveEvaluator

logger = structlog.get_logger(__name__)


@dataclass
class OptimizationResult:
    """Best parameters found on an in-sample window."""
    params: BreakoutParams
    score: float
    final_state: PositionState  # Position at the end of training, seeds the OOS run
    candidates_evaluated: int

    @property
    def lookback(self) -> int:
        return self.params.lookback

    @property
    def threshold(self) -> float:
        return self.params.threshold


def parameter_grid(max_lookback: int) -> Iterator[BreakoutParams]:
    """All candidates, lookback-major, in evaluation order."""
    for lookback in range(MIN_LOOKBACK, max_lookback + 1):
        for threshold_index in range(1, THRESHOLD_STEPS + 1):
            yield BreakoutParams(lookback=lookback, threshold_index=threshold_index)


class ParameterGridOptimizer:
    """
    Grid-search optimizer for the breakout rule.

    Ties are broken in favour of the candidate evaluated first:
    a later candidate must score strictly higher to replace the best.
    """

    def __init__(
        self,
        evaluator: ObjectiveEvaluator,
        max_lookback: int,
        engine: Optional[BacktestEngine] = None,
    ):
        """
        Initialize optimizer.

        Args:
            evaluator: Objective used to score each candidate
            max_lookback: Largest moving-average lookback tried
            engine: Scanner to run the rule with (defaults to a new one)
        """
        if max_lookback < MIN_LOOKBACK:
            raise ValueError(f"max_lookback must be >= {MIN_LOOKBACK}, got {max_lookback}")

        self.evaluator = evaluator
        self.max_lookback = max_lookback
        self.engine = engine or BacktestEngine()

    def optimize(
        self,
        window: PriceWindow,
        initial_state: PositionState = PositionState.FLAT,
    ) -> OptimizationResult:
        """
        Find the best candidate on an in-sample window.

        Args:
            window: In-sample prices
            initial_state: Position before the first in-sample decision

        Returns:
            OptimizationResult for the winning candidate
        """
        prices = window.values
        first_bar = self.max_lookback - 1
        last_bar = len(prices) - 2

        if last_bar < first_bar:
            raise ValueError(
                f"In-sample window of {len(prices)} bars is too short "
                f"for max_lookback={self.max_lookback}"
            )

        best: Optional[OptimizationResult] = None
        evaluated = 0

        for params in parameter_grid(self.max_lookback):
            scan = self.engine.scan(
                prices,
                params,
                first_bar=first_bar,
                last_bar=last_bar,
                initial_state=initial_state,
            )
            score = self.evaluator.evaluate(scan.decisions)
            evaluated += 1

            if best is None or score > best.score:
                best = OptimizationResult(
                    params=params,
                    score=score,
                    final_state=scan.final_state,
                    candidates_evaluated=0,
                )

        if best is None:
            raise ValueError("Parameter grid is empty")

        best.candidates_evaluated = evaluated

        logger.debug(
            "optimization_complete",
            window_start=window.start,
            window_length=len(window),
            lookback=best.lookback,
            threshold=best.threshold,
            score=best.score,
            final_state=best.final_state.value,
            candidates=evaluated,
        )

        return best
