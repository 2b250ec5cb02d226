"""
Walk-forward validation framework.

CRITICAL: OOS returns are the only honest measure of the rule.
In-sample scores are reported for context but never aggregated.

Walk-forward protocol:
- Optimize on bars [s, s + n_train)
- Freeze parameters, trade bars [s + n_train, s + n_train + n)
- Advance s by n and repeat until history runs out
- OOS windows tile [n_train, nprices) exactly: no gaps, no overlap

The position held at each boundary is carried across it, so a fold
never starts with an artificial cold start.
"""

from dataclasses import dataclass, field
from typing import Optional
import structlog

import pandas as pd

from breakout.config import WalkForwardConfig
from breakout.data.prices import PriceSeries
from breakout.strategy.base import PositionState
from research.backtesting.accounting import AccountingResult, ReturnAccountant
from research.backtesting.engine import BacktestEngine
from research.backtesting.objectives import ObjectiveEvaluator
from research.backtesting.optimizer import OptimizationResult, ParameterGridOptimizer

logger = structlog.get_logger(__name__)


@dataclass
class WalkForwardFold:
    """A single walk-forward fold (half-open bar ranges)."""
    fold_id: int
    train_start: int
    train_end: int
    test_start: int
    test_end: int

    @property
    def n_test(self) -> int:
        return self.test_end - self.test_start

    @property
    def train_period(self) -> str:
        """Human-readable train period."""
        return f"[{self.train_start}, {self.train_end})"

    @property
    def test_period(self) -> str:
        """Human-readable test period."""
        return f"[{self.test_start}, {self.test_end})"


@dataclass(frozen=True)
class FoldState:
    """Controller progress between folds."""
    fold_id: int
    train_start: int
    seed_state: PositionState  # Position carried into the next in-sample scan


@dataclass
class FoldResult:
    """Results from one fold."""
    fold: WalkForwardFold
    optimization: OptimizationResult
    oos: AccountingResult

    @property
    def n_returns(self) -> int:
        return len(self.oos.returns)


@dataclass
class WalkForwardResult:
    """Results from a complete walk-forward run."""
    config: WalkForwardConfig
    nprices: int
    folds: list[FoldResult] = field(default_factory=list)
    returns: list[float] = field(default_factory=list)  # Aggregate OOS returns (THE TRUTH)
    statistic: float = 0.0  # Objective over all OOS returns, unscaled

    @property
    def scaled_statistic(self) -> float:
        """Final statistic in reporting units."""
        return self.statistic * self.config.report_scale

    @property
    def n_returns(self) -> int:
        return len(self.returns)

    def to_frame(self) -> pd.DataFrame:
        """One row per fold."""
        scale = self.config.report_scale
        return pd.DataFrame([
            {
                "fold_id": r.fold.fold_id,
                "train_start": r.fold.train_start,
                "train_end": r.fold.train_end,
                "test_start": r.fold.test_start,
                "test_end": r.fold.test_end,
                "lookback": r.optimization.lookback,
                "threshold": r.optimization.threshold,
                "is_score": r.optimization.score * scale,
                "is_final_state": r.optimization.final_state.value,
                "oos_returns": r.n_returns,
                "oos_total_return": sum(r.oos.returns),
                "oos_final_state": r.oos.final_state.value,
            }
            for r in self.folds
        ])

    def summary(self) -> dict:
        """Aggregate statistics for reporting."""
        return {
            "nprices": self.nprices,
            "total_folds": len(self.folds),
            "oos_bars": sum(r.fold.n_test for r in self.folds),
            "n_returns": self.n_returns,
            "statistic": self.config.objective.label,
            "oos_statistic": self.scaled_statistic,
        }


class WalkForwardController:
    """
    Walk-forward driver for the breakout rule.

    Key principles:
    - Parameters chosen on in-sample bars only
    - OOS bars never seen during optimization
    - Each price bar contributes to exactly one OOS return window
    """

    def __init__(
        self,
        config: WalkForwardConfig,
        engine: Optional[BacktestEngine] = None,
    ):
        """
        Initialize walk-forward controller.

        Args:
            config: Validated run configuration
            engine: Scanner shared by optimizer and accountant
        """
        config.validate()
        self.config = config
        self.engine = engine or BacktestEngine()

        self.optimizer = ParameterGridOptimizer(
            evaluator=ObjectiveEvaluator(config.objective, config.include_all_bars),
            max_lookback=config.max_lookback,
            engine=self.engine,
        )
        self.accountant = ReturnAccountant(config.return_type, engine=self.engine)

        logger.info("walk_forward_controller_initialized", **config.to_dict())

    def initial_state(self) -> FoldState:
        """Progress before the first fold: start of history, flat."""
        return FoldState(fold_id=1, train_start=0, seed_state=PositionState.FLAT)

    def step(
        self,
        series: PriceSeries,
        state: FoldState,
    ) -> tuple[FoldResult, Optional[FoldState]]:
        """
        Run one fold.

        Args:
            series: Full price history
            state: Progress from the previous fold

        Returns:
            (fold result, progress for the next fold or None when done)
        """
        nprices = len(series)
        n_train = self.config.n_train
        train_start = state.train_start

        if train_start + n_train >= nprices:
            raise ValueError(
                f"No OOS bars left for a fold starting at {train_start}"
            )

        # Train
        optimization = self.optimizer.optimize(
            series.window(train_start, n_train),
            initial_state=state.seed_state,
        )

        # Don't go past the end of history
        n = min(self.config.n_test, nprices - train_start - n_train)
        fold = WalkForwardFold(
            fold_id=state.fold_id,
            train_start=train_start,
            train_end=train_start + n_train,
            test_start=train_start + n_train,
            test_end=train_start + n_train + n,
        )

        # Test
        oos = self.accountant.account(
            series,
            test_start=fold.test_start,
            n_test=n,
            params=optimization.params,
            initial_state=optimization.final_state,
        )

        result = FoldResult(fold=fold, optimization=optimization, oos=oos)

        logger.info(
            "fold_complete",
            fold_id=fold.fold_id,
            train_start=fold.train_start,
            lookback=optimization.lookback,
            threshold=round(optimization.threshold, 3),
            is_score=optimization.score * self.config.report_scale,
            test_start=fold.test_start,
            n_test=n,
            oos_returns=len(oos.returns),
        )

        # Advance fold window; quit if done
        next_start = train_start + n
        if next_start + n_train >= nprices:
            return result, None

        return result, FoldState(
            fold_id=state.fold_id + 1,
            train_start=next_start,
            seed_state=oos.final_state,
        )

    def run(self, series: PriceSeries) -> WalkForwardResult:
        """
        Run walk-forward validation across the full history.

        Args:
            series: Full price history

        Returns:
            WalkForwardResult with per-fold results and the final OOS statistic
        """
        self.config.validate(nprices=len(series))

        result = WalkForwardResult(config=self.config, nprices=len(series))
        state: Optional[FoldState] = self.initial_state()

        logger.info(
            "walk_forward_starting",
            nprices=len(series),
            n_train=self.config.n_train,
            n_test=self.config.n_test,
        )

        while state is not None:
            fold_result, state = self.step(series, state)
            result.folds.append(fold_result)
            result.returns.extend(fold_result.oos.returns)

        result.statistic = self.config.objective.score(result.returns)

        logger.info(
            "walk_forward_complete",
            total_folds=len(result.folds),
            n_returns=result.n_returns,
            objective=self.config.objective.label,
            oos_statistic=result.scaled_statistic,
        )

        return result
