"""
Objective functions for scoring a return sequence.

Three conventions:
- MEAN_RETURN: mean return per qualifying bar
- PROFIT_FACTOR: summed gains over summed losses
- SHARPE_RATIO: mean over standard deviation (raw, not annualized)

Degenerate inputs (no returns, no losses, zero variance) are absorbed
by tiny epsilon floors so every score is finite and totally ordered.
"""

from enum import Enum
from typing import Callable, Sequence

import numpy as np

EPSILON = 1.e-60
VARIANCE_FLOOR = 1.e-20

# Scale applied to the mean-return criterion for reporting (roughly annualized percent)
MEAN_RETURN_ANNUALIZATION = 25200.0


def mean_return(returns: Sequence[float]) -> float:
    """Mean return per qualifying bar."""
    arr = np.asarray(returns, dtype=float)
    return float(arr.sum() / (len(arr) + EPSILON))


def profit_factor(returns: Sequence[float]) -> float:
    """Summed wins over summed absolute losses; finite even with no losses."""
    arr = np.asarray(returns, dtype=float)
    win_sum = EPSILON + arr[arr > 0.0].sum()
    lose_sum = EPSILON - arr[arr < 0.0].sum()
    return float(win_sum / lose_sum)


def sharpe_ratio(returns: Sequence[float]) -> float:
    """Raw Sharpe ratio using the biased variance, floored to stay positive."""
    arr = np.asarray(returns, dtype=float)
    n = len(arr) + EPSILON
    mean = arr.sum() / n
    variance = (arr * arr).sum() / n - mean * mean  # May be zero or slightly negative
    if variance < VARIANCE_FLOOR:
        variance = VARIANCE_FLOOR
    return float(mean / np.sqrt(variance))


class Objective(Enum):
    """Optimization criterion. Values are the integer codes used on the command line."""
    MEAN_RETURN = 0
    PROFIT_FACTOR = 1
    SHARPE_RATIO = 2

    @classmethod
    def from_code(cls, code: int) -> "Objective":
        try:
            return cls(int(code))
        except ValueError:
            raise ValueError(
                f"Unknown objective code {code}: 0=mean return, 1=profit factor, 2=Sharpe ratio"
            ) from None

    @property
    def scorer(self) -> Callable[[Sequence[float]], float]:
        return _SCORERS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    def score(self, returns: Sequence[float]) -> float:
        """Score a return sequence under this objective."""
        return self.scorer(returns)

    def report_scale(self, annualization: float = MEAN_RETURN_ANNUALIZATION) -> float:
        """Multiplier applied to scores when reporting (mean return only)."""
        return annualization if self is Objective.MEAN_RETURN else 1.0


_SCORERS = {
    Objective.MEAN_RETURN: mean_return,
    Objective.PROFIT_FACTOR: profit_factor,
    Objective.SHARPE_RATIO: sharpe_ratio,
}

_LABELS = {
    Objective.MEAN_RETURN: "mean return",
    Objective.PROFIT_FACTOR: "profit factor",
    Objective.SHARPE_RATIO: "raw Sharpe ratio",
}


class ObjectiveEvaluator:
    """
    Scores the per-bar return stream of a scan.

    Qualifying bars are every bar when `include_all_bars` is set,
    otherwise only the bars where the rule held a long position
    (a long bar with a zero return still qualifies).
    """

    def __init__(self, objective: Objective, include_all_bars: bool = False):
        self.objective = objective
        self.include_all_bars = include_all_bars

    def qualifying_returns(self, decisions) -> list[float]:
        return [
            d.bar_return
            for d in decisions
            if self.include_all_bars or d.state.is_long
        ]

    def evaluate(self, decisions) -> float:
        """Score a sequence of BarDecisions."""
        return self.objective.score(self.qualifying_returns(decisions))
