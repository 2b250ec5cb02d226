"""
Walk-forward run configuration.

Settings can come from command-line integer codes, a dict, or a YAML
file. Everything is validated once, before the first fold runs.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional, Union
import os
import re
import structlog
import yaml

from breakout.strategy.ma_breakout import MIN_LOOKBACK
from research.backtesting.accounting import ReturnType
from research.backtesting.objectives import MEAN_RETURN_ANNUALIZATION, Objective

logger = structlog.get_logger(__name__)

# Bars the in-sample window must hold beyond the longest lookback
MIN_TRAIN_MARGIN = 10

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: Any) -> Any:
    """Expand ${VAR} references in string config values."""
    if isinstance(value, str) and "${" in value:
        def replace_env(match):
            env_var = match.group(1)
            return os.environ.get(env_var, match.group(0))
        return _ENV_PATTERN.sub(replace_env, value)
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class WalkForwardConfig:
    """Settings for one walk-forward run."""
    objective: Objective = Objective.PROFIT_FACTOR
    include_all_bars: bool = False  # Training: score flat bars too
    return_type: ReturnType = ReturnType.COMPLETED_TRADES
    max_lookback: int = 100
    n_train: int = 2000
    n_test: int = 1000
    annualization: float = MEAN_RETURN_ANNUALIZATION

    @classmethod
    def from_codes(
        cls,
        which_crit: int,
        all_bars: int,
        ret_type: int,
        max_lookback: int,
        n_train: int,
        n_test: int,
    ) -> "WalkForwardConfig":
        """Build from the integer codes accepted on the command line."""
        return cls(
            objective=Objective.from_code(which_crit),
            include_all_bars=bool(int(all_bars)),
            return_type=ReturnType.from_code(ret_type),
            max_lookback=int(max_lookback),
            n_train=int(n_train),
            n_test=int(n_test),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "WalkForwardConfig":
        """Build from a mapping (e.g. the `walk_forward` section of a YAML file)."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown walk-forward settings: {sorted(unknown)}")

        values = {key: _expand_env_vars(value) for key, value in data.items()}
        kwargs: dict[str, Any] = {}

        if "objective" in values:
            kwargs["objective"] = _parse_objective(values["objective"])
        if "return_type" in values:
            kwargs["return_type"] = _parse_return_type(values["return_type"])
        if "include_all_bars" in values:
            kwargs["include_all_bars"] = _as_bool(values["include_all_bars"])
        for key in ("max_lookback", "n_train", "n_test"):
            if key in values:
                kwargs[key] = int(values[key])
        if "annualization" in values:
            kwargs["annualization"] = float(values["annualization"])

        return cls(**kwargs)

    def validate(self, nprices: Optional[int] = None) -> None:
        """
        Check structural preconditions of a run.

        Args:
            nprices: Length of the price history, when known

        Raises:
            ValueError: If any precondition fails
        """
        if self.max_lookback < MIN_LOOKBACK:
            raise ValueError(f"max_lookback must be at least {MIN_LOOKBACK}")
        if self.n_train - self.max_lookback < MIN_TRAIN_MARGIN:
            raise ValueError(
                f"n_train must be at least {MIN_TRAIN_MARGIN} greater than max_lookback "
                f"(n_train={self.n_train}, max_lookback={self.max_lookback})"
            )
        if self.n_test < 1:
            raise ValueError(f"n_test must be at least 1, got {self.n_test}")
        if self.annualization <= 0.0:
            raise ValueError("annualization must be positive")
        if nprices is not None and self.n_train + self.n_test > nprices:
            raise ValueError(
                f"n_train + n_test must not exceed n_prices "
                f"({self.n_train} + {self.n_test} > {nprices})"
            )

    @property
    def report_scale(self) -> float:
        """Multiplier applied to reported scores."""
        return self.objective.report_scale(self.annualization)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "objective": self.objective.name.lower(),
            "include_all_bars": self.include_all_bars,
            "return_type": self.return_type.name.lower(),
            "max_lookback": self.max_lookback,
            "n_train": self.n_train,
            "n_test": self.n_test,
            "annualization": self.annualization,
        }


def _parse_objective(value: Any) -> Objective:
    if isinstance(value, Objective):
        return value
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            return Objective[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown objective: {value}") from None
    return Objective.from_code(value)


def _parse_return_type(value: Any) -> ReturnType:
    if isinstance(value, ReturnType):
        return value
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            return ReturnType[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown return type: {value}") from None
    return ReturnType.from_code(value)


def load_config(path: Union[str, Path] = "config/walk_forward.yaml") -> WalkForwardConfig:
    """
    Load configuration from a YAML file.

    The settings live under a top-level `walk_forward` key. A missing
    file falls back to defaults.
    """
    config_path = Path(path)

    if not config_path.exists():
        logger.warning("config_not_found_using_defaults", path=str(path))
        return WalkForwardConfig()

    with open(config_path) as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Cannot parse config file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    config = WalkForwardConfig.from_dict(raw.get("walk_forward", {}) or {})
    logger.info("config_loaded", path=str(path), **config.to_dict())
    return config
