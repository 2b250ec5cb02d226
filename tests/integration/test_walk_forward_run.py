"""
End-to-end walk-forward tests.

Runs the optimizer and accountant together on tiny hand-checkable
histories, and the command-line runner against market files on disk.
"""

import importlib.util
import math
from pathlib import Path

import numpy as np
import pytest

from breakout.data.prices import PriceSeries
from breakout.strategy.base import PositionState
from research.backtesting.accounting import ReturnAccountant, ReturnType
from research.backtesting.objectives import Objective, ObjectiveEvaluator
from research.backtesting.optimizer import ParameterGridOptimizer

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "run_walk_forward.py"


def load_runner():
    spec = importlib.util.spec_from_file_location("run_walk_forward", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestSixBarFold:
    """Six strictly increasing log prices, one fold of 4 training and 2 test bars."""

    def test_single_fold_by_hand(self):
        series = PriceSeries.from_log_prices([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        n_train, n_test, max_lookback = 4, 2, 2

        optimizer = ParameterGridOptimizer(
            ObjectiveEvaluator(Objective.MEAN_RETURN, include_all_bars=True),
            max_lookback=max_lookback,
        )
        best = optimizer.optimize(series.window(0, n_train))

        # Only feasible lookback; price always above the 2-bar MA, so the
        # smallest threshold keeps the rule long throughout
        assert best.lookback == 2
        assert best.threshold == pytest.approx(0.01)
        assert best.final_state is PositionState.LONG

        oos = ReturnAccountant(ReturnType.ALL_BARS).account(
            series,
            test_start=n_train,
            n_test=n_test,
            params=best.params,
            initial_state=best.final_state,
        )

        assert oos.returns == [series[4] - series[3], series[5] - series[4]]
        assert oos.returns == pytest.approx([1.0, 1.0])


class TestRunnerScript:
    """Command-line runner against market files."""

    def write_market(self, temp_dir, n=400, seed=7):
        rng = np.random.default_rng(seed)
        prices = 100.0 * np.exp(np.cumsum(rng.normal(0.0003, 0.01, n)))
        lines = []
        day = np.datetime64("2015-01-01")
        for price in prices:
            lines.append(f"{str(day).replace('-', '')} {price:.4f}")
            day += np.timedelta64(1, "D")
        path = temp_dir / "MARKET.TXT"
        path.write_text("\n".join(lines) + "\n")
        return path

    @pytest.mark.parametrize("which_crit", ["0", "1", "2"])
    @pytest.mark.parametrize("ret_type", ["0", "1", "2"])
    def test_runs_every_convention(self, temp_dir, which_crit, ret_type):
        runner = load_runner()
        path = self.write_market(temp_dir)

        status = runner.main([
            str(path),
            "--config", str(temp_dir / "missing.yaml"),
            "--which-crit", which_crit,
            "--all-bars", "0",
            "--ret-type", ret_type,
            "--max-lookback", "10",
            "--n-train", "100",
            "--n-test", "50",
            "--log-level", "WARNING",
        ])
        assert status == 0

    def test_config_file_settings(self, temp_dir):
        runner = load_runner()
        path = self.write_market(temp_dir)
        config = temp_dir / "wf.yaml"
        config.write_text(
            "walk_forward:\n"
            "  objective: sharpe_ratio\n"
            "  return_type: position_bars\n"
            "  max_lookback: 8\n"
            "  n_train: 60\n"
            "  n_test: 30\n"
        )

        args = runner.build_parser().parse_args([str(path), "--config", str(config), "--n-test", "20"])
        resolved = runner.resolve_config(args)

        assert resolved.objective is Objective.SHARPE_RATIO
        assert resolved.return_type is ReturnType.POSITION_BARS
        assert resolved.max_lookback == 8
        assert resolved.n_test == 20

    def test_bad_configuration_exits_nonzero(self, temp_dir):
        runner = load_runner()
        path = self.write_market(temp_dir)

        status = runner.main([
            str(path),
            "--config", str(temp_dir / "missing.yaml"),
            "--max-lookback", "95",
            "--n-train", "100",
            "--n-test", "50",
            "--log-level", "CRITICAL",
        ])
        assert status == 1

    def test_history_too_short_exits_nonzero(self, temp_dir):
        runner = load_runner()
        path = self.write_market(temp_dir, n=120)

        status = runner.main([
            str(path),
            "--config", str(temp_dir / "missing.yaml"),
            "--max-lookback", "10",
            "--n-train", "100",
            "--n-test", "50",
            "--log-level", "CRITICAL",
        ])
        assert status == 1

    def test_missing_market_file(self, temp_dir):
        runner = load_runner()
        status = runner.main([
            str(temp_dir / "nope.txt"),
            "--config", str(temp_dir / "missing.yaml"),
            "--max-lookback", "10",
            "--n-train", "100",
            "--n-test", "50",
            "--log-level", "CRITICAL",
        ])
        assert status == 1

    def test_malformed_yaml_exits_nonzero(self, temp_dir):
        runner = load_runner()
        path = self.write_market(temp_dir)
        config = temp_dir / "bad.yaml"
        config.write_text("walk_forward: [unclosed\n")

        status = runner.main([str(path), "--config", str(config), "--log-level", "CRITICAL"])
        assert status == 1

    def test_market_path_is_directory(self, temp_dir):
        runner = load_runner()
        status = runner.main([
            str(temp_dir),
            "--config", str(temp_dir / "missing.yaml"),
            "--max-lookback", "10",
            "--n-train", "100",
            "--n-test", "50",
            "--log-level", "CRITICAL",
        ])
        assert status == 1


class TestRealisticHistory:

    def test_profit_factor_finite(self, sample_series):
        """Test the final statistic is finite on a random walk."""
        from breakout.config import WalkForwardConfig
        from research.backtesting.walk_forward import WalkForwardController

        config = WalkForwardConfig(
            objective=Objective.PROFIT_FACTOR,
            return_type=ReturnType.COMPLETED_TRADES,
            max_lookback=20,
            n_train=120,
            n_test=60,
        )
        result = WalkForwardController(config).run(sample_series)

        assert math.isfinite(result.statistic)
        assert result.statistic > 0.0
