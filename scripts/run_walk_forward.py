#!/usr/bin/env python3
"""
Run walk-forward OOS evaluation of the moving-average breakout rule.

Usage:
    python scripts/run_walk_forward.py data/SPX.TXT

    # Override settings from config/walk_forward.yaml
    python scripts/run_walk_forward.py data/SPX.TXT --which-crit 2 --ret-type 1 \
        --max-lookback 100 --n-train 2000 --n-test 1000

    which_crit - 0=mean return; 1=profit factor; 2=Sharpe ratio
    all_bars   - Training: include return of all bars, even those with no position
    ret_type   - Testing: 0=all bars; 1=bars with position open; 2=completed trades
"""

import argparse
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import structlog
from dotenv import load_dotenv

from breakout.config import WalkForwardConfig, load_config
from breakout.data.ingestion.market_file import load_market_file
from breakout.utils.log_setup import setup_logging
from research.backtesting.objectives import Objective
from research.backtesting.walk_forward import WalkForwardController

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Walk-forward OOS evaluation")
    parser.add_argument("filename", help="Market file (YYYYMMDD Price)")
    parser.add_argument("--config", default="config/walk_forward.yaml")
    parser.add_argument("--which-crit", type=int, choices=[0, 1, 2])
    parser.add_argument("--all-bars", type=int, choices=[0, 1])
    parser.add_argument("--ret-type", type=int, choices=[0, 1, 2])
    parser.add_argument("--max-lookback", type=int)
    parser.add_argument("--n-train", type=int)
    parser.add_argument("--n-test", type=int)
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--log-format", default="json", choices=["json", "console"])
    return parser


def resolve_config(args: argparse.Namespace) -> WalkForwardConfig:
    """YAML settings, overridden by whatever was given on the command line."""
    base = load_config(args.config).to_dict()

    overrides = {
        "objective": args.which_crit,
        "include_all_bars": args.all_bars,
        "return_type": args.ret_type,
        "max_lookback": args.max_lookback,
        "n_train": args.n_train,
        "n_test": args.n_test,
    }
    base.update({key: value for key, value in overrides.items() if value is not None})
    return WalkForwardConfig.from_dict(base)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv()
    setup_logging(
        level=args.log_level or os.environ.get("WFO_LOG_LEVEL", "INFO"),
        fmt=args.log_format,
    )

    try:
        config = resolve_config(args)
        config.validate()
        series = load_market_file(args.filename)
        controller = WalkForwardController(config)
        result = controller.run(series)
    except (ValueError, OSError) as e:
        logger.error("walk_forward_failed", error=str(e))
        return 1

    if config.objective is Objective.MEAN_RETURN:
        logger.info(
            "mean_return_scaled",
            message=f"Mean return criterion multiplied by {config.annualization:g} in all results",
        )

    total = 0
    for fold in result.folds:
        total += fold.n_returns
        logger.info(
            "oos_fold_tested",
            n_test=fold.fold.n_test,
            test_start=fold.fold.test_start,
            n_returns=fold.n_returns,
            total=total,
        )

    logger.info("walk_forward_summary", **config.to_dict(), **result.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
