"""
Market history file loader.

File format: one record per line, a YYYYMMDD date followed by the price,
separated by spaces, tabs or commas:

    20200102 3257.85
    20200103,3234.85

Blank lines are ignored. Anything else that does not parse is rejected
with the offending line number, before the walk-forward core sees it.
"""

from pathlib import Path
from typing import Union
import re
import structlog

import numpy as np
import pandas as pd

from breakout.data.prices import PriceSeries

logger = structlog.get_logger(__name__)

_DELIMITERS = re.compile(r"[\s,]+")


def _split_records(text: str) -> pd.DataFrame:
    """Split raw lines into (line, date, price) string columns."""
    rows = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            continue
        fields = _DELIMITERS.split(stripped)
        rows.append({
            "line": line_no,
            "date": fields[0],
            "price": fields[1] if len(fields) > 1 else "",
        })
    return pd.DataFrame(rows, columns=["line", "date", "price"])


def _first_bad_line(records: pd.DataFrame, mask: pd.Series) -> int:
    return int(records.loc[mask, "line"].iloc[0])


def load_market_file(path: Union[str, Path]) -> PriceSeries:
    """
    Load a market history file into a log-price series.

    Args:
        path: Path to the market file

    Returns:
        PriceSeries of natural-log prices indexed by date

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: On a malformed date or price, a non-positive price,
            out-of-order dates, or an empty file
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Cannot open market history file {path}")

    logger.info("reading_market_file", path=str(path))

    records = _split_records(path.read_text())
    if records.empty:
        raise ValueError(f"Market history file {path} has no records")

    bad_format = ~records["date"].str.fullmatch(r"\d{8}")
    if bad_format.any():
        line = _first_bad_line(records, bad_format)
        raise ValueError(f"Invalid date reading line {line} of file {path}")

    dates = pd.to_datetime(records["date"], format="%Y%m%d", errors="coerce")
    if dates.isna().any():
        line = _first_bad_line(records, dates.isna())
        raise ValueError(f"Invalid date reading line {line} of file {path}")

    prices = pd.to_numeric(records["price"], errors="coerce")
    bad_price = prices.isna() | ~np.isfinite(prices)
    if bad_price.any():
        line = _first_bad_line(records, bad_price)
        raise ValueError(f"Invalid price reading line {line} of file {path}")

    if (prices <= 0.0).any():
        line = _first_bad_line(records, prices <= 0.0)
        raise ValueError(f"Non-positive price on line {line} of file {path}")

    out_of_order = dates.diff() <= pd.Timedelta(0)
    if out_of_order.any():
        line = _first_bad_line(records, out_of_order)
        raise ValueError(
            f"Date on line {line} of file {path} is not after the previous date"
        )

    series = PriceSeries(
        np.log(prices.to_numpy(dtype=float)),
        dates=pd.DatetimeIndex(dates),
    )

    logger.info(
        "market_file_read",
        path=str(path),
        nprices=len(series),
        first_date=str(dates.iloc[0].date()),
        last_date=str(dates.iloc[-1].date()),
    )
    return series
