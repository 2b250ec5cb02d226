"""Market history ingestion."""

from breakout.data.ingestion.market_file import load_market_file

__all__ = ["load_market_file"]
