"""
Price data module.

Handles:
- Immutable log-price series
- Bounded windows into a series
- Market history file ingestion
"""

from breakout.data.prices import PriceSeries, PriceWindow

__all__ = ["PriceSeries", "PriceWindow"]
