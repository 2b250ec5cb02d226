"""
Pytest configuration and fixtures.

Shared fixtures for all tests.
"""

import pytest
import os
from pathlib import Path
import tempfile
import shutil

import numpy as np

# Keep CLI runs in tests quiet unless asked otherwise
os.environ.setdefault("WFO_LOG_LEVEL", "WARNING")


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def sample_log_prices():
    """Seeded random-walk log prices with a mild upward drift."""
    np.random.seed(42)
    steps = np.random.randn(300) * 0.01 + 0.0005
    return np.log(100.0) + np.cumsum(steps)


@pytest.fixture
def sample_series(sample_log_prices):
    """PriceSeries built from the sample log prices."""
    from breakout.data.prices import PriceSeries

    return PriceSeries.from_log_prices(sample_log_prices)


@pytest.fixture
def market_file(temp_dir):
    """Write a small market file and return its path."""
    def _write(lines, name="MARKET.TXT"):
        path = temp_dir / name
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write
