"""
Shared pytest fixtures for the cryptotax test suite.

Every test builds its own FIFOEngine, so nothing leaks between tests.
"""

import pytest
from datetime import datetime

from cryptotax.services.fifo_engine import BalancePolicy, FIFOEngine
from cryptotax.tests.factories import make_buy


@pytest.fixture
def engine():
    """Strict engine with tax-year snapshots enabled."""
    return FIFOEngine(
        balance_policy=BalancePolicy.STRICT,
        snapshot_tax_year_boundaries=True,
    )


@pytest.fixture
def tolerant_engine():
    return FIFOEngine(
        balance_policy=BalancePolicy.TOLERANT,
        snapshot_tax_year_boundaries=True,
    )


@pytest.fixture
def two_lot_btc():
    """BUY 0.5 BTC @ R20,000 then BUY 0.3 BTC @ R30,000."""
    return [
        make_buy(datetime(2024, 3, 1), "BTC", "0.5", "20000", line=1),
        make_buy(datetime(2024, 3, 2), "BTC", "0.3", "30000", line=2),
    ]
