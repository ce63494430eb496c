"""공용 pytest fixture."""

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest

from portfolio_tracker.accounting.settlement import TradeSettlementEngine
from portfolio_tracker.accounting.wallet import LedgerAccount
from portfolio_tracker.core.models import Instrument
from portfolio_tracker.data.memory_store import InMemoryMarketStore, InMemoryPortfolioStore

USER = 1
OTHER_USER = 2


def make_bars(
    closes,
    start: date = date(2024, 1, 1),
    highs=None,
    lows=None,
    opens=None,
) -> pd.DataFrame:
    """하루 간격 일봉 DataFrame. high/low/open 미지정 시 종가 ±1, 시가 = 종가."""
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    return pd.DataFrame({
        "date": [start + timedelta(days=i) for i in range(n)],
        "open": closes if opens is None else np.asarray(opens, dtype=float),
        "high": closes + 1 if highs is None else np.asarray(highs, dtype=float),
        "low": closes - 1 if lows is None else np.asarray(lows, dtype=float),
        "close": closes,
        "volume": np.full(n, 1000),
    })


def random_walk(n: int, seed: int = 7, start_price: float = 100.0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return np.round(start_price * np.cumprod(1 + rng.normal(0, 0.01, n)), 2)


@pytest.fixture
def portfolio_store() -> InMemoryPortfolioStore:
    store = InMemoryPortfolioStore()
    store.add_instrument(Instrument("SHOP.TO", "Shopify", "CAD"))
    store.add_instrument(Instrument("RY.TO", "Royal Bank", "CAD"))
    store.add_instrument(Instrument("AAPL", "Apple", "USD"))
    store.add_instrument(Instrument("MYSTERY", "No currency"))
    return store


@pytest.fixture
def ledger(portfolio_store) -> LedgerAccount:
    return LedgerAccount(portfolio_store)


@pytest.fixture
def settlement(portfolio_store, ledger) -> TradeSettlementEngine:
    return TradeSettlementEngine(portfolio_store, ledger)


@pytest.fixture
def funded(ledger):
    """USER에게 CAD 100,000 / USD 100,000 입금."""
    ledger.record_entry(USER, date(2024, 1, 1), "deposit", 100_000, "CAD")
    ledger.record_entry(USER, date(2024, 1, 1), "deposit", 100_000, "USD")
    return ledger


@pytest.fixture
def market_store() -> InMemoryMarketStore:
    return InMemoryMarketStore()
