"""
SQLAlchemy 저장소 테스트 (인메모리 SQLite).
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import USER
from portfolio_tracker.accounting.settlement import TradeSettlementEngine
from portfolio_tracker.accounting.wallet import LedgerAccount
from portfolio_tracker.core.errors import PersistenceError, ShortSellNotSupported
from portfolio_tracker.core.models import Instrument, LedgerAction
from portfolio_tracker.data.sql_store import SqlPortfolioStore


@pytest.fixture
def sql_store() -> SqlPortfolioStore:
    store = SqlPortfolioStore("sqlite://")
    store.add_instrument(Instrument("SHOP.TO", "Shopify", "CAD"))
    store.add_instrument(Instrument("AAPL", "Apple", "USD"))
    return store


@pytest.fixture
def sql_settlement(sql_store) -> TradeSettlementEngine:
    ledger = LedgerAccount(sql_store)
    ledger.record_entry(USER, date(2024, 1, 1), "deposit", 10_000, "CAD")
    return TradeSettlementEngine(sql_store, ledger)


class TestSqlPortfolioStore:
    def test_instruments(self, sql_store) -> None:
        assert sql_store.find_instrument("AAPL").currency == "USD"
        assert sql_store.find_instrument("MSFT") is None
        assert [i.symbol for i in sql_store.list_instruments()] == ["AAPL", "SHOP.TO"]

        sql_store.add_instrument(Instrument("AAPL", "Apple Inc.", "USD"))
        assert sql_store.find_instrument("AAPL").name == "Apple Inc."

    def test_ledger_round_trip(self, sql_store) -> None:
        ledger = LedgerAccount(sql_store)
        entry = ledger.record_entry(USER, date(2024, 1, 5), "gain", 12.5, "usd", symbol="AAPL")

        [stored] = sql_store.fold_ledger_entries(USER)
        assert stored.id == entry.id
        assert stored.action == LedgerAction.GAIN
        assert stored.currency == "USD"
        assert stored.entry_date == date(2024, 1, 5)
        assert stored.symbol == "AAPL"

    def test_fifo_settlement(self, sql_settlement, sql_store) -> None:
        sql_settlement.create_trade(USER, "SHOP.TO", "BUY", 10, 100.0, date(2024, 1, 2))
        sql_settlement.create_trade(USER, "SHOP.TO", "BUY", 10, 150.0, date(2024, 1, 3))
        sell = sql_settlement.create_trade(USER, "SHOP.TO", "SELL", 15, 120.0, date(2024, 1, 10))

        lots = sql_store.find_buy_lots(USER, "SHOP.TO", open_only=False)
        assert [lot.quantity_remaining for lot in lots] == [0, 5]
        assert sql_store.find_buy_lots(USER, "SHOP.TO")[0].unit_price == 150.0

        records = sql_settlement.closed_trades(USER)
        assert [(r.quantity, r.pct_gain) for r in records] == [(10, 20), (5, -20)]
        assert records[0].id == f"{USER}_{lots[0].id}_{sell.id}"
        assert records[1].dollar_gain == Decimal("-150.0")
        assert records[0].holding_days == 8

    def test_fractional_sells_keep_exact_remainder(self, sql_settlement, sql_store) -> None:
        sql_settlement.create_trade(USER, "SHOP.TO", "BUY", 0.3, 10.0, date(2024, 1, 2))
        sql_settlement.create_trade(USER, "SHOP.TO", "SELL", 0.1, 11.0, date(2024, 1, 3))
        sql_settlement.create_trade(USER, "SHOP.TO", "SELL", 0.2, 12.0, date(2024, 1, 4))

        (lot,) = sql_store.find_buy_lots(USER, "SHOP.TO", open_only=False)
        assert isinstance(lot.quantity_remaining, Decimal)
        assert lot.quantity_remaining == 0
        assert sorted(r.quantity for r in sql_store.list_closed_trades(USER)) == [Decimal("0.1"), Decimal("0.2")]
        [entry] = sql_store.fold_ledger_entries(USER)
        assert entry.amount == Decimal("10000")

    def test_short_sell_leaves_no_trace(self, sql_settlement, sql_store) -> None:
        sql_settlement.create_trade(USER, "SHOP.TO", "BUY", 2, 100.0, date(2024, 1, 2))

        with pytest.raises(ShortSellNotSupported):
            sql_settlement.create_trade(USER, "SHOP.TO", "SELL", 3, 120.0, date(2024, 1, 3))

        assert len(sql_store.list_trades(USER)) == 1
        assert sql_settlement.get_available_quantity(USER, "SHOP.TO") == 2

    def test_failure_mid_settlement_rolls_back(self, sql_settlement, sql_store, monkeypatch) -> None:
        sql_settlement.create_trade(USER, "SHOP.TO", "BUY", 5, 100.0, date(2024, 1, 2))
        sql_settlement.create_trade(USER, "SHOP.TO", "BUY", 5, 110.0, date(2024, 1, 3))

        original = sql_store.insert_closed_trade
        calls = []

        def fail_on_second(record) -> None:
            calls.append(record)
            if len(calls) == 2:
                raise RuntimeError("connection lost")
            original(record)

        monkeypatch.setattr(sql_store, "insert_closed_trade", fail_on_second)
        with pytest.raises(RuntimeError):
            sql_settlement.create_trade(USER, "SHOP.TO", "SELL", 8, 120.0, date(2024, 1, 4))

        assert [lot.quantity_remaining for lot in sql_store.find_buy_lots(USER, "SHOP.TO")] == [5, 5]
        assert sql_store.list_closed_trades(USER) == []
        assert len(sql_store.list_trades(USER)) == 2

    def test_driver_errors_become_persistence_errors(self, sql_store) -> None:
        with pytest.raises(PersistenceError, match="Portfolio store failure"):
            with sql_store.transaction():
                sql_store.add_instrument(Instrument("RY.TO", "Royal Bank", "CAD"))
                raise SQLAlchemyError("deadlock detected")

        assert sql_store.find_instrument("RY.TO") is None

    def test_nested_transaction_commits_once(self, sql_store) -> None:
        with sql_store.transaction() as outer:
            with sql_store.transaction() as inner:
                assert inner is outer
                sql_store.add_instrument(Instrument("RY.TO", "Royal Bank", "CAD"))

        assert sql_store.find_instrument("RY.TO").currency == "CAD"
