"""
메모리 기반 저장소 구현.

[ 역할 ]
    외부 DB 없이 PortfolioStore / MarketStore 를 제공.
    가격은 종목별 DataFrame으로 보관 (load_prices로 적재).

[ 포함 클래스 ]
    InMemoryPortfolioStore - 거래 lot, 청산 기록, 원장, 종목
    InMemoryMarketStore    - 일봉, 지표 row, 전략 결과

[ 트랜잭션 ]
    가장 바깥 transaction() 진입 시 상태를 deepcopy 해두고
    블록에서 예외가 나면 스냅샷으로 되돌린 뒤 예외를 다시 던진다.

[ 호출하는 곳 ]
    - run_pipeline.py (--source sample)
    - tests/ 전반
"""

import copy
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Iterator, Optional

import pandas as pd

from portfolio_tracker.core.models import (
    ClosedTrade,
    IndicatorRow,
    Instrument,
    LedgerEntry,
    StrategyResult,
    TradeLot,
    TradeSide,
)
from portfolio_tracker.core.store import MIN_MAX_COLUMNS, PRICE_COLUMNS, MarketStore, PortfolioStore


class _SnapshotTransactions:
    """_state_attrs 에 나열된 속성을 스냅샷/복원하는 transaction() 믹스인."""

    _state_attrs: tuple[str, ...] = ()

    def _init_transactions(self) -> None:
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = {name: copy.deepcopy(getattr(self, name)) for name in self._state_attrs}
        self._depth = 1
        try:
            yield
        except BaseException:
            for name, value in snapshot.items():
                setattr(self, name, value)
            raise
        finally:
            self._depth = 0


class InMemoryPortfolioStore(_SnapshotTransactions, PortfolioStore):
    """메모리 거래/원장 저장소.

    사용 예:
        store = InMemoryPortfolioStore()
        store.add_instrument(Instrument("SHOP.TO", currency="CAD"))
    """

    _state_attrs = ("_instruments", "_lots", "_closed", "_ledger", "_next_lot_id", "_next_entry_id")

    def __init__(self):
        self._instruments: dict[str, Instrument] = {}
        self._lots: dict[int, TradeLot] = {}           # id → lot
        self._closed: list[ClosedTrade] = []
        self._ledger: list[LedgerEntry] = []
        self._next_lot_id = 1
        self._next_entry_id = 1
        self._init_transactions()

    def find_instrument(self, symbol: str) -> Optional[Instrument]:
        return self._instruments.get(symbol)

    def list_instruments(self) -> list[Instrument]:
        return sorted(self._instruments.values(), key=lambda i: i.symbol)

    def add_instrument(self, instrument: Instrument) -> None:
        self._instruments[instrument.symbol] = instrument

    def insert_trade(self, lot: TradeLot) -> TradeLot:
        stored = copy.copy(lot)
        stored.id = self._next_lot_id
        self._next_lot_id += 1
        self._lots[stored.id] = stored
        return copy.copy(stored)

    def find_buy_lots(self, user_id: int, symbol: str, open_only: bool = True) -> list[TradeLot]:
        lots = [
            lot for lot in self._lots.values()
            if lot.user_id == user_id
            and lot.symbol == symbol
            and lot.side == TradeSide.BUY
            and (not open_only or lot.quantity_remaining > 0)
        ]
        lots.sort(key=lambda lot: (lot.trade_date, lot.id))
        return [copy.copy(lot) for lot in lots]

    def update_lot_remaining(self, lot_id: int, quantity_remaining: Decimal) -> None:
        self._lots[lot_id].quantity_remaining = quantity_remaining

    def list_trades(self, user_id: int) -> list[TradeLot]:
        lots = [lot for lot in self._lots.values() if lot.user_id == user_id]
        lots.sort(key=lambda lot: (lot.trade_date, lot.id))
        return [copy.copy(lot) for lot in lots]

    def insert_closed_trade(self, record: ClosedTrade) -> None:
        self._closed.append(record)

    def list_closed_trades(self, user_id: int) -> list[ClosedTrade]:
        return [r for r in self._closed if r.user_id == user_id]

    def insert_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        stored = copy.copy(entry)
        stored.id = self._next_entry_id
        self._next_entry_id += 1
        self._ledger.append(stored)
        return copy.copy(stored)

    def fold_ledger_entries(self, user_id: int) -> list[LedgerEntry]:
        return [copy.copy(e) for e in self._ledger if e.user_id == user_id]


class InMemoryMarketStore(_SnapshotTransactions, MarketStore):
    """DataFrame 기반 시장 데이터 저장소.

    사용 예:
        store = InMemoryMarketStore()
        store.load_prices("SHOP.TO", bars_df)   # columns: date, open, high, low, close, volume
    """

    _state_attrs = ("_indicators", "_results")

    def __init__(self):
        self._prices: dict[str, pd.DataFrame] = {}                        # symbol → 일봉
        self._indicators: dict[tuple[str, date], dict[str, Any]] = {}     # (symbol, date) → 필드
        self._results: dict[tuple[str, str], StrategyResult] = {}         # (strategy_id, symbol) → 결과
        self._init_transactions()

    def load_prices(self, symbol: str, df: pd.DataFrame) -> None:
        """일봉 적재. 같은 종목을 다시 적재하면 교체."""
        df = df.copy()
        df["date"] = pd.to_datetime(df["date"]).dt.date
        df["symbol"] = symbol
        if "volume" not in df.columns:
            df["volume"] = 0
        self._prices[symbol] = df[PRICE_COLUMNS].sort_values("date").reset_index(drop=True)

    # ─── 가격 ────────────────────────────────────────────────────────────

    def list_symbols(self) -> list[str]:
        return sorted(self._prices.keys())

    def fetch_price_bars(
        self,
        symbols: list[str],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> pd.DataFrame:
        frames = []
        for symbol in sorted(set(symbols)):
            df = self._prices.get(symbol)
            if df is None:
                continue
            mask = pd.Series(True, index=df.index)
            if start_date is not None:
                mask &= df["date"] >= start_date
            if end_date is not None:
                mask &= df["date"] <= end_date
            frames.append(df[mask])

        if not frames:
            return pd.DataFrame(columns=PRICE_COLUMNS)
        return pd.concat(frames, ignore_index=True)

    def min_max_over_period(self, symbols: list[str], since: date, until: date) -> pd.DataFrame:
        rows = []
        for symbol in sorted(set(symbols)):
            df = self._prices.get(symbol)
            if df is None:
                continue
            window = df[(df["date"] > since) & (df["date"] <= until)]
            if window.empty:
                continue
            rows.append({
                "symbol": symbol,
                "min_price": float(window["close"].min()),
                "max_price": float(window["close"].max()),
                "current_price": float(window["close"].iloc[-1]),
            })
        return pd.DataFrame(rows, columns=MIN_MAX_COLUMNS)

    # ─── 지표 ────────────────────────────────────────────────────────────

    def indicator_symbols(self) -> set[str]:
        return {symbol for symbol, _ in self._indicators}

    def indicator_watermark(self) -> Optional[date]:
        if not self._indicators:
            return None
        return max(d for _, d in self._indicators)

    def upsert_indicator_row(self, symbol: str, row_date: date, fields: dict[str, Any]) -> None:
        self._indicators[(symbol, row_date)] = copy.deepcopy(fields)

    def get_indicator_rows(self, symbol: str) -> list[IndicatorRow]:
        keys = sorted(k for k in self._indicators if k[0] == symbol)
        return [IndicatorRow(symbol=s, date=d, **copy.deepcopy(self._indicators[(s, d)])) for s, d in keys]

    def latest_indicator_rows(
        self, symbols: list[str], as_of: Optional[date] = None
    ) -> dict[str, IndicatorRow]:
        latest: dict[str, date] = {}
        wanted = set(symbols)
        for symbol, row_date in self._indicators:
            if as_of is not None and row_date > as_of:
                continue
            if symbol in wanted and (symbol not in latest or row_date > latest[symbol]):
                latest[symbol] = row_date
        return {
            symbol: IndicatorRow(symbol=symbol, date=d, **copy.deepcopy(self._indicators[(symbol, d)]))
            for symbol, d in latest.items()
        }

    # ─── 전략 결과 ───────────────────────────────────────────────────────

    def upsert_strategy_result(self, strategy_id: str, symbol: str, fields: dict[str, Any]) -> None:
        self._results[(strategy_id, symbol)] = StrategyResult(
            strategy_id=strategy_id,
            symbol=symbol,
            date=fields["date"],
            recommendation=copy.deepcopy(fields["recommendation"]),
            metadata=copy.deepcopy(fields.get("metadata", {})),
        )

    def get_strategy_results(self, symbol: str) -> list[StrategyResult]:
        results = [r for (_, s), r in self._results.items() if s == symbol]
        return sorted(results, key=lambda r: r.strategy_id)
