"""
저장소 추상 클래스 정의.

[ 역할 ]
    정산/원장/지표/전략 엔진이 의존하는 저장소 인터페이스.
    저장 기술(메모리, SQL, ClickHouse)에 독립적으로 엔진에 데이터 공급.

[ 인터페이스 ]
    PortfolioStore - 거래 lot, 청산 기록, 현금 원장, 종목 정보
    MarketStore    - 일봉 가격, 지표 row, 전략 결과

[ 구현체 ]
    - data/memory_store.py::InMemoryPortfolioStore / InMemoryMarketStore (테스트, 샘플)
    - data/sql_store.py::SqlPortfolioStore  (SQLAlchemy)
    - data/clickhouse_store.py::ClickHouseMarketStore

[ 트랜잭션 규약 ]
    transaction()은 context manager. 블록 안의 변경은 예외 시 전부 롤백된다.
    중첩 호출 시 가장 바깥 블록만 실제 커밋/롤백을 수행한다.
    PortfolioStore 구현체는 같은 lot의 quantity_remaining 읽기-수정-쓰기를
    직렬화해야 한다 (SQL: SELECT ... FOR UPDATE).
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import pandas as pd

from portfolio_tracker.core.models import (
    ClosedTrade,
    IndicatorRow,
    Instrument,
    LedgerEntry,
    StrategyResult,
    TradeLot,
)

# fetch_price_bars()가 반환하는 DataFrame 컬럼
PRICE_COLUMNS = ["symbol", "date", "open", "high", "low", "close", "volume"]

# min_max_over_period()가 반환하는 DataFrame 컬럼
MIN_MAX_COLUMNS = ["symbol", "min_price", "max_price", "current_price"]


class PortfolioStore(ABC):
    """거래/원장 저장소 추상 클래스."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """원자적 작업 블록."""
        ...

    # ─── 종목 ────────────────────────────────────────────────────────────

    @abstractmethod
    def find_instrument(self, symbol: str) -> Optional[Instrument]:
        """종목 조회. 없으면 None."""
        ...

    @abstractmethod
    def list_instruments(self) -> list[Instrument]:
        ...

    @abstractmethod
    def add_instrument(self, instrument: Instrument) -> None:
        ...

    # ─── 거래 lot ────────────────────────────────────────────────────────

    @abstractmethod
    def insert_trade(self, lot: TradeLot) -> TradeLot:
        """lot 저장 후 id가 채워진 lot 반환."""
        ...

    @abstractmethod
    def find_buy_lots(
        self,
        user_id: int,
        symbol: str,
        open_only: bool = True,
    ) -> list[TradeLot]:
        """매수 lot 조회.

        Args:
            open_only: True이면 quantity_remaining > 0 인 lot만

        Returns:
            (trade_date, id) 오름차순 정렬된 리스트 (FIFO 순서)
        """
        ...

    @abstractmethod
    def update_lot_remaining(self, lot_id: int, quantity_remaining: Decimal) -> None:
        ...

    @abstractmethod
    def list_trades(self, user_id: int) -> list[TradeLot]:
        """사용자의 전체 lot (trade_date, id 오름차순)."""
        ...

    # ─── 청산 기록 ───────────────────────────────────────────────────────

    @abstractmethod
    def insert_closed_trade(self, record: ClosedTrade) -> None:
        ...

    @abstractmethod
    def list_closed_trades(self, user_id: int) -> list[ClosedTrade]:
        ...

    # ─── 현금 원장 ───────────────────────────────────────────────────────

    @abstractmethod
    def insert_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        ...

    @abstractmethod
    def fold_ledger_entries(self, user_id: int) -> list[LedgerEntry]:
        """사용자의 전체 원장 항목 (입력 순서)."""
        ...


class MarketStore(ABC):
    """가격/지표/전략결과 저장소 추상 클래스."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """원자적 작업 블록. 지표 엔진은 종목마다 하나씩 연다."""
        ...

    # ─── 가격 ────────────────────────────────────────────────────────────

    @abstractmethod
    def list_symbols(self) -> list[str]:
        """가격 데이터가 있는 종목 목록 (알파벳 순)."""
        ...

    @abstractmethod
    def fetch_price_bars(
        self,
        symbols: list[str],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> pd.DataFrame:
        """일봉 조회. start_date/end_date는 포함 범위, None이면 제한 없음.

        Returns:
            DataFrame with PRICE_COLUMNS, (symbol, date) 오름차순.
            date 컬럼은 datetime.date
        """
        ...

    @abstractmethod
    def min_max_over_period(
        self,
        symbols: list[str],
        since: date,
        until: date,
    ) -> pd.DataFrame:
        """기간 (since, until] 내 종목별 최저/최고 종가와 마지막 종가.

        Returns:
            DataFrame with MIN_MAX_COLUMNS
        """
        ...

    # ─── 지표 ────────────────────────────────────────────────────────────

    @abstractmethod
    def indicator_symbols(self) -> set[str]:
        """지표 row가 하나라도 있는 종목."""
        ...

    @abstractmethod
    def indicator_watermark(self) -> Optional[date]:
        """전 종목 통틀어 지표가 계산된 마지막 날짜."""
        ...

    @abstractmethod
    def upsert_indicator_row(self, symbol: str, row_date: date, fields: dict[str, Any]) -> None:
        """(symbol, date) 가 있으면 갱신, 없으면 삽입."""
        ...

    @abstractmethod
    def get_indicator_rows(self, symbol: str) -> list[IndicatorRow]:
        """종목의 지표 row (날짜 오름차순)."""
        ...

    @abstractmethod
    def latest_indicator_rows(
        self, symbols: list[str], as_of: Optional[date] = None
    ) -> dict[str, IndicatorRow]:
        """종목별 가장 최근 지표 row. 없는 종목은 결과에서 빠진다.

        as_of가 주어지면 date <= as_of 인 row 중에서 고른다 (과거 기준일 재현).
        """
        ...

    # ─── 전략 결과 ───────────────────────────────────────────────────────

    @abstractmethod
    def upsert_strategy_result(self, strategy_id: str, symbol: str, fields: dict[str, Any]) -> None:
        """(strategy_id, symbol) 결과 덮어쓰기.

        fields: date, recommendation, metadata
        """
        ...

    @abstractmethod
    def get_strategy_results(self, symbol: str) -> list[StrategyResult]:
        """종목의 전략별 최신 결과 (strategy_id 순)."""
        ...
