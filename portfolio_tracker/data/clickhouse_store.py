"""
ClickHouse 기반 MarketStore 구현.

[ 역할 ]
    stock_ohlcv 의 일봉을 조회하고 지표/전략 결과를 ReplacingMergeTree 에 upsert.

[ 의존성 ]
    - core/store.py::MarketStore (추상 클래스)
    - ingestion/clickhouse_schema.py (연결 및 스키마)

[ 트랜잭션 ]
    ClickHouse 는 다중 문장 트랜잭션이 없으므로, transaction() 블록 안의 upsert 는
    메모리에 모아 두었다가 블록이 정상 종료될 때 테이블별 INSERT 한 번으로 기록한다.
    블록에서 예외가 나면 버퍼를 버린다. 블록 안의 조회는 아직 기록되지 않은 행을 보지 못한다.

[ 호출하는 곳 ]
    - run_pipeline.py (--source clickhouse)
    - service.py::PortfolioService.from_config()
"""

import json
from contextlib import contextmanager
from datetime import date
from typing import Any, Iterator, Optional

import pandas as pd
from clickhouse_connect.driver import Client
from clickhouse_connect.driver.exceptions import ClickHouseError

from portfolio_tracker.core.errors import PersistenceError
from portfolio_tracker.core.models import IndicatorRow, StrategyResult
from portfolio_tracker.core.store import MIN_MAX_COLUMNS, PRICE_COLUMNS, MarketStore
from portfolio_tracker.ingestion.clickhouse_schema import get_client
from portfolio_tracker.utils.logger import get_logger

logger = get_logger("store")

INDICATOR_COLUMNS = ["symbol", "date", "rsi25", "ema20", "ema50", "ema200", "stochastic_14_7_7", "pivot"]
RESULT_COLUMNS = ["strategy_id", "symbol", "date", "recommendation", "metadata"]


class ClickHouseMarketStore(MarketStore):
    """ClickHouse 시장 데이터 저장소.

    사용 예:
        store = ClickHouseMarketStore.connect(host="localhost", password="password")
        bars = store.fetch_price_bars(["SHOP.TO"], date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(self, client: Client, use_adjusted_close: bool = True):
        """
        Args:
            client: clickhouse-connect 클라이언트
            use_adjusted_close: True이면 adjusted_close를 close로 사용
        """
        self.client = client
        self.use_adjusted_close = use_adjusted_close
        self._depth = 0
        self._indicator_buffer: list[list[Any]] = []
        self._result_buffer: list[list[Any]] = []

    @classmethod
    def connect(
        cls,
        host: str = "localhost",
        port: int = 8123,
        database: str = "default",
        user: str = "default",
        password: str = "password",
        use_adjusted_close: bool = True,
    ) -> "ClickHouseMarketStore":
        try:
            client = get_client(host, port, database, user, password)
        except ClickHouseError as e:
            raise PersistenceError(f"Failed to connect to ClickHouse at {host}:{port}: {e}") from e
        return cls(client, use_adjusted_close=use_adjusted_close)

    def close(self) -> None:
        """ClickHouse 연결 종료."""
        self.client.close()

    # ─── 내부 헬퍼 ───────────────────────────────────────────────────────

    def _query_rows(self, query: str, parameters: Optional[dict[str, Any]] = None) -> list[tuple]:
        try:
            result = self.client.query(query, parameters=parameters or {})
        except ClickHouseError as e:
            raise PersistenceError(f"ClickHouse query failed: {e}") from e
        return result.result_rows

    def _insert(self, table: str, rows: list[list[Any]], columns: list[str]) -> None:
        if not rows:
            return
        try:
            self.client.insert(table, rows, column_names=columns)
        except ClickHouseError as e:
            raise PersistenceError(f"ClickHouse insert into {table} failed: {e}") from e

    def _flush(self) -> None:
        indicator_rows, self._indicator_buffer = self._indicator_buffer, []
        result_rows, self._result_buffer = self._result_buffer, []
        self._insert("indicators", indicator_rows, INDICATOR_COLUMNS)
        self._insert("strategy_results", result_rows, RESULT_COLUMNS)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        except BaseException:
            if self._depth == 1:
                self._indicator_buffer.clear()
                self._result_buffer.clear()
            raise
        else:
            if self._depth == 1:
                self._flush()
        finally:
            self._depth -= 1

    # ─── 가격 ────────────────────────────────────────────────────────────

    def list_symbols(self) -> list[str]:
        rows = self._query_rows("SELECT DISTINCT ticker FROM stock_ohlcv ORDER BY ticker")
        return [row[0] for row in rows]

    def fetch_price_bars(
        self,
        symbols: list[str],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> pd.DataFrame:
        if not symbols:
            return pd.DataFrame(columns=PRICE_COLUMNS)

        close_column = "adjusted_close" if self.use_adjusted_close else "close"
        conditions = ["ticker IN %(symbols)s"]
        parameters: dict[str, Any] = {"symbols": tuple(symbols)}
        if start_date is not None:
            conditions.append("date >= %(start_date)s")
            parameters["start_date"] = start_date
        if end_date is not None:
            conditions.append("date <= %(end_date)s")
            parameters["end_date"] = end_date

        query = f"""
            SELECT ticker, date, open, high, low, {close_column} AS close, volume
            FROM stock_ohlcv
            WHERE {' AND '.join(conditions)}
            ORDER BY ticker ASC, date ASC
        """
        rows = self._query_rows(query, parameters)
        return pd.DataFrame(rows, columns=PRICE_COLUMNS)

    def min_max_over_period(self, symbols: list[str], since: date, until: date) -> pd.DataFrame:
        if not symbols:
            return pd.DataFrame(columns=MIN_MAX_COLUMNS)

        close_column = "adjusted_close" if self.use_adjusted_close else "close"
        query = f"""
            SELECT
                ticker,
                min({close_column}) AS min_price,
                max({close_column}) AS max_price,
                argMax({close_column}, date) AS current_price
            FROM stock_ohlcv
            WHERE ticker IN %(symbols)s
              AND date > %(since)s
              AND date <= %(until)s
            GROUP BY ticker
            ORDER BY ticker
        """
        rows = self._query_rows(query, {"symbols": tuple(symbols), "since": since, "until": until})
        return pd.DataFrame(rows, columns=MIN_MAX_COLUMNS)

    # ─── 지표 ────────────────────────────────────────────────────────────

    def indicator_symbols(self) -> set[str]:
        rows = self._query_rows("SELECT DISTINCT symbol FROM indicators FINAL")
        return {row[0] for row in rows}

    def indicator_watermark(self) -> Optional[date]:
        rows = self._query_rows("SELECT maxOrNull(date) FROM indicators FINAL")
        return rows[0][0] if rows else None

    def upsert_indicator_row(self, symbol: str, row_date: date, fields: dict[str, Any]) -> None:
        pivot = fields.get("pivot")
        row = [
            symbol,
            row_date,
            fields.get("rsi25"),
            fields.get("ema20"),
            fields.get("ema50"),
            fields.get("ema200"),
            fields.get("stochastic_14_7_7"),
            json.dumps(pivot) if pivot is not None else None,
        ]
        if self._depth > 0:
            self._indicator_buffer.append(row)
        else:
            self._insert("indicators", [row], INDICATOR_COLUMNS)

    def _to_indicator_row(self, row: tuple) -> IndicatorRow:
        symbol, row_date, rsi25, ema20, ema50, ema200, stochastic, pivot = row
        return IndicatorRow(
            symbol=symbol,
            date=row_date,
            rsi25=rsi25,
            ema20=ema20,
            ema50=ema50,
            ema200=ema200,
            stochastic_14_7_7=stochastic,
            pivot=json.loads(pivot) if pivot else None,
        )

    def get_indicator_rows(self, symbol: str) -> list[IndicatorRow]:
        query = f"""
            SELECT {', '.join(INDICATOR_COLUMNS)}
            FROM indicators FINAL
            WHERE symbol = %(symbol)s
            ORDER BY date ASC
        """
        return [self._to_indicator_row(row) for row in self._query_rows(query, {"symbol": symbol})]

    def latest_indicator_rows(
        self, symbols: list[str], as_of: Optional[date] = None
    ) -> dict[str, IndicatorRow]:
        if not symbols:
            return {}

        conditions = ["symbol IN %(symbols)s"]
        parameters: dict[str, Any] = {"symbols": tuple(symbols)}
        if as_of is not None:
            conditions.append("date <= %(as_of)s")
            parameters["as_of"] = as_of

        query = f"""
            SELECT {', '.join(INDICATOR_COLUMNS)}
            FROM indicators FINAL
            WHERE {' AND '.join(conditions)}
            ORDER BY symbol ASC, date DESC
            LIMIT 1 BY symbol
        """
        rows = self._query_rows(query, parameters)
        return {row[0]: self._to_indicator_row(row) for row in rows}

    # ─── 전략 결과 ───────────────────────────────────────────────────────

    def upsert_strategy_result(self, strategy_id: str, symbol: str, fields: dict[str, Any]) -> None:
        row = [
            strategy_id,
            symbol,
            fields["date"],
            json.dumps(fields["recommendation"]),
            json.dumps(fields.get("metadata", {})),
        ]
        if self._depth > 0:
            self._result_buffer.append(row)
        else:
            self._insert("strategy_results", [row], RESULT_COLUMNS)

    def get_strategy_results(self, symbol: str) -> list[StrategyResult]:
        query = f"""
            SELECT {', '.join(RESULT_COLUMNS)}
            FROM strategy_results FINAL
            WHERE symbol = %(symbol)s
            ORDER BY strategy_id
        """
        return [
            StrategyResult(
                strategy_id=strategy_id,
                symbol=row_symbol,
                date=row_date,
                recommendation=json.loads(recommendation),
                metadata=json.loads(metadata),
            )
            for strategy_id, row_symbol, row_date, recommendation, metadata
            in self._query_rows(query, {"symbol": symbol})
        ]
