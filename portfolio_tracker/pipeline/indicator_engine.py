"""
지표 배치 계산 엔진.

[ 역할 ]
    종목 목록의 일봉을 읽어 지표를 계산하고 (symbol, date)별로 저장소에 upsert.

[ 실행 흐름 ]
    run(symbols, as_of) 호출 시:
        1. 지표 row가 이미 있는 종목(EXISTING)과 없는 종목(NEW)으로 분리
        2. EXISTING: watermark(전 종목 최신 지표 날짜) 기준
                     (watermark - incremental_window_days, as_of] 구간 일봉으로 계산,
                     watermark 이후 날짜만 저장
        3. NEW:      as_of 까지 전체 이력으로 계산, 전부 저장
        4. 종목마다 저장소 트랜잭션 하나로 upsert

[ 실패 처리 ]
    UpstreamComputeError - 로그 남기고 해당 종목만 건너뜀 (symbols_skipped 증가)
    PersistenceError     - 해당 종목 트랜잭션 롤백 후 호출자에게 전파
                           (이미 커밋된 종목은 유지)

[ 호출하는 곳 ]
    - service.py::PortfolioService.run_batch_recompute()
    - run_pipeline.py
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

import pandas as pd

from portfolio_tracker.core.errors import UpstreamComputeError
from portfolio_tracker.core.models import IndicatorRow
from portfolio_tracker.core.store import MarketStore
from portfolio_tracker.indicators.calculator import compute_indicator_rows
from portfolio_tracker.utils.logger import get_logger

logger = get_logger("indicators")


@dataclass
class IndicatorRunReport:
    """지표 배치 실행 결과."""
    rows_written: int = 0
    symbols_processed: int = 0
    symbols_skipped: int = 0
    new_symbols: int = 0
    existing_symbols: int = 0
    failures: dict[str, str] = field(default_factory=dict)   # 건너뛴 종목 → 사유

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_written": self.rows_written,
            "symbols_processed": self.symbols_processed,
            "symbols_skipped": self.symbols_skipped,
            "new_symbols": self.new_symbols,
            "existing_symbols": self.existing_symbols,
        }


class IndicatorEngine:
    """지표 배치 엔진. run()으로 실행."""

    def __init__(self, store: MarketStore, incremental_window_days: int = 365):
        self.store = store
        self.incremental_window_days = incremental_window_days

    def run(self, symbols: list[str], as_of: date) -> IndicatorRunReport:
        """지표 계산 및 저장.

        Args:
            symbols: 대상 종목
            as_of: 기준일 (이 날짜까지의 일봉만 사용)
        """
        report = IndicatorRunReport()
        symbols = sorted(set(symbols))
        if not symbols:
            logger.warning("지표 계산 대상 종목이 없습니다.")
            return report

        known = self.store.indicator_symbols()
        existing = [s for s in symbols if s in known]
        new = [s for s in symbols if s not in known]
        report.existing_symbols = len(existing)
        report.new_symbols = len(new)

        logger.info(f"지표 계산 시작: 기존 {len(existing)}종목, 신규 {len(new)}종목 (as_of={as_of})")

        if existing:
            self._run_incremental(existing, as_of, report)
        if new:
            self._run_full(new, as_of, report)

        logger.info(
            f"지표 계산 완료: {report.rows_written}행 저장, "
            f"처리 {report.symbols_processed} / 건너뜀 {report.symbols_skipped}"
        )
        return report

    def _run_incremental(self, symbols: list[str], as_of: date, report: IndicatorRunReport) -> None:
        watermark = self.store.indicator_watermark()
        if watermark is None:
            self._run_full(symbols, as_of, report)
            return
        if watermark >= as_of:
            logger.info(f"기존 종목은 이미 최신 (watermark={watermark})")
            report.symbols_processed += len(symbols)
            return

        # (watermark - window, as_of] 구간
        start = watermark - timedelta(days=self.incremental_window_days) + timedelta(days=1)
        bars = self.store.fetch_price_bars(symbols, start, as_of)
        logger.debug(f"증분 계산: {start} ~ {as_of}, watermark={watermark}")
        self._process_group(symbols, bars, report, after=watermark, require_bars=False)

    def _run_full(self, symbols: list[str], as_of: date, report: IndicatorRunReport) -> None:
        bars = self.store.fetch_price_bars(symbols, None, as_of)
        self._process_group(symbols, bars, report, after=None, require_bars=True)

    def _process_group(
        self,
        symbols: list[str],
        bars: pd.DataFrame,
        report: IndicatorRunReport,
        after: date | None,
        require_bars: bool,
    ) -> None:
        grouped = {symbol: df for symbol, df in bars.groupby("symbol", sort=True)} if not bars.empty else {}

        for symbol in symbols:
            symbol_bars = grouped.get(symbol)
            try:
                if symbol_bars is None or symbol_bars.empty:
                    if require_bars:
                        raise UpstreamComputeError(symbol, "no price data")
                    report.symbols_processed += 1
                    continue
                rows = compute_indicator_rows(symbol, symbol_bars, after=after)
            except UpstreamComputeError as e:
                logger.warning(f"[SKIP] {e.message}")
                report.symbols_skipped += 1
                report.failures[symbol] = e.reason
                continue

            report.rows_written += self._persist(symbol, rows)
            report.symbols_processed += 1

    def _persist(self, symbol: str, rows: list[IndicatorRow]) -> int:
        """종목 하나의 row를 트랜잭션 하나로 upsert."""
        if not rows:
            return 0
        with self.store.transaction():
            for row in rows:
                self.store.upsert_indicator_row(symbol, row.date, row.fields())
        logger.debug(f"{symbol}: {len(rows)}행 저장 ({rows[0].date} ~ {rows[-1].date})")
        return len(rows)
