"""
지표/전략 배치 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 샘플 데이터로 실행 (메모리 저장소)
    python run_pipeline.py

    # 종목 / 기준일 지정
    python run_pipeline.py --symbols SHOP.TO RY.TO --as-of 2024-06-28

    # ClickHouse 데이터 사용 (지표/전략 결과도 ClickHouse에 저장)
    python run_pipeline.py --source clickhouse --config config.yaml

    # 등록된 전략 목록 확인
    python run_pipeline.py --list
"""

import argparse
import zlib
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pandas as pd

from portfolio_tracker.core.store import MarketStore
from portfolio_tracker.data.memory_store import InMemoryMarketStore, InMemoryPortfolioStore
from portfolio_tracker.ingestion.clickhouse_schema import initialize_schema
from portfolio_tracker.service import BatchRunReport, PortfolioService
from portfolio_tracker.strategies import STRATEGY_REGISTRY, list_strategies
from portfolio_tracker.utils.config import Config
from portfolio_tracker.utils.logger import setup_logger

SAMPLE_SYMBOLS = ["SHOP.TO", "RY.TO", "AAPL"]


def generate_sample_data(
    symbol: str,
    start_date: date,
    end_date: date,
    initial_price: float = 100.0,
    volatility: float = 0.02,
) -> pd.DataFrame:
    """샘플 일봉 데이터 생성 (랜덤 워크)."""
    rng = np.random.default_rng(zlib.crc32(symbol.encode()))

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)

    returns = rng.normal(0.0002, volatility, n)
    closes = initial_price * np.cumprod(1 + returns)

    return pd.DataFrame({
        "date": dates.date,
        "open": np.round(closes * (1 + rng.normal(0, 0.005, n)), 2),
        "high": np.round(closes * (1 + np.abs(rng.normal(0, 0.01, n))), 2),
        "low": np.round(closes * (1 - np.abs(rng.normal(0, 0.01, n))), 2),
        "close": np.round(closes, 2),
        "volume": rng.lognormal(12, 1, n).astype(int),
    })


def load_sample_store(symbols: list[str], as_of: date) -> InMemoryMarketStore:
    """샘플 일봉 3년치를 담은 메모리 시장 저장소."""
    print("샘플 데이터 생성 중...")
    store = InMemoryMarketStore()
    start = as_of - timedelta(days=3 * 365)
    for symbol in symbols or SAMPLE_SYMBOLS:
        store.load_prices(symbol, generate_sample_data(symbol, start, as_of))
        print(f"  {symbol}: {start} ~ {as_of}")
    return store


def build_service(config: Config, source: str, symbols: list[str], as_of: date) -> PortfolioService:
    """데이터 소스에 맞는 저장소로 PortfolioService 생성.

    sample     - 메모리 저장소 (거래/원장도 메모리)
    clickhouse - PortfolioService.from_config() (ClickHouse + portfolio_db)
    """
    if source == "sample":
        return PortfolioService(InMemoryPortfolioStore(), load_sample_store(symbols, as_of), config)

    service = PortfolioService.from_config(config)
    initialize_schema(service.market_store.client)
    return service


def print_report(report: BatchRunReport) -> None:
    indicator_report, strategy_report = report.indicators, report.strategies
    print(f"\n{'=' * 50}")
    print("배치 실행 결과")
    print(f"{'=' * 50}")
    print(f"지표 저장 행 수:   {indicator_report.rows_written:>10d}")
    print(f"처리 종목:         {indicator_report.symbols_processed:>10d}")
    print(f"건너뛴 종목:       {indicator_report.symbols_skipped:>10d}")
    print(f"  (신규 {indicator_report.new_symbols} / 기존 {indicator_report.existing_symbols})")
    for symbol, reason in indicator_report.failures.items():
        print(f"  [SKIP] {symbol}: {reason}")
    print("-" * 50)
    for strategy_id, count in strategy_report.results_written.items():
        print(f"{strategy_id:<20s} {count:>10d}종목")
    for strategy_id, reason in strategy_report.failed_strategies.items():
        print(f"{strategy_id:<20s} 실패: {reason}")
    print(f"{'=' * 50}")


def print_recommendations(store: MarketStore, symbols: list[str]) -> None:
    print("\n종목별 추천:")
    for symbol in symbols:
        results = store.get_strategy_results(symbol)
        if not results:
            continue
        summary = ", ".join(f"{r.strategy_id}={r.recommendation}" for r in results)
        print(f"  {symbol}: {summary}")


def main():
    parser = argparse.ArgumentParser(description="지표/전략 배치 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--source", type=str, default="sample", choices=["sample", "clickhouse"], help="데이터 소스")
    parser.add_argument("--symbols", nargs="+", default=None, help="대상 종목 (기본: 설정 또는 전 종목)")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None, help="기준일 YYYY-MM-DD (기본: 오늘)")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    args = parser.parse_args()

    # 전략 목록 출력
    if args.list:
        print("등록된 전략:")
        for strategy_id in list_strategies():
            print(f"  - {strategy_id}: {STRATEGY_REGISTRY[strategy_id]().describe()}")
        return

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    setup_logger(level=config.log_level, log_dir=config.log_dir)

    as_of = args.as_of or date.today()
    requested = args.symbols or config.symbols
    service = build_service(config, args.source, requested, as_of)
    symbols = requested or service.market_store.list_symbols()
    if not symbols:
        print("\n오류: 처리할 종목이 없습니다.")
        return

    report = service.run_batch_recompute(symbols, as_of)

    print_report(report)
    print_recommendations(service.market_store, symbols)


if __name__ == "__main__":
    main()
