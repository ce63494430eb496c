"""
ClickHouse 데이터베이스 스키마 정의 및 연결 관리.

[ 테이블 ]
    stock_ohlcv      - 일봉 (외부 수집기가 적재, MergeTree)
    indicators       - (symbol, date)별 지표 (ReplacingMergeTree, 조회 시 FINAL)
    strategy_results - (strategy_id, symbol)별 최신 추천 (ReplacingMergeTree, 조회 시 FINAL)

[ upsert 방식 ]
    ReplacingMergeTree(updated_at) 는 정렬 키가 같은 행 중 updated_at 이 가장 큰 행만 남긴다.
    따라서 같은 키로 다시 INSERT 하면 갱신과 동일하게 동작한다.
"""

import clickhouse_connect
from clickhouse_connect.driver import Client

from portfolio_tracker.utils.logger import get_logger

logger = get_logger("store")

CREATE_OHLCV_TABLE = """
CREATE TABLE IF NOT EXISTS stock_ohlcv (
    ticker String,
    date Date,
    open Float64,
    high Float64,
    low Float64,
    close Float64,
    adjusted_close Float64,
    volume UInt64,
    source String DEFAULT 'external',
    ingestion_time DateTime DEFAULT now()
)
ENGINE = MergeTree()
PARTITION BY toYYYYMM(date)
ORDER BY (ticker, date)
SETTINGS index_granularity = 8192
"""

CREATE_INDICATORS_TABLE = """
CREATE TABLE IF NOT EXISTS indicators (
    symbol String,
    date Date,
    rsi25 Nullable(Float64),
    ema20 Nullable(Float64),
    ema50 Nullable(Float64),
    ema200 Nullable(Float64),
    stochastic_14_7_7 Nullable(Float64),
    pivot Nullable(String),
    updated_at DateTime64(3) DEFAULT now64(3)
)
ENGINE = ReplacingMergeTree(updated_at)
PARTITION BY toYear(date)
ORDER BY (symbol, date)
"""

CREATE_STRATEGY_RESULTS_TABLE = """
CREATE TABLE IF NOT EXISTS strategy_results (
    strategy_id String,
    symbol String,
    date Date,
    recommendation String,
    metadata String,
    updated_at DateTime64(3) DEFAULT now64(3)
)
ENGINE = ReplacingMergeTree(updated_at)
ORDER BY (strategy_id, symbol)
"""


def get_client(
    host: str = "localhost",
    port: int = 8123,
    database: str = "default",
    user: str = "default",
    password: str = "password",
) -> Client:
    """
    ClickHouse 클라이언트 연결 생성

    Args:
        host: ClickHouse 호스트
        port: HTTP 포트 (기본값: 8123)
        database: 데이터베이스 이름
        user: 사용자 이름
        password: 비밀번호
    """
    return clickhouse_connect.get_client(
        host=host,
        port=port,
        database=database,
        username=user,
        password=password,
    )


def initialize_schema(client: Client) -> None:
    """필요한 테이블 생성 (이미 존재하면 무시)."""
    for ddl in (CREATE_OHLCV_TABLE, CREATE_INDICATORS_TABLE, CREATE_STRATEGY_RESULTS_TABLE):
        client.command(ddl)
    logger.info("ClickHouse 테이블 생성 완료 (또는 이미 존재)")
