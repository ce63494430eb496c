"""
종목별 지표 일괄 계산.

[ 역할 ]
    한 종목의 일봉 DataFrame을 받아 RSI / EMA / Stochastic / 피벗을 모두 계산하고
    날짜별 IndicatorRow 리스트로 변환.

[ 호출하는 곳 ]
    - pipeline/indicator_engine.py::IndicatorEngine._process_symbol()

[ 데이터 흐름 ]
    bars(date, open, high, low, close) → 지표 컬럼 추가된 DataFrame
        → 소수점 2자리 반올림 → IndicatorRow (값이 하나라도 있는 행만)
"""

import math
from datetime import date
from typing import Optional

import pandas as pd

from portfolio_tracker.core.errors import UpstreamComputeError
from portfolio_tracker.core.models import IndicatorRow
from portfolio_tracker.indicators.ema import EMA_PERIODS, calculate_ema
from portfolio_tracker.indicators.pivot import calculate_pivots
from portfolio_tracker.indicators.rsi import calculate_rsi
from portfolio_tracker.indicators.stochastic import calculate_stochastic

OHLC_COLUMNS = ["open", "high", "low", "close"]


def _round2(value: float) -> Optional[float]:
    if value is None or math.isnan(value):
        return None
    return round(float(value), 2)


def compute_indicator_frame(symbol: str, bars: pd.DataFrame) -> pd.DataFrame:
    """지표 컬럼(rsi25, ema20/50/200, stochastic_14_7_7, pivot)이 추가된 DataFrame.

    Raises:
        UpstreamComputeError: 필수 컬럼이 없거나 OHLC에 결측값이 있을 때
    """
    missing = [c for c in ["date", *OHLC_COLUMNS] if c not in bars.columns]
    if missing:
        raise UpstreamComputeError(symbol, f"missing price columns: {', '.join(missing)}")
    if bars[OHLC_COLUMNS].isna().any().any():
        raise UpstreamComputeError(symbol, "price data contains missing OHLC values")

    df = bars.sort_values("date").reset_index(drop=True)
    close = df["close"].astype("float64")

    df["rsi25"] = calculate_rsi(close)
    for period in EMA_PERIODS:
        df[f"ema{period}"] = calculate_ema(close, period)
    df["stochastic_14_7_7"] = calculate_stochastic(df["high"], df["low"], close)
    df["pivot"] = calculate_pivots(df)
    return df


def compute_indicator_rows(
    symbol: str,
    bars: pd.DataFrame,
    after: Optional[date] = None,
) -> list[IndicatorRow]:
    """지표 row 리스트.

    Args:
        bars: 종목 하나의 일봉 (계산에 쓰이는 전체 윈도우)
        after: 지정 시 이 날짜 이후 row만 반환 (증분 계산)
    """
    if bars.empty:
        return []

    df = compute_indicator_frame(symbol, bars)
    if after is not None:
        df = df[df["date"] > after]

    rows = []
    for record in df.to_dict("records"):
        row = IndicatorRow(
            symbol=symbol,
            date=record["date"],
            rsi25=_round2(record["rsi25"]),
            ema20=_round2(record["ema20"]),
            ema50=_round2(record["ema50"]),
            ema200=_round2(record["ema200"]),
            stochastic_14_7_7=_round2(record["stochastic_14_7_7"]),
            pivot=record["pivot"],
        )
        if row.has_values():
            rows.append(row)
    return rows
