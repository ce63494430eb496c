"""
RSI (Relative Strength Index) 계산.

[ 계산 방식 ]
    change = close.diff()
    avg_gain / avg_loss = 최근 period개 change의 단순 평균 (상승분 / 하락분)
    RSI = 100 - 100 / (1 + avg_gain / avg_loss)
    avg_loss == 0 이면 정확히 100.

[ 유효 구간 ]
    row index i > period 인 행부터 값이 존재. 그 전은 NaN.
"""

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

DEFAULT_PERIOD = 25


def calculate_rsi(close: pd.Series, period: int = DEFAULT_PERIOD) -> pd.Series:
    """종가 시리즈에서 RSI 시리즈 계산. 반환 index는 입력과 동일."""
    result = pd.Series(np.nan, index=close.index, dtype="float64")
    if len(close) <= period + 1:
        return result

    change = close.diff().to_numpy()[1:]
    gains = np.where(change > 0, change, 0.0)
    losses = np.where(change < 0, -change, 0.0)

    # 윈도우 j는 change[j : j+period] → 종가 row j+period 에 대응
    avg_gain = sliding_window_view(gains, period).mean(axis=1)
    avg_loss = sliding_window_view(losses, period).mean(axis=1)

    with np.errstate(divide="ignore", invalid="ignore"):
        rsi = np.where(avg_loss == 0, 100.0, 100.0 - 100.0 / (1.0 + avg_gain / avg_loss))

    values = result.to_numpy(copy=True)
    values[period:] = rsi
    # 첫 유효 윈도우(row == period)는 제외
    values[period] = np.nan
    return pd.Series(values, index=close.index, dtype="float64")
