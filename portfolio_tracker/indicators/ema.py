"""
EMA (Exponential Moving Average) 계산.

[ 계산 방식 ]
    seed = 처음 period개 종가의 단순 평균 (row period-1 에 위치)
    이후 EMA = close * k + prev * (1 - k),  k = 2 / (period + 1)
    row period-1 이전은 NaN.
"""

import numpy as np
import pandas as pd

EMA_PERIODS = (20, 50, 200)


def calculate_ema(close: pd.Series, period: int) -> pd.Series:
    """SMA seed EMA. 반환 index는 입력과 동일."""
    result = pd.Series(np.nan, index=close.index, dtype="float64")
    if len(close) < period:
        return result

    values = close.to_numpy(dtype="float64")
    seed = values[:period].mean()

    # [seed, close[period], close[period+1], ...] 에 adjust=False 재귀 적용
    chain = pd.Series(np.concatenate(([seed], values[period:])))
    ema = chain.ewm(alpha=2.0 / (period + 1), adjust=False).mean().to_numpy()

    out = result.to_numpy(copy=True)
    out[period - 1:] = ema
    return pd.Series(out, index=close.index, dtype="float64")
