"""
Stochastic (14, 7, 7) 계산.

[ 계산 방식 ]
    fast %K = 100 * (close - lowest_low) / (highest_high - lowest_low)
              lowest_low / highest_high 는 최근 k_period 행 기준.
              highest_high == lowest_low 이면 0.
    발행 값  = 최근 k_slowing개 fast %K 의 단순 평균

[ 유효 구간 ]
    row index i >= k_period + k_slowing - 1 인 행부터.
"""

import numpy as np
import pandas as pd

K_PERIOD = 14
K_SLOWING = 7


def calculate_fast_k(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    k_period: int = K_PERIOD,
) -> pd.Series:
    """fast %K. 윈도우가 모자란 행은 NaN, 가격 범위 0 이면 0."""
    lowest_low = low.rolling(window=k_period).min()
    highest_high = high.rolling(window=k_period).max()
    price_range = highest_high - lowest_low

    fast_k = 100 * (close - lowest_low) / price_range.where(price_range != 0)
    return fast_k.where(price_range != 0, 0.0).where(price_range.notna())


def calculate_stochastic(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    k_period: int = K_PERIOD,
    k_slowing: int = K_SLOWING,
) -> pd.Series:
    """slow %K (fast %K 의 k_slowing 이동평균)."""
    fast_k = calculate_fast_k(high, low, close, k_period)
    slow_k = fast_k.rolling(window=k_slowing).mean()

    min_index = k_period + k_slowing - 1
    position = np.arange(len(slow_k))
    return slow_k.where(position >= min_index)
