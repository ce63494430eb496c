"""
멀티 윈도우 피벗 포인트 계산.

[ 윈도우 ]
    week  - 최근 7행,   최소 2행
    month - 최근 30행,  최소 5행
    year  - 최근 365행, 최소 30행
    (거래일 행 기준. 윈도우 시작이 0보다 앞이면 0부터)

[ 계산 방식 ]
    H = 윈도우 최고가, L = 최저가, C = 마지막 종가, O = 첫 시가
    P  = (H + L + C + O) / 4
    R1 = 2P - L,        S1 = 2P - H
    R2 = P + (H - L),   S2 = P - (H - L)
    R3 = H + 2(P - L),  S3 = L - 2(H - P)
    모든 값 소수점 2자리 반올림.

[ 저장 형식 ]
    {"week": {"pivot":..,"r1":..,...,"s3":..}, "month": {...}, "year": {...}}
    데이터가 모자란 윈도우는 키 자체가 빠지고, 전부 모자라면 None.
"""

from typing import Optional

import numpy as np
import pandas as pd

# (윈도우 이름, 행 수, 최소 행 수)
PIVOT_WINDOWS = [
    ("week", 7, 2),
    ("month", 30, 5),
    ("year", 365, 30),
]

LEVEL_KEYS = ["pivot", "r1", "r2", "r3", "s1", "s2", "s3"]


def calculate_window_levels(bars: pd.DataFrame, window: int, min_rows: int) -> pd.DataFrame:
    """윈도우 하나의 피벗 레벨 7개를 행마다 계산. 데이터 부족 행은 NaN.

    Args:
        bars: open/high/low/close 컬럼, 날짜 오름차순
    """
    h = bars["high"].rolling(window=window, min_periods=min_rows).max()
    l = bars["low"].rolling(window=window, min_periods=min_rows).min()
    c = bars["close"]

    position = np.arange(len(bars))
    first_idx = np.maximum(position - window + 1, 0)
    o = pd.Series(bars["open"].to_numpy()[first_idx], index=bars.index)

    p = (h + l + c + o) / 4
    levels = pd.DataFrame({
        "pivot": p,
        "r1": 2 * p - l,
        "r2": p + (h - l),
        "r3": h + 2 * (p - l),
        "s1": 2 * p - h,
        "s2": p - (h - l),
        "s3": l - 2 * (h - p),
    }, index=bars.index)
    return levels.round(2)


def calculate_pivots(bars: pd.DataFrame) -> list[Optional[dict[str, dict[str, float]]]]:
    """행마다 윈도우별 피벗 dict 리스트 반환 (입력 행 순서)."""
    per_window = {}
    for name, window, min_rows in PIVOT_WINDOWS:
        values = calculate_window_levels(bars, window, min_rows)[LEVEL_KEYS].to_numpy()
        per_window[name] = (values, ~np.isnan(values).any(axis=1))

    pivots: list[Optional[dict[str, dict[str, float]]]] = []
    for i in range(len(bars)):
        entry = {}
        for name, (values, valid) in per_window.items():
            if valid[i]:
                entry[name] = dict(zip(LEVEL_KEYS, values[i].tolist()))
        pivots.append(entry or None)
    return pivots
