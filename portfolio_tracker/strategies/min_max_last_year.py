"""
최근 1년 최저/최고 대비 위치 전략.

[ 역할 ]
    현재가가 최근 min_max_period_days 동안 종가 범위의 어디쯤인지 백분율로 계산.
        pct = (현재가 - 최저) / (최고 - 최저) * 100
    pct <= buy_threshold → BUY, pct >= sell_threshold → SELL, 그 외 HOLD.

[ 데이터 ]
    store.min_max_over_period() 한 번으로 전 종목의 최저/최고/현재가를 가져온다.
    현재가가 없거나(<= 0) 최고 == 최저 인 종목은 건너뛴다.
"""

from datetime import timedelta

import pandas as pd

from portfolio_tracker.core.strategy import (
    Single,
    StrategyCalculator,
    StrategyContext,
    StrategyId,
    SymbolRecommendation,
    threshold_signal,
)
from portfolio_tracker.strategies import register
from portfolio_tracker.utils.logger import get_logger

logger = get_logger("strategies")


@register(StrategyId.MIN_MAX_LAST_YEAR)
class MinMaxLastYearStrategy(StrategyCalculator):
    """1년 가격 범위 내 현재가 위치 전략."""

    strategy_id = StrategyId.MIN_MAX_LAST_YEAR

    def compute_batch(self, symbols: list[str], context: StrategyContext) -> list[SymbolRecommendation]:
        period = context.min_max_period_days
        since = context.as_of - timedelta(days=period)
        frame = context.store.min_max_over_period(symbols, since, context.as_of)

        results = []
        for row in frame.itertuples(index=False):
            price = row.current_price
            low, high = float(row.min_price), float(row.max_price)
            if pd.isna(price) or price <= 0:
                logger.debug(f"{row.symbol}: 현재가 없음, 건너뜀")
                continue
            if high == low:
                logger.debug(f"{row.symbol}: 가격 범위 0, 건너뜀")
                continue

            pct = (float(price) - low) / (high - low) * 100
            signal = threshold_signal(pct, context.buy_threshold, context.sell_threshold)
            results.append(SymbolRecommendation(
                symbol=row.symbol,
                recommendation=Single(signal),
                metadata={
                    "percentage": f"{pct:.2f}",
                    "min_price": f"{low:.2f}",
                    "max_price": f"{high:.2f}",
                    "current_price": f"{float(price):.2f}",
                    "calculation_period_days": period,
                    "buy_threshold": context.buy_threshold,
                    "sell_threshold": context.sell_threshold,
                },
            ))
        return results

    def describe(self) -> str:
        return "현재가의 1년 최저/최고 범위 내 위치 (<=20% BUY, >=80% SELL)"
