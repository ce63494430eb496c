"""
종가 vs EMA 전략.

[ 역할 ]
    EMA 20 / 50 / 200 각각에 대해 독립적인 시그널 3개를 만든다.
        종가 > EMA → BUY, 그 외 → SELL, EMA 값 없음 → N/A
    결과는 단일 판정이 아니라 [ema20, ema50, ema200] 순서의 시그널 리스트.

[ 데이터 ]
    종목별 최신 지표 row + 그 row 날짜의 종가.
    종가가 없는 종목은 건너뛴다.
"""

from typing import Optional

from portfolio_tracker.core.strategy import (
    Multi,
    SignalType,
    StrategyCalculator,
    StrategyContext,
    StrategyId,
    SymbolRecommendation,
)
from portfolio_tracker.strategies import register
from portfolio_tracker.strategies._common import closes_on_indicator_dates


def ema_signal(close: float, ema: Optional[float]) -> SignalType:
    if ema is None:
        return SignalType.NOT_AVAILABLE
    return SignalType.BUY if close > ema else SignalType.SELL


@register(StrategyId.EMA)
class EmaStrategy(StrategyCalculator):
    """종가와 EMA 20/50/200 비교 전략."""

    strategy_id = StrategyId.EMA

    def compute_batch(self, symbols: list[str], context: StrategyContext) -> list[SymbolRecommendation]:
        rows = context.store.latest_indicator_rows(symbols, context.as_of)
        closes = closes_on_indicator_dates(context.store, rows)

        results = []
        for symbol in sorted(rows):
            if symbol not in closes:
                continue
            row, close = rows[symbol], closes[symbol]
            signals = tuple(ema_signal(close, ema) for ema in (row.ema20, row.ema50, row.ema200))
            recommendation = Multi(signals)
            results.append(SymbolRecommendation(
                symbol=symbol,
                recommendation=recommendation,
                metadata={
                    "close": close,
                    "ema20": row.ema20,
                    "ema50": row.ema50,
                    "ema200": row.ema200,
                    "date": row.date.isoformat(),
                    "signals": recommendation.to_json(),
                },
            ))
        return results

    def describe(self) -> str:
        return "종가 vs EMA 20/50/200 (시그널 3개)"
