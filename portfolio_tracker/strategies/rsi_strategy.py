"""
RSI 임계값 전략.

[ 역할 ]
    종목별 최신 지표 row의 rsi25 값으로 판단.
    rsi25 <= buy_threshold → BUY (과매도), >= sell_threshold → SELL (과매수), 그 외 HOLD.
    rsi25 가 없는 종목은 건너뛴다.
"""

from portfolio_tracker.core.strategy import (
    Single,
    StrategyCalculator,
    StrategyContext,
    StrategyId,
    SymbolRecommendation,
    threshold_signal,
)
from portfolio_tracker.strategies import register


@register(StrategyId.RSI)
class RsiStrategy(StrategyCalculator):
    """RSI(25) 과매수/과매도 전략."""

    strategy_id = StrategyId.RSI

    def compute_batch(self, symbols: list[str], context: StrategyContext) -> list[SymbolRecommendation]:
        results = []
        for symbol, row in sorted(context.store.latest_indicator_rows(symbols, context.as_of).items()):
            if row.rsi25 is None:
                continue
            signal = threshold_signal(row.rsi25, context.buy_threshold, context.sell_threshold)
            results.append(SymbolRecommendation(
                symbol=symbol,
                recommendation=Single(signal),
                metadata={
                    "rsi25": row.rsi25,
                    "date": row.date.isoformat(),
                    "signal_type": signal.value,
                },
            ))
        return results

    def describe(self) -> str:
        return "RSI(25) 임계값 (<=20 BUY, >=80 SELL)"
