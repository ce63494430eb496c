"""
Stochastic 임계값 전략.

[ 역할 ]
    종목별 최신 지표 row의 stochastic_14_7_7 값으로 판단 (RSI 전략과 같은 임계값).
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


@register(StrategyId.STOCHASTIC)
class StochasticStrategy(StrategyCalculator):
    """Stochastic(14,7,7) 과매수/과매도 전략."""

    strategy_id = StrategyId.STOCHASTIC

    def compute_batch(self, symbols: list[str], context: StrategyContext) -> list[SymbolRecommendation]:
        results = []
        for symbol, row in sorted(context.store.latest_indicator_rows(symbols, context.as_of).items()):
            value = row.stochastic_14_7_7
            if value is None:
                continue
            signal = threshold_signal(value, context.buy_threshold, context.sell_threshold)
            results.append(SymbolRecommendation(
                symbol=symbol,
                recommendation=Single(signal),
                metadata={
                    "stochastic14_7_7": value,
                    "date": row.date.isoformat(),
                    "signal_type": signal.value,
                },
            ))
        return results

    def describe(self) -> str:
        return "Stochastic(14,7,7) 임계값 (<=20 BUY, >=80 SELL)"
