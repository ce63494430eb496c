"""
피벗 레벨 근접 점수 전략.

[ 역할 ]
    최신 지표 row의 피벗(week/month/year)과 그 날의 종가를 비교해 점수를 합산.
    |종가 - 레벨| <= 레벨 * pivot_proximity_pct% 인 레벨마다 (음수 레벨은 허용폭이 음수라 매칭 없음)
        점수 += 윈도우 가중치 * 레벨 가중치 * 방향
    score > 0 → BUY, score < 0 → SELL, 0 → HOLD.

[ 가중치 ]
    윈도우: year 3, month 2, week 1
    레벨:   S3/R3 3, S2/R2 2, S1/R1 1
    방향:   지지선(S) +1, 저항선(R) -1
"""

from typing import Any

from portfolio_tracker.core.strategy import (
    SignalType,
    Single,
    StrategyCalculator,
    StrategyContext,
    StrategyId,
    SymbolRecommendation,
)
from portfolio_tracker.strategies import register
from portfolio_tracker.strategies._common import closes_on_indicator_dates

# 레벨 키 → (레벨 가중치, 방향)
LEVEL_WEIGHTS = {
    "s3": (3, 1),
    "s2": (2, 1),
    "s1": (1, 1),
    "r1": (1, -1),
    "r2": (2, -1),
    "r3": (3, -1),
}


@register(StrategyId.POINT_PIVOT)
class PointPivotStrategy(StrategyCalculator):
    """피벗 지지/저항 근접 점수 전략."""

    strategy_id = StrategyId.POINT_PIVOT

    DEFAULT_PARAMS = {
        "window_weights": {"year": 3, "month": 2, "week": 1},
    }

    def score(self, close: float, pivot: dict[str, dict[str, float]], proximity_pct: float) -> int:
        """종가 근처 레벨의 가중 점수 합.

        허용폭은 level * proximity_pct / 100 (부호 그대로). 레벨이 음수이면
        허용폭이 음수가 되어 그 레벨은 점수에 들어가지 않는다.
        """
        total = 0
        for window, window_weight in self.params["window_weights"].items():
            levels = pivot.get(window)
            if not levels:
                continue
            for key, (level_weight, direction) in LEVEL_WEIGHTS.items():
                level = levels.get(key)
                if level is None:
                    continue
                if abs(close - level) <= level * proximity_pct / 100:
                    total += window_weight * level_weight * direction
        return total

    def compute_batch(self, symbols: list[str], context: StrategyContext) -> list[SymbolRecommendation]:
        rows = {s: r for s, r in context.store.latest_indicator_rows(symbols, context.as_of).items() if r.pivot}
        closes = closes_on_indicator_dates(context.store, rows)

        results = []
        for symbol in sorted(rows):
            if symbol not in closes:
                continue
            row, close = rows[symbol], closes[symbol]
            total = self.score(close, row.pivot, context.pivot_proximity_pct)
            if total > 0:
                signal = SignalType.BUY
            elif total < 0:
                signal = SignalType.SELL
            else:
                signal = SignalType.HOLD

            metadata: dict[str, Any] = {
                "close": close,
                "total_score": total,
                "signal_type": signal.value,
                "date": row.date.isoformat(),
                "point_pivot": row.pivot,
            }
            results.append(SymbolRecommendation(symbol=symbol, recommendation=Single(signal), metadata=metadata))
        return results

    def describe(self) -> str:
        return "피벗 지지/저항 1% 근접 가중 점수 (>0 BUY, <0 SELL)"
