"""
전략 배치 실행 엔진.

[ 역할 ]
    활성화된 전략마다 compute_batch()를 호출하고 결과를
    (strategy_id, symbol) 키로 저장소에 덮어쓴다 (최신 추천만 유지).

[ 실패 처리 ]
    전략 하나의 계산이 UpstreamComputeError 로 실패하면 로그 후 다음 전략 진행.
    저장 실패(PersistenceError)는 호출자에게 전파.

[ 호출하는 곳 ]
    - service.py::PortfolioService.run_batch_recompute()
    - run_pipeline.py
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from portfolio_tracker.core.errors import UpstreamComputeError
from portfolio_tracker.core.store import MarketStore
from portfolio_tracker.core.strategy import StrategyCalculator, StrategyContext
from portfolio_tracker.utils.logger import get_logger

logger = get_logger("strategies")


@dataclass
class StrategyRunReport:
    """전략 배치 실행 결과."""
    results_written: dict[str, int] = field(default_factory=dict)   # strategy_id → 저장 건수
    failed_strategies: dict[str, str] = field(default_factory=dict)  # strategy_id → 사유

    @property
    def total_written(self) -> int:
        return sum(self.results_written.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "results_written": dict(self.results_written),
            "failed_strategies": dict(self.failed_strategies),
        }


class StrategyEngine:
    """전략 배치 엔진.

    사용 예:
        engine = StrategyEngine(store, [create_strategy("rsi"), create_strategy("ema")])
        report = engine.run(symbols, as_of=date(2024, 6, 28))
    """

    def __init__(
        self,
        store: MarketStore,
        strategies: list[StrategyCalculator],
        buy_threshold: float = 20.0,
        sell_threshold: float = 80.0,
        min_max_period_days: int = 365,
        pivot_proximity_pct: float = 1.0,
    ):
        self.store = store
        self.strategies = strategies
        self.buy_threshold = buy_threshold
        self.sell_threshold = sell_threshold
        self.min_max_period_days = min_max_period_days
        self.pivot_proximity_pct = pivot_proximity_pct

    def build_context(self, as_of: date) -> StrategyContext:
        return StrategyContext(
            as_of=as_of,
            store=self.store,
            buy_threshold=self.buy_threshold,
            sell_threshold=self.sell_threshold,
            min_max_period_days=self.min_max_period_days,
            pivot_proximity_pct=self.pivot_proximity_pct,
        )

    def run(self, symbols: list[str], as_of: date) -> StrategyRunReport:
        report = StrategyRunReport()
        symbols = sorted(set(symbols))
        context = self.build_context(as_of)

        for strategy in self.strategies:
            strategy_id = strategy.strategy_id.value
            try:
                recommendations = strategy.compute_batch(symbols, context)
            except UpstreamComputeError as e:
                logger.error(f"[{strategy_id}] 계산 실패: {e.message}")
                report.failed_strategies[strategy_id] = e.message
                continue

            with self.store.transaction():
                for rec in recommendations:
                    self.store.upsert_strategy_result(strategy_id, rec.symbol, {
                        "date": as_of,
                        "recommendation": rec.recommendation.to_json(),
                        "metadata": rec.metadata,
                    })
            report.results_written[strategy_id] = len(recommendations)
            logger.info(f"[{strategy_id}] {len(recommendations)}종목 추천 저장")

        return report
