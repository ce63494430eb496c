"""
전략 배치 엔진 테스트.
"""

from datetime import date, timedelta

import pytest

from conftest import make_bars, random_walk
from portfolio_tracker.core.errors import UpstreamComputeError
from portfolio_tracker.core.strategy import StrategyCalculator, StrategyId, recommendation_from_json
from portfolio_tracker.pipeline.indicator_engine import IndicatorEngine
from portfolio_tracker.pipeline.strategy_engine import StrategyEngine
from portfolio_tracker.strategies import create_strategy, list_strategies

START = date(2024, 1, 1)
LAST = START + timedelta(days=259)


class BrokenStrategy(StrategyCalculator):
    strategy_id = StrategyId.RSI

    def compute_batch(self, symbols, context):
        raise UpstreamComputeError("*", "indicator table unavailable")

    def describe(self) -> str:
        return "broken"


@pytest.fixture
def computed_store(market_store):
    market_store.load_prices("SHOP.TO", make_bars(random_walk(260, seed=5)))
    market_store.load_prices("RY.TO", make_bars(random_walk(260, seed=6)))
    IndicatorEngine(market_store).run(["SHOP.TO", "RY.TO"], LAST)
    return market_store


class TestStrategyEngine:
    def test_all_strategies_write_results(self, computed_store) -> None:
        engine = StrategyEngine(computed_store, [create_strategy(s) for s in list_strategies()])

        report = engine.run(["SHOP.TO", "RY.TO"], LAST)

        assert report.results_written == {s: 2 for s in list_strategies()}
        assert report.total_written == 10
        assert report.failed_strategies == {}

        results = computed_store.get_strategy_results("SHOP.TO")
        assert [r.strategy_id for r in results] == list_strategies()
        assert all(r.date == LAST for r in results)
        ema = next(r for r in results if r.strategy_id == "ema")
        assert isinstance(ema.recommendation, list) and len(ema.recommendation) == 3
        for result in results:
            recommendation_from_json(result.recommendation)

    def test_rerun_overwrites_latest(self, computed_store) -> None:
        engine = StrategyEngine(computed_store, [create_strategy("rsi")])
        engine.run(["SHOP.TO"], LAST - timedelta(days=1))
        engine.run(["SHOP.TO"], LAST)

        results = computed_store.get_strategy_results("SHOP.TO")
        assert len(results) == 1
        assert results[0].date == LAST

    def test_failed_strategy_does_not_stop_others(self, computed_store) -> None:
        engine = StrategyEngine(computed_store, [BrokenStrategy(), create_strategy("ema")])

        report = engine.run(["SHOP.TO"], LAST)

        assert "rsi" in report.failed_strategies
        assert report.results_written == {"ema": 1}
        assert [r.strategy_id for r in computed_store.get_strategy_results("SHOP.TO")] == ["ema"]

    def test_thresholds_flow_into_context(self, computed_store) -> None:
        engine = StrategyEngine(computed_store, [], buy_threshold=0.0, sell_threshold=100.0,
                                min_max_period_days=30, pivot_proximity_pct=2.5)
        context = engine.build_context(LAST)

        assert context.as_of == LAST
        assert context.store is computed_store
        assert (context.buy_threshold, context.sell_threshold) == (0.0, 100.0)
        assert context.min_max_period_days == 30
        assert context.pivot_proximity_pct == 2.5

    def test_wide_thresholds_hold_everything(self, computed_store) -> None:
        engine = StrategyEngine(computed_store, [create_strategy("rsi"), create_strategy("stochastic")],
                                buy_threshold=-1.0, sell_threshold=101.0)
        engine.run(["SHOP.TO", "RY.TO"], LAST)

        for symbol in ("SHOP.TO", "RY.TO"):
            assert {r.recommendation for r in computed_store.get_strategy_results(symbol)} == {"HOLD"}

    def test_past_as_of_reads_rows_up_to_that_day(self, computed_store) -> None:
        as_of = LAST - timedelta(days=30)
        strategies = [create_strategy(s) for s in ("rsi", "stochastic", "ema", "point_pivot")]

        StrategyEngine(computed_store, strategies).run(["SHOP.TO", "RY.TO"], as_of)

        results = computed_store.get_strategy_results("SHOP.TO")
        assert {"rsi", "stochastic"} <= {r.strategy_id for r in results}
        for result in results:
            assert result.date == as_of
            assert result.metadata["date"] == as_of.isoformat()
