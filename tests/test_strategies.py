"""
추천 전략 테스트 (레지스트리 + 전략 5종).
"""

from datetime import date

import pytest

from conftest import make_bars
from portfolio_tracker.core.strategy import (
    Multi,
    SignalType,
    Single,
    StrategyCalculator,
    StrategyContext,
    StrategyId,
    recommendation_from_json,
    threshold_signal,
)
from portfolio_tracker.strategies import create_strategy, list_strategies
from portfolio_tracker.strategies.ema_strategy import EmaStrategy
from portfolio_tracker.strategies.rsi_strategy import RsiStrategy

AS_OF = date(2024, 6, 28)


def put_indicator(store, symbol: str, row_date: date, **fields) -> None:
    base = {"rsi25": None, "ema20": None, "ema50": None, "ema200": None,
            "stochastic_14_7_7": None, "pivot": None}
    base.update(fields)
    store.upsert_indicator_row(symbol, row_date, base)


def by_symbol(results):
    return {r.symbol: r for r in results}


class TestRegistry:
    def test_five_strategies_registered(self) -> None:
        assert list_strategies() == ["ema", "min_max_last_year", "point_pivot", "rsi", "stochastic"]

    def test_create_by_id_or_enum(self) -> None:
        assert isinstance(create_strategy("rsi"), RsiStrategy)
        assert isinstance(create_strategy(StrategyId.EMA), EmaStrategy)

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown strategy: 'macd'"):
            create_strategy("macd")

    def test_compute_batch_is_required(self) -> None:
        class DescribeOnly(StrategyCalculator):
            strategy_id = StrategyId.RSI

            def describe(self) -> str:
                return "incomplete"

        with pytest.raises(TypeError):
            DescribeOnly()

    def test_every_strategy_describes_itself(self) -> None:
        for strategy_id in list_strategies():
            assert create_strategy(strategy_id).describe()


class TestRecommendationShape:
    def test_threshold_boundaries_inclusive(self) -> None:
        assert threshold_signal(20.0, 20.0, 80.0) == SignalType.BUY
        assert threshold_signal(80.0, 20.0, 80.0) == SignalType.SELL
        assert threshold_signal(20.01, 20.0, 80.0) == SignalType.HOLD

    def test_json_forms(self) -> None:
        assert Single(SignalType.BUY).to_json() == "BUY"
        multi = Multi((SignalType.BUY, SignalType.SELL, SignalType.NOT_AVAILABLE))
        assert multi.to_json() == ["BUY", "SELL", "N/A"]
        assert recommendation_from_json(["BUY", "SELL", "N/A"]) == multi
        assert recommendation_from_json("HOLD") == Single(SignalType.HOLD)


class TestMinMaxLastYear:
    @pytest.fixture
    def context(self, market_store) -> StrategyContext:
        start = date(2024, 6, 26)
        market_store.load_prices("LOW", make_bars([10.0, 20.0, 10.0], start=start))
        market_store.load_prices("HIGH", make_bars([10.0, 20.0, 20.0], start=start))
        market_store.load_prices("MID", make_bars([10.0, 20.0, 15.0], start=start))
        market_store.load_prices("QUARTER", make_bars([10.0, 30.0, 15.0], start=start))
        market_store.load_prices("FLAT", make_bars([5.0, 5.0, 5.0], start=start))
        return StrategyContext(as_of=AS_OF, store=market_store)

    def test_signals(self, context) -> None:
        results = by_symbol(create_strategy("min_max_last_year").compute_batch(
            ["LOW", "HIGH", "MID", "QUARTER", "FLAT"], context))

        assert "FLAT" not in results
        assert results["LOW"].recommendation == Single(SignalType.BUY)
        assert results["HIGH"].recommendation == Single(SignalType.SELL)
        assert results["MID"].recommendation == Single(SignalType.HOLD)
        assert results["QUARTER"].recommendation == Single(SignalType.HOLD)

    def test_metadata(self, context) -> None:
        results = by_symbol(create_strategy("min_max_last_year").compute_batch(["QUARTER"], context))
        assert results["QUARTER"].metadata == {
            "percentage": "25.00",
            "min_price": "10.00",
            "max_price": "30.00",
            "current_price": "15.00",
            "calculation_period_days": 365,
            "buy_threshold": 20.0,
            "sell_threshold": 80.0,
        }

    def test_thresholds_from_context(self, context) -> None:
        context.buy_threshold = 25.0
        results = by_symbol(create_strategy("min_max_last_year").compute_batch(["QUARTER"], context))
        assert results["QUARTER"].recommendation == Single(SignalType.BUY)

    def test_window_start_is_exclusive(self, market_store) -> None:
        # 6/25 종가 1 은 (6/25, 6/28] 밖
        market_store.load_prices("EDGE", make_bars([1.0, 10.0, 30.0, 15.0], start=date(2024, 6, 25)))
        context = StrategyContext(as_of=AS_OF, store=market_store, min_max_period_days=3)

        results = by_symbol(create_strategy("min_max_last_year").compute_batch(["EDGE"], context))
        assert results["EDGE"].metadata["min_price"] == "10.00"
        assert results["EDGE"].metadata["calculation_period_days"] == 3


class TestRsiAndStochastic:
    @pytest.fixture
    def context(self, market_store) -> StrategyContext:
        put_indicator(market_store, "A", date(2024, 6, 27), rsi25=90.0, stochastic_14_7_7=90.0)
        put_indicator(market_store, "A", AS_OF, rsi25=15.0, stochastic_14_7_7=50.0)
        put_indicator(market_store, "B", AS_OF, rsi25=80.0, stochastic_14_7_7=20.0)
        put_indicator(market_store, "C", AS_OF, rsi25=50.0)
        put_indicator(market_store, "D", AS_OF, ema20=10.0)
        return StrategyContext(as_of=AS_OF, store=market_store)

    def test_rsi_uses_latest_row(self, context) -> None:
        results = by_symbol(create_strategy("rsi").compute_batch(["A", "B", "C", "D"], context))

        assert set(results) == {"A", "B", "C"}
        assert results["A"].recommendation == Single(SignalType.BUY)
        assert results["B"].recommendation == Single(SignalType.SELL)
        assert results["C"].recommendation == Single(SignalType.HOLD)
        assert results["A"].metadata == {"rsi25": 15.0, "date": "2024-06-28", "signal_type": "BUY"}

    def test_rows_after_as_of_are_ignored(self, context) -> None:
        context.as_of = date(2024, 6, 27)

        rsi = by_symbol(create_strategy("rsi").compute_batch(["A", "B", "C"], context))
        stochastic = by_symbol(create_strategy("stochastic").compute_batch(["A", "B"], context))

        assert set(rsi) == {"A"}
        assert rsi["A"].recommendation == Single(SignalType.SELL)
        assert rsi["A"].metadata["date"] == "2024-06-27"
        assert set(stochastic) == {"A"}
        assert stochastic["A"].recommendation == Single(SignalType.SELL)

    def test_stochastic(self, context) -> None:
        results = by_symbol(create_strategy("stochastic").compute_batch(["A", "B", "C", "D"], context))

        assert set(results) == {"A", "B"}
        assert results["A"].recommendation == Single(SignalType.HOLD)
        assert results["B"].recommendation == Single(SignalType.BUY)
        assert results["B"].metadata == {
            "stochastic14_7_7": 20.0,
            "date": "2024-06-28",
            "signal_type": "BUY",
        }


class TestEma:
    def test_three_independent_signals(self, market_store) -> None:
        market_store.load_prices("A", make_bars([100.0, 105.0], start=date(2024, 6, 27)))
        put_indicator(market_store, "A", AS_OF, ema20=100.0, ema50=110.0)
        context = StrategyContext(as_of=AS_OF, store=market_store)

        [result] = create_strategy("ema").compute_batch(["A"], context)

        assert result.recommendation == Multi((SignalType.BUY, SignalType.SELL, SignalType.NOT_AVAILABLE))
        assert result.metadata == {
            "close": 105.0,
            "ema20": 100.0,
            "ema50": 110.0,
            "ema200": None,
            "date": "2024-06-28",
            "signals": ["BUY", "SELL", "N/A"],
        }

    def test_close_equal_to_ema_is_sell(self, market_store) -> None:
        market_store.load_prices("A", make_bars([100.0], start=AS_OF))
        put_indicator(market_store, "A", AS_OF, ema20=100.0, ema50=100.0, ema200=100.0)
        context = StrategyContext(as_of=AS_OF, store=market_store)

        [result] = create_strategy("ema").compute_batch(["A"], context)
        assert result.recommendation.to_json() == ["SELL", "SELL", "SELL"]

    def test_uses_row_on_or_before_as_of(self, market_store) -> None:
        market_store.load_prices("A", make_bars([100.0, 105.0], start=date(2024, 6, 27)))
        put_indicator(market_store, "A", date(2024, 6, 27), ema20=90.0, ema50=90.0, ema200=90.0)
        put_indicator(market_store, "A", AS_OF, ema20=200.0, ema50=200.0, ema200=200.0)
        context = StrategyContext(as_of=date(2024, 6, 27), store=market_store)

        [result] = create_strategy("ema").compute_batch(["A"], context)

        assert result.metadata["date"] == "2024-06-27"
        assert result.metadata["close"] == 100.0
        assert result.recommendation.to_json() == ["BUY", "BUY", "BUY"]

    def test_missing_close_is_skipped(self, market_store) -> None:
        market_store.load_prices("A", make_bars([100.0], start=date(2024, 6, 27)))
        put_indicator(market_store, "A", AS_OF, ema20=100.0)
        context = StrategyContext(as_of=AS_OF, store=market_store)

        assert create_strategy("ema").compute_batch(["A"], context) == []


class TestPointPivot:
    WEEK = {"pivot": 100.0, "r1": 105.0, "r2": 110.0, "r3": 115.0, "s1": 95.0, "s2": 90.0, "s3": 85.0}
    YEAR = {"pivot": 50.0, "r1": 60.0, "r2": 70.0, "r3": 96.0, "s1": 30.0, "s2": 20.0, "s3": 10.0}

    @pytest.fixture
    def context(self, market_store) -> StrategyContext:
        for symbol, close in [("NEAR_S1", 95.5), ("MIXED", 95.5), ("FAR", 100.0), ("NOPIVOT", 95.5)]:
            market_store.load_prices(symbol, make_bars([close], start=AS_OF))
        put_indicator(market_store, "NEAR_S1", AS_OF, pivot={"week": self.WEEK})
        put_indicator(market_store, "MIXED", AS_OF, pivot={"week": self.WEEK, "year": self.YEAR})
        put_indicator(market_store, "FAR", AS_OF, pivot={"week": self.WEEK})
        put_indicator(market_store, "NOPIVOT", AS_OF, rsi25=50.0)
        return StrategyContext(as_of=AS_OF, store=market_store)

    def test_scores_and_signals(self, context) -> None:
        results = by_symbol(create_strategy("point_pivot").compute_batch(
            ["NEAR_S1", "MIXED", "FAR", "NOPIVOT"], context))

        assert "NOPIVOT" not in results
        # week S1: +1
        assert results["NEAR_S1"].metadata["total_score"] == 1
        assert results["NEAR_S1"].recommendation == Single(SignalType.BUY)
        # week S1 +1, year R3 -9
        assert results["MIXED"].metadata["total_score"] == -8
        assert results["MIXED"].recommendation == Single(SignalType.SELL)
        assert results["FAR"].metadata["total_score"] == 0
        assert results["FAR"].recommendation == Single(SignalType.HOLD)

    def test_metadata(self, context) -> None:
        results = by_symbol(create_strategy("point_pivot").compute_batch(["NEAR_S1"], context))
        assert results["NEAR_S1"].metadata == {
            "close": 95.5,
            "total_score": 1,
            "signal_type": "BUY",
            "date": "2024-06-28",
            "point_pivot": {"week": self.WEEK},
        }

    def test_window_weights_param(self, context) -> None:
        strategy = create_strategy("point_pivot", {"window_weights": {"week": 5}})
        results = by_symbol(strategy.compute_batch(["NEAR_S1", "MIXED"], context))
        assert results["NEAR_S1"].metadata["total_score"] == 5
        # year 가중치 없음
        assert results["MIXED"].metadata["total_score"] == 5

    def test_proximity_from_context(self, context) -> None:
        context.pivot_proximity_pct = 0.1
        results = by_symbol(create_strategy("point_pivot").compute_batch(["NEAR_S1"], context))
        assert results["NEAR_S1"].metadata["total_score"] == 0

    def test_negative_level_never_matches(self, market_store) -> None:
        market_store.load_prices("DEEP", make_bars([-2.0], start=AS_OF))
        week = {"pivot": 1.0, "r1": 4.0, "r2": 6.0, "r3": 8.0, "s1": -1.0, "s2": -2.0, "s3": -4.0}
        put_indicator(market_store, "DEEP", AS_OF, pivot={"week": week})
        context = StrategyContext(as_of=AS_OF, store=market_store, pivot_proximity_pct=50.0)

        [result] = create_strategy("point_pivot").compute_batch(["DEEP"], context)

        # 종가가 s2와 같아도 음수 레벨은 점수 없음
        assert result.metadata["total_score"] == 0
        assert result.recommendation == Single(SignalType.HOLD)

    def test_pivot_after_as_of_is_ignored(self, market_store) -> None:
        market_store.load_prices("LATE", make_bars([95.5, 115.0], start=date(2024, 6, 27)))
        put_indicator(market_store, "LATE", date(2024, 6, 27), pivot={"week": self.WEEK})
        put_indicator(market_store, "LATE", AS_OF, pivot={"week": {**self.WEEK, "s1": 200.0}})
        context = StrategyContext(as_of=date(2024, 6, 27), store=market_store)

        [result] = create_strategy("point_pivot").compute_batch(["LATE"], context)

        assert result.metadata["date"] == "2024-06-27"
        assert result.metadata["total_score"] == 1
