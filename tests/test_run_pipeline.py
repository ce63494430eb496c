"""
run_pipeline.py 진입점 테스트 (샘플 데이터 소스).
"""

import logging
import sys
from datetime import date

import pytest
import yaml

import run_pipeline
from portfolio_tracker.service import PortfolioService
from portfolio_tracker.utils.config import Config
from portfolio_tracker.utils.logger import ROOT_LOGGER


@pytest.fixture
def clean_root_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    before = list(logger.handlers)
    yield
    for handler in logger.handlers[:]:
        if handler not in before:
            logger.removeHandler(handler)
            handler.close()


class TestSampleData:
    def test_shape_and_determinism(self) -> None:
        df = run_pipeline.generate_sample_data("SHOP.TO", date(2024, 1, 1), date(2024, 3, 31))

        assert list(df.columns) == ["date", "open", "high", "low", "close", "volume"]
        assert (df["high"] >= df["close"]).all()
        assert (df["low"] <= df["close"]).all()
        assert all(d.weekday() < 5 for d in df["date"])
        again = run_pipeline.generate_sample_data("SHOP.TO", date(2024, 1, 1), date(2024, 3, 31))
        assert df.equals(again)

    def test_load_sample_store(self) -> None:
        store = run_pipeline.load_sample_store(["SHOP.TO"], date(2024, 6, 28))
        assert store.list_symbols() == ["SHOP.TO"]
        bars = store.fetch_price_bars(["SHOP.TO"])
        assert bars["date"].max() <= date(2024, 6, 28)

    def test_sample_service_uses_configured_strategies(self) -> None:
        config = Config()
        config.strategies.enabled = ["rsi", "point_pivot"]
        config.strategies.buy_threshold = 25.0

        service = run_pipeline.build_service(config, "sample", ["RY.TO"], date(2024, 6, 28))

        assert isinstance(service, PortfolioService)
        assert service.market_store.list_symbols() == ["RY.TO"]
        assert [s.strategy_id.value for s in service.strategy_engine.strategies] == ["rsi", "point_pivot"]
        assert service.strategy_engine.build_context(date(2024, 6, 28)).buy_threshold == 25.0

        report = service.run_batch_recompute(["RY.TO"], date(2024, 6, 28))
        assert report.indicators.symbols_processed == 1
        assert set(report.strategies.results_written) <= {"rsi", "point_pivot"}

class TestMain:
    def test_list_strategies(self, monkeypatch, capsys) -> None:
        monkeypatch.setattr(sys, "argv", ["run_pipeline.py", "--list"])
        run_pipeline.main()
        out = capsys.readouterr().out
        for strategy_id in ("min_max_last_year", "rsi", "stochastic", "ema", "point_pivot"):
            assert f"- {strategy_id}:" in out

    def test_sample_batch(self, tmp_path, monkeypatch, capsys, clean_root_logger) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({
            "log_level": "WARNING",
            "log_dir": str(tmp_path / "logs"),
            "strategies": {"enabled": ["rsi", "ema"]},
        }), encoding="utf-8")
        monkeypatch.setattr(sys, "argv", [
            "run_pipeline.py", "--config", str(config_path),
            "--symbols", "SHOP.TO", "RY.TO", "--as-of", "2024-06-28",
        ])

        run_pipeline.main()

        out = capsys.readouterr().out
        assert "배치 실행 결과" in out
        assert "SHOP.TO: ema=" in out
        assert "rsi=" in out
        assert (tmp_path / "logs").is_dir()
