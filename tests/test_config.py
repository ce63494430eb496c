"""
설정 로드 테스트.
"""

import json

import yaml

from portfolio_tracker.utils.config import DEFAULT_STRATEGIES, Config


class TestConfig:
    def test_defaults(self) -> None:
        config = Config()
        assert config.account.fallback_currency == "CAD"
        assert config.account.currencies == ["CAD", "USD", "EUR"]
        assert config.strategies.enabled == DEFAULT_STRATEGIES
        assert (config.strategies.buy_threshold, config.strategies.sell_threshold) == (20.0, 80.0)
        assert config.indicators.incremental_window_days == 365
        assert config.portfolio_db.url == "sqlite:///portfolio.db"

    def test_from_yaml(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "account": {"fallback_currency": "usd", "currencies": ["usd", "cad"], "broker": "ignored"},
            "strategies": {"enabled": ["rsi"], "buy_threshold": 30},
            "database": {"host": "ch.internal", "port": 9000},
            "symbols": ["SHOP.TO", "RY.TO"],
            "log_level": "DEBUG",
        }), encoding="utf-8")

        config = Config.from_yaml(path)

        assert config.account.fallback_currency == "USD"
        assert config.account.currencies == ["USD", "CAD"]
        assert config.strategies.enabled == ["rsi"]
        assert config.strategies.buy_threshold == 30
        assert config.strategies.sell_threshold == 80.0
        assert config.database.host == "ch.internal"
        assert config.database.port == 9000
        assert config.database.password == "password"
        assert config.symbols == ["SHOP.TO", "RY.TO"]
        assert config.log_level == "DEBUG"
        assert config.log_dir == "logs"

    def test_empty_yaml(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert Config.from_yaml(path) == Config()

    def test_from_json(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"portfolio_db": {"url": "sqlite://", "echo": True}}), encoding="utf-8")

        config = Config.from_json(path)
        assert config.portfolio_db.url == "sqlite://"
        assert config.portfolio_db.echo is True

    def test_save_and_reload(self, tmp_path) -> None:
        config = Config()
        config.strategies.pivot_proximity_pct = 2.0
        config.symbols = ["AAPL"]
        path = tmp_path / "nested" / "config.yaml"

        config.save_yaml(path)

        assert Config.from_yaml(path) == config
