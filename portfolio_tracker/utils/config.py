"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    계좌/지표/전략 파라미터, 저장소 접속 정보, 로깅 설정을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    account:        → AccountConfig (fallback 통화, 허용 통화)
    indicators:     → IndicatorConfig (증분 계산 윈도우)
    strategies:     → StrategyConfig (활성 전략, 임계값)
    database:       → DatabaseConfig (ClickHouse 시장 데이터)
    portfolio_db:   → PortfolioDbConfig (SQLAlchemy URL, 거래/원장)
    log_level:      → "INFO" / "DEBUG"
    log_dir:        → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_pipeline.py에서 Config.from_yaml()로 로드
    - service.py::PortfolioService.from_config()에서 엔진 생성 시 사용
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_STRATEGIES = ["min_max_last_year", "rsi", "stochastic", "ema", "point_pivot"]


@dataclass
class AccountConfig:
    """계좌 설정. config.yaml의 account 섹션에 대응."""
    fallback_currency: str = "CAD"   # 종목 통화를 알 수 없을 때
    currencies: list[str] = field(default_factory=lambda: ["CAD", "USD", "EUR"])


@dataclass
class IndicatorConfig:
    """지표 계산 설정. config.yaml의 indicators 섹션에 대응."""
    incremental_window_days: int = 365   # 기존 종목 증분 계산 시 watermark 이전 조회 기간


@dataclass
class StrategyConfig:
    """전략 설정. config.yaml의 strategies 섹션에 대응."""
    enabled: list[str] = field(default_factory=lambda: list(DEFAULT_STRATEGIES))
    buy_threshold: float = 20.0
    sell_threshold: float = 80.0
    min_max_period_days: int = 365
    pivot_proximity_pct: float = 1.0   # 피벗 레벨 근접 판정 (레벨의 %)


@dataclass
class DatabaseConfig:
    """ClickHouse 설정. config.yaml의 database 섹션에 대응."""
    host: str = "localhost"
    port: int = 8123
    database: str = "default"
    user: str = "default"
    password: str = "password"


@dataclass
class PortfolioDbConfig:
    """거래/원장 DB 설정. config.yaml의 portfolio_db 섹션에 대응."""
    url: str = "sqlite:///portfolio.db"
    echo: bool = False


def _section(section_cls, data: dict[str, Any] | None):
    """dataclass 필드에 해당하는 키만 골라 생성 (모르는 키는 무시)."""
    data = data or {}
    return section_cls(**{
        k: v for k, v in data.items()
        if k in section_cls.__dataclass_fields__
    })


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    account: AccountConfig = field(default_factory=AccountConfig)
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    strategies: StrategyConfig = field(default_factory=StrategyConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    portfolio_db: PortfolioDbConfig = field(default_factory=PortfolioDbConfig)
    symbols: list[str] = field(default_factory=list)   # 비어 있으면 저장소의 전체 종목
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        account = _section(AccountConfig, data.get("account"))
        account.fallback_currency = account.fallback_currency.upper()
        account.currencies = [c.upper() for c in account.currencies]

        return cls(
            account=account,
            indicators=_section(IndicatorConfig, data.get("indicators")),
            strategies=_section(StrategyConfig, data.get("strategies")),
            database=_section(DatabaseConfig, data.get("database")),
            portfolio_db=_section(PortfolioDbConfig, data.get("portfolio_db")),
            symbols=list(data.get("symbols", [])),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
