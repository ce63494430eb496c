"""
포트폴리오 서비스 (외부 진입점).

[ 역할 ]
    CLI/HTTP 같은 외부 계층이 호출하는 단일 진입점.
    정산 엔진, 원장, 지표/전략 엔진을 조합하여 사용자 단위 작업을 제공.

[ 제공 기능 ]
    submit_trade                       - 매수/매도 기록 (+ FIFO 정산)
    record_ledger_entry / ledger_history
    balances                           - 통화별 total / invested / treasury
    open_positions / open_positions_with_recommendations
    closed_trades / trade_history / performance
    run_batch_recompute                - 지표 + 전략 배치 실행

[ 생성 방법 ]
    PortfolioService.from_config(config)  - 설정의 portfolio_db / database 사용
    PortfolioService(portfolio_store, market_store, ...) - 저장소 직접 주입 (테스트)
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from portfolio_tracker.accounting.performance import PerformanceSummary, calculate_performance
from portfolio_tracker.accounting.settlement import TradeSettlementEngine
from portfolio_tracker.accounting.wallet import LedgerAccount
from portfolio_tracker.core.models import ClosedTrade, CurrencyBalance, LedgerEntry, OpenPosition, TradeLot
from portfolio_tracker.core.store import MarketStore, PortfolioStore
from portfolio_tracker.data.clickhouse_store import ClickHouseMarketStore
from portfolio_tracker.data.sql_store import SqlPortfolioStore
from portfolio_tracker.pipeline.indicator_engine import IndicatorEngine, IndicatorRunReport
from portfolio_tracker.pipeline.strategy_engine import StrategyEngine, StrategyRunReport
from portfolio_tracker.strategies import create_strategy
from portfolio_tracker.utils.config import Config
from portfolio_tracker.utils.logger import get_logger

logger = get_logger("service")


@dataclass
class PositionWithRecommendations:
    """미청산 포지션 + 종목의 전략별 최신 추천."""
    symbol: str
    total_quantity: Decimal
    avg_price: Decimal
    recommendations: dict[str, Any] = field(default_factory=dict)   # strategy_id → "BUY" 또는 [...]


@dataclass
class BatchRunReport:
    """run_batch_recompute() 결과."""
    indicators: IndicatorRunReport
    strategies: StrategyRunReport

    def to_dict(self) -> dict[str, Any]:
        return {"indicators": self.indicators.to_dict(), "strategies": self.strategies.to_dict()}


class PortfolioService:
    """포트폴리오 서비스 퍼사드."""

    def __init__(
        self,
        portfolio_store: PortfolioStore,
        market_store: MarketStore,
        config: Optional[Config] = None,
    ):
        self.config = config or Config()
        self.portfolio_store = portfolio_store
        self.market_store = market_store

        account = self.config.account
        strategies = self.config.strategies

        self.ledger = LedgerAccount(portfolio_store, account.fallback_currency, account.currencies)
        self.settlement = TradeSettlementEngine(portfolio_store, self.ledger)
        self.indicator_engine = IndicatorEngine(market_store, self.config.indicators.incremental_window_days)
        self.strategy_engine = StrategyEngine(
            market_store,
            [create_strategy(strategy_id) for strategy_id in strategies.enabled],
            buy_threshold=strategies.buy_threshold,
            sell_threshold=strategies.sell_threshold,
            min_max_period_days=strategies.min_max_period_days,
            pivot_proximity_pct=strategies.pivot_proximity_pct,
        )

    @classmethod
    def from_config(cls, config: Config) -> "PortfolioService":
        """설정의 SQL 거래 DB와 ClickHouse 시장 DB로 서비스 생성."""
        db = config.database
        market_store = ClickHouseMarketStore.connect(db.host, db.port, db.database, db.user, db.password)
        portfolio_store = SqlPortfolioStore(config.portfolio_db.url, echo=config.portfolio_db.echo)
        return cls(portfolio_store, market_store, config)

    # ─── 거래 / 원장 ─────────────────────────────────────────────────────

    def submit_trade(
        self,
        user_id: int,
        symbol: str,
        side: str,
        quantity: Decimal | float,
        unit_price: Decimal | float,
        trade_date: date,
    ) -> TradeLot:
        return self.settlement.create_trade(user_id, symbol, side, quantity, unit_price, trade_date)

    def record_ledger_entry(
        self,
        user_id: int,
        entry_date: date,
        action: str,
        amount: Decimal | float,
        currency: str,
        symbol: Optional[str] = None,
    ) -> LedgerEntry:
        return self.ledger.record_entry(user_id, entry_date, action, amount, currency, symbol)

    def ledger_history(self, user_id: int) -> list[LedgerEntry]:
        return self.ledger.history(user_id)

    def balances(self, user_id: int) -> dict[str, CurrencyBalance]:
        return self.ledger.calculate_balances(user_id)

    # ─── 조회 ────────────────────────────────────────────────────────────

    def open_positions(self, user_id: int) -> list[OpenPosition]:
        return self.settlement.open_positions(user_id)

    def open_positions_with_recommendations(self, user_id: int) -> list[PositionWithRecommendations]:
        """미청산 포지션마다 저장된 전략 결과를 붙여 반환."""
        positions = []
        for position in self.settlement.open_positions(user_id):
            results = self.market_store.get_strategy_results(position.symbol)
            positions.append(PositionWithRecommendations(
                symbol=position.symbol,
                total_quantity=position.total_quantity,
                avg_price=position.avg_price,
                recommendations={r.strategy_id: r.recommendation for r in results},
            ))
        return positions

    def closed_trades(self, user_id: int) -> list[ClosedTrade]:
        return self.settlement.closed_trades(user_id)

    def trade_history(self, user_id: int) -> list[TradeLot]:
        return self.settlement.list_trades(user_id)

    def performance(self, user_id: int) -> PerformanceSummary:
        return calculate_performance(self.settlement.closed_trades(user_id))

    # ─── 배치 ────────────────────────────────────────────────────────────

    def run_batch_recompute(self, symbols: Optional[list[str]], as_of: date) -> BatchRunReport:
        """지표 → 전략 순서로 배치 실행. symbols가 비어 있으면 가격 데이터가 있는 전 종목."""
        symbols = list(symbols) if symbols else self.market_store.list_symbols()
        logger.info(f"배치 재계산 시작: {len(symbols)}종목, as_of={as_of}")

        indicator_report = self.indicator_engine.run(symbols, as_of)
        strategy_report = self.strategy_engine.run(symbols, as_of)
        return BatchRunReport(indicators=indicator_report, strategies=strategy_report)
