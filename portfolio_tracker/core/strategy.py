"""
추천 전략 추상 클래스 정의.

[ 역할 ]
    지표/가격 데이터를 읽어 종목별 매수/매도/홀드 추천을 만드는 인터페이스.

[ 구현체 ]
    - strategies/min_max_last_year.py  (1년 최저/최고 대비 위치)
    - strategies/rsi_strategy.py       (RSI 25 임계값)
    - strategies/stochastic_strategy.py(Stochastic 14/7/7 임계값)
    - strategies/ema_strategy.py       (종가 vs EMA 20/50/200, 시그널 3개)
    - strategies/point_pivot_strategy.py (Camarilla 피벗 근접 점수)

[ 호출하는 곳 ]
    - pipeline/strategy_engine.py::StrategyEngine.run()에서
      전략마다 compute_batch() 호출 후 결과를 저장소에 upsert

[ 데이터 흐름 ]
    StrategyContext(as_of, store, 임계값) + symbols → compute_batch()
        → list[SymbolRecommendation] → upsert_strategy_result()
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from portfolio_tracker.core.store import MarketStore


class StrategyId(str, Enum):
    """기본 전략 식별자. 결과 저장 키로 사용."""
    MIN_MAX_LAST_YEAR = "min_max_last_year"
    RSI = "rsi"
    STOCHASTIC = "stochastic"
    EMA = "ema"
    POINT_PIVOT = "point_pivot"


class SignalType(Enum):
    """전략이 반환하는 시그널 종류."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    NOT_AVAILABLE = "N/A"   # 지표 값이 없을 때 (EMA 전략)


@dataclass(frozen=True)
class Single:
    """시그널 1개짜리 추천."""
    signal: SignalType

    def to_json(self) -> str:
        return self.signal.value


@dataclass(frozen=True)
class Multi:
    """시그널 여러 개짜리 추천 (순서 유지)."""
    signals: tuple[SignalType, ...]

    def to_json(self) -> list[str]:
        return [s.value for s in self.signals]


Recommendation = Single | Multi


def recommendation_from_json(value: str | list[str]) -> Recommendation:
    """저장된 값("BUY" 또는 ["BUY", "N/A", ...])을 Recommendation으로 복원."""
    if isinstance(value, list):
        return Multi(tuple(SignalType(v) for v in value))
    return Single(SignalType(value))


@dataclass
class SymbolRecommendation:
    """compute_batch()의 결과 1건."""
    symbol: str
    recommendation: Recommendation
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StrategyContext:
    """전략 실행 컨텍스트. as_of를 명시적으로 넘겨 계산을 결정적으로 만든다."""
    as_of: date
    store: MarketStore
    buy_threshold: float = 20.0
    sell_threshold: float = 80.0
    min_max_period_days: int = 365
    pivot_proximity_pct: float = 1.0


def threshold_signal(value: float, buy_threshold: float, sell_threshold: float) -> SignalType:
    """value <= buy → BUY, value >= sell → SELL, 그 외 HOLD."""
    if value <= buy_threshold:
        return SignalType.BUY
    if value >= sell_threshold:
        return SignalType.SELL
    return SignalType.HOLD


class StrategyCalculator(ABC):
    """추천 전략 추상 클래스.

    새 전략은 compute_batch()와 describe()를 구현한다.
    종목 목록을 한 번에 받으므로 저장소 조회도 종목 묶음 단위로 한다.
    """

    strategy_id: StrategyId

    # 하위 클래스별 기본 파라미터. 생성자의 params로 오버라이드
    DEFAULT_PARAMS: dict[str, Any] = {}

    def __init__(self, params: dict[str, Any] | None = None):
        self.params = {**self.DEFAULT_PARAMS, **(params or {})}

    @abstractmethod
    def compute_batch(
        self,
        symbols: list[str],
        context: StrategyContext,
    ) -> list[SymbolRecommendation]:
        """여러 종목 추천. 데이터가 부족한 종목은 결과에서 뺀다."""
        ...

    @abstractmethod
    def describe(self) -> str:
        """전략 설명 (--list 출력용)."""
        ...
