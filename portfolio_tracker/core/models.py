"""
도메인 데이터 모델 정의.

[ 역할 ]
    저장소(core/store.py)와 엔진들이 주고받는 레코드 타입.
    저장 기술과 무관한 순수 dataclass.

[ 주요 타입 ]
    TradeLot      - 매수/매도 1건 (매수 lot은 quantity_remaining으로 잔량 추적)
    ClosedTrade   - FIFO 매칭 1건 (매수 lot 조각 ↔ 매도) 의 실현 손익
    LedgerEntry   - 현금 원장 1건 (입금/출금/이익/손실)
    Instrument    - 종목 → 통화 매핑
    IndicatorRow  - (symbol, date)별 기술적 지표
    StrategyResult- (strategy_id, symbol)별 최신 추천

[ 금액/수량 ]
    수량, 단가, 원장 금액, 실현 손익은 모두 Decimal.
    float 입력은 to_decimal()이 repr 문자열 기준으로 변환 (0.1 → Decimal("0.1")).

[ 불변 조건 ]
    0 <= TradeLot.quantity_remaining <= TradeLot.quantity
    SELL lot의 quantity_remaining은 항상 0
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """int/float/str/Decimal → Decimal. float는 str()을 거쳐 이진 오차를 들이지 않는다."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Expected a number, got {value!r}")
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class TradeSide(Enum):
    """거래 방향."""
    BUY = "BUY"
    SELL = "SELL"


class LedgerAction(Enum):
    """현금 원장 항목 종류. deposit/gain은 +, withdraw/loss는 -."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    GAIN = "gain"
    LOSS = "loss"

    @property
    def sign(self) -> int:
        return 1 if self in (LedgerAction.DEPOSIT, LedgerAction.GAIN) else -1


@dataclass
class Instrument:
    """종목 정보. currency가 없으면 fallback 통화를 사용."""
    symbol: str
    name: str = ""
    currency: Optional[str] = None


@dataclass
class TradeLot:
    """거래 1건. 생성 후 quantity_remaining만 FIFO 정산으로 변경된다."""
    user_id: int
    symbol: str
    side: TradeSide
    quantity: Decimal
    unit_price: Decimal
    trade_date: date
    quantity_remaining: Decimal = ZERO
    id: Optional[int] = None    # 저장소가 삽입 시 부여

    def __post_init__(self) -> None:
        self.quantity = to_decimal(self.quantity)
        self.unit_price = to_decimal(self.unit_price)
        self.quantity_remaining = to_decimal(self.quantity_remaining)

    @property
    def total_price(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def is_open(self) -> bool:
        return self.side == TradeSide.BUY and self.quantity_remaining > 0


@dataclass(frozen=True)
class ClosedTrade:
    """FIFO 매칭 결과. 한 매도가 여러 매수 lot을 소진하면 여러 건 생성."""
    id: str                 # "{user}_{buy_lot_id}_{sell_lot_id}"
    user_id: int
    symbol: str
    buy_date: date
    buy_price: Decimal
    sell_date: date
    sell_price: Decimal
    quantity: Decimal
    pct_gain: int           # 정수 % (반올림)
    dollar_gain: Decimal
    holding_days: int
    buy_lot_id: int
    sell_lot_id: int


@dataclass
class LedgerEntry:
    """현금 원장 1건. 잔고는 저장하지 않고 항상 fold로 계산."""
    user_id: int
    entry_date: date
    action: LedgerAction
    amount: Decimal
    currency: str
    symbol: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount)

    @property
    def signed_amount(self) -> Decimal:
        return self.action.sign * self.amount


@dataclass
class CurrencyBalance:
    """통화별 잔고. treasury = total - invested."""
    currency: str
    total: Decimal = ZERO     # 입금 + 이익 - 출금 - 손실
    invested: Decimal = ZERO  # 미청산 매수 lot에 묶인 금액
    treasury: Decimal = ZERO  # 신규 매수에 쓸 수 있는 현금


@dataclass
class OpenPosition:
    """미청산 포지션 (잔여 매수 lot 기준 가중평균 단가)."""
    symbol: str
    total_quantity: Decimal
    avg_price: Decimal


@dataclass
class IndicatorRow:
    """(symbol, date)별 지표. 이력이 부족한 지표는 None."""
    symbol: str
    date: date
    rsi25: Optional[float] = None
    ema20: Optional[float] = None
    ema50: Optional[float] = None
    ema200: Optional[float] = None
    stochastic_14_7_7: Optional[float] = None
    pivot: Optional[dict[str, dict[str, float]]] = None

    def fields(self) -> dict[str, Any]:
        """저장용 필드 (symbol/date 제외)."""
        return {
            "rsi25": self.rsi25,
            "ema20": self.ema20,
            "ema50": self.ema50,
            "ema200": self.ema200,
            "stochastic_14_7_7": self.stochastic_14_7_7,
            "pivot": self.pivot,
        }

    def has_values(self) -> bool:
        return any(v is not None for v in self.fields().values())


@dataclass
class StrategyResult:
    """전략별 종목 최신 추천. recommendation은 "BUY" 또는 ["BUY", "SELL", "N/A"]."""
    strategy_id: str
    symbol: str
    date: date
    recommendation: str | list[str]
    metadata: dict[str, Any] = field(default_factory=dict)
