"""
도메인 예외 정의.

[ 역할 ]
    정산/원장/지표 파이프라인에서 발생하는 모든 예외의 계층 구조.
    상위 계층(CLI, HTTP 등)은 PortfolioError만 잡으면 된다.

[ 예외 종류 ]
    ValidationError        - 수량/가격이 0 이하, 알 수 없는 action/통화 (변경 전 거부)
    InsufficientFunds      - 매수 금액 > 가용 현금(treasury)
    ShortSellNotSupported  - 매도 수량 > 보유(FIFO) 수량
    NotFoundError          - 알 수 없는 종목/데이터
    UpstreamComputeError   - 지표/전략 계산 실패 (해당 종목만 skip)
    PersistenceError       - 저장소 오류 (해당 종목 트랜잭션 롤백 후 전파)

[ 호출하는 곳 ]
    - accounting/settlement.py, accounting/wallet.py
    - pipeline/indicator_engine.py, pipeline/strategy_engine.py
    - data/*_store.py (드라이버 예외 → PersistenceError 변환)
"""

from decimal import Decimal

from portfolio_tracker.core.models import to_decimal


class PortfolioError(Exception):
    """모든 도메인 예외의 부모."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PortfolioError):
    """입력값 검증 실패."""


class NotFoundError(PortfolioError):
    """조회 대상이 존재하지 않음."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class InsufficientFunds(PortfolioError):
    """매수에 필요한 가용 현금 부족. 부족분(shortfall)을 함께 전달."""

    def __init__(self, currency: str, required: Decimal, available: Decimal):
        self.currency = currency
        self.required = to_decimal(required)
        self.available = to_decimal(available)
        self.shortfall = self.required - self.available
        super().__init__(
            f"Insufficient funds: {self.available:.2f} {currency} available, "
            f"{self.required:.2f} {currency} required "
            f"(shortage: {self.shortfall:.2f} {currency})"
        )


class ShortSellNotSupported(PortfolioError):
    """보유 수량보다 많이 매도하려는 경우."""

    def __init__(self, symbol: str, requested: Decimal, available: Decimal):
        self.symbol = symbol
        self.requested = requested
        self.available = available
        super().__init__(
            f"Attempted to sell {requested:g} units of {symbol} but only had enough "
            f"buy positions to cover {available:g} units. "
            "Short selling is not currently supported."
        )


class UpstreamComputeError(PortfolioError):
    """지표/전략 계산 실패. 배치에서는 해당 종목만 건너뛴다."""

    def __init__(self, symbol: str, reason: str):
        super().__init__(f"Computation failed for {symbol}: {reason}")
        self.symbol = symbol
        self.reason = reason


class PersistenceError(PortfolioError):
    """저장소 읽기/쓰기 실패."""
