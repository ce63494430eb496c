"""
거래 정산 모듈 (FIFO).

[ 역할 ]
    매수/매도 거래를 검증하고 기록.
    매도 시 같은 종목의 미청산 매수 lot을 오래된 순서(FIFO)로 소진하며
    매칭된 조각마다 청산 기록(ClosedTrade)과 실현 손익을 생성.

[ 처리 순서 ]
    1. 수량/단가 > 0, 방향 검증 (ValidationError). 수량/단가는 Decimal로 변환
    2. 종목 조회 (NotFoundError), 통화 결정 (없으면 fallback)
    3. 매수: treasury >= 수량 * 단가 확인 (InsufficientFunds)
       매도: 보유 수량 >= 매도 수량 확인 (ShortSellNotSupported)
    4. lot 저장, 매도면 FIFO 정산
    1~4 전체가 저장소 트랜잭션 하나 안에서 실행된다. 중간 실패 시 모두 롤백.

[ FIFO 정산 ]
    remaining = 매도 수량
    (trade_date, id) 오름차순 lot마다:
        consumed = min(remaining, lot.quantity_remaining)
        lot.quantity_remaining -= consumed, remaining -= consumed
        ClosedTrade(gain = (매도가 - 매수가) * consumed,
                    pct_gain = round((매도가 - 매수가) / 매수가 * 100),
                    holding_days = 매도일 - 매수일)
    remaining == 0 이면 종료.

[ 호출하는 곳 ]
    - service.py::PortfolioService.submit_trade()
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal, InvalidOperation

from portfolio_tracker.accounting.wallet import LedgerAccount
from portfolio_tracker.core.errors import NotFoundError, ShortSellNotSupported, ValidationError
from portfolio_tracker.core.models import ZERO, ClosedTrade, OpenPosition, TradeLot, TradeSide, to_decimal
from portfolio_tracker.core.store import PortfolioStore
from portfolio_tracker.utils.logger import get_logger

logger = get_logger("settlement")


def closed_trade_id(user_id: int, buy_lot_id: int, sell_lot_id: int) -> str:
    return f"{user_id}_{buy_lot_id}_{sell_lot_id}"


class TradeSettlementEngine:
    """거래 기록 + FIFO 정산 엔진.

    사용 예:
        engine = TradeSettlementEngine(store, LedgerAccount(store))
        engine.create_trade(1, "SHOP.TO", "BUY", 10, 50.0, date(2024, 1, 2))
        engine.create_trade(1, "SHOP.TO", "SELL", 4, 62.0, date(2024, 3, 1))
    """

    def __init__(self, store: PortfolioStore, ledger: LedgerAccount):
        self.store = store
        self.ledger = ledger

    # ─── 거래 생성 ───────────────────────────────────────────────────────

    def create_trade(
        self,
        user_id: int,
        symbol: str,
        side: str | TradeSide,
        quantity: Decimal | float | int | str,
        unit_price: Decimal | float | int | str,
        trade_date: date,
    ) -> TradeLot:
        """거래 1건 기록. 매도면 즉시 FIFO 정산.

        Raises:
            ValidationError: 수량/단가 <= 0, 알 수 없는 방향
            NotFoundError: 알 수 없는 종목
            InsufficientFunds: 매수 금액 > treasury
            ShortSellNotSupported: 매도 수량 > 보유 수량
        """
        side, quantity, unit_price = self._validate(side, quantity, unit_price)

        with self.store.transaction():
            instrument = self.store.find_instrument(symbol)
            if instrument is None:
                raise NotFoundError("Instrument", symbol)
            currency = instrument.currency or self.ledger.fallback_currency

            if side == TradeSide.BUY:
                required = quantity * unit_price
                if not self.ledger.has_sufficient_funds(user_id, currency, required):
                    error = self.ledger.insufficient_funds_error(user_id, currency, required)
                    logger.warning(f"매수 거부: user={user_id} {symbol} - {error.message}")
                    raise error
                lot = self.store.insert_trade(TradeLot(
                    user_id=user_id,
                    symbol=symbol,
                    side=side,
                    quantity=quantity,
                    unit_price=unit_price,
                    trade_date=trade_date,
                    quantity_remaining=quantity,
                ))
                logger.info(f"매수 기록: user={user_id} {symbol} {quantity:g}주 @ {unit_price:,.2f} {currency}")
                return lot

            # 보유 수량 검증을 어떤 변경보다 먼저 수행
            open_lots = self.store.find_buy_lots(user_id, symbol, open_only=True)
            available = sum((lot.quantity_remaining for lot in open_lots), ZERO)
            if available < quantity:
                logger.warning(f"매도 거부: user={user_id} {symbol} 요청 {quantity:g} > 보유 {available:g}")
                raise ShortSellNotSupported(symbol, quantity, available)

            sell_lot = self.store.insert_trade(TradeLot(
                user_id=user_id,
                symbol=symbol,
                side=side,
                quantity=quantity,
                unit_price=unit_price,
                trade_date=trade_date,
                quantity_remaining=ZERO,
            ))
            records = self._settle_fifo(sell_lot, open_lots)
            logger.info(
                f"매도 기록: user={user_id} {symbol} {quantity:g}주 @ {unit_price:,.2f} {currency}, "
                f"매칭 lot {len(records)}건"
            )
            return sell_lot

    @staticmethod
    def _positive(label: str, value) -> Decimal:
        try:
            number = to_decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"{label} must be strictly positive, got {value}") from None
        if not number.is_finite() or number <= 0:
            raise ValidationError(f"{label} must be strictly positive, got {value}")
        return number

    @classmethod
    def _validate(cls, side: str | TradeSide, quantity, unit_price) -> tuple[TradeSide, Decimal, Decimal]:
        quantity = cls._positive("Quantity", quantity)
        unit_price = cls._positive("Unit price", unit_price)
        if isinstance(side, TradeSide):
            return side, quantity, unit_price
        try:
            return TradeSide(str(side).upper()), quantity, unit_price
        except ValueError:
            raise ValidationError(f"Unknown trade side '{side}'. Expected BUY or SELL") from None

    def _settle_fifo(self, sell_lot: TradeLot, open_lots: list[TradeLot]) -> list[ClosedTrade]:
        """open_lots((trade_date, id) 순)를 앞에서부터 소진하며 청산 기록 생성."""
        remaining = sell_lot.quantity
        records = []

        for lot in open_lots:
            if remaining <= 0:
                break
            consumed = min(remaining, lot.quantity_remaining)
            if consumed <= 0:
                continue

            self.store.update_lot_remaining(lot.id, lot.quantity_remaining - consumed)
            remaining -= consumed

            price_diff = sell_lot.unit_price - lot.unit_price
            record = ClosedTrade(
                id=closed_trade_id(sell_lot.user_id, lot.id, sell_lot.id),
                user_id=sell_lot.user_id,
                symbol=sell_lot.symbol,
                buy_date=lot.trade_date,
                buy_price=lot.unit_price,
                sell_date=sell_lot.trade_date,
                sell_price=sell_lot.unit_price,
                quantity=consumed,
                pct_gain=round(price_diff / lot.unit_price * 100),
                dollar_gain=price_diff * consumed,
                holding_days=(sell_lot.trade_date - lot.trade_date).days,
                buy_lot_id=lot.id,
                sell_lot_id=sell_lot.id,
            )
            self.store.insert_closed_trade(record)
            records.append(record)
            logger.debug(
                f"FIFO 매칭: buy lot {lot.id} ({lot.trade_date}) {consumed:g}주, "
                f"손익 {record.dollar_gain:,.2f} ({record.pct_gain}%)"
            )

        return records

    # ─── 조회 ────────────────────────────────────────────────────────────

    def get_available_quantity(self, user_id: int, symbol: str) -> Decimal:
        """미청산 매수 lot의 잔량 합."""
        lots = self.store.find_buy_lots(user_id, symbol, open_only=True)
        return sum((lot.quantity_remaining for lot in lots), ZERO)

    def list_trades(self, user_id: int) -> list[TradeLot]:
        """거래 이력 (최신순)."""
        return list(reversed(self.store.list_trades(user_id)))

    def closed_trades(self, user_id: int) -> list[ClosedTrade]:
        """청산 기록 (최근 매도순)."""
        records = self.store.list_closed_trades(user_id)
        return sorted(records, key=lambda r: (r.sell_date, r.sell_lot_id), reverse=True)

    def open_positions(self, user_id: int) -> list[OpenPosition]:
        """종목별 미청산 포지션 (잔여 lot 가중평균 단가, 종목순)."""
        quantity: dict[str, Decimal] = defaultdict(Decimal)
        cost: dict[str, Decimal] = defaultdict(Decimal)
        for lot in self.store.list_trades(user_id):
            if lot.is_open:
                quantity[lot.symbol] += lot.quantity_remaining
                cost[lot.symbol] += lot.quantity_remaining * lot.unit_price

        return [
            OpenPosition(symbol=symbol, total_quantity=quantity[symbol], avg_price=cost[symbol] / quantity[symbol])
            for symbol in sorted(quantity)
        ]
