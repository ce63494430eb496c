"""
SQLAlchemy 기반 거래/원장 저장소.

[ 역할 ]
    PortfolioStore 인터페이스를 SQL DB(SQLite, PostgreSQL 등)로 구현.
    초기화 시 테이블이 없으면 생성.

[ 테이블 ]
    instruments     - 종목 → 통화
    trades          - 매수/매도 lot (quantity_remaining 포함)
    closed_trades   - FIFO 매칭 결과
    ledger_entries  - 현금 원장

[ 금액/수량 컬럼 ]
    Numeric(20, 8). 읽으면 Decimal로 돌아온다.
    (SQLite는 내부적으로 REAL 저장, 소수 8자리로 양자화해서 읽음)

[ 동시성 ]
    find_buy_lots()는 SELECT ... FOR UPDATE 로 lot 행을 잠근다.
    같은 lot을 두 매도가 동시에 소진하지 못하도록 트랜잭션 종료까지 유지.
    (SQLite는 FOR UPDATE를 무시하지만 DB 단위 쓰기 잠금으로 직렬화된다)

[ 호출하는 곳 ]
    - service.py::PortfolioService.from_config() (portfolio_db.url)
"""

from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, Optional

from sqlalchemy import Column, Date, Integer, Numeric, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from portfolio_tracker.core.errors import PersistenceError
from portfolio_tracker.core.models import (
    ClosedTrade,
    Instrument,
    LedgerAction,
    LedgerEntry,
    TradeLot,
    TradeSide,
)
from portfolio_tracker.core.store import PortfolioStore
from portfolio_tracker.utils.logger import get_logger

logger = get_logger("store")

Base = declarative_base()


class InstrumentRecord(Base):
    __tablename__ = "instruments"

    symbol = Column(String, primary_key=True)
    name = Column(String, nullable=False, default="")
    currency = Column(String(3), nullable=True)


class TradeRecord(Base):
    __tablename__ = "trades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    symbol = Column(String, nullable=False, index=True)
    side = Column(String(4), nullable=False)   # "BUY" or "SELL"
    quantity = Column(Numeric(20, 8), nullable=False)
    unit_price = Column(Numeric(20, 8), nullable=False)
    total_price = Column(Numeric(20, 8), nullable=False)
    trade_date = Column(Date, nullable=False)
    quantity_remaining = Column(Numeric(20, 8), nullable=False, default=0)


class ClosedTradeRecord(Base):
    __tablename__ = "closed_trades"

    id = Column(String, primary_key=True)      # "{user}_{buy_id}_{sell_id}"
    user_id = Column(Integer, nullable=False, index=True)
    symbol = Column(String, nullable=False)
    buy_date = Column(Date, nullable=False)
    buy_price = Column(Numeric(20, 8), nullable=False)
    sell_date = Column(Date, nullable=False)
    sell_price = Column(Numeric(20, 8), nullable=False)
    quantity = Column(Numeric(20, 8), nullable=False)
    pct_gain = Column(Integer, nullable=False)
    dollar_gain = Column(Numeric(20, 8), nullable=False)
    holding_days = Column(Integer, nullable=False)
    buy_lot_id = Column(Integer, nullable=False)
    sell_lot_id = Column(Integer, nullable=False)


class LedgerRecord(Base):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    entry_date = Column(Date, nullable=False)
    action = Column(String(8), nullable=False)
    amount = Column(Numeric(20, 8), nullable=False)
    currency = Column(String(3), nullable=False)
    symbol = Column(String, nullable=True)


def _to_lot(record: TradeRecord) -> TradeLot:
    return TradeLot(
        id=record.id,
        user_id=record.user_id,
        symbol=record.symbol,
        side=TradeSide(record.side),
        quantity=record.quantity,
        unit_price=record.unit_price,
        trade_date=record.trade_date,
        quantity_remaining=record.quantity_remaining,
    )


def _to_closed(record: ClosedTradeRecord) -> ClosedTrade:
    return ClosedTrade(
        id=record.id,
        user_id=record.user_id,
        symbol=record.symbol,
        buy_date=record.buy_date,
        buy_price=record.buy_price,
        sell_date=record.sell_date,
        sell_price=record.sell_price,
        quantity=record.quantity,
        pct_gain=record.pct_gain,
        dollar_gain=record.dollar_gain,
        holding_days=record.holding_days,
        buy_lot_id=record.buy_lot_id,
        sell_lot_id=record.sell_lot_id,
    )


def _to_entry(record: LedgerRecord) -> LedgerEntry:
    return LedgerEntry(
        id=record.id,
        user_id=record.user_id,
        entry_date=record.entry_date,
        action=LedgerAction(record.action),
        amount=record.amount,
        currency=record.currency,
        symbol=record.symbol,
    )


class SqlPortfolioStore(PortfolioStore):
    """SQLAlchemy 거래/원장 저장소.

    사용 예:
        store = SqlPortfolioStore("sqlite:///portfolio.db")
        with store.transaction():
            lot = store.insert_trade(...)
    """

    def __init__(self, url: str = "sqlite:///portfolio.db", echo: bool = False):
        engine_kwargs = {"echo": echo}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # 인메모리 SQLite는 커넥션 하나를 공유해야 테이블이 유지된다
            engine_kwargs.update(
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        self.engine = create_engine(url, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self._session: Optional[Session] = None

        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to initialize portfolio schema: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """세션 하나를 여는 트랜잭션. 중첩 호출은 바깥 세션을 재사용."""
        if self._session is not None:
            yield self._session
            return

        session = self._session_factory()
        self._session = session
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"트랜잭션 롤백: {e}")
            raise PersistenceError(f"Portfolio store failure: {e}") from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()
            self._session = None

    @contextmanager
    def _use_session(self) -> Iterator[Session]:
        """트랜잭션 안이면 그 세션, 밖이면 단발 트랜잭션."""
        if self._session is not None:
            yield self._session
        else:
            with self.transaction() as session:
                yield session

    # ─── 종목 ────────────────────────────────────────────────────────────

    def find_instrument(self, symbol: str) -> Optional[Instrument]:
        with self._use_session() as session:
            record = session.get(InstrumentRecord, symbol)
            if record is None:
                return None
            return Instrument(symbol=record.symbol, name=record.name, currency=record.currency)

    def list_instruments(self) -> list[Instrument]:
        with self._use_session() as session:
            records = session.scalars(select(InstrumentRecord).order_by(InstrumentRecord.symbol))
            return [Instrument(symbol=r.symbol, name=r.name, currency=r.currency) for r in records]

    def add_instrument(self, instrument: Instrument) -> None:
        with self._use_session() as session:
            session.merge(InstrumentRecord(
                symbol=instrument.symbol,
                name=instrument.name,
                currency=instrument.currency,
            ))

    # ─── 거래 lot ────────────────────────────────────────────────────────

    def insert_trade(self, lot: TradeLot) -> TradeLot:
        with self._use_session() as session:
            record = TradeRecord(
                user_id=lot.user_id,
                symbol=lot.symbol,
                side=lot.side.value,
                quantity=lot.quantity,
                unit_price=lot.unit_price,
                total_price=lot.total_price,
                trade_date=lot.trade_date,
                quantity_remaining=lot.quantity_remaining,
            )
            session.add(record)
            session.flush()
            return _to_lot(record)

    def find_buy_lots(self, user_id: int, symbol: str, open_only: bool = True) -> list[TradeLot]:
        with self._use_session() as session:
            stmt = (
                select(TradeRecord)
                .where(
                    TradeRecord.user_id == user_id,
                    TradeRecord.symbol == symbol,
                    TradeRecord.side == TradeSide.BUY.value,
                )
                .order_by(TradeRecord.trade_date, TradeRecord.id)
                .with_for_update()
            )
            if open_only:
                stmt = stmt.where(TradeRecord.quantity_remaining > 0)
            return [_to_lot(r) for r in session.scalars(stmt)]

    def update_lot_remaining(self, lot_id: int, quantity_remaining: Decimal) -> None:
        with self._use_session() as session:
            record = session.get(TradeRecord, lot_id)
            if record is None:
                raise PersistenceError(f"Trade lot {lot_id} disappeared during settlement")
            record.quantity_remaining = quantity_remaining
            session.flush()

    def list_trades(self, user_id: int) -> list[TradeLot]:
        with self._use_session() as session:
            stmt = (
                select(TradeRecord)
                .where(TradeRecord.user_id == user_id)
                .order_by(TradeRecord.trade_date, TradeRecord.id)
            )
            return [_to_lot(r) for r in session.scalars(stmt)]

    # ─── 청산 기록 ───────────────────────────────────────────────────────

    def insert_closed_trade(self, record: ClosedTrade) -> None:
        with self._use_session() as session:
            session.add(ClosedTradeRecord(
                id=record.id,
                user_id=record.user_id,
                symbol=record.symbol,
                buy_date=record.buy_date,
                buy_price=record.buy_price,
                sell_date=record.sell_date,
                sell_price=record.sell_price,
                quantity=record.quantity,
                pct_gain=record.pct_gain,
                dollar_gain=record.dollar_gain,
                holding_days=record.holding_days,
                buy_lot_id=record.buy_lot_id,
                sell_lot_id=record.sell_lot_id,
            ))
            session.flush()

    def list_closed_trades(self, user_id: int) -> list[ClosedTrade]:
        with self._use_session() as session:
            stmt = (
                select(ClosedTradeRecord)
                .where(ClosedTradeRecord.user_id == user_id)
                .order_by(ClosedTradeRecord.sell_lot_id, ClosedTradeRecord.buy_date, ClosedTradeRecord.buy_lot_id)
            )
            return [_to_closed(r) for r in session.scalars(stmt)]

    # ─── 현금 원장 ───────────────────────────────────────────────────────

    def insert_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        with self._use_session() as session:
            record = LedgerRecord(
                user_id=entry.user_id,
                entry_date=entry.entry_date,
                action=entry.action.value,
                amount=entry.amount,
                currency=entry.currency,
                symbol=entry.symbol,
            )
            session.add(record)
            session.flush()
            return _to_entry(record)

    def fold_ledger_entries(self, user_id: int) -> list[LedgerEntry]:
        with self._use_session() as session:
            stmt = select(LedgerRecord).where(LedgerRecord.user_id == user_id).order_by(LedgerRecord.id)
            return [_to_entry(r) for r in session.scalars(stmt)]
