"""
다중 통화 현금 원장 모듈.

[ 역할 ]
    원장 항목(입금/출금/이익/손실)을 기록하고, 통화별 잔고를 매번 새로 계산.
    잔고는 저장하지 않는다 (항상 원장 fold + 미청산 lot 합산).

[ 잔고 공식 ]
    total    = Σ (+deposit, +gain, -withdraw, -loss)
    invested = Σ 미청산 매수 lot의 quantity_remaining * unit_price (종목 통화별)
    treasury = total - invested

[ 호출하는 곳 ]
    - accounting/settlement.py::TradeSettlementEngine.create_trade()
      매수 전 has_sufficient_funds()로 가용 현금 확인
    - service.py::PortfolioService.balances() / record_ledger_entry()
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from portfolio_tracker.core.errors import InsufficientFunds, ValidationError
from portfolio_tracker.core.models import ZERO, CurrencyBalance, LedgerAction, LedgerEntry, TradeSide, to_decimal
from portfolio_tracker.core.store import PortfolioStore
from portfolio_tracker.utils.logger import get_logger

logger = get_logger("wallet")

DEFAULT_CURRENCIES = ("CAD", "USD", "EUR")


class LedgerAccount:
    """통화별 total / invested / treasury 계산기.

    사용 예:
        account = LedgerAccount(store)
        account.record_entry(1, date(2024, 1, 2), "deposit", 1000, "CAD")
        account.treasury(1, "CAD")   # Decimal("1000")
    """

    def __init__(
        self,
        store: PortfolioStore,
        fallback_currency: str = "CAD",
        currencies: tuple[str, ...] | list[str] = DEFAULT_CURRENCIES,
    ):
        self.store = store
        self.fallback_currency = fallback_currency
        self.currencies = tuple(currencies)

    # ─── 원장 기록 ───────────────────────────────────────────────────────

    def record_entry(
        self,
        user_id: int,
        entry_date: date,
        action: str | LedgerAction,
        amount: Decimal | float | int | str,
        currency: str,
        symbol: Optional[str] = None,
    ) -> LedgerEntry:
        """원장 항목 추가. 잘못된 입력은 아무것도 기록하지 않고 ValidationError."""
        try:
            action = LedgerAction(action)
        except ValueError:
            allowed = ", ".join(a.value for a in LedgerAction)
            raise ValidationError(f"Unknown ledger action '{action}'. Expected one of: {allowed}") from None

        currency = currency.upper()
        if currency not in self.currencies:
            raise ValidationError(
                f"Unsupported currency '{currency}'. Expected one of: {', '.join(self.currencies)}"
            )
        try:
            value = to_decimal(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Amount must be strictly positive, got {amount}") from None
        if not value.is_finite() or value <= 0:
            raise ValidationError(f"Amount must be strictly positive, got {amount}")

        entry = self.store.insert_ledger_entry(LedgerEntry(
            user_id=user_id,
            entry_date=entry_date,
            action=action,
            amount=value,
            currency=currency,
            symbol=symbol,
        ))
        logger.info(f"원장 기록: user={user_id} {action.value} {value:.2f} {currency}")
        return entry

    def history(self, user_id: int) -> list[LedgerEntry]:
        """원장 항목 (최신순)."""
        entries = self.store.fold_ledger_entries(user_id)
        return sorted(entries, key=lambda e: (e.entry_date, e.id or 0), reverse=True)

    # ─── 잔고 계산 ───────────────────────────────────────────────────────

    def _currency_of(self, symbol: str) -> str:
        instrument = self.store.find_instrument(symbol)
        if instrument is None or not instrument.currency:
            logger.warning(f"{symbol}: 통화 정보 없음, {self.fallback_currency}로 간주")
            return self.fallback_currency
        return instrument.currency

    def _totals(self, user_id: int) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = defaultdict(Decimal)
        for entry in self.store.fold_ledger_entries(user_id):
            totals[entry.currency] += entry.signed_amount
        return totals

    def _invested(self, user_id: int) -> dict[str, Decimal]:
        invested: dict[str, Decimal] = defaultdict(Decimal)
        currency_cache: dict[str, str] = {}
        for lot in self.store.list_trades(user_id):
            if lot.side != TradeSide.BUY or lot.quantity_remaining <= 0:
                continue
            if lot.symbol not in currency_cache:
                currency_cache[lot.symbol] = self._currency_of(lot.symbol)
            invested[currency_cache[lot.symbol]] += lot.quantity_remaining * lot.unit_price
        return invested

    def calculate_balances(self, user_id: int) -> dict[str, CurrencyBalance]:
        """통화별 잔고 (통화 코드 순). 한쪽에만 있는 통화도 포함."""
        totals = self._totals(user_id)
        invested = self._invested(user_id)

        balances = {}
        for currency in sorted(set(totals) | set(invested)):
            total = totals.get(currency, ZERO)
            spent = invested.get(currency, ZERO)
            balances[currency] = CurrencyBalance(
                currency=currency,
                total=total,
                invested=spent,
                treasury=total - spent,
            )
        return balances

    def treasury(self, user_id: int, currency: str) -> Decimal:
        """가용 현금. 해당 통화 기록이 없으면 0."""
        balance = self.calculate_balances(user_id).get(currency.upper())
        return balance.treasury if balance else ZERO

    def has_sufficient_funds(self, user_id: int, currency: str, amount: Decimal | float) -> bool:
        return self.treasury(user_id, currency) >= to_decimal(amount)

    def insufficient_funds_error(self, user_id: int, currency: str, amount: Decimal | float) -> InsufficientFunds:
        return InsufficientFunds(currency.upper(), to_decimal(amount), self.treasury(user_id, currency))

    def insufficient_funds_message(self, user_id: int, currency: str, amount: Decimal | float) -> str:
        """부족 안내 문구. 형식: Insufficient funds: X CUR available, Y CUR required (shortage: Z CUR)"""
        return self.insufficient_funds_error(user_id, currency, amount).message
