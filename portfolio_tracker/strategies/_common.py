"""전략 공용 헬퍼 (자동 탐색 대상 아님)."""

from datetime import date

from portfolio_tracker.core.models import IndicatorRow
from portfolio_tracker.core.store import MarketStore


def closes_on_indicator_dates(store: MarketStore, rows: dict[str, IndicatorRow]) -> dict[str, float]:
    """종목별로 지표 row 날짜의 종가를 한 번의 조회로 가져온다. 종가가 없는 종목은 빠진다."""
    if not rows:
        return {}

    dates = [row.date for row in rows.values()]
    bars = store.fetch_price_bars(list(rows), min(dates), max(dates))

    wanted: dict[tuple[str, date], str] = {(symbol, row.date): symbol for symbol, row in rows.items()}
    closes = {}
    for symbol, bar_date, close in zip(bars["symbol"], bars["date"], bars["close"]):
        if (symbol, bar_date) in wanted:
            closes[symbol] = float(close)
    return closes
