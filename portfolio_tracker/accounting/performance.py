"""
실현 성과 지표 계산 모듈.

[ 역할 ]
    청산 기록(ClosedTrade) 리스트로 실현 손익 기반 성과 지표를 계산.
    calculate_performance() 함수가 핵심.

[ 계산하는 지표 ]
    - 승률, 평균 수익/손실, 수익 팩터
    - 총 실현 손익, 평균 보유 기간
    - 연속 승/패 (매도일 순)

[ 호출하는 곳 ]
    - service.py::PortfolioService.performance()
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

import numpy as np

from portfolio_tracker.core.models import ZERO, ClosedTrade, to_decimal


@dataclass
class PerformanceSummary:
    """실현 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    total_trades: int = 0             # 청산 기록 수 (매칭 조각 단위)
    winning_trades: int = 0           # 이익 조각 수
    losing_trades: int = 0            # 손실(또는 0) 조각 수
    win_rate: float = 0.0             # 승률 (%)
    avg_gain: float = 0.0             # 이익 조각 평균 이익
    avg_loss: float = 0.0             # 손실 조각 평균 손실 (음수)
    profit_factor: float = 0.0        # 총이익 / 총손실 (1 이상이면 수익)
    total_realized: Decimal = ZERO    # 총 실현 손익 (Decimal 합)
    avg_holding_days: float = 0.0     # 평균 보유 기간
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            "실현 성과 리포트",
            "=" * 50,
            f"총 청산 건수:    {self.total_trades:>10d}",
            f"승률:            {self.win_rate:>10.2f}%",
            f"수익 거래:       {self.winning_trades:>10d}",
            f"손실 거래:       {self.losing_trades:>10d}",
            f"평균 수익:       {self.avg_gain:>10,.2f}",
            f"평균 손실:       {self.avg_loss:>10,.2f}",
            f"수익 팩터:       {self.profit_factor:>10.2f}",
            f"총 실현 손익:    {self.total_realized:>10,.2f}",
            f"평균 보유일:     {self.avg_holding_days:>10.1f}",
            "-" * 50,
            f"최대 연속 수익:  {self.max_consecutive_wins:>10d}",
            f"최대 연속 손실:  {self.max_consecutive_losses:>10d}",
            "=" * 50,
        ]
        return "\n".join(lines)


def _max_streaks(gains: list[float]) -> tuple[int, int]:
    wins = losses = max_wins = max_losses = 0
    for g in gains:
        if g > 0:
            wins += 1
            losses = 0
            max_wins = max(max_wins, wins)
        else:
            losses += 1
            wins = 0
            max_losses = max(max_losses, losses)
    return max_wins, max_losses


def calculate_performance(closed_trades: list[ClosedTrade]) -> PerformanceSummary:
    """청산 기록으로 성과 지표 계산. 기록이 없으면 전부 0."""
    metrics = PerformanceSummary()
    if not closed_trades:
        return metrics

    ordered = sorted(closed_trades, key=lambda r: (r.sell_date, r.sell_lot_id, r.buy_lot_id))
    gains = [float(r.dollar_gain) for r in ordered]
    winners = [g for g in gains if g > 0]
    losers = [g for g in gains if g <= 0]

    metrics.total_trades = len(gains)
    metrics.winning_trades = len(winners)
    metrics.losing_trades = len(losers)
    metrics.win_rate = len(winners) / len(gains) * 100
    metrics.total_realized = sum((to_decimal(r.dollar_gain) for r in ordered), ZERO)
    metrics.avg_holding_days = float(np.mean([r.holding_days for r in ordered]))

    if winners:
        metrics.avg_gain = float(np.mean(winners))
    if losers:
        metrics.avg_loss = float(np.mean(losers))

    total_gain = sum(winners)
    total_loss = abs(sum(losers))
    metrics.profit_factor = total_gain / total_loss if total_loss > 0 else float("inf")

    metrics.max_consecutive_wins, metrics.max_consecutive_losses = _max_streaks(gains)
    return metrics
