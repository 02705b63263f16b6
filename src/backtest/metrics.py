"""
Performance metrics of a finished simulation.

Trade statistics are computed over closing trades (each closing trade holds
the realized PnL of one round trip). Drawdown and Sharpe come from the
equity curve. Statistics that need at least one closed trade are None
when there is none.
"""

import statistics
from collections.abc import Sequence
from datetime import timedelta
from decimal import Decimal

from src.core.constants import PROFIT_FACTOR_SENTINEL
from src.core.models.backtest import EquitySnapshot, PerformanceMetrics
from src.core.models.trade import Trade
from src.core.types.financial import HUNDRED, ZERO, safe_divide
from src.backtest.equity_curve import max_drawdown, period_returns


def profit_factor(closed_trades: Sequence[Trade]) -> Decimal | None:
    """
    Gross profit / gross loss.

    A fixed sentinel stands in for infinity when there are no losses, and
    the factor is zero when nothing was won.
    """
    if not closed_trades:
        return None
    gross_profit = sum((t.pnl for t in closed_trades if t.pnl > ZERO), ZERO)
    gross_loss = abs(sum((t.pnl for t in closed_trades if t.pnl < ZERO), ZERO))
    if gross_profit == ZERO:
        return ZERO
    if gross_loss == ZERO:
        return PROFIT_FACTOR_SENTINEL
    return gross_profit / gross_loss


def sharpe_ratio(points: Sequence[EquitySnapshot]) -> Decimal | None:
    """Mean over population standard deviation of per-bar returns, risk-free rate 0."""
    returns = period_returns(points)
    if len(returns) < 2:
        return None
    deviation = statistics.pstdev(returns)
    if deviation == ZERO:
        return None
    return statistics.mean(returns) / deviation


def consecutive_streaks(closed_trades: Sequence[Trade]) -> tuple[int, int]:
    """Longest runs of winning and losing trades. Breakeven trades end both runs."""
    max_wins = max_losses = wins = losses = 0
    for trade in closed_trades:
        if trade.pnl > ZERO:
            wins, losses = wins + 1, 0
        elif trade.pnl < ZERO:
            wins, losses = 0, losses + 1
        else:
            wins = losses = 0
        max_wins = max(max_wins, wins)
        max_losses = max(max_losses, losses)
    return max_wins, max_losses


def average_duration(closed_trades: Sequence[Trade]) -> timedelta | None:
    durations = [t.duration for t in closed_trades if t.duration is not None]
    if not durations:
        return None
    return sum(durations, timedelta()) / len(durations)


def calculate_metrics(
    trades: Sequence[Trade],
    equity_curve: Sequence[EquitySnapshot],
    initial_capital: Decimal,
) -> PerformanceMetrics:
    """
    Compute performance metrics.

    Args:
        trades: Full trade journal (entries and closes)
        equity_curve: One snapshot per processed bar
        initial_capital: Starting capital
    """
    final_equity = equity_curve[-1].equity if equity_curve else initial_capital
    total_return = final_equity - initial_capital
    closed = [t for t in trades if t.is_closing]
    winners = [t for t in closed if t.pnl > ZERO]
    losers = [t for t in closed if t.pnl < ZERO]
    max_wins, max_losses = consecutive_streaks(closed)

    has_closed = bool(closed)
    return PerformanceMetrics(
        initial_capital=initial_capital,
        final_equity=final_equity,
        total_return=total_return,
        total_return_pct=safe_divide(total_return, initial_capital) * HUNDRED,
        max_drawdown=max_drawdown(equity_curve),
        trade_count=len(trades),
        closed_trade_count=len(closed),
        winning_trades=len(winners),
        losing_trades=len(losers),
        total_fees=sum((t.fee for t in trades), ZERO),
        win_rate=Decimal(len(winners)) / Decimal(len(closed)) if has_closed else None,
        sharpe_ratio=sharpe_ratio(equity_curve) if has_closed else None,
        average_win=(sum((t.pnl for t in winners), ZERO) / len(winners)) if winners else None,
        average_loss=(sum((t.pnl for t in losers), ZERO) / len(losers)) if losers else None,
        profit_factor=profit_factor(closed),
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        average_trade_duration=average_duration(closed),
    )
