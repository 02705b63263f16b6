"""
Portfolio risk limits.

Checks a proposed trade against four independent gates, in order, stopping
at the first failure:

1. position value / equity <= max_position_size_pct (skipped without a price)
2. realized-plus-unrealized loss today <= max_daily_loss_pct of the day's
   starting equity
3. drawdown from peak equity <= max_drawdown_pct
4. open positions < max_concurrent_positions

A denial blocks the trade, never the session.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from loguru import logger

from src.core.enums import RiskDenialReason, TradeSide
from src.core.exceptions.risk import RiskLimitExceededError
from src.core.models.portfolio import PortfolioState, ProposedTrade, RiskLimits
from src.core.types.financial import HUNDRED, ZERO, round_percentage, safe_divide


@dataclass(frozen=True)
class RiskDecision:
    """Outcome of a risk check."""

    allowed: bool
    reason: RiskDenialReason | None = None
    message: str | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "RiskDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: RiskDenialReason, message: str) -> "RiskDecision":
        return cls(allowed=False, reason=reason, message=message)

    def raise_if_denied(self) -> None:
        """
        Raises:
            RiskLimitExceededError: If the trade was denied
        """
        if not self.allowed and self.reason is not None:
            raise RiskLimitExceededError(self.reason, self.message)


@dataclass(frozen=True)
class RiskMetrics:
    """Current utilization of each risk gate, for observability only."""

    position_size_utilization_pct: Decimal
    daily_loss_used_pct: Decimal
    drawdown_from_peak_pct: Decimal
    concurrent_positions: int
    can_open_new_position: bool
    limit_utilization_pct: dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "position_size_utilization_pct": str(self.position_size_utilization_pct),
            "daily_loss_used_pct": str(self.daily_loss_used_pct),
            "drawdown_from_peak_pct": str(self.drawdown_from_peak_pct),
            "concurrent_positions": self.concurrent_positions,
            "can_open_new_position": self.can_open_new_position,
            "limit_utilization_pct": {k: str(v) for k, v in self.limit_utilization_pct.items()},
        }


def _daily_pnl(portfolio: PortfolioState) -> Decimal:
    return portfolio.realized_pnl_today + portfolio.unrealized_pnl


def _drawdown(portfolio: PortfolioState) -> Decimal:
    if portfolio.peak_equity <= ZERO:
        return ZERO
    return max(ZERO, (portfolio.peak_equity - portfolio.current_equity) / portfolio.peak_equity)


class RiskManager:
    """Evaluates proposed trades against portfolio risk limits."""

    def __init__(self, limits: RiskLimits | None = None) -> None:
        self.limits = limits or RiskLimits()

    def check_trade(
        self,
        proposed: ProposedTrade,
        portfolio: PortfolioState,
        limits: RiskLimits | None = None,
    ) -> RiskDecision:
        """
        Check a proposed trade.

        Args:
            proposed: Trade under consideration
            portfolio: Current portfolio snapshot
            limits: Limits to apply, defaulting to this manager's

        Returns:
            RiskDecision, allowed or denied with a reason
        """
        active_limits = limits or self.limits
        for gate in (
            self._check_position_size,
            self._check_daily_loss,
            self._check_drawdown,
            self._check_concurrent_positions,
        ):
            denial = gate(proposed, portfolio, active_limits)
            if denial is not None:
                logger.debug(f"Risk check denied {proposed.side} {proposed.symbol}: {denial.message}")
                return denial
        return RiskDecision.allow()

    @staticmethod
    def _check_position_size(
        proposed: ProposedTrade, portfolio: PortfolioState, limits: RiskLimits
    ) -> RiskDecision | None:
        notional = proposed.notional
        if notional is None:
            return None
        if portfolio.current_equity <= ZERO:
            if notional > ZERO:
                return RiskDecision.deny(
                    RiskDenialReason.MAX_POSITION_SIZE_EXCEEDED,
                    f"Position value {notional} exceeds non-positive equity",
                )
            return None
        position_pct = notional / portfolio.current_equity
        if position_pct > limits.max_position_size_pct:
            return RiskDecision.deny(
                RiskDenialReason.MAX_POSITION_SIZE_EXCEEDED,
                f"Position size {round_percentage(position_pct * HUNDRED)}% exceeds "
                f"limit {limits.max_position_size_pct * HUNDRED}%",
            )
        return None

    @staticmethod
    def _check_daily_loss(
        proposed: ProposedTrade, portfolio: PortfolioState, limits: RiskLimits
    ) -> RiskDecision | None:
        daily_pnl = _daily_pnl(portfolio)
        if daily_pnl >= ZERO or portfolio.daily_starting_equity <= ZERO:
            return None
        loss_pct = -daily_pnl / portfolio.daily_starting_equity
        if loss_pct > limits.max_daily_loss_pct:
            return RiskDecision.deny(
                RiskDenialReason.DAILY_LOSS_LIMIT_HIT,
                f"Daily loss {round_percentage(loss_pct * HUNDRED)}% exceeds "
                f"limit {limits.max_daily_loss_pct * HUNDRED}%",
            )
        return None

    @staticmethod
    def _check_drawdown(
        proposed: ProposedTrade, portfolio: PortfolioState, limits: RiskLimits
    ) -> RiskDecision | None:
        drawdown = _drawdown(portfolio)
        if drawdown > limits.max_drawdown_pct:
            return RiskDecision.deny(
                RiskDenialReason.MAX_DRAWDOWN_EXCEEDED,
                f"Drawdown {round_percentage(drawdown * HUNDRED)}% exceeds "
                f"limit {limits.max_drawdown_pct * HUNDRED}%",
            )
        return None

    @staticmethod
    def _check_concurrent_positions(
        proposed: ProposedTrade, portfolio: PortfolioState, limits: RiskLimits
    ) -> RiskDecision | None:
        open_count = len(portfolio.open_positions)
        if open_count >= limits.max_concurrent_positions:
            return RiskDecision.deny(
                RiskDenialReason.MAX_CONCURRENT_POSITIONS,
                f"{open_count} open positions, limit {limits.max_concurrent_positions}",
            )
        return None

    def risk_metrics(self, portfolio: PortfolioState, limits: RiskLimits | None = None) -> RiskMetrics:
        """
        Report how much of each limit is in use.

        Args:
            portfolio: Current portfolio snapshot
            limits: Limits to report against, defaulting to this manager's
        """
        active_limits = limits or self.limits

        position_pct = safe_divide(portfolio.exposure, portfolio.current_equity) * HUNDRED
        daily_loss = max(ZERO, -_daily_pnl(portfolio))
        daily_loss_pct = safe_divide(daily_loss, portfolio.daily_starting_equity) * HUNDRED
        drawdown_pct = _drawdown(portfolio) * HUNDRED
        concurrent = len(portfolio.open_positions)

        placeholder = ProposedTrade(symbol="*", side=TradeSide.BUY, quantity=ZERO, price=None)
        can_open = self.check_trade(placeholder, portfolio, active_limits).allowed

        return RiskMetrics(
            position_size_utilization_pct=round_percentage(position_pct),
            daily_loss_used_pct=round_percentage(daily_loss_pct),
            drawdown_from_peak_pct=round_percentage(drawdown_pct),
            concurrent_positions=concurrent,
            can_open_new_position=can_open,
            limit_utilization_pct={
                "position_size": round_percentage(
                    safe_divide(position_pct, active_limits.max_position_size_pct * HUNDRED) * HUNDRED
                ),
                "daily_loss": round_percentage(
                    safe_divide(daily_loss_pct, active_limits.max_daily_loss_pct * HUNDRED) * HUNDRED
                ),
                "drawdown": round_percentage(
                    safe_divide(drawdown_pct, active_limits.max_drawdown_pct * HUNDRED) * HUNDRED
                ),
                "concurrent_positions": round_percentage(
                    Decimal(concurrent) / Decimal(active_limits.max_concurrent_positions) * HUNDRED
                ),
            },
        )


def check_trade(
    proposed: ProposedTrade, portfolio: PortfolioState, limits: RiskLimits
) -> RiskDecision:
    """Module-level convenience for a one-off check."""
    return RiskManager(limits).check_trade(proposed, portfolio)
