"""
Unit tests for portfolio risk limits.
Testing each gate, gate ordering, boundaries and utilization reporting.
"""

from datetime import date
from decimal import Decimal

import pytest

from src.core.enums import PositionSide, RiskDenialReason, TradeSide
from src.core.exceptions.backtest import ValidationError
from src.core.exceptions.risk import RiskLimitExceededError
from src.core.models.portfolio import PortfolioState, PositionExposure, ProposedTrade, RiskLimits
from src.risk.risk_manager import RiskManager, check_trade

EQUITY = Decimal("10000")


def make_portfolio(**overrides: object) -> PortfolioState:
    """Flat portfolio at its peak unless overridden."""
    fields: dict[str, object] = {
        "current_equity": EQUITY,
        "peak_equity": EQUITY,
        "daily_starting_equity": EQUITY,
    }
    fields.update(overrides)
    return PortfolioState(**fields)  # type: ignore[arg-type]


def make_exposure(unrealized: str = "0") -> PositionExposure:
    return PositionExposure(
        symbol="ETH/USDT",
        side=PositionSide.LONG,
        quantity=Decimal("1"),
        current_price=Decimal("2000"),
        unrealized_pnl=Decimal(unrealized),
    )


class TestRiskManager:
    """Tests for RiskManager.check_trade."""

    @pytest.fixture
    def manager(self) -> RiskManager:
        """Create manager with default limits (25% / 3% / 15% / 3)."""
        return RiskManager()

    def test_should_allow_position_exactly_at_limit(self, manager: RiskManager) -> None:
        """Test that 25% of equity passes a 25% limit."""
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("0.05"), Decimal("50000"))

        decision = manager.check_trade(trade, make_portfolio())

        assert decision.allowed is True
        assert decision.reason is None

    def test_should_deny_position_above_limit(self, manager: RiskManager) -> None:
        """Test the position size gate."""
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("0.0502"), Decimal("50000"))

        decision = manager.check_trade(trade, make_portfolio())

        assert not decision
        assert decision.reason == RiskDenialReason.MAX_POSITION_SIZE_EXCEEDED
        assert decision.message is not None and "25" in decision.message

    def test_should_skip_position_gate_for_market_orders(self, manager: RiskManager) -> None:
        """Test that a trade without a price cannot fail the size gate."""
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("100"))

        assert manager.check_trade(trade, make_portfolio()).allowed

    def test_should_deny_on_realized_plus_unrealized_daily_loss(
        self, manager: RiskManager
    ) -> None:
        """Test that open losses count toward the daily limit."""
        # Arrange
        portfolio = make_portfolio(
            current_equity=Decimal("9650"),
            realized_pnl_today=Decimal("-200"),
            open_positions=(make_exposure("-150"),),
        )
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("0.001"), Decimal("50000"))

        # Act
        decision = manager.check_trade(trade, portfolio)

        # Assert
        assert decision.reason == RiskDenialReason.DAILY_LOSS_LIMIT_HIT

    def test_should_allow_daily_loss_exactly_at_limit(self, manager: RiskManager) -> None:
        """Test the daily loss boundary."""
        portfolio = make_portfolio(current_equity=Decimal("9700"), realized_pnl_today=Decimal("-300"))
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("0.001"), Decimal("50000"))

        assert manager.check_trade(trade, portfolio).allowed

    def test_should_deny_beyond_max_drawdown(self, manager: RiskManager) -> None:
        """Test the drawdown gate."""
        portfolio = make_portfolio(
            current_equity=Decimal("10000"),
            peak_equity=Decimal("12000"),
            daily_starting_equity=Decimal("10000"),
        )
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("0.001"), Decimal("50000"))

        decision = manager.check_trade(trade, portfolio)

        assert decision.reason == RiskDenialReason.MAX_DRAWDOWN_EXCEEDED

    def test_should_deny_at_max_concurrent_positions(self, manager: RiskManager) -> None:
        """Test the concurrent position gate."""
        portfolio = make_portfolio(open_positions=tuple(make_exposure() for _ in range(3)))
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("0.001"), Decimal("50000"))

        decision = manager.check_trade(trade, portfolio)

        assert decision.reason == RiskDenialReason.MAX_CONCURRENT_POSITIONS

    def test_should_report_first_failing_gate(self, manager: RiskManager) -> None:
        """Test gate order: position size before drawdown."""
        portfolio = make_portfolio(peak_equity=Decimal("20000"))
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("1"), Decimal("50000"))

        decision = manager.check_trade(trade, portfolio)

        assert decision.reason == RiskDenialReason.MAX_POSITION_SIZE_EXCEEDED

    def test_should_prefer_explicit_limits(self, manager: RiskManager) -> None:
        """Test per-call limits override the manager's own."""
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("0.1"), Decimal("50000"))
        limits = RiskLimits(max_position_size_pct=Decimal("0.5"))

        assert not manager.check_trade(trade, make_portfolio())
        assert manager.check_trade(trade, make_portfolio(), limits)

    def test_should_raise_when_denied_decision_is_enforced(self, manager: RiskManager) -> None:
        """Test raise_if_denied."""
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("1"), Decimal("50000"))
        decision = manager.check_trade(trade, make_portfolio())

        with pytest.raises(RiskLimitExceededError) as exc_info:
            decision.raise_if_denied()

        assert exc_info.value.reason == RiskDenialReason.MAX_POSITION_SIZE_EXCEEDED

    def test_module_level_check_should_use_given_limits(self) -> None:
        """Test the one-off convenience function."""
        trade = ProposedTrade("BTC/USDT", TradeSide.BUY, Decimal("0.1"), Decimal("50000"))

        decision = check_trade(trade, make_portfolio(), RiskLimits(max_position_size_pct=Decimal("1")))

        assert decision.allowed


class TestRiskMetrics:
    """Tests for limit utilization reporting."""

    def test_should_report_utilization_of_each_limit(self) -> None:
        """Test risk_metrics on a portfolio with one losing position."""
        # Arrange
        exposure = PositionExposure(
            symbol="BTC/USDT",
            side=PositionSide.LONG,
            quantity=Decimal("0.05"),
            current_price=Decimal("50000"),
            unrealized_pnl=Decimal("-50"),
        )
        portfolio = make_portfolio(realized_pnl_today=Decimal("-100"), open_positions=(exposure,))

        # Act
        metrics = RiskManager().risk_metrics(portfolio)

        # Assert
        assert metrics.position_size_utilization_pct == Decimal("25")
        assert metrics.daily_loss_used_pct == Decimal("1.5")
        assert metrics.drawdown_from_peak_pct == Decimal("0")
        assert metrics.concurrent_positions == 1
        assert metrics.can_open_new_position is True
        assert metrics.limit_utilization_pct["position_size"] == Decimal("100")
        assert metrics.limit_utilization_pct["daily_loss"] == Decimal("50")
        assert metrics.limit_utilization_pct["concurrent_positions"] == Decimal("33.3333")

    def test_should_report_blocked_when_a_gate_is_exhausted(self) -> None:
        """Test can_open_new_position under a breached drawdown."""
        portfolio = make_portfolio(peak_equity=Decimal("20000"))

        metrics = RiskManager().risk_metrics(portfolio)

        assert metrics.can_open_new_position is False
        assert metrics.to_dict()["drawdown_from_peak_pct"] == "50.0000"


class TestPortfolioState:
    """Tests for portfolio snapshots fed to the risk manager."""

    def test_should_carry_daily_baseline_within_a_day(self) -> None:
        """Test advance on the same trading day."""
        state = PortfolioState.initial(EQUITY, trading_day=date(2024, 1, 1))

        next_state = state.advance(Decimal("9900"), (), Decimal("-100"), date(2024, 1, 1))

        assert next_state.daily_starting_equity == EQUITY
        assert next_state.realized_pnl_today == Decimal("-100")
        assert next_state.peak_equity == EQUITY

    def test_should_reset_daily_baseline_on_new_day(self) -> None:
        """Test advance across midnight."""
        state = PortfolioState.initial(EQUITY, trading_day=date(2024, 1, 1)).advance(
            Decimal("9900"), (), Decimal("-100"), date(2024, 1, 1)
        )

        next_state = state.advance(Decimal("9950"), (), Decimal("50"), date(2024, 1, 2))

        assert next_state.daily_starting_equity == Decimal("9900")
        assert next_state.realized_pnl_today == Decimal("0")

    def test_should_track_peak_equity(self) -> None:
        """Test that the peak only rises."""
        state = PortfolioState.initial(EQUITY, trading_day=date(2024, 1, 1))

        state = state.advance(Decimal("11000"), (), Decimal("0"), date(2024, 1, 1))
        state = state.advance(Decimal("10500"), (), Decimal("0"), date(2024, 1, 1))

        assert state.peak_equity == Decimal("11000")

    def test_should_validate_limits(self) -> None:
        """Test RiskLimits validation."""
        with pytest.raises(ValidationError):
            RiskLimits(max_drawdown_pct=Decimal("1.5"))
        with pytest.raises(ValidationError):
            RiskLimits(max_concurrent_positions=0)
