"""
Unit tests for custom exceptions.
Testing all exception classes and their attributes.
"""

from decimal import Decimal

import pytest

from src.core.enums import RiskDenialReason
from src.core.exceptions.backtest import (
    BacktestStillRunningError,
    DataError,
    InsufficientDataError,
    InsufficientFundsError,
    InvalidStateTransitionError,
    PositionNotFoundError,
    SessionCancelledError,
    SessionError,
    SessionNotFoundError,
    TradingEngineException,
    ValidationError,
)
from src.core.exceptions.conditions import (
    ConditionError,
    ConditionEvaluationError,
    ConditionParseError,
    SignalConflictError,
    UndefinedVariableError,
)
from src.core.exceptions.exchange import (
    ExchangeError,
    MaxRetriesExceededError,
    OrderNotFoundError,
    OrderRejectedError,
    RateLimitedError,
)
from src.core.exceptions.risk import (
    InvalidStopLossError,
    PositionSizingError,
    RiskLimitExceededError,
)


class TestTradingEngineException:
    """Tests for the base exception."""

    def test_should_create_base_exception_with_message(self) -> None:
        """Test creating base exception with message."""
        exc = TradingEngineException("Test error message")
        assert str(exc) == "Test error message"
        assert isinstance(exc, Exception)

    @pytest.mark.parametrize(
        "exc",
        [
            ValidationError("x"),
            DataError("x"),
            SessionNotFoundError("bt_1"),
            UndefinedVariableError("rsi"),
            OrderRejectedError("x"),
            OrderNotFoundError("order_1"),
            PositionSizingError("missing_risk_pct"),
            RiskLimitExceededError(RiskDenialReason.MAX_DRAWDOWN_EXCEEDED),
        ],
    )
    def test_every_error_should_share_base(self, exc: Exception) -> None:
        """Test the hierarchy root."""
        assert isinstance(exc, TradingEngineException)


class TestDataErrors:
    """Tests for data and portfolio errors."""

    def test_should_list_indicator_shortfalls(self) -> None:
        """Test InsufficientDataError attributes and message."""
        exc = InsufficientDataError({"sma_50": 50, "ema_20": 30}, available=10)

        assert isinstance(exc, DataError)
        assert exc.required == 50
        assert "sma_50, ema_20" in str(exc)
        assert "Have 10 bars" in str(exc)

    def test_should_create_insufficient_funds_error(self) -> None:
        """Test creating insufficient funds error with all attributes."""
        exc = InsufficientFundsError(
            required=Decimal("10000"), available=Decimal("5000"), operation="buy order"
        )

        assert exc.required == Decimal("10000")
        assert exc.available == Decimal("5000")
        assert str(exc) == (
            "Insufficient funds for buy order: required=10000.00, available=5000.00"
        )

    def test_should_name_missing_position(self) -> None:
        """Test PositionNotFoundError."""
        exc = PositionNotFoundError("BTC/USDT")

        assert exc.symbol == "BTC/USDT"
        assert "BTC/USDT" in str(exc)


class TestSessionErrors:
    """Tests for session lifecycle errors."""

    def test_should_carry_session_id(self) -> None:
        """Test attributes shared by session errors."""
        errors = [
            SessionNotFoundError("bt_1"),
            BacktestStillRunningError("bt_1", "running"),
            InvalidStateTransitionError("bt_1", "completed", "running"),
            SessionCancelledError("bt_1", 42),
        ]

        for exc in errors:
            assert isinstance(exc, SessionError)
            assert exc.session_id == "bt_1"

    def test_should_describe_transition(self) -> None:
        """Test InvalidStateTransitionError message."""
        exc = InvalidStateTransitionError("bt_1", "completed", "running")

        assert str(exc) == "Backtest bt_1 cannot move from completed to running"

    def test_should_report_bars_processed_on_cancel(self) -> None:
        """Test SessionCancelledError."""
        exc = SessionCancelledError("bt_1", 42)

        assert exc.bars_processed == 42
        assert "42 bars" in str(exc)


class TestConditionErrors:
    """Tests for condition engine errors."""

    def test_should_locate_parse_error(self) -> None:
        """Test ConditionParseError message with position and condition."""
        exc = ConditionParseError("Unexpected end of input", position=3, condition="entry")

        assert isinstance(exc, ConditionError)
        assert exc.reason == "Unexpected end of input"
        assert str(exc) == "Unexpected end of input at token 3 in entry condition"

    def test_should_omit_unknown_location(self) -> None:
        """Test ConditionParseError without position."""
        assert str(ConditionParseError("Empty condition")) == "Empty condition"

    def test_should_name_undefined_variable(self) -> None:
        """Test UndefinedVariableError."""
        exc = UndefinedVariableError("rsi_14")

        assert isinstance(exc, ConditionEvaluationError)
        assert exc.name == "rsi_14"
        assert str(exc) == "Variable 'rsi_14' not found in context"

    def test_should_name_conflicting_signals(self) -> None:
        """Test SignalConflictError."""
        exc = SignalConflictError(("entry", "exit"))

        assert exc.signals == ("entry", "exit")
        assert "entry and exit" in str(exc)


class TestExchangeErrors:
    """Tests for live order path errors."""

    def test_should_mark_rate_limits_retryable(self) -> None:
        """Test RateLimitedError."""
        exc = RateLimitedError(retry_after=2.5)

        assert isinstance(exc, ExchangeError)
        assert exc.retryable is True
        assert exc.retry_after == 2.5

    def test_should_mark_rejections_permanent(self) -> None:
        """Test OrderRejectedError."""
        exc = OrderRejectedError("insufficient balance")

        assert exc.retryable is False
        assert str(exc) == "Order rejected: insufficient balance"

    def test_should_keep_last_error(self) -> None:
        """Test MaxRetriesExceededError."""
        last = TimeoutError("timed out")
        exc = MaxRetriesExceededError(3, last)

        assert exc.attempts == 3
        assert exc.last_error is last
        assert "3 attempts" in str(exc)


class TestRiskErrors:
    """Tests for sizing and risk errors."""

    def test_should_format_sizing_code(self) -> None:
        """Test PositionSizingError."""
        exc = PositionSizingError("missing_risk_pct", "risk_pct is required")

        assert isinstance(exc, ValidationError)
        assert exc.code == "missing_risk_pct"
        assert str(exc) == "Position sizing failed (missing_risk_pct): risk_pct is required"

    def test_should_use_invalid_stop_loss_code(self) -> None:
        """Test InvalidStopLossError."""
        exc = InvalidStopLossError(Decimal("100"), Decimal("100"))

        assert exc.code == "invalid_stop_loss"

    def test_should_default_risk_message_to_reason(self) -> None:
        """Test RiskLimitExceededError."""
        exc = RiskLimitExceededError(RiskDenialReason.DAILY_LOSS_LIMIT_HIT)

        assert exc.reason == RiskDenialReason.DAILY_LOSS_LIMIT_HIT
        assert str(exc) == "Risk limit exceeded: daily_loss_limit_hit"
