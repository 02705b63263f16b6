"""
Unit tests for bar, strategy and backtest session models.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from src.core.enums import SessionStatus, SizingMethod, Timeframe
from src.core.exceptions.backtest import InvalidStateTransitionError, ValidationError
from src.core.exceptions.risk import PositionSizingError
from src.core.models.backtest import BacktestConfig, BacktestSession
from src.core.models.bar import Bar, bars_to_frame
from src.core.models.strategy import (
    IndicatorSpec,
    PositionSizingConfig,
    RiskConfig,
    StrategyDefinition,
)

START = datetime(2024, 1, 1, tzinfo=UTC)


def make_strategy(**overrides: object) -> StrategyDefinition:
    fields: dict[str, object] = {
        "name": "cross",
        "symbol": "btc/usdt",
        "timeframe": Timeframe.H1,
        "entry_condition": "close > 100",
    }
    fields.update(overrides)
    return StrategyDefinition(**fields)  # type: ignore[arg-type]


class TestBar:
    """Tests for the Bar model."""

    def test_should_normalize_numbers_and_timezone(self) -> None:
        """Test Bar.create converts to Decimal and assumes UTC."""
        bar = Bar.create(datetime(2024, 1, 1, 12), 100.5, 101, 99, "100.25", 3)

        assert bar.open == Decimal("100.5")
        assert bar.close == Decimal("100.25")
        assert bar.timestamp.tzinfo == UTC
        assert bar.epoch_seconds == 1704110400

    def test_should_convert_bars_to_float_frame(self) -> None:
        """Test the DataFrame used by indicator calculations."""
        bars = [Bar.create(START + timedelta(hours=i), 1, 2, 0.5, 1.5, 10) for i in range(3)]

        frame = bars_to_frame(bars)

        assert list(frame.columns) == ["open", "high", "low", "close", "volume"]
        assert len(frame) == 3
        assert frame["close"].iloc[0] == 1.5
        assert frame.index[2] == START + timedelta(hours=2)


class TestStrategyDefinition:
    """Tests for strategy definition models."""

    def test_should_normalize_symbol_and_timeframe(self) -> None:
        """Test normalization in __post_init__."""
        strategy = make_strategy(timeframe="4h")

        assert strategy.symbol == "BTC/USDT"
        assert strategy.timeframe == Timeframe.H4
        assert strategy.conditions() == {
            "entry": "close > 100",
            "exit": None,
            "stop": None,
        }

    def test_should_reject_blank_name(self) -> None:
        """Test name validation."""
        with pytest.raises(ValidationError, match="name must not be empty"):
            make_strategy(name="  ")

    def test_should_normalize_indicator_specs(self) -> None:
        """Test indicator type lower-casing and period lookup."""
        spec = IndicatorSpec(" SMA ", " sma_20 ", {"period": "20"})

        assert spec.type == "sma"
        assert spec.name == "sma_20"
        assert spec.period == 20
        assert make_strategy(indicators=[spec]).indicator_names == ["sma_20"]

    def test_should_require_stop_distance_for_risk_based_sizing(self) -> None:
        """Test risk-based sizing needs a stop from sizing or risk config."""
        sizing = PositionSizingConfig(method=SizingMethod.RISK_BASED, risk_pct=Decimal("0.01"))

        with pytest.raises(PositionSizingError, match="missing_stop_loss_pct"):
            make_strategy(position_sizing=sizing)

        strategy = make_strategy(
            position_sizing=sizing, risk=RiskConfig(stop_loss_pct=Decimal("0.02"))
        )
        assert strategy.effective_stop_loss_pct() == Decimal("0.02")

    @pytest.mark.parametrize(
        "kwargs, code",
        [
            ({"method": SizingMethod.FIXED}, "missing_fixed_quantity"),
            ({"method": SizingMethod.KELLY, "win_rate": Decimal("0.5")}, "missing_win_loss_ratio"),
        ],
    )
    def test_should_require_method_parameters(self, kwargs: dict[str, object], code: str) -> None:
        """Test sizing config validation."""
        with pytest.raises(PositionSizingError) as exc_info:
            PositionSizingConfig(**kwargs)  # type: ignore[arg-type]

        assert exc_info.value.code == code

    def test_should_validate_protective_levels(self) -> None:
        """Test RiskConfig validation."""
        with pytest.raises(ValidationError):
            RiskConfig(stop_loss_pct=Decimal("1.5"))


class TestBacktestConfig:
    """Tests for BacktestConfig validation."""

    def test_should_require_bars_or_date_range(self) -> None:
        """Test that a config needs data to run on."""
        with pytest.raises(ValidationError, match="Either bars"):
            BacktestConfig(strategy=make_strategy())

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial_capital": Decimal("0")},
            {"commission_rate": Decimal("-0.001")},
            {"end_date": START - timedelta(days=1)},
        ],
    )
    def test_should_reject_invalid_values(self, kwargs: dict[str, object]) -> None:
        """Test capital, cost and date validation."""
        fields: dict[str, object] = {
            "strategy": make_strategy(),
            "start_date": START,
            "end_date": START + timedelta(days=30),
        }
        fields.update(kwargs)

        with pytest.raises(ValidationError):
            BacktestConfig(**fields)  # type: ignore[arg-type]

    def test_should_store_inline_bars_as_tuple(self) -> None:
        """Test bars are frozen into a tuple."""
        bars = [Bar.create(START, 1, 1, 1, 1)]

        config = BacktestConfig(strategy=make_strategy(), bars=bars)  # type: ignore[arg-type]

        assert config.bars == tuple(bars)
        assert config.to_dict()["symbol"] == "BTC/USDT"


class TestBacktestSession:
    """Tests for the session lifecycle record."""

    @pytest.fixture
    def session(self) -> BacktestSession:
        config = BacktestConfig(strategy=make_strategy(), bars=(Bar.create(START, 1, 1, 1, 1),))
        return BacktestSession(config=config)

    def test_should_stamp_lifecycle_times(self, session: BacktestSession) -> None:
        """Test started_at and ended_at on transitions."""
        session.transition(SessionStatus.RUNNING)
        assert session.started_at is not None
        assert session.ended_at is None

        session.transition(SessionStatus.COMPLETED)
        assert session.ended_at is not None
        assert session.id.startswith("bt_")

    def test_should_reject_forbidden_transition(self, session: BacktestSession) -> None:
        """Test that a pending session cannot complete directly."""
        with pytest.raises(InvalidStateTransitionError):
            session.transition(SessionStatus.COMPLETED)

        assert session.status == SessionStatus.PENDING

    def test_should_report_progress_percentage(self, session: BacktestSession) -> None:
        """Test progress snapshots."""
        assert session.progress().percentage == 0.0

        session.total_bars = 3
        session.record_progress(1, 2.5)
        progress = session.progress()

        assert progress.percentage == 33.33
        assert progress.eta_seconds == 2.5
        assert progress.to_dict()["status"] == "pending"
