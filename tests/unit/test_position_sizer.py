"""
Unit tests for position sizing.
Testing every sizing method, Kelly capping and lot-size adjustment.
"""

from decimal import Decimal

import pytest

from src.core.enums import PositionSide, SizingMethod, Timeframe
from src.core.exceptions.risk import InvalidStopLossError, PositionSizingError
from src.core.models.strategy import PositionSizingConfig, RiskConfig, StrategyDefinition
from src.risk.position_sizer import (
    adjust_for_lot_size,
    calculate_size,
    kelly_fraction,
    size_position,
    stop_price_for,
)

EQUITY = Decimal("10000")
ENTRY = Decimal("50000")


class TestCalculateSize:
    """Tests for calculate_size."""

    def test_should_size_risk_based_from_stop_distance(self) -> None:
        """Test risking 2% of 10000 with a 2000 stop distance buys 0.1."""
        size = calculate_size(
            SizingMethod.RISK_BASED,
            equity=EQUITY,
            risk_pct=Decimal("0.02"),
            entry_price=ENTRY,
            stop_price=Decimal("48000"),
        )

        assert size == Decimal("0.1")

    def test_should_size_short_risk_based_with_stop_above_entry(self) -> None:
        """Test that the stop distance is absolute."""
        size = calculate_size(
            SizingMethod.RISK_BASED,
            equity=EQUITY,
            risk_pct=Decimal("0.02"),
            entry_price=ENTRY,
            stop_price=Decimal("52000"),
        )

        assert size == Decimal("0.1")

    def test_should_cap_risk_based_size_by_max_position_fraction(self) -> None:
        """Test that a tight stop cannot produce a leveraged position."""
        size = calculate_size(
            SizingMethod.RISK_BASED,
            equity=EQUITY,
            risk_pct=Decimal("0.02"),
            entry_price=ENTRY,
            stop_price=Decimal("49990"),
            max_position_fraction=Decimal("1"),
        )

        assert size == Decimal("0.2")

    def test_should_size_percentage_of_equity(self) -> None:
        """Test percentage sizing."""
        size = calculate_size(
            SizingMethod.PERCENTAGE,
            equity=EQUITY,
            position_pct=Decimal("0.25"),
            entry_price=ENTRY,
        )

        assert size == Decimal("0.05")

    def test_should_return_configured_fixed_quantity(self) -> None:
        """Test fixed sizing ignores equity."""
        assert calculate_size(SizingMethod.FIXED, quantity=Decimal("0.3")) == Decimal("0.3")

    def test_should_size_kelly_with_quarter_cap(self) -> None:
        """Test that a raw Kelly fraction of 0.4 is capped at 0.25."""
        size = calculate_size(
            SizingMethod.KELLY,
            equity=EQUITY,
            win_rate=Decimal("0.6"),
            win_loss_ratio=Decimal("2"),
            entry_price=ENTRY,
        )

        assert size == Decimal("0.05")

    def test_should_size_zero_for_negative_edge(self) -> None:
        """Test that a losing edge sizes nothing."""
        size = calculate_size(
            SizingMethod.KELLY,
            equity=EQUITY,
            win_rate=Decimal("0.3"),
            win_loss_ratio=Decimal("1"),
            entry_price=ENTRY,
        )

        assert size == Decimal("0")

    def test_should_reject_stop_at_entry(self) -> None:
        """Test the invalid_stop_loss error."""
        with pytest.raises(InvalidStopLossError) as exc_info:
            calculate_size(
                SizingMethod.RISK_BASED,
                equity=EQUITY,
                risk_pct=Decimal("0.02"),
                entry_price=ENTRY,
                stop_price=ENTRY,
            )

        assert exc_info.value.code == "invalid_stop_loss"

    @pytest.mark.parametrize(
        "method, kwargs, code",
        [
            (SizingMethod.FIXED, {}, "missing_fixed_quantity"),
            (SizingMethod.PERCENTAGE, {"equity": EQUITY, "entry_price": ENTRY}, "missing_position_pct"),
            (
                SizingMethod.RISK_BASED,
                {"equity": EQUITY, "entry_price": ENTRY, "stop_price": Decimal("1")},
                "missing_risk_pct",
            ),
            (
                SizingMethod.KELLY,
                {"equity": EQUITY, "entry_price": ENTRY, "win_rate": Decimal("0.5")},
                "missing_win_loss_ratio",
            ),
            (
                SizingMethod.PERCENTAGE,
                {"equity": EQUITY, "position_pct": Decimal("0.1"), "entry_price": Decimal("0")},
                "invalid_entry_price",
            ),
            (
                SizingMethod.PERCENTAGE,
                {"equity": Decimal("-1"), "position_pct": Decimal("0.1"), "entry_price": ENTRY},
                "invalid_equity",
            ),
        ],
    )
    def test_should_report_missing_or_invalid_parameters(
        self, method: SizingMethod, kwargs: dict[str, Decimal], code: str
    ) -> None:
        """Test sizing error codes."""
        with pytest.raises(PositionSizingError) as exc_info:
            calculate_size(method, **kwargs)

        assert exc_info.value.code == code


class TestKellyFraction:
    """Tests for kelly_fraction."""

    def test_should_compute_uncapped_fraction(self) -> None:
        """Test W - (1 - W) / R below the cap."""
        assert kelly_fraction(Decimal("0.5"), Decimal("2")) == Decimal("0.25")
        assert kelly_fraction(Decimal("0.4"), Decimal("2")) == Decimal("0.1")

    def test_should_clamp_to_zero(self) -> None:
        """Test negative edges clamp to zero."""
        assert kelly_fraction(Decimal("0.2"), Decimal("1")) == Decimal("0")

    @pytest.mark.parametrize(
        "win_rate, ratio", [(Decimal("1.1"), Decimal("1")), (Decimal("0.5"), Decimal("0"))]
    )
    def test_should_reject_out_of_range_inputs(self, win_rate: Decimal, ratio: Decimal) -> None:
        """Test input validation."""
        with pytest.raises(PositionSizingError):
            kelly_fraction(win_rate, ratio)


class TestLotSizeAndStops:
    """Tests for lot-size adjustment and stop prices."""

    def test_should_round_down_to_step(self) -> None:
        """Test flooring to the exchange step."""
        assert adjust_for_lot_size(Decimal("0.123456"), Decimal("0.001"), Decimal("0.001")) == Decimal(
            "0.123"
        )

    def test_should_not_go_below_minimum(self) -> None:
        """Test the minimum quantity floor."""
        assert adjust_for_lot_size(Decimal("0.0004"), Decimal("0.001"), Decimal("0.001")) == Decimal(
            "0.001"
        )

    def test_should_place_stop_on_losing_side(self) -> None:
        """Test stop placement for long and short positions."""
        assert stop_price_for(Decimal("100"), Decimal("0.05"), PositionSide.LONG) == Decimal("95")
        assert stop_price_for(Decimal("100"), Decimal("0.05"), PositionSide.SHORT) == Decimal("105")


class TestSizePosition:
    """Tests for sizing from a strategy configuration."""

    def test_should_apply_lot_step(self) -> None:
        """Test lot-size adjustment after sizing."""
        config = PositionSizingConfig(
            method=SizingMethod.PERCENTAGE,
            position_pct=Decimal("0.1"),
            lot_step_size=Decimal("0.001"),
        )

        size = size_position(config, EQUITY, Decimal("30000"))

        assert size == Decimal("0.033")

    def test_should_require_method_parameters_at_construction(self) -> None:
        """Test config validation per method."""
        with pytest.raises(PositionSizingError, match="missing_risk_pct"):
            PositionSizingConfig(method=SizingMethod.RISK_BASED)

    def test_should_require_stop_distance_for_risk_based_strategy(self) -> None:
        """Test risk-based strategies need a stop percentage."""
        sizing = PositionSizingConfig(method=SizingMethod.RISK_BASED, risk_pct=Decimal("0.01"))

        with pytest.raises(PositionSizingError, match="missing_stop_loss_pct"):
            StrategyDefinition("s", "BTC/USDT", Timeframe.H1, position_sizing=sizing)

    def test_should_fall_back_to_risk_config_stop(self) -> None:
        """Test effective stop distance resolution."""
        strategy = StrategyDefinition(
            "s",
            "BTC/USDT",
            Timeframe.H1,
            position_sizing=PositionSizingConfig(
                method=SizingMethod.RISK_BASED, risk_pct=Decimal("0.01")
            ),
            risk=RiskConfig(stop_loss_pct=Decimal("0.04")),
        )

        assert strategy.effective_stop_loss_pct() == Decimal("0.04")
