"""
Unit tests for BacktestSimulator.

Tests cover the per-bar loop: warm-up, entries and exits, conflicts, risk
denials, short positions and the equity curve.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from src.backtest.simulator import BacktestSimulator
from src.core.enums import PositionSide, SignalType, SizingMethod, Timeframe, TradeSide
from src.core.exceptions.conditions import UndefinedVariableError
from src.core.models.backtest import BacktestConfig
from src.core.models.bar import Bar
from src.core.models.portfolio import RiskLimits
from src.core.models.strategy import (
    IndicatorSpec,
    PositionSizingConfig,
    RiskConfig,
    StrategyDefinition,
)
from src.strategy.indicator_orchestrator import IndicatorOrchestrator

START = datetime(2024, 1, 1, tzinfo=UTC)
CAPITAL = Decimal("10000")


def make_bars(closes: list[int]) -> list[Bar]:
    """Hourly bars with the given closes."""
    return [
        Bar.create(START + timedelta(hours=i), close, close + 1, close - 1, close, 100, "BTC/USDT")
        for i, close in enumerate(closes)
    ]


def make_simulator(
    closes: list[int],
    entry: str | None = "close <= 100",
    exit_: str | None = "close > 110",
    stop: str | None = None,
    quantity: str = "10",
    **config_overrides: object,
) -> BacktestSimulator:
    """Frictionless simulator trading a fixed quantity."""
    strategy_fields: dict[str, object] = {
        "name": "threshold",
        "symbol": "BTC/USDT",
        "timeframe": Timeframe.H1,
        "entry_condition": entry,
        "exit_condition": exit_,
        "stop_condition": stop,
        "position_sizing": PositionSizingConfig(
            method=SizingMethod.FIXED, fixed_quantity=Decimal(quantity)
        ),
    }
    for key in ("side", "risk", "indicators"):
        if key in config_overrides:
            strategy_fields[key] = config_overrides.pop(key)

    bars = make_bars(closes)
    config = BacktestConfig(
        strategy=StrategyDefinition(**strategy_fields),  # type: ignore[arg-type]
        initial_capital=CAPITAL,
        commission_rate=Decimal("0"),
        slippage_bps=Decimal("0"),
        bars=tuple(bars),
        **config_overrides,  # type: ignore[arg-type]
    )
    return BacktestSimulator(config, bars)


class TestBacktestSimulator:
    """Tests for the bar loop."""

    def test_should_keep_flat_curve_without_trades(self) -> None:
        """Test that a strategy that never enters keeps its capital."""
        simulator = make_simulator([105, 106, 107], entry="close > 1000")

        simulator.run()

        assert simulator.trades == []
        assert len(simulator.equity_curve) == 3
        assert all(point.equity == CAPITAL for point in simulator.equity_curve)

    def test_should_complete_round_trip(self) -> None:
        """Test entry on close <= 100 and exit on close > 110."""
        # Arrange
        simulator = make_simulator([105, 100, 105, 112, 108])

        # Act
        simulator.run()

        # Assert
        entry, exit_ = simulator.trades
        assert entry.signal_type == SignalType.ENTRY
        assert entry.side == TradeSide.BUY
        assert entry.price == Decimal("100")
        assert exit_.signal_type == SignalType.EXIT
        assert exit_.side == TradeSide.SELL
        assert exit_.pnl == Decimal("120")
        assert exit_.entry_price == Decimal("100")
        assert exit_.exit_price == Decimal("112")
        assert exit_.duration == timedelta(hours=2)
        assert [p.equity for p in simulator.equity_curve] == [
            Decimal("10000"),
            Decimal("10000"),
            Decimal("10050"),
            Decimal("10120"),
            Decimal("10120"),
        ]
        assert simulator.position is None
        assert simulator.cash == Decimal("10120")

    def test_should_close_on_stop_signal(self) -> None:
        """Test stop conditions over position variables."""
        simulator = make_simulator(
            [100, 95], entry="close >= 100", exit_=None, stop="unrealized_pnl < 0"
        )

        simulator.run()

        assert simulator.trades[-1].signal_type == SignalType.STOP
        assert simulator.trades[-1].pnl == Decimal("-50")

    def test_should_skip_bar_on_conflicting_signals(self) -> None:
        """Test that entry plus exit on one bar trades nothing."""
        simulator = make_simulator([100, 100, 100], entry="close > 0", exit_="close > 0")

        simulator.run()

        assert simulator.trades == []
        assert simulator.signal_conflicts == 3
        assert len(simulator.equity_curve) == 3

    def test_should_count_risk_denials(self) -> None:
        """Test that a 30% position is denied under a 25% limit."""
        simulator = make_simulator([100, 100, 100], entry="close > 0", exit_=None, quantity="30")

        simulator.run()

        assert simulator.trades == []
        assert simulator.risk_denials == 3

    def test_should_wait_for_indicator_warmup(self) -> None:
        """Test that signals start once enough bars are seen."""
        # Arrange
        bars = make_bars([100, 101, 102, 103])
        strategy = StrategyDefinition(
            name="warmup",
            symbol="BTC/USDT",
            timeframe=Timeframe.H1,
            indicators=(IndicatorSpec("sma", "sma_3", {"period": 3}),),
            entry_condition="sma_3 > 0",
            position_sizing=PositionSizingConfig(
                method=SizingMethod.FIXED, fixed_quantity=Decimal("1")
            ),
        )
        config = BacktestConfig(strategy=strategy, bars=tuple(bars))
        orchestrator = IndicatorOrchestrator()
        simulator = BacktestSimulator(
            config,
            bars,
            indicators=orchestrator.calculate_all(strategy.indicators, bars),
            warmup_bars=orchestrator.minimum_bars_required(strategy.indicators),
        )

        # Act
        simulator.run()

        # Assert
        assert len(simulator.trades) == 1
        assert simulator.trades[0].timestamp == bars[2].timestamp

    def test_should_trade_short_side(self) -> None:
        """Test a short round trip credits the sale and debits the cover."""
        simulator = make_simulator(
            [100, 90], entry="close >= 100", exit_="close <= 90", side=PositionSide.SHORT
        )

        simulator.run()

        entry, exit_ = simulator.trades
        assert entry.side == TradeSide.SELL
        assert exit_.side == TradeSide.BUY
        assert exit_.pnl == Decimal("100")
        assert simulator.cash == Decimal("10100")

    def test_should_mark_short_position_to_market(self) -> None:
        """Test equity while a short is open."""
        simulator = make_simulator(
            [100, 95], entry="close >= 100", exit_=None, side=PositionSide.SHORT
        )

        simulator.run()

        assert simulator.equity_curve.points[-1].equity == Decimal("10050")
        assert simulator.portfolio.open_positions[0].unrealized_pnl == Decimal("50")

    def test_should_record_protective_levels(self) -> None:
        """Test stop-loss and take-profit prices on the opened position."""
        simulator = make_simulator(
            [100],
            exit_=None,
            risk=RiskConfig(stop_loss_pct=Decimal("0.05"), take_profit_pct=Decimal("0.1")),
        )

        simulator.run()

        assert simulator.position is not None
        assert simulator.position.stop_loss == Decimal("95")
        assert simulator.position.take_profit == Decimal("110")

    def test_should_stop_between_bars(self) -> None:
        """Test cooperative stopping leaves whole snapshots only."""
        simulator = make_simulator([105, 100, 105, 112, 108])

        simulator.run(should_stop=lambda: simulator.bars_processed >= 2)

        assert simulator.bars_processed == 2
        assert len(simulator.equity_curve) == 2
        assert not simulator.is_finished

    def test_should_raise_for_undefined_variable(self) -> None:
        """Test that unknown variables fail the run by default."""
        simulator = make_simulator([100], entry="momentum > 1")

        with pytest.raises(UndefinedVariableError):
            simulator.run()

    def test_should_treat_undefined_variable_as_no_signal_when_configured(self) -> None:
        """Test the lenient mode."""
        simulator = make_simulator(
            [100, 100], entry="momentum > 1", treat_undefined_as_no_signal=True
        )

        simulator.run()

        assert simulator.trades == []
        assert len(simulator.equity_curve) == 2

    @pytest.mark.parametrize("close", [42117, 43999, 27013, 61873, 99991])
    def test_should_enter_with_all_available_cash(self, close: int) -> None:
        """Test a full-equity entry with costs fits the cash it was capped to."""
        # Arrange
        bars = make_bars([close])
        strategy = StrategyDefinition(
            name="all_in",
            symbol="BTC/USDT",
            timeframe=Timeframe.H1,
            entry_condition="close > 0",
            position_sizing=PositionSizingConfig(
                method=SizingMethod.PERCENTAGE,
                position_pct=Decimal("1"),
                max_position_fraction=Decimal("1"),
            ),
            risk=RiskConfig(limits=RiskLimits(max_position_size_pct=Decimal("1"))),
        )
        config = BacktestConfig(
            strategy=strategy,
            initial_capital=CAPITAL,
            commission_rate=Decimal("0.001"),
            slippage_bps=Decimal("5"),
            bars=tuple(bars),
        )
        simulator = BacktestSimulator(config, bars)

        # Act
        simulator.run()

        # Assert
        assert len(simulator.trades) == 1
        assert simulator.position is not None
        assert Decimal("0") <= simulator.cash < Decimal("0.01")
