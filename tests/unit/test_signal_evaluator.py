"""
Unit tests for signal evaluation.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from src.core.enums import PositionSide, SignalType, Timeframe
from src.core.exceptions.conditions import (
    ConditionParseError,
    SignalConflictError,
    UndefinedVariableError,
)
from src.core.models.bar import Bar
from src.core.models.position import Position
from src.core.models.signal import SignalResult
from src.core.models.strategy import IndicatorSpec, StrategyDefinition
from src.strategy.signal_evaluator import (
    SignalEvaluator,
    build_context,
    compile_strategy,
    position_variables,
)

TIMESTAMP = datetime(2024, 3, 1, 12, tzinfo=UTC)


def make_strategy(**overrides: object) -> StrategyDefinition:
    """RSI mean-reversion strategy filtered by a 50-bar SMA trend."""
    fields: dict[str, object] = {
        "name": "rsi_trend",
        "symbol": "btc/usdt",
        "timeframe": Timeframe.H1,
        "indicators": (
            IndicatorSpec("rsi", "rsi_14", {"period": 14}),
            IndicatorSpec("sma", "sma_50", {"period": 50}),
        ),
        "entry_condition": "rsi_14 < 30 AND close > sma_50",
        "exit_condition": "rsi_14 > 70",
        "stop_condition": "unrealized_pnl_pct < -0.05",
    }
    fields.update(overrides)
    return StrategyDefinition(**fields)  # type: ignore[arg-type]


class TestSignalEvaluator:
    """Tests for SignalEvaluator."""

    @pytest.fixture
    def bar(self) -> Bar:
        """A bar closing at 42000."""
        return Bar.create(TIMESTAMP, 41800, 42100, 41700, 42000, 12.5, "BTC/USDT")

    @pytest.fixture
    def evaluator(self) -> SignalEvaluator:
        """Create evaluator with strict undefined-variable handling."""
        return SignalEvaluator()

    def test_should_fire_entry_when_oversold_in_uptrend(
        self, evaluator: SignalEvaluator, bar: Bar
    ) -> None:
        """Test entry evaluation on one bar."""
        # Act
        result = evaluator.evaluate_signals(
            make_strategy(), bar, {"rsi_14": Decimal("25"), "sma_50": Decimal("41000")}
        )

        # Assert
        assert result.as_dict() == {"entry": True, "exit": False, "stop": False}
        assert result.timestamp == TIMESTAMP
        assert result.context["close"] == Decimal("42000")

    def test_should_fire_exit_when_overbought(self, evaluator: SignalEvaluator, bar: Bar) -> None:
        """Test exit evaluation."""
        result = evaluator.evaluate_signals(
            make_strategy(), bar, {"rsi_14": Decimal("75"), "sma_50": Decimal("41000")}
        )

        assert result.exit is True
        assert result.entry is False

    def test_should_fire_stop_from_position_variables(
        self, evaluator: SignalEvaluator, bar: Bar
    ) -> None:
        """Test stop evaluation against the open position's loss."""
        # Arrange
        position = Position(
            symbol="BTC/USDT",
            side=PositionSide.LONG,
            quantity=Decimal("0.1"),
            entry_price=Decimal("45000"),
            opened_at=TIMESTAMP,
        )
        position.update_market_price(bar.close)

        # Act
        result = evaluator.evaluate_signals(
            make_strategy(),
            bar,
            {"rsi_14": Decimal("50"), "sma_50": Decimal("43000")},
            position=position,
        )

        # Assert
        assert result.stop is True
        assert result.context["has_position"] is True

    def test_should_treat_empty_conditions_as_never_firing(
        self, evaluator: SignalEvaluator, bar: Bar
    ) -> None:
        """Test that blank conditions compile to nothing."""
        strategy = make_strategy(exit_condition="  ", stop_condition=None)

        result = evaluator.evaluate_signals(
            strategy, bar, {"rsi_14": Decimal("90"), "sma_50": Decimal("1")}
        )

        assert result.as_dict() == {"entry": False, "exit": False, "stop": False}

    def test_should_raise_for_warmup_indicator(self, evaluator: SignalEvaluator, bar: Bar) -> None:
        """Test that an indicator without a value yet is an undefined variable."""
        with pytest.raises(UndefinedVariableError, match="sma_50"):
            evaluator.evaluate_signals(make_strategy(), bar, {"rsi_14": Decimal("25"), "sma_50": None})

    def test_should_report_no_signal_when_configured(self, bar: Bar) -> None:
        """Test treat_undefined_as_no_signal."""
        evaluator = SignalEvaluator(treat_undefined_as_no_signal=True)

        result = evaluator.evaluate_signals(make_strategy(), bar, {"rsi_14": Decimal("25")})

        assert result.any_triggered is False

    def test_should_resolve_multi_component_indicator(
        self, evaluator: SignalEvaluator, bar: Bar
    ) -> None:
        """Test name.component variables."""
        strategy = make_strategy(
            indicators=(IndicatorSpec("macd", "macd"),),
            entry_condition="macd.macd > macd.signal AND macd.histogram > 0",
            exit_condition=None,
            stop_condition=None,
        )
        values = {
            "macd": {
                "macd": Decimal("12"),
                "signal": Decimal("10"),
                "histogram": Decimal("2"),
            }
        }

        assert evaluator.evaluate_signals(strategy, bar, values).entry is True


class TestConflictDetection:
    """Tests for conflicting signal detection."""

    @pytest.mark.parametrize(
        "entry, exit_, stop, conflict",
        [
            (True, True, False, ("entry", "exit")),
            (True, False, True, ("entry", "stop")),
            (True, True, True, ("entry", "exit")),
        ],
    )
    def test_should_reject_entry_with_closing_signal(
        self, entry: bool, exit_: bool, stop: bool, conflict: tuple[str, str]
    ) -> None:
        """Test conflicting combinations."""
        with pytest.raises(SignalConflictError) as exc_info:
            SignalEvaluator.detect_conflicts(SignalResult(entry, exit_, stop))

        assert exc_info.value.signals == conflict

    def test_should_allow_exit_together_with_stop(self) -> None:
        """Test that exit plus stop is not a conflict."""
        SignalEvaluator.detect_conflicts(SignalResult(False, True, True))


class TestStrategyCompilation:
    """Tests for compiling and validating strategies."""

    def test_should_name_condition_that_failed_to_parse(self) -> None:
        """Test parse errors carry the condition name."""
        with pytest.raises(ConditionParseError, match="in exit condition") as exc_info:
            compile_strategy(make_strategy(exit_condition="rsi_14 >"))

        assert exc_info.value.condition == "exit"

    def test_should_compile_conditions_once(self) -> None:
        """Test compiled trees are attached per signal."""
        compiled = compile_strategy(make_strategy(stop_condition=""))

        assert compiled.entry is not None
        assert compiled.exit is not None
        assert compiled.stop is None
        assert compiled.condition_text(SignalType.EXIT) == "rsi_14 > 70"

    def test_should_accept_valid_strategy(self) -> None:
        """Test validate_strategy on a consistent strategy."""
        assert SignalEvaluator.validate_strategy(make_strategy()) == []

    def test_should_collect_every_problem(self) -> None:
        """Test validate_strategy reports undefined names, parse errors and duplicates."""
        strategy = make_strategy(
            indicators=(
                IndicatorSpec("rsi", "rsi_14", {"period": 14}),
                IndicatorSpec("ema", "rsi_14", {"period": 14}),
            ),
            entry_condition="rsi_14 < 30 AND close > ema_200",
            exit_condition="(rsi_14 > 70",
        )

        errors = SignalEvaluator.validate_strategy(strategy)

        assert "Duplicate indicator name: rsi_14" in errors
        assert "Undefined variable: ema_200" in errors
        assert any(error.startswith("exit condition:") for error in errors)
        assert len(errors) == 3


class TestContextBuilding:
    """Tests for per-bar context assembly."""

    def test_should_zero_position_variables_when_flat(self) -> None:
        """Test flat position variables."""
        variables = position_variables(None)

        assert variables["has_position"] is False
        assert variables["unrealized_pnl"] == Decimal("0")

    def test_should_describe_open_position(self) -> None:
        """Test position variables for a losing long."""
        # Arrange
        position = Position(
            symbol="BTC/USDT",
            side=PositionSide.LONG,
            quantity=Decimal("2"),
            entry_price=Decimal("100"),
            opened_at=TIMESTAMP,
            stop_loss=Decimal("95"),
        )
        position.update_market_price(Decimal("90"))
        position.bars_held = 3

        # Act
        variables = position_variables(position)

        # Assert
        assert variables["unrealized_pnl"] == Decimal("-20")
        assert variables["unrealized_pnl_pct"] == Decimal("-0.1")
        assert variables["drawdown"] == Decimal("0.1")
        assert variables["position_age"] == Decimal("3")
        assert variables["stop_loss"] == Decimal("95")
        assert variables["take_profit"] == Decimal("0")

    def test_should_expose_bar_fields_and_price_alias(self) -> None:
        """Test reserved bar variables."""
        bar = Bar.create(TIMESTAMP, 1, 3, 0.5, 2, 10)

        context = build_context(bar, {}, symbol="ETH/USDT")

        assert context["price"] == context["close"] == Decimal("2")
        assert context["symbol"] == "ETH/USDT"
        assert context["timestamp"] == Decimal(int(TIMESTAMP.timestamp()))

    def test_should_generate_signal_with_triggering_indicator_values(self) -> None:
        """Test signal records keep only indicator values."""
        # Arrange
        strategy = make_strategy()
        compiled = compile_strategy(strategy)
        bar = Bar.create(TIMESTAMP, 41800, 42100, 41700, 42000, 12.5)
        result = SignalEvaluator().evaluate_signals(
            compiled, bar, {"rsi_14": Decimal("25"), "sma_50": Decimal("41000")}
        )

        # Act
        signal = SignalEvaluator.generate_signal(SignalType.ENTRY, compiled, result)

        # Assert
        assert signal.symbol == "BTC/USDT"
        assert signal.trigger_condition == "rsi_14 < 30 AND close > sma_50"
        assert signal.price_at_signal == Decimal("42000")
        assert signal.indicator_values == {
            "rsi_14": Decimal("25"),
            "sma_50": Decimal("41000"),
        }
