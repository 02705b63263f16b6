"""
Signal evaluation.

Turns a bar, its indicator values and the current position into the
entry/exit/stop decision of a strategy, and detects conflicting signals.
"""

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from decimal import Decimal

from loguru import logger

from src.core.enums import SignalType
from src.core.exceptions.backtest import ValidationError
from src.core.exceptions.conditions import (
    ConditionParseError,
    SignalConflictError,
    UndefinedVariableError,
)
from src.core.models.bar import Bar
from src.core.models.indicator import IndicatorValue
from src.core.models.position import Position
from src.core.models.signal import Signal, SignalResult
from src.core.models.strategy import StrategyDefinition
from src.core.types.financial import ZERO
from src.strategy.conditions import (
    RESERVED_VARIABLES,
    ConditionNode,
    EvaluationContext,
    evaluate,
    extract_variables,
    parse,
)
from src.strategy.indicator_orchestrator import IndicatorOrchestrator, flatten_indicator_values

POSITION_VARIABLES = frozenset(
    {
        "has_position",
        "entry_price",
        "quantity",
        "unrealized_pnl",
        "unrealized_pnl_pct",
        "position_age",
        "stop_loss",
        "take_profit",
        "drawdown",
    }
)


@dataclass(frozen=True)
class CompiledStrategy:
    """A strategy with its conditions parsed once."""

    strategy: StrategyDefinition
    entry: ConditionNode | None
    exit: ConditionNode | None
    stop: ConditionNode | None

    def condition_text(self, signal_type: SignalType) -> str | None:
        return self.strategy.conditions()[signal_type.value]


def _is_blank(text: str | None) -> bool:
    return text is None or not text.strip()


def compile_strategy(strategy: StrategyDefinition) -> CompiledStrategy:
    """
    Parse the entry, exit and stop conditions.

    Empty conditions compile to None and never fire.

    Raises:
        ConditionParseError: Naming the condition that failed to parse
    """
    parsed: dict[str, ConditionNode | None] = {}
    for name, text in strategy.conditions().items():
        if _is_blank(text):
            parsed[name] = None
            continue
        try:
            parsed[name] = parse(text)
        except ConditionParseError as e:
            raise ConditionParseError(e.reason, position=e.position, condition=name) from e
    return CompiledStrategy(strategy, parsed["entry"], parsed["exit"], parsed["stop"])


def position_variables(position: Position | None) -> dict[str, Decimal | bool]:
    """Condition variables describing the open position, zeroed when flat."""
    if position is None or not position.is_open:
        return {
            "has_position": False,
            "entry_price": ZERO,
            "quantity": ZERO,
            "unrealized_pnl": ZERO,
            "unrealized_pnl_pct": ZERO,
            "position_age": ZERO,
            "stop_loss": ZERO,
            "take_profit": ZERO,
            "drawdown": ZERO,
        }

    pnl_pct = position.unrealized_pnl_pct()
    return {
        "has_position": True,
        "entry_price": position.entry_price,
        "quantity": position.quantity,
        "unrealized_pnl": position.unrealized_pnl,
        "unrealized_pnl_pct": pnl_pct,
        "position_age": Decimal(position.bars_held),
        "stop_loss": position.stop_loss if position.stop_loss is not None else ZERO,
        "take_profit": position.take_profit if position.take_profit is not None else ZERO,
        "drawdown": max(ZERO, -pnl_pct),
    }


def build_context(
    bar: Bar,
    indicator_values: Mapping[str, IndicatorValue],
    symbol: str | None = None,
    position: Position | None = None,
    previous: EvaluationContext | None = None,
) -> EvaluationContext:
    """Assemble the variables visible to conditions on one bar."""
    values: dict[str, object] = {
        "open": bar.open,
        "high": bar.high,
        "low": bar.low,
        "close": bar.close,
        "volume": bar.volume,
        "price": bar.close,
        "timestamp": bar.timestamp,
        "symbol": symbol or bar.symbol,
    }
    values.update(position_variables(position))
    values.update(flatten_indicator_values(indicator_values))
    return EvaluationContext(values, previous=previous)


class SignalEvaluator:
    """
    Evaluates compiled strategies against per-bar contexts.

    By default a condition referencing an unknown variable raises
    UndefinedVariableError. With `treat_undefined_as_no_signal` the bar is
    logged and reported as no signal instead.
    """

    def __init__(self, treat_undefined_as_no_signal: bool = False) -> None:
        self.treat_undefined_as_no_signal = treat_undefined_as_no_signal

    def evaluate(self, compiled: CompiledStrategy, context: EvaluationContext) -> SignalResult:
        """Evaluate the three conditions against a context."""
        timestamp_value = context.get("timestamp")
        try:
            entry = self._evaluate_condition(compiled.entry, context)
            exit_ = self._evaluate_condition(compiled.exit, context)
            stop = self._evaluate_condition(compiled.stop, context)
        except UndefinedVariableError as e:
            if not self.treat_undefined_as_no_signal:
                raise
            logger.warning(f"{compiled.strategy.name}: {e}; treating bar as no signal")
            return SignalResult(False, False, False, context=dict(context))

        return SignalResult(
            entry=entry,
            exit=exit_,
            stop=stop,
            timestamp=_timestamp_from_context(timestamp_value),
            context=dict(context),
        )

    @staticmethod
    def _evaluate_condition(node: ConditionNode | None, context: EvaluationContext) -> bool:
        if node is None:
            return False
        return evaluate(node, context)

    def evaluate_signals(
        self,
        strategy: StrategyDefinition | CompiledStrategy,
        bar: Bar,
        indicator_values: Mapping[str, IndicatorValue],
        position: Position | None = None,
        previous: EvaluationContext | None = None,
    ) -> SignalResult:
        """
        Evaluate a strategy on one bar outside of a backtest.

        Args:
            strategy: Strategy or already compiled strategy
            bar: Current bar
            indicator_values: Indicator values at this bar
            position: Open position, if any
            previous: Previous bar's context for cross-over checks
        """
        compiled = strategy if isinstance(strategy, CompiledStrategy) else compile_strategy(strategy)
        context = build_context(
            bar, indicator_values, compiled.strategy.symbol, position, previous
        )
        return replace(self.evaluate(compiled, context), timestamp=bar.timestamp)

    @staticmethod
    def detect_conflicts(result: SignalResult) -> None:
        """
        Reject ambiguous signal combinations.

        Exit together with stop is allowed; exit is dispatched first.

        Raises:
            SignalConflictError: For entry+exit or entry+stop
        """
        if result.entry and result.exit:
            raise SignalConflictError(("entry", "exit"))
        if result.entry and result.stop:
            raise SignalConflictError(("entry", "stop"))

    @staticmethod
    def validate_strategy(strategy: StrategyDefinition) -> list[str]:
        """
        Collect every problem that would prevent the strategy from running.

        Returns:
            Human-readable error messages, empty when the strategy is valid
        """
        errors: list[str] = []
        try:
            IndicatorOrchestrator.validate_unique_names(strategy.indicators)
        except ValidationError as e:
            errors.append(str(e))

        indicator_names = set(strategy.indicator_names)
        for name, text in strategy.conditions().items():
            if _is_blank(text):
                continue
            try:
                node = parse(text)
            except ConditionParseError as e:
                errors.append(f"{name} condition: {e}")
                continue
            for variable in extract_variables(node):
                if not _is_defined(variable, indicator_names):
                    errors.append(f"Undefined variable: {variable}")
        return errors

    @staticmethod
    def generate_signal(
        signal_type: SignalType, compiled: CompiledStrategy, result: SignalResult
    ) -> Signal:
        """Build a signal record with the indicator values that triggered it."""
        indicator_values = {
            name: value
            for name, value in result.context.items()
            if name not in RESERVED_VARIABLES and name not in POSITION_VARIABLES
        }
        price = result.context.get("price")
        return Signal(
            signal_type=signal_type,
            symbol=compiled.strategy.symbol,
            timestamp=result.timestamp,
            trigger_condition=compiled.condition_text(signal_type),
            price_at_signal=price if isinstance(price, Decimal) else None,
            indicator_values=indicator_values,
        )


def _is_defined(variable: str, indicator_names: set[str]) -> bool:
    if variable in RESERVED_VARIABLES or variable in POSITION_VARIABLES:
        return True
    if variable in indicator_names:
        return True
    base, _, component = variable.partition(".")
    return bool(component) and base in indicator_names


def _timestamp_from_context(value: object) -> datetime | None:
    if isinstance(value, Decimal):
        return datetime.fromtimestamp(int(value), tz=UTC)
    return None
