"""
Condition evaluator.

Evaluates a parsed condition against an EvaluationContext. Numeric values
are compared as Decimal; missing variables raise instead of defaulting.
"""

from collections.abc import Iterator, Mapping
from datetime import datetime
from decimal import Decimal
from typing import assert_never

from src.core.exceptions.conditions import ConditionEvaluationError, UndefinedVariableError
from src.core.types.financial import to_decimal
from src.strategy.conditions.nodes import (
    And,
    Compare,
    ComparisonOperator,
    ConditionNode,
    Literal,
    Not,
    Or,
    Variable,
)

type Value = Decimal | bool | str

RESERVED_VARIABLES = frozenset(
    {"open", "high", "low", "close", "volume", "price", "timestamp", "symbol"}
)


def _normalize(name: str, value: object) -> Value:
    if isinstance(value, bool | str | Decimal):
        return value
    if isinstance(value, int | float):
        try:
            return to_decimal(value)
        except ValueError as e:
            raise ConditionEvaluationError(f"Variable '{name}' is not a finite number") from e
    if isinstance(value, datetime):
        return Decimal(int(value.timestamp()))
    raise ConditionEvaluationError(
        f"Variable '{name}' has unsupported type {type(value).__name__}"
    )


class EvaluationContext(Mapping[str, Value]):
    """Variable bindings for one bar, optionally linked to the previous bar's."""

    def __init__(
        self,
        values: Mapping[str, object] | None = None,
        previous: "EvaluationContext | None" = None,
    ) -> None:
        self._values: dict[str, Value] = {
            name: _normalize(name, value)
            for name, value in (values or {}).items()
            if value is not None
        }
        self.previous = previous

    def __getitem__(self, name: str) -> Value:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def resolve(self, name: str) -> Value:
        """
        Look up a variable.

        Raises:
            UndefinedVariableError: If the name is not bound
        """
        try:
            return self._values[name]
        except KeyError:
            raise UndefinedVariableError(name) from None

    def with_previous(self, previous: "EvaluationContext | None") -> "EvaluationContext":
        """Copy of this context linked to another previous-bar context."""
        context = EvaluationContext(previous=previous)
        context._values = self._values
        return context


def _as_bool(value: Value, where: str) -> bool:
    if not isinstance(value, bool):
        raise ConditionEvaluationError(f"{where} requires boolean operands, got {value!r}")
    return value


def _compare(op: ComparisonOperator, left: Value, right: Value) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        if not (isinstance(left, bool) and isinstance(right, bool)):
            raise ConditionEvaluationError(f"Cannot compare {left!r} {op} {right!r}")
        if not op.is_equality:
            raise ConditionEvaluationError(f"Operator {op} is not defined for booleans")
        return op.apply(left, right)

    if isinstance(left, str) or isinstance(right, str):
        if not (isinstance(left, str) and isinstance(right, str)) or not op.is_equality:
            raise ConditionEvaluationError(f"Cannot compare {left!r} {op} {right!r}")
        return op.apply(left, right)

    return op.apply(left, right)


def _evaluate(node: ConditionNode, context: EvaluationContext) -> Value:
    match node:
        case Literal(value=value):
            return value
        case Variable(name=name):
            return context.resolve(name)
        case Not(operand=operand):
            return not _as_bool(_evaluate(operand, context), "NOT")
        case And(left=left, right=right):
            # Both sides are evaluated so undefined variables always surface.
            left_value = _as_bool(_evaluate(left, context), "AND")
            right_value = _as_bool(_evaluate(right, context), "AND")
            return left_value and right_value
        case Or(left=left, right=right):
            left_value = _as_bool(_evaluate(left, context), "OR")
            right_value = _as_bool(_evaluate(right, context), "OR")
            return left_value or right_value
        case Compare(operator=op, left=left, right=right):
            return _compare(op, _evaluate(left, context), _evaluate(right, context))
        case _:
            assert_never(node)


def evaluate(node: ConditionNode, context: EvaluationContext | Mapping[str, object]) -> bool:
    """
    Evaluate a condition tree.

    Args:
        node: Parsed condition
        context: Variable bindings; plain mappings are wrapped

    Returns:
        The boolean outcome

    Raises:
        UndefinedVariableError: If a referenced variable is missing
        ConditionEvaluationError: On type mismatches or a non-boolean result
    """
    if not isinstance(context, EvaluationContext):
        context = EvaluationContext(context)
    result = _evaluate(node, context)
    if not isinstance(result, bool):
        raise ConditionEvaluationError(f"Condition evaluated to {result!r}, expected a boolean")
    return result


def extract_variables(node: ConditionNode) -> list[str]:
    """Sorted unique variable names referenced by a condition."""
    names: set[str] = set()

    def walk(current: ConditionNode) -> None:
        match current:
            case Variable(name=name):
                names.add(name)
            case Not(operand=operand):
                walk(operand)
            case And(left=left, right=right) | Or(left=left, right=right):
                walk(left)
                walk(right)
            case Compare(left=left, right=right):
                walk(left)
                walk(right)
            case Literal():
                pass

    walk(node)
    return sorted(names)


def validate_variables(node: ConditionNode, defined_names: set[str] | frozenset[str]) -> list[str]:
    """Variables referenced by a condition that are neither defined nor reserved."""
    return [
        name
        for name in extract_variables(node)
        if name not in defined_names and name not in RESERVED_VARIABLES
    ]


def _numeric(context: EvaluationContext, name: str) -> Decimal:
    value = context.resolve(name)
    if not isinstance(value, Decimal):
        raise ConditionEvaluationError(f"Variable '{name}' is not numeric")
    return value


def cross_above(context: EvaluationContext, series_a: str, series_b: str) -> bool:
    """True when series_a crossed from at-or-below series_b to above it on this bar."""
    if context.previous is None:
        return False
    prev_a, prev_b = _numeric(context.previous, series_a), _numeric(context.previous, series_b)
    now_a, now_b = _numeric(context, series_a), _numeric(context, series_b)
    return prev_a <= prev_b and now_a > now_b


def cross_below(context: EvaluationContext, series_a: str, series_b: str) -> bool:
    """True when series_a crossed from at-or-above series_b to below it on this bar."""
    if context.previous is None:
        return False
    prev_a, prev_b = _numeric(context.previous, series_a), _numeric(context.previous, series_b)
    now_a, now_b = _numeric(context, series_a), _numeric(context, series_b)
    return prev_a >= prev_b and now_a < now_b
