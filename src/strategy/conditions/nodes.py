"""
Condition expression syntax tree.

Nodes are immutable, so a tree parsed once can be evaluated from any number
of sessions concurrently.
"""

import operator
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Any


class ComparisonOperator(StrEnum):
    """Binary comparison operators supported in conditions."""

    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    EQ = "=="
    NE = "!="

    @property
    def is_equality(self) -> bool:
        return self in [self.EQ, self.NE]

    def apply(self, left: Any, right: Any) -> bool:
        return _OPERATOR_FUNCTIONS[self](left, right)


_OPERATOR_FUNCTIONS: dict[ComparisonOperator, Callable[[Any, Any], bool]] = {
    ComparisonOperator.LT: operator.lt,
    ComparisonOperator.GT: operator.gt,
    ComparisonOperator.LE: operator.le,
    ComparisonOperator.GE: operator.ge,
    ComparisonOperator.EQ: operator.eq,
    ComparisonOperator.NE: operator.ne,
}


@dataclass(frozen=True)
class And:
    left: "ConditionNode"
    right: "ConditionNode"


@dataclass(frozen=True)
class Or:
    left: "ConditionNode"
    right: "ConditionNode"


@dataclass(frozen=True)
class Not:
    operand: "ConditionNode"


@dataclass(frozen=True)
class Compare:
    operator: ComparisonOperator
    left: "ConditionNode"
    right: "ConditionNode"


@dataclass(frozen=True)
class Literal:
    value: Decimal | bool


@dataclass(frozen=True)
class Variable:
    name: str


type ConditionNode = And | Or | Not | Compare | Literal | Variable
