"""
Boolean condition engine for entry, exit and stop rules.
"""

from .evaluator import (
    RESERVED_VARIABLES,
    EvaluationContext,
    cross_above,
    cross_below,
    evaluate,
    extract_variables,
    validate_variables,
)
from .nodes import And, Compare, ComparisonOperator, ConditionNode, Literal, Not, Or, Variable
from .parser import parse
from .tokenizer import Token, TokenKind, tokenize

__all__ = [
    "And",
    "Compare",
    "ComparisonOperator",
    "ConditionNode",
    "EvaluationContext",
    "Literal",
    "Not",
    "Or",
    "RESERVED_VARIABLES",
    "Token",
    "TokenKind",
    "Variable",
    "cross_above",
    "cross_below",
    "evaluate",
    "extract_variables",
    "parse",
    "tokenize",
    "validate_variables",
]
