"""
Condition tokenizer.

Operators and parentheses always form their own tokens, so `close>sma_50`
and `close > sma_50` tokenize identically. Everything else between
whitespace and operators is a number, a boolean or an identifier.
"""

import re
from dataclasses import dataclass
from enum import StrEnum

from src.core.exceptions.conditions import ConditionParseError


class TokenKind(StrEnum):
    LPAREN = "lparen"
    RPAREN = "rparen"
    AND = "and"
    OR = "or"
    NOT = "not"
    COMPARATOR = "comparator"
    NUMBER = "number"
    BOOLEAN = "boolean"
    IDENTIFIER = "identifier"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    position: int


# Two-character operators must come before their one-character prefixes.
_TOKEN_PATTERN = re.compile(
    r"(?P<op>>=|<=|==|!=|&&|\|\||[()<>!])|(?P<word>[^\s()<>!=&|]+)|(?P<bad>[=&|])"
)
_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

_OPERATOR_KINDS = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "&&": TokenKind.AND,
    "||": TokenKind.OR,
    "!": TokenKind.NOT,
    "<": TokenKind.COMPARATOR,
    ">": TokenKind.COMPARATOR,
    "<=": TokenKind.COMPARATOR,
    ">=": TokenKind.COMPARATOR,
    "==": TokenKind.COMPARATOR,
    "!=": TokenKind.COMPARATOR,
}
_KEYWORD_KINDS = {"AND": TokenKind.AND, "OR": TokenKind.OR, "NOT": TokenKind.NOT}
_BOOLEAN_WORDS = ("true", "false")


def _classify_word(word: str) -> TokenKind:
    if word in _KEYWORD_KINDS:
        return _KEYWORD_KINDS[word]
    if word in _BOOLEAN_WORDS:
        return TokenKind.BOOLEAN
    if _NUMBER_PATTERN.match(word):
        return TokenKind.NUMBER
    return TokenKind.IDENTIFIER


def tokenize(text: str) -> list[Token]:
    """
    Split condition text into tokens.

    Raises:
        ConditionParseError: On a stray '=', '&' or '|'
    """
    tokens: list[Token] = []
    for match in _TOKEN_PATTERN.finditer(text):
        position = len(tokens)
        if match.group("bad"):
            raise ConditionParseError(
                f"Unexpected character '{match.group('bad')}'", position=position
            )
        if match.group("op"):
            op = match.group("op")
            tokens.append(Token(_OPERATOR_KINDS[op], op, position))
        else:
            word = match.group("word")
            tokens.append(Token(_classify_word(word), word, position))
    return tokens
