"""
Recursive-descent parser for strategy conditions.

Grammar, lowest precedence first:

    or_expr     := and_expr (("OR" | "||") or_expr)?
    and_expr    := not_expr (("AND" | "&&") and_expr)?
    not_expr    := ("NOT" | "!") not_expr | comparison
    comparison  := primary (("<" | ">" | "<=" | ">=" | "==" | "!=") primary)?
    primary     := "(" or_expr ")" | NUMBER | "true" | "false" | IDENTIFIER

OR and AND are right-associative.
"""

from decimal import Decimal

from cachetools import LRUCache, cached

from src.core.exceptions.conditions import ConditionParseError
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
from src.strategy.conditions.tokenizer import Token, TokenKind, tokenize


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._index = 0

    def _peek(self) -> Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _accept(self, kind: TokenKind) -> Token | None:
        token = self._peek()
        if token is not None and token.kind == kind:
            return self._advance()
        return None

    def parse(self) -> ConditionNode:
        node = self._parse_or()
        leftover = self._peek()
        if leftover is not None:
            remaining = " ".join(t.text for t in self._tokens[self._index :])
            raise ConditionParseError(
                f"Unexpected tokens: {remaining}", position=leftover.position
            )
        return node

    def _parse_or(self) -> ConditionNode:
        left = self._parse_and()
        if self._accept(TokenKind.OR):
            return Or(left, self._parse_or())
        return left

    def _parse_and(self) -> ConditionNode:
        left = self._parse_not()
        if self._accept(TokenKind.AND):
            return And(left, self._parse_and())
        return left

    def _parse_not(self) -> ConditionNode:
        if self._accept(TokenKind.NOT):
            return Not(self._parse_not())
        return self._parse_comparison()

    def _parse_comparison(self) -> ConditionNode:
        left = self._parse_primary()
        comparator = self._accept(TokenKind.COMPARATOR)
        if comparator is None:
            return left
        right = self._parse_primary()
        return Compare(ComparisonOperator(comparator.text), left, right)

    def _parse_primary(self) -> ConditionNode:
        token = self._peek()
        if token is None:
            raise ConditionParseError("Unexpected end of expression", position=self._index)

        if token.kind == TokenKind.LPAREN:
            self._advance()
            node = self._parse_or()
            if self._accept(TokenKind.RPAREN) is None:
                raise ConditionParseError("Expected ')'", position=self._index)
            return node

        self._advance()
        match token.kind:
            case TokenKind.NUMBER:
                return Literal(Decimal(token.text))
            case TokenKind.BOOLEAN:
                return Literal(token.text == "true")
            case TokenKind.IDENTIFIER:
                return Variable(token.text)
            case _:
                raise ConditionParseError(
                    f"Unexpected token '{token.text}'", position=token.position
                )


@cached(LRUCache(maxsize=512))
def parse(text: str) -> ConditionNode:
    """
    Parse condition text into a syntax tree.

    Trees are immutable, so identical texts share one cached tree.

    Raises:
        ConditionParseError: If the text is empty or malformed
    """
    if not text or not text.strip():
        raise ConditionParseError("Empty condition")
    return _Parser(tokenize(text)).parse()
