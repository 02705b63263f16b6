"""
Exceptions raised while parsing and evaluating strategy conditions.
"""

from src.core.exceptions.backtest import TradingEngineException


class ConditionError(TradingEngineException):
    """Base class for condition engine errors."""

    pass


class ConditionParseError(ConditionError):
    """Raised when condition text is malformed."""

    def __init__(self, message: str, position: int | None = None, condition: str | None = None):
        self.reason = message
        self.position = position
        self.condition = condition
        location = f" at token {position}" if position is not None else ""
        source = f" in {condition} condition" if condition else ""
        super().__init__(f"{message}{location}{source}")


class ConditionEvaluationError(ConditionError):
    """Raised when a condition cannot be evaluated against a context."""

    pass


class UndefinedVariableError(ConditionEvaluationError):
    """Raised when a condition references a name missing from the context."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Variable '{name}' not found in context")


class SignalConflictError(ConditionError):
    """Raised when mutually exclusive signals fire on the same bar."""

    def __init__(self, signals: tuple[str, str]):
        self.signals = signals
        super().__init__(f"Conflicting signals: {signals[0]} and {signals[1]} both triggered")
