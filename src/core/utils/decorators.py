"""
Utility decorators for input validation and operation logging.
"""

import functools
import inspect
import time
import uuid
from collections.abc import Callable
from typing import Any

from loguru import logger

from src.core.exceptions.backtest import ValidationError
from src.core.utils.validation import validate_positive, validate_symbol

_NUMERIC_TRADING_PARAMS = ("quantity", "price", "amount")
_LOGGED_PARAMS = ("symbol", "side", "quantity", "price", "session_id", "order_type")


def _validate_trading_parameter(param_name: str, value: Any, bound_args: Any) -> None:
    """Validate a single trading parameter."""
    if value is None:
        return

    if param_name == "symbol":
        try:
            bound_args.arguments[param_name] = validate_symbol(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid {param_name}: {e}") from e

    elif param_name in _NUMERIC_TRADING_PARAMS:
        try:
            bound_args.arguments[param_name] = validate_positive(value, param_name)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid {param_name}: {e}") from e


def _bind_arguments(
    func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> inspect.BoundArguments:
    bound_args = inspect.signature(func).bind(*args, **kwargs)
    bound_args.apply_defaults()
    return bound_args


def validate_inputs[F: Callable[..., Any]](func: F) -> F:
    """Decorator to validate trading inputs (symbol, quantity, price, amount)."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        bound_args = _bind_arguments(func, args, kwargs)
        for param_name, value in bound_args.arguments.items():
            if param_name != "self":
                _validate_trading_parameter(param_name, value, bound_args)
        return func(*bound_args.args, **bound_args.kwargs)

    return wrapper  # type: ignore


def _serialize_parameter_value(value: Any) -> Any:
    """Serialize parameter value for logging."""
    if hasattr(value, "value"):
        return str(value.value)  # Handle enum values
    elif hasattr(value, "quantize"):
        return str(value)  # Handle Decimal types
    else:
        return value


def _extract_operation_context(bound_args: inspect.BoundArguments) -> dict[str, Any]:
    """Extract loggable context from function arguments and nested request objects."""
    context: dict[str, Any] = {}
    for param_name, value in bound_args.arguments.items():
        if param_name == "self":
            continue
        if param_name in _LOGGED_PARAMS:
            context[param_name] = _serialize_parameter_value(value)
        else:
            for attr in _LOGGED_PARAMS:
                if hasattr(value, attr) and attr not in context:
                    context[attr] = _serialize_parameter_value(getattr(value, attr))
    return context


def _create_success_context(
    base_context: dict[str, Any], execution_time_ms: float, result: Any
) -> dict[str, Any]:
    """Create success logging context."""
    success_context = {
        **base_context,
        "success": True,
        "execution_time_ms": round(execution_time_ms, 2),
        "result_type": type(result).__name__,
    }

    if isinstance(result, bool | int | float | str):
        success_context["result"] = result
    elif hasattr(result, "value") and hasattr(result, "name"):
        success_context["result"] = result.value

    return success_context


def _create_error_context(
    base_context: dict[str, Any], execution_time_ms: float, error: Exception
) -> dict[str, Any]:
    """Create error logging context."""
    return {
        **base_context,
        "success": False,
        "execution_time_ms": round(execution_time_ms, 2),
        "error_type": type(error).__name__,
        "error_message": str(error),
    }


def _setup_logging_context(
    func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> dict[str, Any]:
    """Setup logging context for an operation."""
    return {
        "correlation_id": str(uuid.uuid4())[:8],
        "timestamp": str(time.time()),
        **_extract_operation_context(_bind_arguments(func, args, kwargs)),
    }


def log_operation[F: Callable[..., Any]](func: F) -> F:
    """Decorator to log sync or async operations with correlation IDs."""
    func_name = func.__name__

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            context = _setup_logging_context(func, args, kwargs)
            logger.info(f"Operation started: {func_name}", extra=context)
            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.time() - start_time) * 1000
                logger.error(
                    f"Operation failed: {func_name}",
                    extra=_create_error_context(context, elapsed_ms, e),
                )
                raise
            elapsed_ms = (time.time() - start_time) * 1000
            logger.success(
                f"Operation completed: {func_name}",
                extra=_create_success_context(context, elapsed_ms, result),
            )
            return result

        return async_wrapper  # type: ignore

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        context = _setup_logging_context(func, args, kwargs)
        logger.info(f"Operation started: {func_name}", extra=context)
        start_time = time.time()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Operation failed: {func_name}", extra=_create_error_context(context, elapsed_ms, e)
            )
            raise
        elapsed_ms = (time.time() - start_time) * 1000
        logger.success(
            f"Operation completed: {func_name}",
            extra=_create_success_context(context, elapsed_ms, result),
        )
        return result

    return wrapper  # type: ignore
