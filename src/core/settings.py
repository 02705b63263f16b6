"""
Engine configuration loaded from the environment.

Values come from process environment variables, optionally seeded from a
.env file via python-dotenv. Anything not set falls back to the defaults in
src.core.constants.
"""

import os
import sys
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from src.core.constants import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_MAX_CONCURRENT_BACKTESTS,
    DEFAULT_ORDER_POLL_INTERVAL,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_DELAY,
    DEFAULT_SLIPPAGE_BPS,
)
from src.core.exceptions.backtest import ConfigurationError

ENV_PREFIX = "ENGINE_"


@dataclass(frozen=True)
class EngineSettings:
    """Process-wide engine settings."""

    log_level: str = "INFO"
    max_concurrent_backtests: int = DEFAULT_MAX_CONCURRENT_BACKTESTS
    order_poll_interval: float = DEFAULT_ORDER_POLL_INTERVAL
    retry_max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY
    retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY
    default_commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    default_slippage_bps: Decimal = DEFAULT_SLIPPAGE_BPS

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.max_concurrent_backtests < 1:
            raise ConfigurationError(
                f"max_concurrent_backtests must be at least 1, got {self.max_concurrent_backtests}"
            )
        if self.order_poll_interval <= 0:
            raise ConfigurationError(
                f"order_poll_interval must be positive, got {self.order_poll_interval}"
            )
        if self.retry_max_attempts < 1:
            raise ConfigurationError(
                f"retry_max_attempts must be at least 1, got {self.retry_max_attempts}"
            )
        if self.retry_base_delay > self.retry_max_delay:
            raise ConfigurationError("retry_base_delay must not exceed retry_max_delay")
        if self.default_commission_rate < 0 or self.default_slippage_bps < 0:
            raise ConfigurationError("Commission rate and slippage must be non-negative")


def _env(name: str) -> str | None:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _parse[T](name: str, converter: type[T], default: T) -> T:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return converter(raw)  # type: ignore[call-arg]
    except (ValueError, ArithmeticError) as e:
        raise ConfigurationError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}") from e


def load_settings(env_file: str | Path | None = None) -> EngineSettings:
    """
    Load engine settings from the environment.

    Args:
        env_file: Optional .env file to load before reading variables.
            Variables already present in the process environment win.

    Returns:
        Validated EngineSettings

    Raises:
        ConfigurationError: If a variable cannot be parsed or is out of range
    """
    if env_file is not None:
        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")
        else:
            logger.warning(f"Environment file not found: {env_path}")

    defaults = EngineSettings()
    return EngineSettings(
        log_level=(_env("LOG_LEVEL") or defaults.log_level).upper(),
        max_concurrent_backtests=_parse(
            "MAX_CONCURRENT_BACKTESTS", int, defaults.max_concurrent_backtests
        ),
        order_poll_interval=_parse("ORDER_POLL_INTERVAL", float, defaults.order_poll_interval),
        retry_max_attempts=_parse("RETRY_MAX_ATTEMPTS", int, defaults.retry_max_attempts),
        retry_base_delay=_parse("RETRY_BASE_DELAY", float, defaults.retry_base_delay),
        retry_max_delay=_parse("RETRY_MAX_DELAY", float, defaults.retry_max_delay),
        default_commission_rate=_parse(
            "DEFAULT_COMMISSION_RATE", Decimal, defaults.default_commission_rate
        ),
        default_slippage_bps=_parse("DEFAULT_SLIPPAGE_BPS", Decimal, defaults.default_slippage_bps),
    )


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a stderr sink at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    )
