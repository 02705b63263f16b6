"""
Core constants and limits.

Defines system-wide defaults for risk limits, execution costs, session
scheduling and the live order path.
"""

from decimal import Decimal

# Risk Limits (defaults per session)
DEFAULT_MAX_POSITION_SIZE_PCT = Decimal("0.25")  # 25% of equity per position
DEFAULT_MAX_DAILY_LOSS_PCT = Decimal("0.03")  # 3% of day's starting equity
DEFAULT_MAX_DRAWDOWN_PCT = Decimal("0.15")  # 15% from peak equity
DEFAULT_MAX_CONCURRENT_POSITIONS = 3

# Position Sizing
KELLY_FRACTION_CAP = Decimal("0.25")  # Quarter-Kelly safety cap
DEFAULT_POSITION_PCT = Decimal("0.10")  # 10% of equity when no sizing is configured
DEFAULT_MAX_POSITION_FRACTION = Decimal("1")  # Notional capped at equity (no leverage)

# Execution Costs
DEFAULT_COMMISSION_RATE = Decimal("0.001")  # 0.1% of notional
DEFAULT_SLIPPAGE_BPS = Decimal("5")  # 5 basis points against the trader
BASIS_POINTS_DIVISOR = Decimal("10000")
MARKET_IMPACT_COEFFICIENT = Decimal("0.01")  # Square-root impact model scale

# Backtest Defaults
DEFAULT_INITIAL_CAPITAL = Decimal("10000")
MIN_TRADE_CAPITAL_RATIO = Decimal("0.001")  # 0.1% of initial capital
MIN_TRADE_CAPITAL_FLOOR = Decimal("10")  # Absolute floor for tradable cash
PROFIT_FACTOR_SENTINEL = Decimal("999.99")  # Reported when there are no losing trades
DEFAULT_CONFLICT_WARNING_THRESHOLD = 10  # Skipped conflicts before a session warning
DATA_GAP_TOLERANCE = Decimal("0.10")  # 10% deviation from the timeframe interval
PROGRESS_YIELD_INTERVAL = 100  # Bars between event-loop yields

# Session Scheduling
DEFAULT_MAX_CONCURRENT_BACKTESTS = 5

# Indicator Warm-up (bars on top of the indicator period)
INDICATOR_WARMUP_BARS = {
    "ema": 10,
    "macd": 26,
    "rsi": 1,
    "atr": 1,
    "bb": 0,
    "bollinger_bands": 0,
}

# Live Order Path
DEFAULT_ORDER_POLL_INTERVAL = 5.0  # Seconds between status polls
DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # Seconds
DEFAULT_RETRY_MAX_DELAY = 8.0  # Seconds
DEFAULT_RETRY_BACKOFF_FACTOR = 2.0
DEFAULT_RETRY_JITTER = 0.2  # +/-20% of the computed delay
