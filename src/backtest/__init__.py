"""
Backtest simulation, metrics and session orchestration.
"""

from .concurrency import ConcurrencyManager
from .equity_curve import EquityCurve
from .executor import Fill, SimulatedExecutor
from .metrics import calculate_metrics
from .service import BacktestService
from .simulator import BacktestSimulator

__all__ = [
    "BacktestService",
    "BacktestSimulator",
    "ConcurrencyManager",
    "EquityCurve",
    "Fill",
    "SimulatedExecutor",
    "calculate_metrics",
]
