"""
FastAPI dependencies shared by the routers.
"""

from fastapi import Request

from src.backtest.service import BacktestService
from src.risk.risk_manager import RiskManager
from src.strategy.signal_evaluator import SignalEvaluator


def get_backtest_service(request: Request) -> BacktestService:
    return request.app.state.backtest_service


def get_signal_evaluator(request: Request) -> SignalEvaluator:
    return request.app.state.signal_evaluator


def get_risk_manager(request: Request) -> RiskManager:
    return request.app.state.risk_manager
