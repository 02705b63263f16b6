"""
FastAPI application exposing the trading engine.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from src.backtest.service import BacktestService
from src.core.exceptions.backtest import (
    BacktestStillRunningError,
    SessionNotFoundError,
    TradingEngineException,
    ValidationError,
)
from src.core.exceptions.conditions import ConditionError
from src.core.exceptions.exchange import OrderNotFoundError
from src.core.settings import EngineSettings, configure_logging, load_settings
from src.risk.risk_manager import RiskManager
from src.strategy.signal_evaluator import SignalEvaluator

from .routers import backtest, risk, signals
from .schemas.api_models import ErrorResponse

_STATUS_BY_ERROR: list[tuple[type[TradingEngineException], int]] = [
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (BacktestStillRunningError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConditionError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def _status_for(error: TradingEngineException) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def _engine_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, TradingEngineException)
    status_code = _status_for(exc)
    logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc}")
    body = ErrorResponse(
        error=type(exc).__name__,
        message=str(exc),
        backtest_id=getattr(exc, "session_id", None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def create_app(
    service: BacktestService | None = None, settings: EngineSettings | None = None
) -> FastAPI:
    """
    Build the API application.

    Args:
        service: Backtest service to expose; built from settings when omitted
        settings: Engine settings; loaded from the environment when omitted
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        yield
        await app.state.backtest_service.shutdown()

    app = FastAPI(
        title="Trading Strategy Engine API",
        version="1.0.0",
        description="Strategy signal evaluation, risk checks and backtesting",
        lifespan=lifespan,
    )
    app.state.backtest_service = service or BacktestService(settings=settings)
    app.state.signal_evaluator = SignalEvaluator()
    app.state.risk_manager = RiskManager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:8080"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
    )
    app.add_exception_handler(TradingEngineException, _engine_error_handler)

    app.include_router(backtest.router, prefix="/api/backtest", tags=["backtest"])
    app.include_router(signals.router, prefix="/api/signals", tags=["signals"])
    app.include_router(risk.router, prefix="/api/risk", tags=["risk"])

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint returning API information."""
        return {"message": "Trading Strategy Engine API", "version": "1.0.0", "status": "running"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
