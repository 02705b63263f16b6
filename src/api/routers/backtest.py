"""
Backtest API endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends, status

from src.backtest.service import BacktestService
from src.core.enums import SessionStatus

from ..dependencies import get_backtest_service
from ..schemas.api_models import (
    BacktestRequest,
    BacktestResponse,
    BacktestResults,
    CancelResponse,
    ProgressResponse,
    SessionSummary,
)

router = APIRouter()


@router.post("/", status_code=status.HTTP_202_ACCEPTED)
async def submit_backtest(
    request: BacktestRequest, service: BacktestService = Depends(get_backtest_service)
) -> BacktestResponse:
    """Submit a new backtest for execution."""
    session_id = await service.start_backtest(request.to_config())
    session = service.get_session(session_id)
    return BacktestResponse(
        backtest_id=session_id, status=session.status, message="Backtest submitted"
    )


@router.get("/")
async def list_backtests(
    status: SessionStatus | None = None,
    strategy: str | None = None,
    service: BacktestService = Depends(get_backtest_service),
) -> list[SessionSummary]:
    """List sessions, optionally filtered by status or strategy name."""
    return [
        SessionSummary.from_session(session)
        for session in service.list_sessions(status=status, strategy_name=strategy)
    ]


@router.get("/queue")
async def get_queue_status(
    service: BacktestService = Depends(get_backtest_service),
) -> dict[str, Any]:
    """Running and queued sessions of the concurrency pool."""
    return service.concurrency.status()


@router.get("/{backtest_id}/progress")
async def get_backtest_progress(
    backtest_id: str, service: BacktestService = Depends(get_backtest_service)
) -> ProgressResponse:
    """Get progress of a session without waiting for it."""
    return ProgressResponse.from_progress(service.get_progress(backtest_id))


@router.get("/{backtest_id}")
async def get_backtest_results(
    backtest_id: str, service: BacktestService = Depends(get_backtest_service)
) -> BacktestResults:
    """Get backtest results by ID."""
    return BacktestResults.from_result(service.get_result(backtest_id))


@router.post("/{backtest_id}/cancel")
async def cancel_backtest(
    backtest_id: str, service: BacktestService = Depends(get_backtest_service)
) -> CancelResponse:
    """Request cancellation of a queued or running session."""
    cancelled = service.cancel(backtest_id)
    return CancelResponse(
        backtest_id=backtest_id,
        cancelled=cancelled,
        status=service.get_session(backtest_id).status,
    )
