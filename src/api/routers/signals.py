"""
Real-time signal evaluation endpoint.
"""

from fastapi import APIRouter, Depends

from src.core.exceptions.conditions import SignalConflictError
from src.strategy.signal_evaluator import SignalEvaluator

from ..dependencies import get_signal_evaluator
from ..schemas.api_models import SignalEvaluationRequest, SignalEvaluationResponse

router = APIRouter()


@router.post("/evaluate")
async def evaluate_signals(
    request: SignalEvaluationRequest,
    evaluator: SignalEvaluator = Depends(get_signal_evaluator),
) -> SignalEvaluationResponse:
    """Evaluate entry, exit and stop conditions on one bar."""
    strategy = request.strategy.to_domain()
    result = evaluator.evaluate_signals(
        strategy,
        request.bar.to_domain(strategy.symbol),
        request.domain_indicator_values(),
    )
    try:
        evaluator.detect_conflicts(result)
    except SignalConflictError as e:
        return SignalEvaluationResponse.from_result(result, conflict=str(e))
    return SignalEvaluationResponse.from_result(result)
