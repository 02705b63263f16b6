"""
Pre-trade risk check endpoint.
"""

from fastapi import APIRouter, Depends

from src.risk.risk_manager import RiskManager

from ..dependencies import get_risk_manager
from ..schemas.api_models import RiskCheckRequest, RiskCheckResponse

router = APIRouter()


@router.post("/check")
async def check_trade(
    request: RiskCheckRequest, risk_manager: RiskManager = Depends(get_risk_manager)
) -> RiskCheckResponse:
    """Check a proposed trade against portfolio risk limits."""
    decision = risk_manager.check_trade(
        request.trade.to_domain(),
        request.portfolio.to_domain(),
        request.limits.to_domain(),
    )
    return RiskCheckResponse.from_decision(decision)
