"""
Whale alert routes.

Alerts raised when a monitored Solana whale acquires a token, the wallets
under monitoring and cached token analyses.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Path

from whale_tracker.dependencies import get_runtime, get_scorer
from whale_tracker.models.api_models import ApiResponse
from whale_tracker.runtime import TrackerRuntime
from whale_tracker.services.token_scorer import TokenRiskScorer
from whale_tracker.utils.api_response import handle_api_errors
from whale_tracker.utils.error_handling import NotFoundError

# Create router for alert endpoints
router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("", response_model=ApiResponse[List[Dict[str, Any]]])
@handle_api_errors
async def list_alerts(scorer: TokenRiskScorer = Depends(get_scorer)):
    """
    List recent whale alerts, newest first.
    """
    return ApiResponse.success_response([a.to_dict() for a in scorer.get_active_alerts()])


@router.patch("/{alert_id}/read", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def mark_alert_read(
    alert_id: str = Path(..., description="Alert identifier"),
    scorer: TokenRiskScorer = Depends(get_scorer),
):
    """
    Mark an alert as read.
    """
    if not await scorer.mark_alert_read(alert_id):
        raise NotFoundError("Alert not found", details={"alert_id": alert_id})
    return ApiResponse.success_response({"alert_id": alert_id, "read": True})


@router.get("/stats", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def get_alert_stats(runtime: TrackerRuntime = Depends(get_runtime)):
    """
    Alert counters and the number of whales under monitoring.
    """
    return ApiResponse.success_response(runtime.get_alert_stats())


@router.get("/monitored-whales", response_model=ApiResponse[List[Dict[str, Any]]])
@handle_api_errors
async def list_monitored_whales(runtime: TrackerRuntime = Depends(get_runtime)):
    """
    Wallets currently watched for new token acquisitions.
    """
    return ApiResponse.success_response([w.to_dict() for w in runtime.get_monitored_whales()])


@router.get("/token-analysis/{address}", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def get_token_analysis(
    address: str = Path(..., description="Token mint address"),
    scorer: TokenRiskScorer = Depends(get_scorer),
):
    """
    Cached analysis of a token; never triggers a fresh lookup.
    """
    analysis = scorer.get_cached_analysis(address)
    return ApiResponse.success_response({
        "analysis": analysis.to_dict() if analysis is not None else None,
        "cached": analysis is not None,
    })
