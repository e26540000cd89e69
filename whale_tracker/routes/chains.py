"""
Chain connectivity and Solana account routes.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Path

from whale_tracker.dependencies import get_runtime
from whale_tracker.models.api_models import ApiResponse
from whale_tracker.models.serialization import to_jsonable
from whale_tracker.runtime import TrackerRuntime
from whale_tracker.utils.api_response import handle_api_errors

# Create router for chain endpoints
router = APIRouter(prefix="/api", tags=["chains"])


@router.get("/chains/{chain}/status", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def get_chain_status(
    chain: str = Path(..., description="Chain name"),
    runtime: TrackerRuntime = Depends(get_runtime),
):
    """
    Check RPC connectivity and report the latest block or slot.
    """
    status = await runtime.chain_status(chain)
    status["detection"] = to_jsonable(runtime.get_detector(chain).status())
    return ApiResponse.success_response(status)


@router.get("/solana/balance/{pubkey}", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def get_solana_balance(
    pubkey: str = Path(..., description="Solana public key"),
    runtime: TrackerRuntime = Depends(get_runtime),
):
    """
    Get the SOL balance of an account.
    """
    return ApiResponse.success_response(await runtime.get_solana_balance(pubkey))
