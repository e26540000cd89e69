"""
New launch and whale magnet routes.

Tracked tokens, fresh single-token lookups, a server-sent event stream of
``whale_magnet`` events and the runtime controls of the launch tracker.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, Request
from fastapi.responses import StreamingResponse

from whale_tracker.dependencies import get_launch_tracker, get_runtime
from whale_tracker.models.api_models import ApiResponse, ThresholdUpdate
from whale_tracker.models.events import EventType
from whale_tracker.runtime import TrackerRuntime
from whale_tracker.services.event_bus import AlertFanout
from whale_tracker.services.launch_tracker.tracker import NewLaunchTracker
from whale_tracker.utils.api_response import handle_api_errors
from whale_tracker.utils.error_handling import NotFoundError

# Create router for launch endpoints
router = APIRouter(prefix="/api/launches", tags=["launches"])

SSE_KEEPALIVE_SECONDS = 15.0


async def whale_magnet_stream(request: Request, fanout: AlertFanout):
    """Yield ``whale_magnet`` events as SSE frames until the client leaves."""
    subscription = fanout.subscribe()
    try:
        yield ": connected\n\n"
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(subscription.get(), timeout=SSE_KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            if event.type != EventType.WHALE_MAGNET:
                continue
            message = event.to_message()
            yield f"event: {message['type']}\ndata: {json.dumps(message['data'])}\n\n"
    finally:
        fanout.unsubscribe(subscription)


@router.get("", response_model=ApiResponse[List[Dict[str, Any]]])
@handle_api_errors
async def list_launches(
    chain: Optional[str] = Query(None, description="Only launches on this chain"),
    runtime: TrackerRuntime = Depends(get_runtime),
):
    """
    Persisted launch records, newest first.
    """
    launches = await runtime.store.list_launches(chain)
    return ApiResponse.success_response([launch.to_dict() for launch in launches])


@router.get("/tracked", response_model=ApiResponse[List[Dict[str, Any]]])
@handle_api_errors
async def list_tracked_tokens(tracker: NewLaunchTracker = Depends(get_launch_tracker)):
    """
    Tokens currently tracked for whale activity and bonding-curve progress.
    """
    return ApiResponse.success_response([event.to_dict() for event in tracker.get_tracked_tokens()])


@router.get("/stats", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def get_launch_statistics(tracker: NewLaunchTracker = Depends(get_launch_tracker)):
    """
    Counters of the launch tracker.
    """
    return ApiResponse.success_response(tracker.get_statistics())


@router.get("/stream")
async def stream_whale_magnets(request: Request, runtime: TrackerRuntime = Depends(get_runtime)):
    """
    Server-sent event stream of ``whale_magnet`` events.
    """
    return StreamingResponse(
        whale_magnet_stream(request, runtime.fanout),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/scan", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def trigger_scan(
    background_tasks: BackgroundTasks,
    tracker: NewLaunchTracker = Depends(get_launch_tracker),
):
    """
    Start a whale magnet sweep in the background.
    """
    background_tasks.add_task(tracker.find_whale_magnets)
    return ApiResponse.success_response({
        "message": "Whale magnet scan started. Connect to /api/launches/stream for real-time updates."
    })


@router.post("/thresholds", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def update_thresholds(
    update: ThresholdUpdate,
    tracker: NewLaunchTracker = Depends(get_launch_tracker),
):
    """
    Change the qualification thresholds of the launch tracker.
    """
    return ApiResponse.success_response(tracker.update_thresholds(
        liquidity=update.liquidity,
        buys=update.buys,
        whale_investment=update.whale_investment,
        max_age_hours=update.max_age_hours,
    ))


@router.post("/whale-wallets/{address}", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def add_whale_wallet(
    address: str = Path(..., description="Wallet address"),
    tracker: NewLaunchTracker = Depends(get_launch_tracker),
):
    """
    Add a wallet to the known whale set.
    """
    tracker.add_whale_wallet(address)
    return ApiResponse.success_response({"address": address.lower(), "whale_wallets": len(tracker.whale_wallets)})


@router.delete("/whale-wallets/{address}", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def remove_whale_wallet(
    address: str = Path(..., description="Wallet address"),
    tracker: NewLaunchTracker = Depends(get_launch_tracker),
):
    """
    Remove a wallet from the known whale set.
    """
    if not tracker.remove_whale_wallet(address):
        raise NotFoundError("Whale wallet not found", details={"address": address})
    return ApiResponse.success_response({"address": address.lower(), "whale_wallets": len(tracker.whale_wallets)})


@router.post("/clear-analyzed", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def clear_analyzed_tokens(tracker: NewLaunchTracker = Depends(get_launch_tracker)):
    """
    Forget which tokens were already analyzed so they can qualify again.
    """
    tracker.clear_analyzed_tokens()
    return ApiResponse.success_response({"analyzed_tokens": 0})


@router.get("/{chain}/{token_address}", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def get_token_details(
    chain: str = Path(..., description="Dexscreener chain id"),
    token_address: str = Path(..., description="Token address"),
    tracker: NewLaunchTracker = Depends(get_launch_tracker),
):
    """
    Fresh launch metrics of one token.

    Returns 404 when the token has no pair with a supported quote asset.
    """
    details = await tracker.get_single_token_details(chain, token_address)
    if details is None:
        raise NotFoundError(
            "Token details not found or pair not supported",
            details={"chain": chain, "token_address": token_address},
        )
    return ApiResponse.success_response(details.to_dict())
