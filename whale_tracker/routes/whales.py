"""
Whale query routes.

Transactions, whale addresses, per-chain statistics and trending tokens for
each enabled chain.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query

from whale_tracker.dependencies import get_detector
from whale_tracker.models.api_models import ApiResponse, PaginatedResponse
from whale_tracker.models.serialization import to_jsonable
from whale_tracker.services import whale_query
from whale_tracker.services.whale_detector.detector import WhaleDetectionEngine
from whale_tracker.utils.api_response import handle_api_errors

# Create router for whale endpoints
router = APIRouter(prefix="/api/whales/{chain}", tags=["whales"])


@router.get("/transactions", response_model=PaginatedResponse[Dict[str, Any]])
@handle_api_errors
async def list_transactions(
    min_value: Optional[float] = Query(None, ge=0, description="Minimum value in native units"),
    token_filter: Optional[str] = Query(
        None, description="'all', 'newly-launched' or a token symbol"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    detector: WhaleDetectionEngine = Depends(get_detector),
):
    """
    List whale transactions, newest first.
    """
    transactions = whale_query.filter_transactions(detector.transactions, min_value, token_filter)
    return PaginatedResponse.from_items(to_jsonable(transactions), page, limit)


@router.get("/addresses", response_model=PaginatedResponse[Dict[str, Any]])
@handle_api_errors
async def list_addresses(
    min_balance: Optional[float] = Query(None, ge=0, description="Minimum balance in native units"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    detector: WhaleDetectionEngine = Depends(get_detector),
):
    """
    List known whale addresses sorted by balance, largest first.
    """
    addresses = whale_query.filter_addresses(detector.whale_addresses.values(), min_balance)
    return PaginatedResponse.from_items(to_jsonable(addresses), page, limit)


@router.get("/addresses/{address}", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def get_address(
    address: str = Path(..., description="Whale address"),
    detector: WhaleDetectionEngine = Depends(get_detector),
):
    """
    Get one whale address.

    Returns 400 for a malformed address and 404 for an unknown one.
    """
    return ApiResponse.success_response(whale_query.get_whale_address(detector, address).to_dict())


@router.get("/addresses/{address}/transactions", response_model=PaginatedResponse[Dict[str, Any]])
@handle_api_errors
async def get_address_transactions(
    address: str = Path(..., description="Whale address"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    detector: WhaleDetectionEngine = Depends(get_detector),
):
    """
    List the whale transactions sent or received by an address.
    """
    transactions = whale_query.get_address_transactions(detector, address)
    return PaginatedResponse.from_items(to_jsonable(transactions), page, limit)


@router.get("/stats", response_model=ApiResponse[Dict[str, Any]])
@handle_api_errors
async def get_stats(detector: WhaleDetectionEngine = Depends(get_detector)):
    """
    Aggregate whale statistics of the chain.
    """
    return ApiResponse.success_response(whale_query.calculate_stats(detector))


@router.get("/trending-tokens", response_model=ApiResponse[List[Dict[str, Any]]])
@handle_api_errors
async def get_trending_tokens(
    timeframe: str = Query("24h", description="One of 1h, 24h, 7d"),
    detector: WhaleDetectionEngine = Depends(get_detector),
):
    """
    Tokens with the most whale transfers in the timeframe.
    """
    tokens = whale_query.trending_tokens(detector.transactions, timeframe)
    return ApiResponse.success_response(to_jsonable(tokens))
