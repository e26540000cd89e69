"""
API response models for the whale tracker API.

This module defines standardized response models for the API to ensure consistent
response formats across all endpoints.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

# Type variable for response data
T = TypeVar('T')


class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class ApiResponse(BaseModel, Generic[T]):
    """
    Standard API response model.

    This model is used as the base response format for all API endpoints.
    """
    success: bool = Field(True, description="Whether the request was successful")
    data: Optional[T] = Field(None, description="Response data payload")
    error: Optional[ErrorDetail] = Field(None, description="Error details on failure")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp of the response"
    )

    @classmethod
    def success_response(cls, data: Optional[T] = None) -> "ApiResponse[T]":
        """Create a success response."""
        return cls(success=True, data=data)

    @classmethod
    def error_response(cls,
                       message: str,
                       code: str = "INTERNAL_ERROR",
                       details: Optional[Dict[str, Any]] = None) -> "ApiResponse[None]":
        """Create an error response."""
        return cls(
            success=False,
            data=None,
            error=ErrorDetail(code=code, message=message, details=details)
        )


class PaginatedResponse(ApiResponse[List[T]], Generic[T]):
    """API response carrying one page of a list."""
    total: int = Field(0, description="Total number of items available")
    page: int = Field(1, description="Current page number (1-indexed)")
    limit: int = Field(20, description="Number of items per page")
    total_pages: int = Field(0, description="Total number of pages")
    has_next: bool = Field(False, description="Whether a next page exists")
    has_prev: bool = Field(False, description="Whether a previous page exists")

    @classmethod
    def from_items(cls, items: List[Any], page: int, limit: int) -> "PaginatedResponse":
        """Slice a full result list into the requested page.

        Args:
            items: Every matching item, already sorted
            page: Page number starting at 1
            limit: Items per page

        Returns:
            Paginated response for that page
        """
        total = len(items)
        total_pages = math.ceil(total / limit) if limit > 0 else 0
        start = (page - 1) * limit
        return cls(
            success=True,
            data=items[start:start + limit],
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class ThresholdUpdate(BaseModel):
    """Request body for updating launch tracker thresholds."""
    liquidity: Optional[float] = Field(None, ge=0, description="Minimum liquidity in USD")
    buys: Optional[float] = Field(None, ge=0, description="Minimum buys in the last hour")
    whale_investment: Optional[float] = Field(None, ge=0, description="Whale investment threshold in USD")
    max_age_hours: Optional[float] = Field(None, gt=0, description="Maximum pair age in hours")
