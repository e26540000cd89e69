"""
Error handling utilities for the whale tracker.

This module provides standardized error handling mechanisms including:
- Custom exception classes
- Status codes used when rendering errors over HTTP
- Helpers that degrade to a fallback value instead of failing
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Dict, Optional, TypeVar

# Get logger
logger = logging.getLogger(__name__)

# Type variable for fallback values
T = TypeVar('T')


class ErrorCode(Enum):
    """Error codes for the whale tracker."""
    # General errors
    UNKNOWN_ERROR = 1000
    CONFIGURATION_ERROR = 1001
    VALIDATION_ERROR = 1002
    NOT_FOUND_ERROR = 1003

    # Network errors
    NETWORK_ERROR = 2000
    CONNECTION_ERROR = 2001
    TIMEOUT_ERROR = 2002
    MARKET_DATA_ERROR = 2003

    # RPC errors
    RPC_ERROR = 3000
    RPC_RATE_LIMIT_ERROR = 3001

    # Data errors
    DATA_ERROR = 4000
    BAD_DATA = 4001

    # Storage errors
    PERSISTENCE_ERROR = 5000


# Base exception classes
class WhaleTrackerError(Exception):
    """Base exception class for all whale tracker errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize a new WhaleTrackerError.

        Args:
            message: Error message
            error_code: Error code from ErrorCode enum
            details: Additional error details
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}

        # Format the error message
        formatted_message = f"[{error_code.name}] {message}"
        if details:
            formatted_message += f" - Details: {details}"

        super().__init__(formatted_message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary representation."""
        error_dict = {
            "code": self.error_code.name,
            "message": self.message,
        }
        if self.details:
            error_dict["details"] = self.details
        return error_dict


class ConfigurationError(WhaleTrackerError):
    """Error related to configuration issues."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(WhaleTrackerError):
    """Invalid caller input such as a malformed address."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class NotFoundError(WhaleTrackerError):
    """A requested record does not exist."""

    status_code = 404

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.NOT_FOUND_ERROR, details)


class NetworkError(WhaleTrackerError):
    """Error related to network communication issues."""

    status_code = 502

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the network error.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message, ErrorCode.NETWORK_ERROR, details)


class RPCError(WhaleTrackerError):
    """Exception for JSON-RPC level errors."""

    status_code = 502

    def __init__(
        self,
        message: str,
        rpc_error_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the RPC exception.

        Args:
            message: Error message
            rpc_error_code: RPC-specific error code
            endpoint: The RPC endpoint that returned the error
            details: Additional error details
        """
        self.rpc_error_code = rpc_error_code
        self.endpoint = endpoint

        error_details = dict(details or {})
        if rpc_error_code is not None:
            error_details["rpc_error_code"] = rpc_error_code
        if endpoint:
            error_details["endpoint"] = endpoint

        super().__init__(message, ErrorCode.RPC_ERROR, error_details)


class BadDataError(WhaleTrackerError):
    """Upstream returned data that could not be decoded.

    This is the only error class the block circuit breaker counts.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.BAD_DATA, details)


class MarketDataError(WhaleTrackerError):
    """Error returned by a market data HTTP API."""

    status_code = 502

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        url: Optional[str] = None
    ):
        self.http_status = http_status
        self.url = url
        details: Dict[str, Any] = {}
        if http_status is not None:
            details["http_status"] = http_status
        if url:
            details["url"] = url
        super().__init__(message, ErrorCode.MARKET_DATA_ERROR, details)

    @property
    def is_retryable(self) -> bool:
        """Client errors other than 429 are not worth retrying."""
        if self.http_status is None:
            return True
        return self.http_status == 429 or self.http_status >= 500


class PersistenceError(WhaleTrackerError):
    """A durable store write or read failed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.PERSISTENCE_ERROR, details)


async def execute_with_fallback(
    coro: Awaitable[T],
    fallback_value: T,
    error_message: str = "Operation failed",
    logger_instance: Optional[logging.Logger] = None
) -> T:
    """Await a coroutine and return a fallback value when it raises.

    Args:
        coro: Awaitable to execute
        fallback_value: Value returned on failure
        error_message: Prefix for the warning log line
        logger_instance: Logger instance to use (defaults to module logger)

    Returns:
        The awaited result or the fallback value
    """
    log = logger_instance or logger
    try:
        return await coro
    except asyncio.CancelledError:
        raise
    except Exception as e:
        log.warning(f"{error_message}: {str(e)}")
        return fallback_value
