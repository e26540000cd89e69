"""
Dependency providers for the whale tracker API.

The process-wide ``TrackerRuntime`` lives on ``app.state``; these providers
hand its services to route handlers.
"""

from fastapi import Depends, Path, Request

from whale_tracker.runtime import TrackerRuntime
from whale_tracker.services.launch_tracker.tracker import NewLaunchTracker
from whale_tracker.services.token_scorer import TokenRiskScorer
from whale_tracker.services.whale_detector.detector import WhaleDetectionEngine
from whale_tracker.utils.error_handling import ConfigurationError


def get_runtime(request: Request) -> TrackerRuntime:
    """
    Get the runtime attached to the running application.

    Raises:
        ConfigurationError: If the application was created without a runtime
    """
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise ConfigurationError("Tracker runtime is not initialized")
    return runtime


def get_detector(
    chain: str = Path(..., description="Chain name (ethereum, bsc or solana)"),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> WhaleDetectionEngine:
    """Dependency provider for the detection engine of the ``{chain}`` path parameter."""
    return runtime.get_detector(chain)


def get_scorer(runtime: TrackerRuntime = Depends(get_runtime)) -> TokenRiskScorer:
    """Dependency provider for TokenRiskScorer."""
    return runtime.scorer


def get_launch_tracker(runtime: TrackerRuntime = Depends(get_runtime)) -> NewLaunchTracker:
    """Dependency provider for NewLaunchTracker."""
    return runtime.launch_tracker
