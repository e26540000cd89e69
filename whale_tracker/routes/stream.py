"""
WebSocket push channel.

Every event published on the fan-out is forwarded to connected clients as a
``{type, data, timestamp}`` message. Level-specific alert events only reach
clients that subscribed to that level. Clients may also send requests:

- ``get_alerts`` -> ``alerts_response``
- ``get_monitored_whales`` -> ``monitored_whales_response``
- ``get_stats`` -> ``stats_response``
- ``mark_alert_read`` ``{alertId}`` -> ``mark_alert_read_response``
- ``subscribe_alerts`` ``{alertLevels}`` -> ``subscription_confirmed``
- ``unsubscribe_alerts`` ``{alertLevels}`` -> ``unsubscription_confirmed``
"""

import asyncio
import json
import time
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from whale_tracker.logging_config import get_logger
from whale_tracker.models.serialization import to_jsonable
from whale_tracker.runtime import TrackerRuntime
from whale_tracker.services.event_bus import Subscription

logger = get_logger(__name__)

router = APIRouter(tags=["stream"])


def envelope(message_type: str, data: Any) -> Dict[str, Any]:
    return {
        "type": message_type,
        "data": to_jsonable(data),
        "timestamp": int(time.time() * 1000),
    }


def _levels(data: Dict[str, Any]):
    levels = data.get("alertLevels") or []
    if isinstance(levels, str):
        levels = [levels]
    return [str(level) for level in levels]


async def handle_client_message(runtime: TrackerRuntime, subscription: Subscription, raw: str) -> Dict[str, Any]:
    """Answer one client request.

    Args:
        runtime: Tracker runtime serving the request
        subscription: The client's fan-out subscription
        raw: JSON text of a ``{"type": ..., "data": ...}`` message

    Returns:
        The response message
    """
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        return envelope("error", {"message": "Invalid JSON message"})
    if not isinstance(message, dict):
        return envelope("error", {"message": "Message must be a JSON object"})

    message_type = message.get("type")
    data = message.get("data")
    if not isinstance(data, dict):
        data = {}

    if message_type == "get_alerts":
        return envelope("alerts_response", [a.to_dict() for a in runtime.scorer.get_active_alerts()])

    if message_type == "get_monitored_whales":
        return envelope("monitored_whales_response", [w.to_dict() for w in runtime.get_monitored_whales()])

    if message_type == "get_stats":
        return envelope("stats_response", runtime.get_alert_stats())

    if message_type == "mark_alert_read":
        alert_id = data.get("alertId")
        success = bool(alert_id) and await runtime.scorer.mark_alert_read(str(alert_id))
        return envelope("mark_alert_read_response", {"success": success, "alert_id": alert_id})

    if message_type == "subscribe_alerts":
        levels = _levels(data)
        subscribed = subscription.subscribe_levels(levels)
        return envelope("subscription_confirmed", {
            "alert_levels": levels or ["all"],
            "subscribed_levels": subscribed,
        })

    if message_type == "unsubscribe_alerts":
        levels = _levels(data)
        subscribed = subscription.unsubscribe_levels(levels)
        return envelope("unsubscription_confirmed", {
            "alert_levels": levels or ["all"],
            "subscribed_levels": subscribed,
        })

    return envelope("error", {"message": f"Unknown message type: {message_type}"})


async def _forward_events(websocket: WebSocket, subscription: Subscription, lock: asyncio.Lock):
    while True:
        event = await subscription.get()
        async with lock:
            await websocket.send_json(event.to_message())


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Push channel for whale, alert and launch events."""
    runtime: TrackerRuntime = websocket.app.state.runtime
    await websocket.accept()

    subscription = runtime.fanout.subscribe()
    lock = asyncio.Lock()
    logger.info(f"WebSocket client {subscription.id} connected ({runtime.fanout.subscriber_count} total)")

    await websocket.send_json(envelope("connection_established", {
        "message": "Connected to whale tracker",
        "client_id": subscription.id,
    }))
    forwarder = asyncio.create_task(_forward_events(websocket, subscription, lock))
    try:
        while True:
            raw = await websocket.receive_text()
            response = await handle_client_message(runtime, subscription, raw)
            async with lock:
                await websocket.send_json(response)
    except WebSocketDisconnect:
        logger.info(f"WebSocket client {subscription.id} disconnected")
    finally:
        forwarder.cancel()
        await asyncio.gather(forwarder, return_exceptions=True)
        runtime.fanout.unsubscribe(subscription)
