"""WebSocket router for real-time report updates."""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from reportdash.websocket.manager import manager
from reportdash.websocket.schemas import (
    ErrorMessage,
    PongMessage,
    SubscribeMessage,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/reports")
async def websocket_reports(websocket: WebSocket):
    """
    WebSocket endpoint for real-time report updates.

    Protocol:
    - Client connects
    - Client sends subscribe message with filter criteria
    - Server replies with the current filtered view, then pushes a new view
      after every change in the report collection
    - New reports also produce a report_added notification
    - Server sends pong in response to ping for keep-alive

    Message formats:
    Client -> Server:
        {"type": "subscribe", "criteria": {"period": "week", "category": "Bacheo", "search_term": ""}, "notifications": true}
        {"type": "ping"}

    Server -> Client:
        {"type": "reports_update", "version": 12, "reports": [...], "stats": {...}, "timestamp": "..."}
        {"type": "report_added", "notification": {...}, "timestamp": "..."}
        {"type": "pong"}
        {"type": "error", "message": "..."}
    """
    await manager.connect(websocket)

    try:
        while True:
            raw_message = await websocket.receive_text()

            try:
                data = json.loads(raw_message)
                msg_type = data.get("type") if isinstance(data, dict) else None

                if msg_type == "subscribe":
                    msg = SubscribeMessage.model_validate(data)
                    await manager.update_subscription(
                        websocket,
                        criteria=msg.criteria,
                        notifications=msg.notifications,
                    )
                    logger.info(f"Subscription updated: criteria={msg.criteria}")

                    feed = getattr(websocket.app.state, "feed", None)
                    if feed is not None:
                        await manager.send_update(websocket, feed.snapshot, feed.version)

                elif msg_type == "ping":
                    await websocket.send_json(PongMessage().model_dump())

                else:
                    error = ErrorMessage(message=f"Unknown message type: {msg_type}")
                    await websocket.send_json(error.model_dump())

            except json.JSONDecodeError:
                error = ErrorMessage(message="Invalid JSON")
                await websocket.send_json(error.model_dump())
            except ValidationError as e:
                error = ErrorMessage(message=f"Invalid subscription: {e.error_count()} errors")
                await websocket.send_json(error.model_dump())

    except WebSocketDisconnect:
        await manager.disconnect(websocket)
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
        await manager.disconnect(websocket)
