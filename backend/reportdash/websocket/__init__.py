"""WebSocket module for real-time report updates."""

from reportdash.websocket.manager import ConnectionManager
from reportdash.websocket.router import router as websocket_router

__all__ = ["ConnectionManager", "websocket_router"]
