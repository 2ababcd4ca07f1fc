"""WebSocket endpoint for alert delivery."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

logger = logging.getLogger(__name__)


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WebSocketMessage(BaseModel):
    """WebSocket message format."""

    type: str  # "alert", "digest", "status"
    data: dict[str, Any]
    timestamp: datetime

    def to_json(self) -> str:
        return _orjson_dumps(self.model_dump())


class ConnectionManager:
    """Manage WebSocket connections and broadcasts.

    A connection may subscribe to a set of symbols; symbol alerts are only
    sent to connections with no subscription or a matching one. Digests go
    to everyone.
    """

    def __init__(self):
        self._connections: dict[WebSocket, set[str]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[websocket] = set()
        logger.info(f"WebSocket connected. Total connections: {len(self._connections)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.pop(websocket, None)
        logger.info(f"WebSocket disconnected. Total connections: {len(self._connections)}")

    async def subscribe(self, websocket: WebSocket, symbols: list[str]) -> set[str]:
        cleaned = {s.strip().upper() for s in symbols if s.strip()}
        async with self._lock:
            if websocket in self._connections:
                self._connections[websocket] = cleaned
        return cleaned

    async def broadcast(self, message: WebSocketMessage, symbol: str | None = None) -> int:
        """Send to every interested client. Returns the number reached."""
        if not self._connections:
            return 0

        message_text = message.to_json()
        disconnected = []
        sent = 0

        async with self._lock:
            for websocket, symbols in self._connections.items():
                if symbol and symbols and symbol not in symbols:
                    continue
                try:
                    await websocket.send_text(message_text)
                    sent += 1
                except Exception as e:
                    logger.warning(f"Failed to send message: {e}")
                    disconnected.append(websocket)

            for ws in disconnected:
                self._connections.pop(ws, None)
        return sent

    async def send_alert(self, alert_data: dict) -> int:
        """Broadcast a BUY/SELL/ADD/TRIM alert."""
        message = WebSocketMessage(type="alert", data=alert_data, timestamp=_now())
        return await self.broadcast(message, symbol=alert_data.get("symbol"))

    async def send_digest(self, digest_data: dict) -> int:
        """Broadcast the weekly sector digest."""
        message = WebSocketMessage(type="digest", data=digest_data, timestamp=_now())
        return await self.broadcast(message)

    async def send_status(self, status_data: dict) -> int:
        message = WebSocketMessage(type="status", data=status_data, timestamp=_now())
        return await self.broadcast(message)

    @property
    def connection_count(self) -> int:
        return len(self._connections)


# Global connection manager
manager = ConnectionManager()


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for alerts.

    Messages sent to clients:
    - alert: New BUY/SELL/ADD/TRIM signal
    - digest: Weekly top sectors
    - status: Job status update

    Clients may send {"type": "subscribe", "data": {"symbols": [...]}} to
    filter symbol alerts.
    """
    await manager.connect(websocket)

    try:
        await websocket.send_text(_orjson_dumps({
            "type": "connected",
            "data": {"message": "Connected to sector rotation alerts"},
            "timestamp": _now().isoformat(),
        }))

        while True:
            try:
                data = await asyncio.wait_for(websocket.receive_text(), timeout=60.0)

                try:
                    message = orjson.loads(data)
                    await handle_client_message(websocket, message)
                except orjson.JSONDecodeError:
                    await websocket.send_text(_orjson_dumps({
                        "type": "error",
                        "data": {"message": "Invalid JSON"},
                        "timestamp": _now().isoformat(),
                    }))

            except asyncio.TimeoutError:
                await websocket.send_text(_orjson_dumps({
                    "type": "ping",
                    "data": {},
                    "timestamp": _now().isoformat(),
                }))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: dict) -> None:
    """Handle incoming message from client."""
    msg_type = message.get("type", "")

    if msg_type == "ping":
        reply = {"type": "pong", "data": {}}
    elif msg_type == "subscribe":
        symbols = await manager.subscribe(websocket, message.get("data", {}).get("symbols", []))
        reply = {"type": "subscribed", "data": {"symbols": sorted(symbols)}}
    else:
        reply = {"type": "error", "data": {"message": f"Unknown message type: {msg_type}"}}

    reply["timestamp"] = _now().isoformat()
    await websocket.send_text(_orjson_dumps(reply))
