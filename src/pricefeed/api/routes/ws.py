"""WebSocket hub for real-time price update broadcast."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from pricefeed.broadcast import price_update_message

log = structlog.get_logger(__name__)

router = APIRouter()


class PriceHub:
    """Manages WebSocket connections and fans out JSON frames to all clients."""

    def __init__(self) -> None:
        self.connections: list[WebSocket] = []

    async def connect(self, ws: WebSocket) -> None:
        """Accept a WebSocket connection and add it to the active connections list."""
        await ws.accept()
        self.connections.append(ws)
        log.info("price_ws_connected", total=len(self.connections))

    def disconnect(self, ws: WebSocket) -> None:
        """Remove a WebSocket connection from the active connections list."""
        if ws in self.connections:
            self.connections.remove(ws)
        log.info("price_ws_disconnected", total=len(self.connections))

    async def broadcast(self, message: str) -> None:
        """Send a frame to all connected clients, removing broken connections."""
        for ws in self.connections.copy():
            try:
                await ws.send_text(message)
            except Exception:
                if ws in self.connections:
                    self.connections.remove(ws)
                log.warning("price_ws_broadcast_error", remaining=len(self.connections))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Price update stream. Sends the current snapshot first, then live updates."""
    ws_hub: PriceHub = websocket.app.state.hub
    service = websocket.app.state.service
    await ws_hub.connect(websocket)
    try:
        for asset in service.supported_assets:
            point = await service.get_cached(asset)
            if point is not None:
                await websocket.send_text(json.dumps(price_update_message(asset, point)))
        while True:
            # Consume messages to keep connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        ws_hub.disconnect(websocket)
