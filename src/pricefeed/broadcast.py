"""Fire-and-forget price broadcast.

publish() only enqueues; a dispatcher task drains the queue and hands each
message to the sink (the WebSocket hub). A slow subscriber therefore delays
the dispatcher, never the refresh path.
"""

from __future__ import annotations

import asyncio
import json
from typing import Protocol

from pricefeed.logging import get_logger
from pricefeed.models import PricePoint

logger = get_logger(__name__)


class BroadcastSink(Protocol):
    """Anything that can deliver a text frame to all subscribers."""

    async def broadcast(self, message: str) -> None: ...


def price_update_message(asset: str, point: PricePoint) -> dict:
    """Build the JSON payload sent to subscribers for a price update."""
    return {"event": "price_update", "asset": asset, **point.to_dict()}


class PriceBroadcaster:
    """Queue-backed publisher in front of a BroadcastSink.

    When the queue is full the oldest pending message is dropped, so
    subscribers always converge on the newest prices.
    """

    def __init__(self, sink: BroadcastSink, maxsize: int = 1000) -> None:
        self._sink = sink
        self._queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=maxsize)
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._dropped = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dropped(self) -> int:
        return self._dropped

    def publish(self, asset: str, point: PricePoint) -> None:
        """Enqueue a price update without waiting for delivery."""
        message = price_update_message(asset, point)
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._queue.put_nowait(message)
            self._dropped += 1
            logger.warning("broadcast_queue_full", asset=asset, dropped=self._dropped)

    async def start(self) -> None:
        """Start the dispatcher task."""
        if self._task is not None and not self._task.done():
            logger.warning("broadcaster_already_running")
            return
        self._task = asyncio.create_task(self._dispatch_loop(), name="price-broadcaster")
        logger.info("broadcaster_started")

    async def stop(self) -> None:
        """Stop the dispatcher. Undelivered messages are discarded."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("broadcaster_stopped", undelivered=self._queue.qsize())

    async def drain(self) -> int:
        """Deliver everything currently queued. Returns the number delivered."""
        delivered = 0
        while not self._queue.empty():
            await self._deliver(self._queue.get_nowait())
            delivered += 1
        return delivered

    async def _dispatch_loop(self) -> None:
        while True:
            message = await self._queue.get()
            await self._deliver(message)

    async def _deliver(self, message: dict) -> None:
        try:
            await self._sink.broadcast(json.dumps(message))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("broadcast_delivery_error", asset=message.get("asset"), exc_info=True)
