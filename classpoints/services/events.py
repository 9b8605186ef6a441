import asyncio
import json
import logging
import threading
import time
from contextlib import contextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Iterator
from uuid import uuid4

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    CONNECTED = "connected"
    HEARTBEAT = "heartbeat"
    POINTS_UPDATED = "points_updated"
    RANKINGS_UPDATED = "rankings_updated"
    MODE_CHANGED = "mode_changed"
    PRODUCT_UPDATED = "product_updated"
    ORDER_UPDATED = "order_updated"
    STUDENT_UPDATED = "student_updated"
    CONFIG_UPDATED = "config_updated"
    DATA_RESET = "data_reset"
    NOTIFICATION = "notification"
    ERROR = "error"


def format_sse(event_type: EventType, payload: dict[str, Any] | None = None) -> str:
    data = dict(payload or {})
    data["timestamp"] = datetime.now(UTC).isoformat()
    return f"event: {event_type.value}\ndata: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"


class Subscriber:
    """One event-stream connection.

    Frames are handed to the connection's event loop. A subscriber holding
    ``max_buffer`` undelivered frames is treated as dead.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        max_buffer: int = 100,
        client: str | None = None,
        user_id: str | None = None,
    ):
        self.id = uuid4().hex
        self.client = client
        self.user_id = user_id
        self.connected_at = datetime.now(UTC)
        self.last_heartbeat = time.time()
        self.alive = True
        self.max_buffer = max_buffer
        self._loop = loop
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._pending = 0
        self._lock = threading.Lock()

    def write(self, frame: str) -> bool:
        with self._lock:
            if not self.alive:
                return False
            if self._pending >= self.max_buffer:
                logger.warning("Subscriber %s is backpressured, dropping", self.id)
                self.alive = False
                return False
            try:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, frame)
            except RuntimeError:
                self.alive = False
                return False
            self._pending += 1
            return True

    def close(self) -> None:
        with self._lock:
            if not self.alive:
                return
            self.alive = False
            try:
                # wake the reader so the stream can end
                self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
            except RuntimeError:
                pass

    async def next_frame(self, timeout: float | None = None) -> str | None:
        try:
            frame = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if frame is not None:
            with self._lock:
                self._pending -= 1
        return frame

    def info(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "client": self.client,
            "userId": self.user_id,
            "connectedAt": self.connected_at.isoformat(),
            "lastHeartbeat": datetime.fromtimestamp(self.last_heartbeat, UTC).isoformat(),
        }


class EventBus:
    def __init__(self, max_buffer: int = 100) -> None:
        self.max_buffer = max_buffer
        self._subscribers: dict[str, Subscriber] = {}
        self._lock = threading.Lock()
        self.published = 0

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribers(self) -> list[Subscriber]:
        with self._lock:
            return list(self._subscribers.values())

    @contextmanager
    def subscribe(self, client: str | None = None, user_id: str | None = None) -> Iterator[Subscriber]:
        """Registers a subscriber for the running loop; removes it on every exit path."""
        subscriber = Subscriber(asyncio.get_running_loop(), self.max_buffer, client=client, user_id=user_id)
        with self._lock:
            self._subscribers[subscriber.id] = subscriber
        logger.info("SSE subscriber %s connected from %s (%s active)", subscriber.id, client, self.count)
        subscriber.write(
            format_sse(
                EventType.CONNECTED,
                {"clientId": subscriber.id, "message": "connected", "activeConnections": self.count},
            )
        )
        try:
            yield subscriber
        finally:
            subscriber.close()
            self._remove(subscriber)

    def _remove(self, subscriber: Subscriber) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscriber.id, None)
        if removed is not None:
            logger.info("SSE subscriber %s disconnected (%s active)", subscriber.id, self.count)

    def publish(self, event_type: EventType, payload: dict[str, Any] | None = None) -> int:
        """Writes the event to every live subscriber, reaps the dead ones; returns deliveries."""
        frame = format_sse(event_type, payload)
        delivered = 0
        dead: list[Subscriber] = []
        for subscriber in self.subscribers():
            if subscriber.write(frame):
                delivered += 1
            else:
                dead.append(subscriber)
        for subscriber in dead:
            subscriber.close()
            self._remove(subscriber)
        self.published += 1
        if dead:
            logger.info("Reaped %s dead SSE subscribers on %s", len(dead), event_type.value)
        logger.debug("Published %s to %s subscribers", event_type.value, delivered)
        return delivered

    def heartbeat(self) -> int:
        now = time.time()
        delivered = self.publish(EventType.HEARTBEAT, {"activeConnections": self.count})
        for subscriber in self.subscribers():
            subscriber.last_heartbeat = now
        return delivered

    async def run_heartbeat(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.heartbeat()
            except Exception:
                logger.exception("SSE heartbeat failed")

    def close_all(self) -> None:
        for subscriber in self.subscribers():
            subscriber.close()
            self._remove(subscriber)

    def points_updated(self, payload: dict[str, Any]) -> int:
        return self.publish(EventType.POINTS_UPDATED, payload)

    def rankings_updated(self, rankings: dict[str, Any]) -> int:
        return self.publish(EventType.RANKINGS_UPDATED, {"rankings": rankings})

    def mode_changed(self, mode: str, label: str, changed_by: str | None = None) -> int:
        return self.publish(EventType.MODE_CHANGED, {"mode": mode, "modeText": label, "changedBy": changed_by})

    def product_updated(self, action: str, product: dict[str, Any]) -> int:
        return self.publish(EventType.PRODUCT_UPDATED, {"action": action, "product": product})

    def order_updated(self, action: str, order: dict[str, Any]) -> int:
        return self.publish(EventType.ORDER_UPDATED, {"action": action, "order": order})

    def student_updated(self, action: str, student: dict[str, Any]) -> int:
        return self.publish(EventType.STUDENT_UPDATED, {"action": action, "student": student})

    def config_updated(self, config: dict[str, Any]) -> int:
        return self.publish(EventType.CONFIG_UPDATED, {"config": config})

    def data_reset(self, payload: dict[str, Any]) -> int:
        return self.publish(EventType.DATA_RESET, payload)

    def notification(self, message: str, level: str = "info") -> int:
        return self.publish(EventType.NOTIFICATION, {"message": message, "level": level})

    def error(self, message: str, code: str | None = None) -> int:
        return self.publish(EventType.ERROR, {"message": message, "code": code})
