"""Realtime change feed.

Change events are invalidation hints: they tell subscribers that a table
changed so they can re-query. Nothing relies on receiving them, so a failed
publish or a failing listener is logged and never breaks the write that
produced it.
"""

import asyncio
import inspect
import json
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from app.config import settings
from app.core.redis_client import create_async_redis_client

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """A row-level change on a table."""

    table: str
    event: str
    record_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_json(self) -> str:
        """Serialize the event for the wire."""
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, raw: str) -> "ChangeEvent":
        """Parse an event published by another worker."""
        return cls(**json.loads(raw))


ChangeListener = Callable[[ChangeEvent], Awaitable[None] | None]


class ChangeFeed:
    """In-process change feed with per-table listeners."""

    def __init__(self) -> None:
        """Initialize with no listeners."""
        self._listeners: dict[str, list[ChangeListener]] = defaultdict(list)

    def subscribe(self, table: str, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a listener for changes on a table.

        Args:
            table: Table name, e.g. ``appointments``
            listener: Sync or async callable receiving each ChangeEvent

        Returns:
            Callable that removes the listener again
        """
        self._listeners[table].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(table, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def listener_count(self, table: str) -> int:
        """Number of listeners currently registered for a table."""
        return len(self._listeners.get(table, []))

    async def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every local listener of its table."""
        await self._notify_local(event)

    async def start(self) -> None:
        """Start background work (nothing to do in-process)."""

    async def close(self) -> None:
        """Drop all listeners."""
        self._listeners.clear()

    async def _notify_local(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners.get(event.table, [])):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(
                    "change_listener_failed",
                    table=event.table,
                    change=event.event,
                    error=str(e),
                )


class RedisChangeFeed(ChangeFeed):
    """Change feed fanned out through Redis pub/sub.

    Every worker publishes to ``{prefix}:{table}`` and relays whatever arrives
    on ``{prefix}:*`` to its own local listeners, so a browser connected to
    one worker sees writes made through another.
    """

    def __init__(
        self,
        client: aioredis.Redis,
        channel_prefix: str,
        retry_seconds: float = 1.0,
    ) -> None:
        """Initialize with an asyncio Redis client and channel prefix.

        ``retry_seconds`` is the pause before resubscribing after the
        pub/sub connection fails.
        """
        super().__init__()
        self._client = client
        self._prefix = channel_prefix
        self._retry_seconds = retry_seconds
        self._pubsub: Any = None
        self._relay_task: asyncio.Task | None = None

    def channel_for(self, table: str) -> str:
        """Redis channel carrying changes of a table."""
        return f"{self._prefix}:{table}"

    async def start(self) -> None:
        """Subscribe to all table channels and start relaying."""
        self._pubsub = self._client.pubsub()
        await self._pubsub.psubscribe(f"{self._prefix}:*")
        self._relay_task = asyncio.create_task(self._relay())
        logger.info("change_feed_started", prefix=self._prefix)

    async def publish(self, event: ChangeEvent) -> None:
        """Publish to Redis; fall back to local delivery if Redis is down."""
        try:
            await self._client.publish(self.channel_for(event.table), event.to_json())
        except RedisError as e:
            logger.warning("change_publish_failed", table=event.table, error=str(e))
            await self._notify_local(event)

    async def close(self) -> None:
        """Stop relaying and release the Redis connection."""
        if self._relay_task is not None:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass
            self._relay_task = None

        if self._pubsub is not None:
            await self._pubsub.aclose()
            self._pubsub = None

        await self._client.aclose()
        await super().close()

    async def _relay(self) -> None:
        pattern = f"{self._prefix}:*"
        while True:
            try:
                await self._listen()
                return
            except RedisError as e:
                logger.error("change_relay_failed", prefix=self._prefix, error=str(e))

            await asyncio.sleep(self._retry_seconds)
            try:
                await self._pubsub.psubscribe(pattern)
            except RedisError as e:
                logger.warning("change_resubscribe_failed", prefix=self._prefix, error=str(e))
            else:
                logger.info("change_feed_resubscribed", prefix=self._prefix)

    async def _listen(self) -> None:
        async for message in self._pubsub.listen():
            if message.get("type") != "pmessage":
                continue
            try:
                event = ChangeEvent.from_json(message["data"])
            except (TypeError, ValueError) as e:
                logger.warning("change_event_malformed", error=str(e))
                continue
            await self._notify_local(event)


# Global change feed instance
_change_feed: ChangeFeed | None = None


def get_change_feed() -> ChangeFeed:
    """
    Get or create the process-wide change feed.

    Returns:
        RedisChangeFeed when REALTIME_BACKEND is ``redis``, else ChangeFeed
    """
    global _change_feed

    if _change_feed is None:
        if settings.realtime_backend.lower() == "redis":
            _change_feed = RedisChangeFeed(
                create_async_redis_client(),
                settings.realtime_channel_prefix,
            )
        else:
            _change_feed = ChangeFeed()

    return _change_feed


async def close_change_feed() -> None:
    """Close the process-wide change feed."""
    global _change_feed

    if _change_feed is not None:
        await _change_feed.close()
        _change_feed = None
