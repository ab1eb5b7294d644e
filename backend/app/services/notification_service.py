"""
Change notification bridge.

Row-level mutation events (INSERT/UPDATE/DELETE) are collected by the record
store while a transaction is open and dispatched here after commit. Two kinds
of observers receive them:

  - in-process subscribers registered with `change_feed.subscribe(table, ...)`
    (optionally narrowed by a predicate over the event);
  - other processes, through Redis pub/sub on `<CHANGE_CHANNEL_PREFIX>:<table>`.

Delivery is best-effort. A subscriber that raises is logged and skipped, and a
Redis outage only costs remote observers a refresh. Nothing in the lifecycle
coordinator depends on delivery order or latency.
"""

import asyncio
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.metrics import change_events, redis_publish_errors, subscriber_errors
from app.infrastructure.redis_client import get_redis

logger = get_logger(__name__)

PENDING_CHANGES_KEY = "pending_changes"

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    operation: str
    record_id: Optional[int]
    changes: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)


ChangeHandler = Callable[[ChangeEvent], None]
ChangePredicate = Callable[[ChangeEvent], bool]


@dataclass(eq=False)
class Subscription:
    table: str
    handler: ChangeHandler
    predicate: Optional[ChangePredicate] = None
    feed: Optional["ChangeFeed"] = None

    def matches(self, change: ChangeEvent) -> bool:
        if self.table != "*" and self.table != change.table:
            return False
        return self.predicate is None or self.predicate(change)

    def unsubscribe(self) -> None:
        if self.feed is not None:
            self.feed.unsubscribe(self)


class ChangeFeed:
    """In-process fan-out of committed change events."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        predicate: Optional[ChangePredicate] = None,
    ) -> Subscription:
        """Register `handler` for events on `table` ("*" for every table)."""
        subscription = Subscription(table=table, handler=handler, predicate=predicate, feed=self)
        self._subscriptions.append(subscription)
        logger.debug("change_subscription_added", table=table)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def clear(self) -> None:
        self._subscriptions.clear()

    def dispatch(self, changes: List[ChangeEvent]) -> None:
        for change in changes:
            change_events.labels(table=change.table, operation=change.operation).inc()
            for subscription in list(self._subscriptions):
                try:
                    if subscription.matches(change):
                        subscription.handler(change)
                except Exception as e:
                    subscriber_errors.inc()
                    logger.error(
                        "change_subscriber_failed",
                        table=change.table,
                        operation=change.operation,
                        record_id=change.record_id,
                        error=str(e),
                    )
        _schedule_redis_publish(changes)


change_feed = ChangeFeed()

# Strong references to in-flight publishes; the event loop only keeps weak ones
_publish_tasks: Set[asyncio.Task] = set()


def _schedule_redis_publish(changes: List[ChangeEvent]) -> None:
    if not changes or not get_settings().REDIS_ENABLED:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # Committed from synchronous code (migrations, scripts): no remote fan-out
        return
    task = loop.create_task(publish_to_redis(changes))
    _publish_tasks.add(task)
    task.add_done_callback(_publish_tasks.discard)


async def publish_to_redis(changes: List[ChangeEvent]) -> None:
    """Fire-and-forget publication of committed changes to Redis pub/sub."""
    client = await get_redis()
    if not client:
        return

    prefix = get_settings().CHANGE_CHANNEL_PREFIX
    for change in changes:
        channel = f"{prefix}:{change.table}"
        try:
            await client.publish(channel, change.to_json())
        except Exception as e:
            redis_publish_errors.inc()
            logger.error("change_publish_failed", channel=channel, error=str(e))
