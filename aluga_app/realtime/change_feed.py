import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect as sa_inspect

from core.event_publish import publish_event

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    action: str
    row: dict


Callback = Callable[[ChangeEvent], Optional[Awaitable[None]]]
Predicate = Callable[[dict], bool]


@dataclass(eq=False)
class Subscription:
    feed: "ChangeFeed"
    table: str
    callback: Callback
    predicate: Predicate | None = None
    active: bool = field(default=True)

    def matches(self, event: ChangeEvent) -> bool:
        return self.active and (self.predicate is None or self.predicate(event.row))

    def unsubscribe(self):
        self.active = False
        self.feed.remove(self)


def row_to_dict(obj: Any) -> dict:
    if isinstance(obj, dict):
        return jsonable_encoder(obj)
    mapper = sa_inspect(obj).mapper
    return jsonable_encoder(
        {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}
    )


class ChangeFeed:
    """In-process observer registry for row changes, mirrored to RabbitMQ."""

    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def subscribe(
        self, table: str, callback: Callback, predicate: Predicate | None = None
    ) -> Subscription:
        subscription = Subscription(self, table, callback, predicate)
        self._subscriptions[table].append(subscription)
        return subscription

    def remove(self, subscription: Subscription):
        subscriptions = self._subscriptions.get(subscription.table, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.table, None)

    def subscriber_count(self, table: str) -> int:
        return len(self._subscriptions.get(table, []))

    async def emit(self, table: str, action: str, row: Any) -> ChangeEvent:
        event = ChangeEvent(table=table, action=action, row=row_to_dict(row))

        for subscription in list(self._subscriptions.get(table, [])):
            try:
                if not subscription.matches(event):
                    continue
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Change subscriber failed on %s.%s", table, action)

        await publish_event(
            f"{table}.{action}",
            {"table": table, "action": action, "row": event.row},
        )
        return event


change_feed = ChangeFeed()
