"""In-process change feed: subscribers receive row events for a table after the write commits"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed insert, update or delete; `row` is the new row, or the removed row for deletes"""

    table: str
    type: str
    row: Dict[str, Any]


@dataclass
class _Subscription:
    table: str
    callback: Callable[[ChangeEvent], None]
    filter: Dict[str, Any]

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return all(event.row.get(key) == value for key, value in self.filter.items())


class ChangeFeed:
    """
    Fan-out of committed row changes to subscribers.

    There is no ordering guarantee relative to a client's own reads; consumers
    should re-fetch or reconcile last-write-wins.
    """

    def __init__(self) -> None:
        self._subscriptions: List[_Subscription] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        filter: Optional[Dict[str, Any]] = None,
    ) -> Callable[[], None]:
        """Register a callback for events on `table` whose row matches every `filter` column. Returns an unsubscribe function."""
        subscription = _Subscription(table=table, callback=callback, filter=dict(filter or {}))
        with self._lock:
            self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            with self._lock:
                if subscription in self._subscriptions:
                    self._subscriptions.remove(subscription)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]
        for subscription in targets:
            try:
                subscription.callback(event)
            except Exception:
                # The write is already committed; one bad subscriber must not hide it from the rest
                logger.exception("Change subscriber failed", extra={"table": event.table, "event_type": event.type})


change_feed = ChangeFeed()
