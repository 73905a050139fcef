"""Row change notifications for committed transactions.

Inserted, updated and deleted ORM rows are collected on flush and handed to
subscribers once the transaction commits. A rollback throws them away, so
subscribers never see a write that did not persist.

Bulk ``update()`` / ``delete()`` statements bypass the unit of work and are
not reported; write through ORM objects when a change must be observed.
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger("app.realtime")

EventType = Literal["INSERT", "UPDATE", "DELETE"]

_PENDING_KEY = "realtime_pending"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    type: EventType
    id: str
    row: dict[str, Any] = field(default_factory=dict)


Listener = Callable[[ChangeEvent], None]


def _row_snapshot(obj: Any) -> dict[str, Any]:
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


class ChangeFeed:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, table: str, listener: Listener) -> Callable[[], None]:
        """Register for INSERT/UPDATE/DELETE on ``table``. Returns an unsubscribe callable."""
        with self._lock:
            self._listeners[table].append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners[table]:
                    self._listeners[table].remove(listener)

        return unsubscribe

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            listeners = list(self._listeners.get(change.table, ()))
        for listener in listeners:
            try:
                listener(change)
            except Exception:
                # the write is already committed; one bad listener must not hide it from the rest
                logger.exception("listener failed table=%s type=%s id=%s", change.table, change.type, change.id)

    # ---- session hooks ----
    def _after_flush(self, session: Session, flush_context) -> None:
        pending: list[ChangeEvent] = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            pending.append(ChangeEvent(obj.__tablename__, "INSERT", obj.id, _row_snapshot(obj)))
        for obj in session.dirty:
            if session.is_modified(obj, include_collections=False):
                pending.append(ChangeEvent(obj.__tablename__, "UPDATE", obj.id, _row_snapshot(obj)))
        for obj in session.deleted:
            pending.append(ChangeEvent(obj.__tablename__, "DELETE", obj.id))

    def _after_commit(self, session: Session) -> None:
        pending = session.info.pop(_PENDING_KEY, [])
        for change in pending:
            self.publish(change)

    def _after_rollback(self, session: Session) -> None:
        session.info.pop(_PENDING_KEY, None)

    def install(self, session_factory) -> None:
        """Attach the hooks to a ``sessionmaker`` so every session it creates reports changes."""
        event.listen(session_factory, "after_flush", self._after_flush)
        event.listen(session_factory, "after_commit", self._after_commit)
        event.listen(session_factory, "after_rollback", self._after_rollback)


feed = ChangeFeed()
