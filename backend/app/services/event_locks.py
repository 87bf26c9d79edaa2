"""Per-event serialization of pending-set mutations.

Every "mutate pending set -> re-rank -> commit" sequence for an event runs
under ``event_lock``. The in-process mutex orders workers inside this process;
the ``FOR UPDATE`` row lock on the event orders processes sharing the same
PostgreSQL database (SQLite ignores it and serializes writers on its own).
Different events never contend.
"""
import contextlib
import logging
import threading
import weakref
from typing import Iterator

from sqlalchemy.orm import Session

from app.exceptions import NotFound
from app.models.event import Event

logger = logging.getLogger(__name__)


class _EventMutex:
    """Weak-referenceable holder; entries disappear once no worker holds them."""

    __slots__ = ("mutex", "__weakref__")

    def __init__(self) -> None:
        self.mutex = threading.Lock()


_registry_guard = threading.Lock()
_registry: "weakref.WeakValueDictionary[str, _EventMutex]" = weakref.WeakValueDictionary()


def _mutex_for(event_id: str) -> _EventMutex:
    with _registry_guard:
        holder = _registry.get(event_id)
        if holder is None:
            holder = _EventMutex()
            _registry[event_id] = holder
        return holder


@contextlib.contextmanager
def event_lock(db: Session, event_id: str) -> Iterator[Event]:
    """Hold the event's lock for the rest of the caller's transaction.

    Yields the locked ``Event`` row; raises ``NotFound`` for unknown events.
    The caller must commit or roll back before leaving the block.
    """
    holder = _mutex_for(str(event_id))
    with holder.mutex:
        event = (
            db.query(Event)
            .filter(Event.event_id == str(event_id))
            .with_for_update()
            .first()
        )
        if event is None:
            raise NotFound("Event", event_id)
        logger.debug("Locked event %s", event_id)
        yield event
