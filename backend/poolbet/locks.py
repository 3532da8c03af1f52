"""Per-event mutual exclusion.

Pricing a wager reads the pool and then writes to it; settlement reads every
wager and then rewrites them. Both hold the event's lock so two workers never
act on the same pool snapshot. Row locks (SELECT ... FOR UPDATE) are taken as
well, but SQLite ignores them, so the in-process lock is what guarantees
ordering there.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class EventLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, event_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(event_id)
            if lock is None:
                lock = self._locks[event_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, event_id: str) -> Iterator[None]:
        with self.get(event_id):
            yield

    def discard(self, event_id: str) -> None:
        """Forget the lock of an event that can no longer change.

        Only call this for resolved or cancelled events. A caller that fetched
        the lock before it was dropped still holds the old one, so two
        callers can end up on different locks; that is harmless only because
        every mutation re-checks for a terminal status and rejects it.
        """
        with self._guard:
            lock = self._locks.get(event_id)
            if lock is not None and not lock.locked():
                del self._locks[event_id]


event_locks = EventLocks()
