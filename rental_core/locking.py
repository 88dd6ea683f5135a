"""Per-collection write exclusion with first-come-first-served hand-off."""

from __future__ import annotations

import threading
from collections import deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator, Optional


class FairLock:
    """A non-reentrant mutex that grants ownership strictly in arrival order.

    ``threading.Lock`` makes no ordering promise, so waiters queue on their own
    event and ``release`` hands ownership straight to the oldest one.
    """

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._waiters: Deque[threading.Event] = deque()
        self._locked = False
        self._owner: Optional[int] = None

    def acquire(self) -> None:
        me = threading.get_ident()
        with self._mutex:
            if self._locked and self._owner == me:
                raise RuntimeError("FairLock is not reentrant; the current thread already holds it")
            if not self._locked and not self._waiters:
                self._locked = True
                self._owner = me
                return
            turn = threading.Event()
            self._waiters.append(turn)
        turn.wait()
        with self._mutex:
            self._owner = me

    def release(self) -> None:
        with self._mutex:
            if not self._locked:
                raise RuntimeError("release() called on an unlocked FairLock")
            self._owner = None
            if self._waiters:
                # Ownership passes directly; the lock never looks free in between.
                self._waiters.popleft().set()
            else:
                self._locked = False

    def locked(self) -> bool:
        with self._mutex:
            return self._locked

    def held_by_current_thread(self) -> bool:
        with self._mutex:
            return self._locked and self._owner == threading.get_ident()

    def queue_length(self) -> int:
        with self._mutex:
            return len(self._waiters)

    def __enter__(self) -> "FairLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class WriteSerializer:
    """Hands out one FairLock per collection name, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, FairLock] = {}

    def lock_for(self, name: str) -> FairLock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = FairLock()
            return lock

    @contextmanager
    def exclusive(self, name: str) -> Iterator[None]:
        lock = self.lock_for(name)
        if lock.held_by_current_thread():
            raise RuntimeError(f"Nested exclusive write on {name!r} from the same thread")
        with lock:
            yield

    def is_held(self, name: str) -> bool:
        return self.lock_for(name).locked()
