# src/objslots/core/rwlock.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from objslots.core.errors import LockReentryError


class RWLock:
    """Writer-preferring reader-writer lock.

    - shared mode is reentrant per thread, so a slot may emit again on the
      same emitter while the outer emit still holds the lock
    - a thread holding shared mode that asks for exclusive mode gets
      LockReentryError instead of deadlocking on itself
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers: Dict[int, int] = {}  # thread ident -> depth
        self._writer: Optional[int] = None
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if me in self._readers:
                self._readers[me] += 1
                return
            if self._writer == me:
                raise LockReentryError("shared lock requested while holding the exclusive lock")
            while self._writer is not None or self._writers_waiting:
                self._cond.wait()
            self._readers[me] = 1

    def release_read(self) -> None:
        me = threading.get_ident()
        with self._cond:
            depth = self._readers.get(me)
            if not depth:
                raise RuntimeError("release_read() without matching acquire_read()")
            if depth == 1:
                del self._readers[me]
                if not self._readers:
                    self._cond.notify_all()
            else:
                self._readers[me] = depth - 1

    def acquire_write(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if me in self._readers:
                raise LockReentryError(
                    "bind/unbind from inside a slot of the same thread-safe emitter would deadlock"
                )
            if self._writer == me:
                raise LockReentryError("exclusive lock is not reentrant")
            self._writers_waiting += 1
            try:
                while self._writer is not None or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = me

    def release_write(self) -> None:
        with self._cond:
            if self._writer != threading.get_ident():
                raise RuntimeError("release_write() from a thread that does not own the lock")
            self._writer = None
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class NullLock:
    """Stand-in used when the emitter class is not thread-safe."""

    @contextmanager
    def read(self) -> Iterator[None]:
        yield

    @contextmanager
    def write(self) -> Iterator[None]:
        yield
