import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from ..errors import StoreBusy


class ReadWriteLock:
    """Writer-preferring reader/writer lock with bounded waits.

    Readers share the lock; a writer holds it alone. Once a writer is waiting,
    new readers queue behind it so a steady stream of reads cannot starve
    mutations.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            ok = self._cond.wait_for(lambda: not self._writer and self._waiting_writers == 0, timeout)
            if not ok:
                return False
            self._readers += 1
            return True

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self, timeout: Optional[float] = None) -> bool:
        with self._cond:
            self._waiting_writers += 1
            try:
                ok = self._cond.wait_for(lambda: not self._writer and self._readers == 0, timeout)
            finally:
                self._waiting_writers -= 1
            if not ok:
                # readers parked behind this writer may proceed now
                self._cond.notify_all()
                return False
            self._writer = True
            return True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self, timeout: Optional[float], name: str = "collection") -> Iterator[None]:
        if not self.acquire_read(timeout):
            raise StoreBusy(f"Timed out waiting to read '{name}'")
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self, timeout: Optional[float], name: str = "collection") -> Iterator[None]:
        if not self.acquire_write(timeout):
            raise StoreBusy(f"Timed out waiting to write '{name}'")
        try:
            yield
        finally:
            self.release_write()
