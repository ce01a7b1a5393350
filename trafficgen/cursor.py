# trafficgen/cursor.py
from __future__ import annotations
import threading
from contextlib import contextmanager


class ReadWriteLock:
    """
    Many readers or one writer.
    Waiting writers block new readers, so a busy sampler cannot starve the workers.
    """
    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class SharedCursor:
    """The URL most recently picked up by any worker."""

    def __init__(self, initial: str = ""):
        self._lock = ReadWriteLock()
        self._value = initial

    def set(self, url: str) -> None:
        with self._lock.write_locked():
            self._value = url

    def get(self) -> str:
        with self._lock.read_locked():
            return self._value
