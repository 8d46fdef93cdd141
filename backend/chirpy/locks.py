"""Reader/writer lock and the process-wide registry of one lock per data file."""

import os
import threading
from contextlib import contextmanager
from typing import Dict


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    Writers waiting for the lock keep new readers out, so a steady stream of
    reads cannot starve a write. The lock is not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self):
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


_registry_lock = threading.Lock()
# keyed by the resolved path of the data file
_locks: Dict[str, ReadWriteLock] = {}


def lock_for(path) -> ReadWriteLock:
    """Return the lock shared by every handle on the file at ``path``."""
    key = os.path.realpath(os.fspath(path))
    with _registry_lock:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = ReadWriteLock()
        return lock
