"""Host source access: the narrow capability the orchestrator reads through."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional

from ..models import EnclosingFunction


class ReadWriteLock:
    """Shared-read / exclusive-write lock.

    Waiting writers block new readers so a steady stream of reads cannot
    starve a reload.  Not reentrant.
    """

    def __init__(self) -> None:
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
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class SourceDocument(ABC):
    """One source file as the host sees it.

    Callers must hold the owning workspace's read lock while calling
    :meth:`enclosing_function_at` or :meth:`text_range`.
    """

    path: str

    @property
    @abstractmethod
    def text(self) -> str: ...

    @abstractmethod
    def enclosing_function_at(self, offset: int) -> Optional[EnclosingFunction]:
        """Return the smallest named function containing *offset*, or None."""

    def text_range(self, start: int, end: int) -> str:
        return self.text[start:end]


class Workspace(ABC):
    """A set of source documents sharing one read/write lock."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()

    def lock_for_read(self):
        """Context manager holding the shared read lock."""
        return self._lock.read_locked()

    def lock_for_write(self):
        return self._lock.write_locked()

    @abstractmethod
    def find_document(self, path: str) -> SourceDocument:
        """Return the document for *path*.

        Raises FileNotFound if the path does not resolve, UnreadableFile if
        it cannot be read or parsed.  Must not be called with the read lock
        held: implementations may take the write lock to (re)load a file.
        """


class WorkspaceRegistry:
    """The workspaces currently open in the host; the first one is active."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._open: List[Workspace] = []

    def open(self, workspace: Workspace) -> None:
        with self._lock:
            if workspace not in self._open:
                self._open.append(workspace)

    def close(self, workspace: Workspace) -> None:
        with self._lock:
            if workspace in self._open:
                self._open.remove(workspace)

    def active(self) -> Optional[Workspace]:
        with self._lock:
            return self._open[0] if self._open else None
