"""Page registry for Forge.

The registry pairs the url -> PageInfo mapping with the Collections derived
from it. Both are replaced together under the exclusive side of a read/write
lock, so a reader holding the shared side sees either the complete old pair
or the complete new pair.

Key classes:
- ReadWriteLock: Writer-preferring shared/exclusive lock.
- SiteSnapshot: Immutable pages + collections pair.
- PageRegistry: Holds the current snapshot and swaps it atomically.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from types import MappingProxyType

from .collections import Collections
from .content import ERROR_PAGE_URL, PageInfo


class ReadWriteLock:
    """Shared/exclusive lock.

    Any number of readers may hold the lock together; a writer holds it
    alone. Waiting writers block new readers so a stream of requests cannot
    starve a rebuild.
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


@dataclass(frozen=True)
class SiteSnapshot:
    """One consistent generation of pages and collections."""

    pages: Mapping[str, PageInfo] = field(default_factory=lambda: MappingProxyType({}))
    collections: Collections = field(default_factory=Collections)

    @property
    def error_page(self) -> PageInfo | None:
        return self.pages.get(ERROR_PAGE_URL)

    def collection_pages(self, name: str) -> list[PageInfo]:
        return self.collections.resolve(name, self.pages)


class PageRegistry:
    """Single-writer, multi-reader holder of the current SiteSnapshot."""

    def __init__(self):
        self.lock = ReadWriteLock()
        self._snapshot = SiteSnapshot()
        self.generation = 0

    def replace(self, pages: Mapping[str, PageInfo], collections: Collections) -> SiteSnapshot:
        """Swap in a new pages/collections pair under the exclusive lock."""
        snapshot = SiteSnapshot(MappingProxyType(dict(pages)), collections)
        with self.lock.write():
            self._snapshot = snapshot
            self.generation += 1
        return snapshot

    def snapshot(self) -> SiteSnapshot:
        with self.lock.read():
            return self._snapshot

    @contextmanager
    def reading(self) -> Iterator[SiteSnapshot]:
        """Hold the shared lock for the duration of the block."""
        with self.lock.read():
            yield self._snapshot

    def get(self, url: str) -> PageInfo | None:
        with self.lock.read():
            return self._snapshot.pages.get(url)

    def __len__(self) -> int:
        with self.lock.read():
            return len(self._snapshot.pages)
