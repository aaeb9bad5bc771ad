import threading
import time
from pathlib import Path

import pytest

from forge.collections import Collections
from forge.content import PageInfo
from forge.registry import PageRegistry, ReadWriteLock


def generation(n):
    pages = {
        f"/blog/{i}": PageInfo(Path(f"content/blog/{i}.md"), f"/blog/{i}", "blog")
        for i in range(n)
    }
    return pages, Collections({"blog": tuple(pages)})


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("condition not reached")
        time.sleep(0.001)


def test_replace_swaps_pages_and_collections_together():
    registry = PageRegistry()
    assert len(registry) == 0
    old = registry.replace(*generation(2))
    new = registry.replace(*generation(3))

    assert registry.generation == 2
    assert len(registry) == 3
    assert registry.snapshot() is new
    # An older snapshot is never mutated by later swaps.
    assert len(old.pages) == 2
    assert len(old.collection_pages("blog")) == 2
    assert registry.get("/blog/2").url == "/blog/2"
    assert registry.get("/nope") is None


def test_snapshot_pages_are_read_only():
    registry = PageRegistry()
    snapshot = registry.replace(*generation(1))
    with pytest.raises(TypeError):
        snapshot.pages["/x"] = None


def test_error_page_lookup():
    registry = PageRegistry()
    page = PageInfo(Path("content/pages/404.md"), "/404", "pages")
    snapshot = registry.replace({"/404": page}, Collections())
    assert snapshot.error_page is page


def test_readers_see_consistent_generations_during_rebuilds():
    registry = PageRegistry()
    registry.replace(*generation(1))
    stop = threading.Event()
    errors = []

    def reader():
        while not stop.is_set():
            with registry.reading() as snapshot:
                pages = snapshot.pages
                members = snapshot.collection_pages("blog")
                if len(members) != len(pages):
                    errors.append((len(pages), len(members)))

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for thread in readers:
        thread.start()
    for n in range(2, 60):
        registry.replace(*generation(n))
    stop.set()
    for thread in readers:
        thread.join(timeout=5)

    assert errors == []
    assert len(registry) == 59


def test_write_waits_for_active_readers():
    lock = ReadWriteLock()
    lock.acquire_read()
    acquired = threading.Event()

    def writer():
        with lock.write():
            acquired.set()

    thread = threading.Thread(target=writer)
    thread.start()
    assert not acquired.wait(0.05)
    lock.release_read()
    assert acquired.wait(2)
    thread.join(timeout=2)


def test_waiting_writer_blocks_new_readers():
    lock = ReadWriteLock()
    lock.acquire_read()
    order = []

    def writer():
        with lock.write():
            order.append("write")

    def reader():
        with lock.read():
            order.append("read")

    writer_thread = threading.Thread(target=writer)
    writer_thread.start()
    wait_until(lambda: lock._writers_waiting == 1)

    reader_thread = threading.Thread(target=reader)
    reader_thread.start()
    time.sleep(0.05)
    assert order == []

    lock.release_read()
    writer_thread.join(timeout=2)
    reader_thread.join(timeout=2)
    assert order == ["write", "read"]
