"""Unit tests for IndexStore publish/snapshot semantics under concurrency."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import threading

from prometheus_client import REGISTRY
import pytest

from archive_search.domain.search import ArchiveRecord, SearchQuery
from archive_search.search.builder import build_index
from archive_search.search.engine import QueryEngine
from archive_search.search.errors import ConcurrentRebuildRejected, RecordDecodeError
from archive_search.search.models import Index
from archive_search.search.store import IndexStore


@pytest.fixture
def old_index(example_records) -> Index:
    return build_index(example_records)


@pytest.fixture
def new_index() -> Index:
    return build_index([ArchiveRecord(name="c", files=["x/z/w"])])


def test_store_starts_with_empty_generation() -> None:
    store = IndexStore()

    assert store.current().num_docs == 0
    assert store.generations_published == 0
    assert store.search(SearchQuery(terms=["x"])).total == 0


def test_store_accepts_initial_index(old_index) -> None:
    store = IndexStore(old_index)

    assert store.current() is old_index
    assert store.generations_published == 1


def test_publish_swaps_generation_and_returns_previous(old_index, new_index) -> None:
    store = IndexStore(old_index)

    previous = store.publish(new_index)

    assert previous is old_index
    assert store.current() is new_index
    assert store.generations_published == 2


def test_snapshot_acquired_before_publish_is_unaffected(old_index, new_index) -> None:
    store = IndexStore(old_index)
    engine = QueryEngine()
    query = SearchQuery(terms=["x", "z"])

    snapshot = store.current()
    before = engine.search(snapshot, query)
    store.publish(new_index)
    after_swap = engine.search(snapshot, query)

    assert after_swap == before
    assert [m.document_id for m in store.search(query).matches] == ["c"]


def test_query_in_flight_keeps_old_snapshot(old_index, new_index) -> None:
    """A publish during a running query does not change that query's result."""
    scorer_entered = threading.Event()
    release_scorer = threading.Event()

    class BlockingScorer:
        name = "blocking"

        def score(self, index, terms):
            scorer_entered.set()
            assert release_scorer.wait(timeout=5)
            return {ordinal: 1.0 for ordinal in range(index.num_docs)}

    store = IndexStore(old_index, engine=QueryEngine(BlockingScorer()))

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(store.search, SearchQuery(terms=["x"]))
        assert scorer_entered.wait(timeout=5)
        store.publish(new_index)
        release_scorer.set()
        result = future.result(timeout=5)

    assert [m.document_id for m in result.matches] == ["a", "b"]


def test_rebuild_publishes_result(old_index, new_index) -> None:
    store = IndexStore(old_index)

    published = store.rebuild(lambda: new_index)

    assert published is new_index
    assert store.current() is new_index
    assert not store.rebuilding


def test_failed_rebuild_keeps_current_generation(old_index) -> None:
    store = IndexStore(old_index)

    def failing_build() -> Index:
        raise RecordDecodeError(3, "invalid JSON")

    with pytest.raises(RecordDecodeError):
        store.rebuild(failing_build)

    assert store.current() is old_index
    assert not store.rebuilding


def test_concurrent_rebuild_is_rejected(old_index, new_index) -> None:
    store = IndexStore(old_index)
    build_started = threading.Event()
    finish_build = threading.Event()

    def slow_build() -> Index:
        build_started.set()
        assert finish_build.wait(timeout=5)
        return new_index

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(store.rebuild, slow_build)
        assert build_started.wait(timeout=5)
        assert store.rebuilding

        with pytest.raises(ConcurrentRebuildRejected):
            store.rebuild(lambda: old_index)

        finish_build.set()
        assert future.result(timeout=5) is new_index

    assert store.current() is new_index


def test_many_readers_during_publishes(old_index, new_index) -> None:
    store = IndexStore(old_index)
    query = SearchQuery(terms=["x", "z"])
    valid_results = {
        tuple(m.document_id for m in QueryEngine().search(index, query).matches) for index in (old_index, new_index)
    }
    stop = threading.Event()

    def publisher() -> None:
        flip = True
        while not stop.is_set():
            store.publish(new_index if flip else old_index)
            flip = not flip

    def reader() -> tuple[str, ...]:
        return tuple(m.document_id for m in store.search(query).matches)

    writer = threading.Thread(target=publisher)
    writer.start()
    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: reader(), range(200)))
    finally:
        stop.set()
        writer.join(timeout=5)

    assert set(results) <= valid_results


@pytest.mark.asyncio
async def test_rebuild_async_runs_off_the_event_loop(old_index, new_index) -> None:
    store = IndexStore(old_index)
    caller_thread = threading.get_ident()
    build_threads: list[int] = []

    def build() -> Index:
        build_threads.append(threading.get_ident())
        return new_index

    published = await store.rebuild_async(build)

    assert published is new_index
    assert store.current() is new_index
    assert build_threads and build_threads[0] != caller_thread


def test_document_gauge_tracks_last_published_generation(old_index, new_index) -> None:
    store = IndexStore(old_index, name="gauge-race")

    def publish_many(index: Index) -> None:
        for _ in range(200):
            store.publish(index)

    threads = [threading.Thread(target=publish_many, args=(index,)) for index in (old_index, new_index) * 2]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    gauge = REGISTRY.get_sample_value("archive_search_index_documents", {"store": "gauge-race"})
    assert gauge == store.current().num_docs
