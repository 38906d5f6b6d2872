"""Concurrency-safe holder for the published index generation.

Readers call :meth:`IndexStore.current` and keep the returned ``Index`` for
the duration of one query. Publishing swaps a single reference under the
writer lock, so a reader sees either the old or the new generation in full
and an in-flight query keeps its snapshot alive until it finishes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
import threading

from archive_search.domain.search import SearchQuery, SearchResult
from archive_search.observability.metrics import INDEX_DOC_COUNT, REBUILD_COUNT
from archive_search.search.engine import QueryEngine
from archive_search.search.errors import ConcurrentRebuildRejected
from archive_search.search.models import Index


logger = logging.getLogger(__name__)


class IndexStore:
    """Hold exactly one current :class:`Index` generation."""

    def __init__(
        self,
        index: Index | None = None,
        *,
        engine: QueryEngine | None = None,
        name: str = "default",
    ) -> None:
        self.name = name
        self.engine = engine or QueryEngine()
        self._current = index if index is not None else Index.empty()
        self._publish_lock = threading.Lock()
        self._build_lock = threading.Lock()
        self._generations = 0 if index is None else 1
        INDEX_DOC_COUNT.labels(store=self.name).set(self._current.num_docs)

    @property
    def generations_published(self) -> int:
        return self._generations

    @property
    def rebuilding(self) -> bool:
        return self._build_lock.locked()

    def current(self) -> Index:
        """Return the published snapshot; it stays valid across later publishes."""
        return self._current

    def publish(self, index: Index) -> Index:
        """Install ``index`` as the current generation and return the previous one."""
        with self._publish_lock:
            previous = self._current
            self._current = index
            self._generations += 1
            INDEX_DOC_COUNT.labels(store=self.name).set(index.num_docs)
        logger.info(
            "Published index generation %s (%d docs, %d terms), replacing %s",
            index.generation,
            index.num_docs,
            index.term_count,
            previous.generation,
        )
        return previous

    def rebuild(self, build: Callable[[], Index]) -> Index:
        """Run ``build`` and publish its result.

        Only one rebuild runs at a time; a concurrent request raises
        :class:`ConcurrentRebuildRejected` immediately. If ``build`` raises,
        the current generation stays published.
        """

        if not self._build_lock.acquire(blocking=False):
            REBUILD_COUNT.labels(outcome="rejected").inc()
            raise ConcurrentRebuildRejected(f"A rebuild of index store '{self.name}' is already in progress")
        try:
            try:
                index = build()
            except Exception:
                REBUILD_COUNT.labels(outcome="failed").inc()
                logger.warning(
                    "Rebuild of index store '%s' failed; keeping generation %s",
                    self.name,
                    self._current.generation,
                )
                raise
            self.publish(index)
            REBUILD_COUNT.labels(outcome="published").inc()
            return index
        finally:
            self._build_lock.release()

    async def rebuild_async(self, build: Callable[[], Index]) -> Index:
        """Run :meth:`rebuild` on a worker thread."""
        return await asyncio.to_thread(self.rebuild, build)

    def search(self, query: SearchQuery) -> SearchResult:
        """Answer ``query`` against the snapshot current at call time."""
        return self.engine.search(self.current(), query)
