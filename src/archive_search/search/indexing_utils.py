"""Shared helpers that wire record sources, snapshots and the index store."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from pathlib import Path
import time

from archive_search.config import Settings
from archive_search.domain.search import SearchQuery, SearchResult
from archive_search.search.builder import IndexBuilder
from archive_search.search.errors import SnapshotError
from archive_search.search.jsonl_source import JsonlRecordSource
from archive_search.search.models import Index
from archive_search.search.snapshot import SnapshotStore
from archive_search.search.store import IndexStore


logger = logging.getLogger(__name__)


def build_from_file(data_file: Path, limit: int | None = None) -> Index:
    """Build an index from a JSONL record file."""
    logger.info("Loading %s...", data_file)
    return IndexBuilder(source_label="jsonl").build(JsonlRecordSource(data_file), limit=limit)


def rebuild_index(settings: Settings) -> Index:
    """Build from the configured data file and refresh the snapshot if one is configured.

    A snapshot that cannot be written is logged; the freshly built index is
    still returned.
    """
    if settings.data_file is None:
        raise ValueError("No data file configured for rebuilds")
    index = build_from_file(settings.data_file, settings.record_limit)
    if settings.snapshot_path is not None:
        try:
            SnapshotStore(settings.snapshot_path).save(index)
        except SnapshotError as exc:
            logger.warning(
                "Keeping generation %s without a snapshot: %s",
                index.generation,
                exc,
                exc_info=True,
            )
    return index


def load_or_build(settings: Settings) -> Index | None:
    """Return the startup index: snapshot first, then the data file.

    An unreadable snapshot is logged and ignored when a data file can rebuild
    it. Returns ``None`` when neither source is configured.
    """

    if settings.snapshot_path is not None:
        snapshot = SnapshotStore(settings.snapshot_path)
        if snapshot.exists():
            try:
                return snapshot.load()
            except SnapshotError as exc:
                if settings.data_file is None:
                    raise
                logger.warning("Ignoring unusable snapshot %s: %s", settings.snapshot_path, exc)

    if settings.data_file is None:
        logger.warning("No data file or snapshot configured; serving an empty index")
        return None
    return rebuild_index(settings)


def run_warmup(store: IndexStore, terms: Sequence[str]) -> SearchResult | None:
    """Run one query against the published index and log how long it took."""
    if not terms:
        return None
    start = time.perf_counter()
    result = store.search(SearchQuery(terms=list(terms)))
    logger.info(
        "Warm-up search for %s found %d matches in %.4fs",
        ",".join(terms),
        result.total,
        time.perf_counter() - start,
    )
    return result
