"""
Inverted index and query engine package.

- tokenizer: path-segment terms
- builder: record stream -> immutable Index
- models: the Index itself
- stats: IDF and BM25 helpers
- engine: overlap-ratio and BM25 scoring
- store: atomic publish / snapshot access for concurrent queries
"""

from archive_search.search.builder import IndexBuilder, build_index
from archive_search.search.engine import BM25Scorer, OverlapScorer, QueryEngine, create_scorer
from archive_search.search.errors import (
    ArchiveError,
    ArchiveSearchError,
    ConcurrentRebuildRejected,
    QueryError,
    RecordDecodeError,
    SnapshotError,
    SourceReadError,
)
from archive_search.search.models import Index
from archive_search.search.store import IndexStore


__all__ = [
    "ArchiveError",
    "ArchiveSearchError",
    "BM25Scorer",
    "ConcurrentRebuildRejected",
    "Index",
    "IndexBuilder",
    "IndexStore",
    "OverlapScorer",
    "QueryEngine",
    "QueryError",
    "RecordDecodeError",
    "SnapshotError",
    "SourceReadError",
    "build_index",
    "create_scorer",
]
