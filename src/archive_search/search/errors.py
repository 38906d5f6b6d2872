"""Error taxonomy for index builds, queries and their collaborators.

Build-time errors abort only the build in progress; whatever index was
published before keeps serving. Query-time errors go back to the caller and
never touch the shared index.
"""

from __future__ import annotations


class ArchiveSearchError(Exception):
    """Base class for every error raised by archive-search."""


class SourceReadError(ArchiveSearchError, OSError):
    """Raised when the record source cannot be opened or read."""


class RecordDecodeError(ArchiveSearchError, ValueError):
    """Raised when a single record cannot be decoded.

    ``record`` locates the offending record (a line number for JSONL sources,
    a document id for duplicate ids) so operators can fix the input.
    """

    def __init__(self, record: str | int, detail: str) -> None:
        self.record = record
        self.detail = detail
        super().__init__(f"Record {record}: {detail}")


class QueryError(ArchiveSearchError, ValueError):
    """Raised when a query cannot be represented against the index."""


class ConcurrentRebuildRejected(ArchiveSearchError, RuntimeError):
    """Raised when a rebuild is requested while another one is running."""


class SnapshotError(ArchiveSearchError):
    """Raised when a persisted snapshot cannot be written or decoded."""


class ArchiveError(ArchiveSearchError):
    """Raised when an archive cannot be listed."""
