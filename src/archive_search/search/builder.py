"""Build immutable inverted indexes from archive listings.

The builder consumes a finite stream of records, assigns dense ordinals in
first-seen order and produces an :class:`~archive_search.search.models.Index`.
It never touches a previously published index: a failing build simply
raises and leaves nothing behind.
"""

from __future__ import annotations

from array import array
from collections.abc import Iterable, Sequence
from itertools import islice
import logging
import time
from types import MappingProxyType

from archive_search.domain.search import ArchiveRecord
from archive_search.observability.metrics import BUILD_LATENCY, track_latency
from archive_search.search.errors import RecordDecodeError
from archive_search.search.models import Index
from archive_search.search.stats import calculate_idf
from archive_search.search.tokenizer import iter_document_terms


logger = logging.getLogger(__name__)

RecordLike = ArchiveRecord | tuple[str, Sequence[str]]


def _unpack(record: RecordLike, ordinal: int) -> tuple[str, Sequence[str]]:
    if isinstance(record, ArchiveRecord):
        return record.name, record.files

    try:
        name, files = record
    except (TypeError, ValueError) as exc:
        raise RecordDecodeError(ordinal, f"expected (name, files) pair, got {type(record).__name__}") from exc

    if not isinstance(name, str):
        raise RecordDecodeError(ordinal, "document id must be a string")
    if not isinstance(files, (list, tuple)) or not all(isinstance(path, str) for path in files):
        raise RecordDecodeError(name, "files must be a list of strings")
    return name, files


class IndexBuilder:
    """Turn a record stream into a new :class:`Index` generation."""

    def __init__(self, *, source_label: str = "records") -> None:
        self.source_label = source_label

    def build(self, records: Iterable[RecordLike], limit: int | None = None) -> Index:
        """Index ``records``, stopping after ``limit`` records when given.

        Errors raised while iterating ``records`` (``SourceReadError``,
        ``RecordDecodeError``) propagate unchanged. Reaching ``limit`` is a
        normal end of input.
        """

        if limit is not None and limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")

        start = time.perf_counter()
        postings: dict[str, array] = {}
        frequencies: dict[str, array] = {}
        names: list[str] = []
        seen_names: set[str] = set()
        doc_lengths = array("I")

        with track_latency(BUILD_LATENCY, source=self.source_label):
            for record in islice(records, limit):
                ordinal = len(names)
                name, files = _unpack(record, ordinal)
                if name in seen_names:
                    raise RecordDecodeError(name, "duplicate document id")

                # Each distinct term of a document is posted once.
                term_counts: dict[str, int] = {}
                for term in iter_document_terms(files):
                    term_counts[term] = term_counts.get(term, 0) + 1

                for term, count in term_counts.items():
                    ordinals = postings.get(term)
                    if ordinals is None:
                        ordinals = postings[term] = array("I")
                        frequencies[term] = array("I")
                    ordinals.append(ordinal)
                    frequencies[term].append(count)

                names.append(name)
                seen_names.add(name)
                doc_lengths.append(sum(term_counts.values()))

            num_docs = len(names)
            idf = {term: calculate_idf(len(ordinals), num_docs) for term, ordinals in postings.items()}

        index = Index(
            postings=MappingProxyType(postings),
            frequencies=MappingProxyType(frequencies),
            idf=MappingProxyType(idf),
            names=tuple(names),
            doc_lengths=doc_lengths,
        )
        logger.info(
            "Loaded data for %d docs, %d terms, %d term-docid pairs in %.2fs",
            index.num_docs,
            index.term_count,
            index.pair_count,
            time.perf_counter() - start,
        )
        return index


def build_index(records: Iterable[RecordLike], limit: int | None = None) -> Index:
    """Build an index with a default :class:`IndexBuilder`."""
    return IndexBuilder().build(records, limit=limit)
