"""Statistical helpers for index weighting and optional BM25 scoring.

The functions here are independent of the index layout so builders, scorers
and snapshot loaders can share them and tests can pin their behavior.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class DocumentLengthStats:
    """Aggregated path-segment counts across the documents of an index."""

    total_terms: int
    document_count: int

    @property
    def average_length(self) -> float:
        if self.document_count == 0:
            return 0.0
        return self.total_terms / self.document_count


def compute_length_stats(doc_lengths: Iterable[int]) -> DocumentLengthStats:
    """Return aggregate stats for a sequence of per-document lengths."""

    total = 0
    count = 0
    for length in doc_lengths:
        total += max(length, 0)
        count += 1
    return DocumentLengthStats(total_terms=total, document_count=count)


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return ``ln((N - df + 0.5) / (df + 0.5) + 1)``.

    ``df`` is clamped into ``[0, N]`` first so malformed counts can never
    produce a negative weight or a log of a non-positive number.
    """

    total = max(total_docs, 0)
    df = max(0, min(doc_freq, total))
    return math.log((total - df + 0.5) / (df + 0.5) + 1.0)


def bm25(tf: int, doc_length: int, avg_doc_length: float, *, k1: float = 1.2, b: float = 0.75) -> float:
    """Compute the BM25 term weight without IDF."""

    if tf <= 0:
        return 0.0
    normalized_length = doc_length / max(avg_doc_length, 1e-9)
    denominator = tf + k1 * (1 - b + b * normalized_length)
    return (tf * (k1 + 1)) / denominator
