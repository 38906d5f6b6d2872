"""Query scoring over an immutable :class:`Index`.

The default score is the term-overlap ratio: the number of query terms a
document contains divided by the number of query terms, repeats included.
:class:`BM25Scorer` is an optional strategy that weights matches by IDF and
a saturating term-frequency curve instead.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
import heapq
import math
from typing import Protocol

from archive_search.domain.search import SearchMatch, SearchQuery, SearchResult
from archive_search.observability.metrics import SEARCH_LATENCY, track_latency
from archive_search.observability.tracing import create_span
from archive_search.search.errors import QueryError
from archive_search.search.models import Index
from archive_search.search.stats import bm25, compute_length_stats


class Scorer(Protocol):
    """Strategy mapping query terms to per-document scores."""

    name: str

    def score(self, index: Index, terms: Sequence[str]) -> dict[int, float]:  # pragma: no cover - interface
        ...


class OverlapScorer:
    """Score = matched query terms / query terms."""

    name = "overlap"

    def score(self, index: Index, terms: Sequence[str]) -> dict[int, float]:
        counts: dict[int, int] = defaultdict(int)
        for term in terms:
            for ordinal in index.get_postings(term):
                counts[ordinal] += 1

        denominator = len(terms)
        return {ordinal: count / denominator for ordinal, count in counts.items()}


class BM25Scorer:
    """Sum of ``IDF(term) * bm25(tf, doc_length)`` over matched query terms."""

    name = "bm25"

    def __init__(self, *, k1: float = 1.2, b: float = 0.75) -> None:
        self.k1 = k1
        self.b = b
        self._avg_length: tuple[str, float] | None = None

    def _average_length(self, index: Index) -> float:
        cached = self._avg_length
        if cached is not None and cached[0] == index.generation:
            return cached[1]
        average = compute_length_stats(index.doc_lengths).average_length
        self._avg_length = (index.generation, average)
        return average

    def score(self, index: Index, terms: Sequence[str]) -> dict[int, float]:
        doc_scores: dict[int, float] = defaultdict(float)
        avg_length = self._average_length(index)

        for term in terms:
            idf = index.get_idf(term)
            if idf is None:
                continue
            ordinals = index.get_postings(term)
            frequencies = index.get_frequencies(term)
            for ordinal, tf in zip(ordinals, frequencies, strict=True):
                weight = bm25(tf, index.document_length(ordinal), avg_length, k1=self.k1, b=self.b)
                doc_scores[ordinal] += idf * weight
        return dict(doc_scores)


def _validate_query(query: SearchQuery) -> tuple[list[str], float, int | None]:
    terms = list(query.terms)
    for position, term in enumerate(terms):
        if not isinstance(term, str):
            raise QueryError(f"Query term {position} is not a string")
        try:
            term.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise QueryError(f"Query term {position} is not representable: {exc.reason}") from exc

    min_score = 0.0 if query.min_score is None else float(query.min_score)
    if not math.isfinite(min_score):
        raise QueryError(f"min_score must be finite, got {min_score}")

    max_results = query.max_results
    if max_results is not None and max_results < 0:
        raise QueryError(f"max_results must be >= 0, got {max_results}")

    return terms, min_score, max_results


def _rank_key(item: tuple[int, float]) -> tuple[float, int]:
    ordinal, score = item
    return (-score, ordinal)


class QueryEngine:
    """Rank documents of an index against a :class:`SearchQuery`."""

    def __init__(self, scorer: Scorer | None = None) -> None:
        self.scorer = scorer or OverlapScorer()

    def search(self, index: Index, query: SearchQuery) -> SearchResult:
        """Return matches with ``score >= min_score``, best first.

        Ties are broken by document ordinal so identical queries against the
        same index always return the same order. ``total`` counts the
        filtered matches before ``max_results`` truncation.
        """

        terms, min_score, max_results = _validate_query(query)
        if not terms:
            return SearchResult.empty()

        with (
            create_span(
                "search.query",
                attributes={
                    "search.term_count": len(terms),
                    "search.scorer": self.scorer.name,
                    "search.index_generation": index.generation,
                },
            ) as span,
            track_latency(SEARCH_LATENCY, scorer=self.scorer.name),
        ):
            scores = self.scorer.score(index, terms)
            candidates = [(ordinal, score) for ordinal, score in scores.items() if score >= min_score]
            total = len(candidates)

            if max_results is not None and max_results < total:
                ranked = heapq.nsmallest(max_results, candidates, key=_rank_key)
            else:
                ranked = sorted(candidates, key=_rank_key)

            matches = [SearchMatch(document_id=index.document_name(ordinal), score=score) for ordinal, score in ranked]
            span.set_attribute("search.result_count", total)
            return SearchResult(total=total, matches=matches)


def create_scorer(name: str, *, k1: float = 1.2, b: float = 0.75) -> Scorer:
    """Return the scorer registered under ``name``."""
    if name == OverlapScorer.name:
        return OverlapScorer()
    if name == BM25Scorer.name:
        return BM25Scorer(k1=k1, b=b)
    raise ValueError(f"Unknown scorer: {name}")
