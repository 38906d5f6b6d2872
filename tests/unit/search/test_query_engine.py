"""Unit tests for QueryEngine and its scorers."""

from __future__ import annotations

import pytest

from archive_search.domain.search import ArchiveRecord, SearchMatch, SearchQuery, SearchResult
from archive_search.search.builder import build_index
from archive_search.search.engine import BM25Scorer, OverlapScorer, QueryEngine, create_scorer
from archive_search.search.errors import QueryError


@pytest.fixture
def engine() -> QueryEngine:
    return QueryEngine()


def _ids(result: SearchResult) -> list[str]:
    return [match.document_id for match in result.matches]


def test_search_example_ranks_by_overlap_ratio(engine, example_records) -> None:
    index = build_index(example_records)

    result = engine.search(index, SearchQuery(terms=["x", "z"]))

    assert result == SearchResult(
        total=2,
        matches=[SearchMatch(document_id="a", score=1.0), SearchMatch(document_id="b", score=0.5)],
    )


def test_search_empty_terms_returns_empty_result(engine, example_records) -> None:
    index = build_index(example_records)

    result = engine.search(index, SearchQuery(terms=[]))

    assert result.total == 0
    assert result.matches == []


def test_search_unknown_terms_are_not_errors(engine, example_records) -> None:
    index = build_index(example_records)

    result = engine.search(index, SearchQuery(terms=["nope"]))

    assert result == SearchResult.empty()


def test_search_counts_repeated_query_terms(engine, example_records) -> None:
    index = build_index(example_records)

    result = engine.search(index, SearchQuery(terms=["z", "z", "y"]))

    assert [(m.document_id, m.score) for m in result.matches] == [("a", 1.0), ("b", pytest.approx(1 / 3))]


def test_search_ties_break_by_ingestion_order(engine, sample_records) -> None:
    index = build_index(sample_records)

    result = engine.search(index, SearchQuery(terms=["README.md"]))

    assert _ids(result) == ["lombok-1.18.zip", "guava-33.zip", "junit-5.zip"]
    assert {m.score for m in result.matches} == {1.0}


def test_search_is_idempotent(engine, sample_records) -> None:
    index = build_index(sample_records)
    query = SearchQuery(terms=["src", "README.md", "AUTHORS", "Main.java"])

    assert engine.search(index, query) == engine.search(index, query)


def test_search_min_score_filters_before_total(engine, sample_records) -> None:
    index = build_index(sample_records)

    result = engine.search(index, SearchQuery(terms=["README.md", "AUTHORS"], min_score=0.75))

    assert result.total == 2
    assert _ids(result) == ["lombok-1.18.zip", "junit-5.zip"]


def test_search_min_score_above_every_candidate(engine, sample_records) -> None:
    index = build_index(sample_records)

    result = engine.search(index, SearchQuery(terms=["README.md"], min_score=1.5))

    assert result.total == 0
    assert result.matches == []


def test_search_max_results_truncates_after_total(engine, sample_records) -> None:
    index = build_index(sample_records)

    result = engine.search(index, SearchQuery(terms=["README.md", "AUTHORS"], max_results=1))

    assert result.total == 3
    assert _ids(result) == ["lombok-1.18.zip"]


def test_search_max_results_zero(engine, sample_records) -> None:
    index = build_index(sample_records)

    result = engine.search(index, SearchQuery(terms=["README.md"], max_results=0))

    assert result.total == 3
    assert result.matches == []


def test_search_unmatched_extra_term_keeps_relative_rank(engine, sample_records) -> None:
    index = build_index(sample_records)
    base = engine.search(index, SearchQuery(terms=["README.md", "AUTHORS", "src"]))
    widened = engine.search(index, SearchQuery(terms=["README.md", "AUTHORS", "src", "absent"]))

    assert _ids(widened) == _ids(base)
    for before, after in zip(base.matches, widened.matches, strict=True):
        assert after.score < before.score


def test_search_rejects_unrepresentable_terms(engine, example_records) -> None:
    index = build_index(example_records)
    query = SearchQuery.model_construct(terms=["x", "\ud800"], min_score=0.0, max_results=None)

    with pytest.raises(QueryError):
        engine.search(index, query)


def test_search_rejects_non_string_terms(engine, example_records) -> None:
    index = build_index(example_records)
    query = SearchQuery.model_construct(terms=["x", 7], min_score=0.0, max_results=None)

    with pytest.raises(QueryError):
        engine.search(index, query)


@pytest.mark.parametrize(
    ("min_score", "max_results"),
    [(float("nan"), None), (float("inf"), None), (0.0, -1)],
)
def test_search_rejects_invalid_bounds(engine, example_records, min_score, max_results) -> None:
    index = build_index(example_records)
    query = SearchQuery(terms=["x"], min_score=min_score, max_results=max_results)

    with pytest.raises(QueryError):
        engine.search(index, query)


def test_search_none_min_score_means_no_filtering(engine, example_records) -> None:
    index = build_index(example_records)

    result = engine.search(index, SearchQuery(terms=["x", "z"], min_score=None))

    assert result.total == 2


def test_bm25_prefers_rare_terms_and_frequent_occurrences() -> None:
    index = build_index(
        [
            ArchiveRecord(name="common", files=["src/a", "src/b"]),
            ArchiveRecord(name="rare", files=["src/rare"]),
            ArchiveRecord(name="plain", files=["src/c"]),
        ]
    )
    engine = QueryEngine(BM25Scorer())

    rare = engine.search(index, SearchQuery(terms=["src", "rare"]))

    assert _ids(rare)[0] == "rare"
    assert rare.total == 3
    assert all(match.score > 0 for match in rare.matches)


def test_bm25_scores_are_deterministic(sample_records) -> None:
    index = build_index(sample_records)
    engine = QueryEngine(BM25Scorer(k1=1.5, b=0.5))
    query = SearchQuery(terms=["src", "Main.java"])

    assert engine.search(index, query) == engine.search(index, query)


def test_overlap_scorer_directly(example_records) -> None:
    index = build_index(example_records)

    assert OverlapScorer().score(index, ["x", "z"]) == {0: 1.0, 1: 0.5}


def test_create_scorer_by_name() -> None:
    assert isinstance(create_scorer("overlap"), OverlapScorer)
    bm25 = create_scorer("bm25", k1=2.0, b=0.3)
    assert isinstance(bm25, BM25Scorer)
    assert (bm25.k1, bm25.b) == (2.0, 0.3)
    with pytest.raises(ValueError):
        create_scorer("tfidf")
