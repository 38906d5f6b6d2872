"""HTTP client for a running archive-search server."""

from __future__ import annotations

from collections.abc import Sequence
import logging

import httpx

from archive_search.domain.search import SearchQuery, SearchResult


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8000"
DEFAULT_MAX_RESULTS = 1000


class SearchClient:
    """Post queries to ``/search`` and decode the ranked result."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def __enter__(self) -> SearchClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def search(
        self,
        terms: Sequence[str],
        *,
        min_score: float = 0.0,
        max_results: int | None = DEFAULT_MAX_RESULTS,
    ) -> SearchResult:
        """Run a query; raises ``httpx.HTTPStatusError`` on a non-2xx reply."""
        query = SearchQuery(terms=list(terms), min_score=min_score, max_results=max_results)
        response = self._client.post("/search", json=query.model_dump())
        response.raise_for_status()
        return SearchResult.model_validate(response.json())

    def health(self) -> dict:
        response = self._client.get("/health")
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self._client.close()
