"""Index data structures."""

from __future__ import annotations

from array import array
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from uuid import uuid4


_EMPTY_POSTINGS = array("I")


@dataclass(frozen=True, slots=True)
class Index:
    """Immutable inverted index over archive listings.

    ``postings`` maps a term to the ordinals of the documents containing it,
    in ingestion order and without duplicates. ``frequencies`` is parallel to
    ``postings`` and holds how often the term occurs in each of those
    documents. ``names`` maps an ordinal back to its document id.

    Arrays handed out by the accessors belong to the index and must not be
    mutated by callers.
    """

    postings: Mapping[str, array]
    frequencies: Mapping[str, array]
    idf: Mapping[str, float]
    names: tuple[str, ...]
    doc_lengths: array
    generation: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def empty(cls) -> Index:
        return cls(
            postings=MappingProxyType({}),
            frequencies=MappingProxyType({}),
            idf=MappingProxyType({}),
            names=(),
            doc_lengths=array("I"),
        )

    @property
    def num_docs(self) -> int:
        return len(self.names)

    @property
    def term_count(self) -> int:
        return len(self.postings)

    @property
    def pair_count(self) -> int:
        """Number of (term, document) pairs across all posting lists."""
        return sum(len(ordinals) for ordinals in self.postings.values())

    def terms(self) -> Sequence[str]:
        return tuple(self.postings)

    def has_term(self, term: str) -> bool:
        return term in self.postings

    def get_postings(self, term: str) -> array:
        return self.postings.get(term, _EMPTY_POSTINGS)

    def get_frequencies(self, term: str) -> array:
        return self.frequencies.get(term, _EMPTY_POSTINGS)

    def get_idf(self, term: str) -> float | None:
        return self.idf.get(term)

    def document_name(self, ordinal: int) -> str:
        return self.names[ordinal]

    def document_length(self, ordinal: int) -> int:
        return self.doc_lengths[ordinal]
