"""Path-segment tokenizer.

The matching unit is a raw path component: no lowercasing, no stemming and
no stopwords. Empty segments produced by leading, trailing or doubled
slashes are real terms.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator


PATH_SEPARATOR = "/"


def tokenize_path(path: str) -> list[str]:
    """Return the ``/``-delimited segments of ``path`` in order."""
    return path.split(PATH_SEPARATOR)


def iter_document_terms(paths: Iterable[str]) -> Iterator[str]:
    """Yield every segment of every path, duplicates included."""
    for path in paths:
        yield from tokenize_path(path)
