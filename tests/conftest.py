"""Shared test fixtures and configuration."""

from collections.abc import Callable, Iterable
import os
from pathlib import Path

import orjson
import pytest

from archive_search.domain.search import ArchiveRecord


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Drop ARCHIVE_SEARCH_* variables and run each test from an empty directory."""
    for key in list(os.environ):
        if key.upper().startswith("ARCHIVE_SEARCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def example_records() -> list[ArchiveRecord]:
    """The two-archive corpus used throughout the docs."""
    return [
        ArchiveRecord(name="a", files=["x/y", "x/z"]),
        ArchiveRecord(name="b", files=["x/y"]),
    ]


@pytest.fixture
def sample_records() -> list[ArchiveRecord]:
    return [
        ArchiveRecord(name="lombok-1.18.zip", files=["lombok/AUTHORS", "lombok/README.md", "lombok/src/Main.java"]),
        ArchiveRecord(name="guava-33.zip", files=["guava/README.md", "guava/src/Main.java", "guava/src/Lists.java"]),
        ArchiveRecord(name="slf4j-2.0.zip", files=["slf4j/LICENSE.txt", "slf4j/api/Logger.java"]),
        ArchiveRecord(name="junit-5.zip", files=["junit/README.md", "junit/AUTHORS"]),
    ]


@pytest.fixture
def write_jsonl(tmp_path) -> Callable[..., Path]:
    """Write records (models or raw dicts/strings) to a JSONL file and return its path."""

    def _write(records: Iterable[ArchiveRecord | dict | str], name: str = "records.jsonl") -> Path:
        path = tmp_path / name
        lines = []
        for record in records:
            if isinstance(record, str):
                lines.append(record)
            elif isinstance(record, ArchiveRecord):
                lines.append(orjson.dumps(record.model_dump()).decode("utf-8"))
            else:
                lines.append(orjson.dumps(record).decode("utf-8"))
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
