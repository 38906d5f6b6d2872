"""Line-delimited JSON record source.

Each non-blank line holds one archive listing::

    {"name": "<archive id>", "files": ["dir/file.txt", ...]}
"""

from __future__ import annotations

from collections.abc import Iterator
import logging
from pathlib import Path

import orjson
from pydantic import ValidationError

from archive_search.domain.search import ArchiveRecord
from archive_search.search.errors import RecordDecodeError, SourceReadError


logger = logging.getLogger(__name__)


def decode_record(line: bytes | str, line_number: int) -> ArchiveRecord:
    """Decode one JSONL line, naming the line in any error."""
    try:
        payload = orjson.loads(line)
    except orjson.JSONDecodeError as exc:
        raise RecordDecodeError(line_number, f"invalid JSON: {exc}") from exc

    try:
        return ArchiveRecord.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "record"
        raise RecordDecodeError(line_number, f"{location}: {first.get('msg', 'invalid value')}") from exc


class JsonlRecordSource:
    """Iterate :class:`ArchiveRecord` values from a JSONL file in file order."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"JsonlRecordSource({str(self.path)!r})"

    def __iter__(self) -> Iterator[ArchiveRecord]:
        try:
            handle = self.path.open("rb")
        except OSError as exc:
            raise SourceReadError(f"Cannot open record source {self.path}: {exc}") from exc

        with handle:
            line_number = 0
            while True:
                try:
                    line = handle.readline()
                except OSError as exc:
                    raise SourceReadError(
                        f"Cannot read record source {self.path} after line {line_number}: {exc}"
                    ) from exc
                if not line:
                    break
                line_number += 1
                if not line.strip():
                    continue
                yield decode_record(line, line_number)

        logger.debug("Read %d lines from %s", line_number, self.path)
