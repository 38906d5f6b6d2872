"""Turn zip archives into archive listings."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import hashlib
import io
import logging
from pathlib import Path
import zipfile

from archive_search.domain.search import ArchiveRecord
from archive_search.search.errors import ArchiveError


logger = logging.getLogger(__name__)


def extract_archive_record(path: Path) -> ArchiveRecord:
    """List the files of a zip archive, named by the MD5 of its bytes.

    Directory entries are skipped; member paths are kept verbatim.
    """

    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ArchiveError(f"Cannot read archive {path}: {exc}") from exc

    digest = hashlib.md5(data, usedforsecurity=False).hexdigest()
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            files = [info.filename for info in archive.infolist() if not info.is_dir()]
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"{path} is not a zip archive: {exc}") from exc

    logger.debug("Extracted %d entries from %s (%s)", len(files), path, digest)
    return ArchiveRecord(name=digest, files=files)


def iter_archive_records(paths: Iterable[Path]) -> Iterator[ArchiveRecord]:
    for path in paths:
        yield extract_archive_record(path)
