"""Compact binary snapshots of a built index.

A snapshot lets a restarted process skip rebuilding from the record source.
Layout, before compression::

    <u32 header length> <orjson header> <packed uint32 arrays>

The header holds document names, terms and IDF weights; the arrays hold
per-document lengths followed by, for each term, its postings and
frequencies. The whole body is zlib-compressed behind a magic prefix.
Arrays are stored little-endian.
"""

from __future__ import annotations

from array import array
import contextlib
from datetime import datetime
import logging
import os
from pathlib import Path
import struct
import sys
from types import MappingProxyType
from typing import Any
import zlib

import orjson

from archive_search.search.errors import SnapshotError
from archive_search.search.models import Index


logger = logging.getLogger(__name__)

_MAGIC = b"ARCHIDX\x00"
_HEADER_LENGTH = struct.Struct("<I")
_ITEM_SIZE = array("I").itemsize
_COMPRESSION_LEVEL = 6


def _pack(values: array) -> bytes:
    if sys.byteorder == "big":
        values = array("I", values)
        values.byteswap()
    return values.tobytes()


def _unpack(buffer: memoryview, offset: int, count: int) -> tuple[array, int]:
    end = offset + count * _ITEM_SIZE
    if end > len(buffer):
        raise SnapshotError("Snapshot is truncated")
    values = array("I")
    values.frombytes(buffer[offset:end])
    if sys.byteorder == "big":
        values.byteswap()
    return values, end


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def encode_index(index: Index) -> bytes:
    """Serialize ``index`` to the snapshot byte format."""

    terms = list(index.postings)
    blob = bytearray(_pack(index.doc_lengths))
    posting_lengths: list[int] = []
    for term in terms:
        ordinals = index.get_postings(term)
        posting_lengths.append(len(ordinals))
        blob += _pack(ordinals)
        blob += _pack(index.get_frequencies(term))

    header: dict[str, Any] = {
        "generation": index.generation,
        "created_at": index.created_at.isoformat(),
        "names": list(index.names),
        "terms": terms,
        "idf": [index.idf[term] for term in terms],
        "posting_lengths": posting_lengths,
    }
    try:
        header_bytes = orjson.dumps(header)
    except TypeError as exc:
        raise SnapshotError(f"Index cannot be serialized: {exc}") from exc

    body = _HEADER_LENGTH.pack(len(header_bytes)) + header_bytes + bytes(blob)
    return _MAGIC + zlib.compress(body, _COMPRESSION_LEVEL)


def decode_index(data: bytes) -> Index:
    """Rebuild an :class:`Index` from bytes produced by :func:`encode_index`."""

    if not data.startswith(_MAGIC):
        raise SnapshotError("Not an archive-search snapshot")
    try:
        body = memoryview(zlib.decompress(data[len(_MAGIC) :]))
    except zlib.error as exc:
        raise SnapshotError(f"Snapshot payload is corrupt: {exc}") from exc

    if len(body) < _HEADER_LENGTH.size:
        raise SnapshotError("Snapshot is truncated")
    (header_length,) = _HEADER_LENGTH.unpack_from(body)
    offset = _HEADER_LENGTH.size + header_length
    try:
        header = orjson.loads(body[_HEADER_LENGTH.size : offset])
        names = tuple(header["names"])
        terms = header["terms"]
        idf_values = header["idf"]
        posting_lengths = header["posting_lengths"]
        created_at = datetime.fromisoformat(header["created_at"])
        generation = str(header["generation"])
    except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise SnapshotError(f"Snapshot header is corrupt: {exc}") from exc

    if not all(isinstance(item, list) for item in (terms, idf_values, posting_lengths)):
        raise SnapshotError("Snapshot header tables must be lists")
    if not (len(terms) == len(idf_values) == len(posting_lengths)):
        raise SnapshotError("Snapshot header term tables disagree in length")
    if not all(isinstance(name, str) for name in names) or not all(isinstance(term, str) for term in terms):
        raise SnapshotError("Snapshot names and terms must be strings")
    if not all(_is_count(count) for count in posting_lengths):
        raise SnapshotError("Snapshot posting lengths must be non-negative integers")
    if not all(_is_number(value) for value in idf_values):
        raise SnapshotError("Snapshot IDF values must be numbers")

    num_docs = len(names)
    doc_lengths, offset = _unpack(body, offset, num_docs)
    postings: dict[str, array] = {}
    frequencies: dict[str, array] = {}
    for term, count in zip(terms, posting_lengths, strict=True):
        ordinals, offset = _unpack(body, offset, count)
        if ordinals and max(ordinals) >= num_docs:
            raise SnapshotError(f"Snapshot postings for {term!r} reference unknown documents")
        postings[term] = ordinals
        frequencies[term], offset = _unpack(body, offset, count)

    if offset != len(body):
        raise SnapshotError("Snapshot has trailing bytes")

    return Index(
        postings=MappingProxyType(postings),
        frequencies=MappingProxyType(frequencies),
        idf=MappingProxyType(dict(zip(terms, (float(value) for value in idf_values), strict=True))),
        names=names,
        doc_lengths=doc_lengths,
        generation=generation,
        created_at=created_at,
    )


class SnapshotStore:
    """Save and load index snapshots at a fixed path."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, index: Index) -> Path:
        """Write ``index`` atomically (temp file + rename)."""
        payload = encode_index(index)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise SnapshotError(f"Cannot write snapshot {self.path}: {exc}") from exc

        logger.info("Saved snapshot of generation %s to %s (%d bytes)", index.generation, self.path, len(payload))
        return self.path

    def load(self) -> Index:
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            raise SnapshotError(f"Cannot read snapshot {self.path}: {exc}") from exc

        index = decode_index(data)
        logger.info(
            "Loaded snapshot generation %s from %s (%d docs, %d terms)",
            index.generation,
            self.path,
            index.num_docs,
            index.term_count,
        )
        return index
