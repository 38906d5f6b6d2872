"""Command-line entry point: serve, build, query and extract."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
import logging
from pathlib import Path
import sys
from typing import Any

import httpx
import orjson
from pydantic import ValidationError

from archive_search.client import DEFAULT_BASE_URL, DEFAULT_MAX_RESULTS, SearchClient
from archive_search.config import Settings
from archive_search.observability import configure_logging, init_metrics, init_tracing
from archive_search.search.errors import ArchiveSearchError
from archive_search.search.indexing_utils import build_from_file
from archive_search.search.snapshot import SnapshotStore
from archive_search.utils.archive_extractor import iter_archive_records


logger = logging.getLogger(__name__)


def _non_negative_int(value: str) -> int:
    parsed = int(value, 10)
    if parsed < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {value}")
    return parsed


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archive-search",
        description="Index archive listings and rank archives by the path segments they contain",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Build (or load) the index and serve it over HTTP")
    serve.add_argument("data_file", type=Path, nargs="?", help="JSONL file of archive listings")
    serve.add_argument("limit", type=_non_negative_int, nargs="?", help="Index at most this many records")
    serve.add_argument("--snapshot", type=Path, help="Snapshot to load at startup and refresh after builds")
    serve.add_argument("--host", help="Bind host")
    serve.add_argument("--port", type=int, help="Bind port")
    serve.add_argument("--scoring", choices=["overlap", "bm25"], help="Scoring strategy")

    build = subparsers.add_parser("build", help="Build the index once and report its size")
    build.add_argument("data_file", type=Path, help="JSONL file of archive listings")
    build.add_argument("--limit", type=_non_negative_int, help="Index at most this many records")
    build.add_argument("--snapshot", type=Path, help="Write a binary snapshot to this path")

    query = subparsers.add_parser("query", help="Query a running server and print matching archive ids")
    query.add_argument("terms", nargs="+", help="Path segments to search for")
    query.add_argument("--url", default=DEFAULT_BASE_URL, help=f"Server base URL (default: {DEFAULT_BASE_URL})")
    query.add_argument("--min-score", type=float, default=0.0, help="Drop matches scoring below this")
    query.add_argument(
        "--max-results",
        type=_non_negative_int,
        default=DEFAULT_MAX_RESULTS,
        help=f"Maximum matches to print (default: {DEFAULT_MAX_RESULTS})",
    )
    query.add_argument("--scores", action="store_true", help="Print scores next to archive ids")

    extract = subparsers.add_parser("extract", help="Print one JSONL record per zip archive")
    extract.add_argument("archives", nargs="+", type=Path, help="Zip archives to list")

    return parser


def _settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for attr, field in (
        ("data_file", "data_file"),
        ("limit", "record_limit"),
        ("snapshot", "snapshot_path"),
        ("host", "host"),
        ("port", "port"),
        ("scoring", "scoring"),
    ):
        value = getattr(args, attr, None)
        if value is not None:
            overrides[field] = value
    return overrides


def _run_serve(settings: Settings) -> int:
    import uvicorn

    from archive_search.app import create_app

    init_metrics(service_name="archive-search")
    init_tracing(service_name="archive-search")

    logger.info("Starting archive-search on %s:%d", settings.host, settings.port)
    logger.info("Health check: http://%s:%d/health", settings.host, settings.port)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        log_config=None,
        limit_concurrency=settings.uvicorn_limit_concurrency,
    )
    return 0


def _run_build(args: argparse.Namespace) -> int:
    index = build_from_file(args.data_file, args.limit)
    summary = {
        "generation": index.generation,
        "documents": index.num_docs,
        "terms": index.term_count,
        "pairs": index.pair_count,
    }
    if args.snapshot is not None:
        summary["snapshot"] = str(SnapshotStore(args.snapshot).save(index))
    sys.stdout.write(orjson.dumps(summary).decode("utf-8") + "\n")
    return 0


def _run_query(args: argparse.Namespace) -> int:
    with SearchClient(args.url) as client:
        result = client.search(args.terms, min_score=args.min_score, max_results=args.max_results)
    for match in result.matches:
        if args.scores:
            sys.stdout.write(f"{match.document_id}\t{match.score:.4f}\n")
        else:
            sys.stdout.write(f"{match.document_id}\n")
    return 0


def _run_extract(args: argparse.Namespace) -> int:
    for record in iter_archive_records(args.archives):
        sys.stdout.write(orjson.dumps(record.model_dump()).decode("utf-8") + "\n")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings(**_settings_overrides(args))
    except ValidationError as exc:
        parser.error(str(exc))

    # stdout carries command output for everything except the server
    log_stream = sys.stdout if args.command == "serve" else sys.stderr
    configure_logging(settings.log_level, json_output=settings.json_logs, stream=log_stream)

    try:
        if args.command == "serve":
            return _run_serve(settings)
        if args.command == "build":
            return _run_build(args)
        if args.command == "query":
            return _run_query(args)
        return _run_extract(args)
    except ArchiveSearchError as exc:
        logger.error("%s", exc)
        return 1
    except httpx.HTTPError as exc:
        logger.error("Search request failed: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
