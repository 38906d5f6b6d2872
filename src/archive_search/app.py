"""ASGI application serving searches over the published index.

Routes:
    GET  /           greeting
    POST /search     {"terms": [...], "min_score": 0.0, "max_results": 10}
    POST /rebuild    rebuild from the configured data file and publish
    GET  /health     current generation summary
    GET  /metrics    Prometheus exposition
    /dashboard       static files, when the directory exists

Usage:
    archive-search serve data.jsonl [LIMIT]
"""

import asyncio
from contextlib import asynccontextmanager
from functools import partial
import logging

from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from archive_search.config import Settings
from archive_search.domain.search import SearchQuery
from archive_search.observability import (
    SEARCH_REQUESTS,
    TraceContextMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from archive_search.search.engine import QueryEngine, create_scorer
from archive_search.search.errors import (
    ConcurrentRebuildRejected,
    QueryError,
    RecordDecodeError,
    SnapshotError,
    SourceReadError,
)
from archive_search.search.indexing_utils import load_or_build, rebuild_index, run_warmup
from archive_search.search.store import IndexStore


logger = logging.getLogger(__name__)


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def _format_validation_errors(exc: ValidationError) -> list[str]:
    details = []
    for error in exc.errors(include_url=False):
        location = ".".join(str(part) for part in error.get("loc", ())) or "body"
        details.append(f"{location}: {error.get('msg', 'invalid value')}")
    return details


def create_store(settings: Settings) -> IndexStore:
    """Create an empty store whose engine uses the configured scorer."""
    scorer = create_scorer(settings.scoring, k1=settings.bm25_k1, b=settings.bm25_b)
    return IndexStore(engine=QueryEngine(scorer))


def create_app(settings: Settings | None = None, *, store: IndexStore | None = None) -> Starlette:
    """Create the ASGI application.

    Args:
        settings: Configuration; read from the environment when omitted
        store: Pre-populated store. When it already holds a published
            generation, startup skips loading from the snapshot or data file.

    Returns:
        Starlette application
    """
    settings = settings or Settings()
    store = store or create_store(settings)
    preloaded = store.generations_published > 0

    @asynccontextmanager
    async def lifespan(app: Starlette):
        """Publish the startup index and warm it up before serving traffic."""
        app.state.settings = settings
        app.state.store = store

        if not preloaded:
            index = await asyncio.to_thread(load_or_build, settings)
            if index is not None:
                store.publish(index)

        await asyncio.to_thread(run_warmup, store, settings.get_warmup_terms())
        yield
        logger.info("Shutting down; last generation %s", store.current().generation)

    async def index(request: Request) -> JSONResponse:
        return JSONResponse({"message": "Hello, welcome to our server!"})

    async def search(request: Request) -> JSONResponse:
        body = await request.body()
        try:
            query = SearchQuery.model_validate_json(body)
        except ValidationError as exc:
            SEARCH_REQUESTS.labels(status="invalid").inc()
            return JSONResponse(
                {"error": "Invalid search request", "detail": _format_validation_errors(exc)},
                status_code=400,
            )

        try:
            result = await asyncio.to_thread(store.search, query)
        except QueryError as exc:
            SEARCH_REQUESTS.labels(status="invalid").inc()
            return JSONResponse({"error": str(exc)}, status_code=400)

        SEARCH_REQUESTS.labels(status="ok").inc()
        return JSONResponse(result.to_wire())

    async def rebuild(request: Request) -> JSONResponse:
        """Rebuild from the configured data file; the old index serves until the swap."""
        if settings.data_file is None:
            return JSONResponse({"error": "No data file configured for rebuilds"}, status_code=503)

        try:
            new_index = await store.rebuild_async(partial(rebuild_index, settings))
        except ConcurrentRebuildRejected as exc:
            return JSONResponse({"error": str(exc)}, status_code=409)
        except (SourceReadError, RecordDecodeError, SnapshotError) as exc:
            logger.error("Rebuild failed: %s", exc)
            return JSONResponse(
                {"error": str(exc), "generation": store.current().generation},
                status_code=500,
            )

        return JSONResponse(
            {
                "generation": new_index.generation,
                "documents": new_index.num_docs,
                "terms": new_index.term_count,
            }
        )

    async def health(request: Request) -> JSONResponse:
        current = store.current()
        return JSONResponse(
            {
                "status": "healthy" if current.num_docs else "empty",
                "generation": current.generation,
                "created_at": current.created_at.isoformat(),
                "documents": current.num_docs,
                "terms": current.term_count,
                "scorer": store.engine.scorer.name,
                "rebuilding": store.rebuilding,
            }
        )

    async def metrics(request: Request) -> Response:
        return Response(get_metrics(), media_type=get_metrics_content_type())

    routes: list[Route | Mount] = [
        Route("/", endpoint=index, methods=["GET"]),
        Route("/search", endpoint=search, methods=["POST"]),
        Route("/rebuild", endpoint=rebuild, methods=["POST"]),
        Route("/health", endpoint=health, methods=["GET"]),
        Route("/metrics", endpoint=metrics, methods=["GET"]),
    ]
    if settings.dashboard_dir.is_dir():
        routes.append(Mount("/dashboard", app=StaticFiles(directory=settings.dashboard_dir, html=True)))
        logger.info("Serving dashboard from %s", settings.dashboard_dir)

    return Starlette(
        debug=settings.log_level == "debug",
        routes=routes,
        middleware=[Middleware(TraceContextMiddleware)],
        exception_handlers={Exception: _unhandled_error},
        lifespan=lifespan,
    )
