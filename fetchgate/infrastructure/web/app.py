"""FastAPI application exposing the gateway over HTTP.

Routes:
    GET /api/result?roll=<key>  resolve one key (raw payload or JSON error)
    GET /healthz                liveness probe
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse, Response

from fetchgate.core.services.fetch_orchestrator import FetchOrchestrator
from fetchgate.domain.models.common import parse_resource_key
from fetchgate.domain.models.errors import EmptyResourceKeyError
from fetchgate.domain.models.fetch import FetchFailure
from fetchgate.infrastructure.cache.caching_service import ExpiringCache

logger = logging.getLogger(__name__)

CONTENT_TYPE_HTML = "text/html; charset=utf-8"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def create_app(
    orchestrator: FetchOrchestrator,
    cache: Optional[ExpiringCache] = None,
    sweep_interval: float = 0,
) -> FastAPI:
    """Builds the web application around an already wired orchestrator.

    Args:
        orchestrator: The resolve façade.
        cache: The orchestrator's cache, used to run the periodic sweeper.
        sweep_interval: Sweeper period in seconds; 0 disables it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if cache is not None:
            cache.start_sweeper(sweep_interval)
        logger.info("fetchgate web app started")
        try:
            yield
        finally:
            if cache is not None:
                await cache.stop_sweeper()
            await orchestrator.close()
            logger.info("fetchgate web app stopped")

    app = FastAPI(title="fetchgate", lifespan=lifespan)

    @app.get("/api/result")
    async def get_result(roll: Optional[str] = Query(default=None)) -> Response:
        try:
            key = parse_resource_key(roll)
        except EmptyResourceKeyError:
            return _error(400, "roll query param required")

        try:
            result = await orchestrator.resolve(key)
        except Exception as e:
            logger.error(f"Unexpected error resolving {key}: {e}", exc_info=True)
            return _error(500, "internal server error")

        if isinstance(result, FetchFailure):
            return _error(502, result.reason or "failed to fetch")

        headers = {"X-Cache": "HIT" if result.from_cache else "MISS"}
        if result.payload.served_by_fallback:
            headers["X-Fallback"] = "1"
        return Response(
            content=result.payload.body,
            status_code=200,
            media_type=CONTENT_TYPE_HTML,
            headers=headers,
        )

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"ok": True}

    return app
