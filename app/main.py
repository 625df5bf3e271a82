"""Entry point for the FastAPI-powered media proxy."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.routing import APIRoute

from .config import Settings, get_settings
from .database import PlaybackStore
from .services.backends import build_adapter
from .services.media import MediaService
from .utils import coerce_int

logger = logging.getLogger(__name__)

IMAGE_CACHE_CONTROL = "public, max-age=3600"


def _lifespan_for(settings: Settings):
    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        exit_stack = AsyncExitStack()
        timeout = httpx.Timeout(settings.timeout_seconds)
        upstream_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(timeout=timeout)
        )
        image_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        )
        adapter = build_adapter(
            settings,
            upstream_client,
            playback_store=PlaybackStore(settings.playback_db_path),
        )
        fastapi_app.state.media_service = MediaService(settings, adapter, image_client)
        logger.info(
            "media proxy ready (backend=%s, configured=%s, timeout=%sms)",
            adapter.name,
            adapter.configured,
            settings.timeout_ms,
        )

        try:
            yield
        finally:  # pragma: no cover - teardown path exercised at runtime
            await exit_stack.aclose()

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Public-safe view of personal media server activity",
        version="1.0.0",
        lifespan=_lifespan_for(settings),
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @fastapi_app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.debug(
            "%s %s host=%s referer=%s",
            request.method,
            request.url.path,
            request.headers.get("host"),
            request.headers.get("referer") or "none",
        )
        return await call_next(request)

    register_routes(fastapi_app, settings)
    return fastapi_app


def get_media_service(app: FastAPI) -> MediaService:
    service = getattr(app.state, "media_service", None)
    if not isinstance(service, MediaService):
        raise RuntimeError("Media service not initialised")
    return service


def register_routes(fastapi_app: FastAPI, settings: Settings) -> None:
    prefix = settings.public_prefix

    @fastapi_app.get("/")
    async def root() -> dict[str, str]:
        return {
            "message": f"API server running. Use {prefix}/* routes to access endpoints."
        }

    @fastapi_app.get("/health")
    async def healthcheck() -> dict[str, bool]:
        return {"ok": True}

    @fastapi_app.get(f"{prefix}/health")
    async def media_health() -> dict[str, Any]:
        return get_media_service(fastapi_app).health()

    @fastapi_app.get(f"{prefix}/img")
    async def image_proxy(u: str | None = None, auth: str | None = None) -> Response:
        if not u:
            return JSONResponse({"error": "missing u"}, status_code=400)
        service = get_media_service(fastapi_app)
        try:
            image = await service.fetch_image(u, auth)
        except Exception:  # pragma: no cover - defensive logging branch
            logger.exception("Image proxy failed")
            image = None
        if image is None:
            return RedirectResponse(settings.placeholder_image, status_code=302)
        return Response(
            content=image.content,
            media_type=image.content_type,
            headers={"Cache-Control": IMAGE_CACHE_CONTROL},
        )

    @fastapi_app.get(f"{prefix}/recently-watched")
    async def recently_watched(limit: str | None = None) -> dict[str, Any]:
        service = get_media_service(fastapi_app)
        return await service.recently_watched(coerce_int(limit))

    @fastapi_app.get(f"{prefix}/recently-added")
    async def recently_added(limit: str | None = None) -> dict[str, Any]:
        service = get_media_service(fastapi_app)
        return await service.recently_added(coerce_int(limit))

    @fastapi_app.get(f"{prefix}/activity/weekly")
    async def weekly_activity() -> dict[str, Any]:
        return await get_media_service(fastapi_app).weekly_activity()

    @fastapi_app.get(f"{prefix}/activity/monthly")
    async def monthly_activity() -> dict[str, Any]:
        return await get_media_service(fastapi_app).monthly_activity()

    @fastapi_app.get(f"{prefix}/activity/daily")
    async def daily_activity(days: str | None = None) -> dict[str, Any]:
        service = get_media_service(fastapi_app)
        return await service.daily_activity(coerce_int(days))

    @fastapi_app.get(f"{prefix}/debug/server-info")
    async def server_info() -> dict[str, Any]:
        return await get_media_service(fastapi_app).server_info()

    @fastapi_app.get("/debug-routes")
    async def debug_routes() -> dict[str, list[dict[str, str]]]:
        routes = [
            {"path": route.path, "methods": ",".join(sorted(route.methods))}
            for route in fastapi_app.routes
            if isinstance(route, APIRoute)
        ]
        return {"routes": routes}


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    runtime_settings = get_settings()
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=runtime_settings.server_host,
        port=runtime_settings.server_port,
        reload=runtime_settings.environment == "development",
    )
