from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.concurrency import run_in_threadpool

from filegate.api.auth import router as auth_router
from filegate.api.files import router as files_router
from filegate.api.manage import router as manage_router
from filegate.api.status import router as status_router
from filegate.api.upload import router as upload_router
from filegate.config import Settings
from filegate.config import settings as default_settings
from filegate.errors import register_error_handlers
from filegate.logging import configure_logging
from filegate.observability import ObservabilityMiddleware
from filegate.services.delivery import DeliveryPipeline
from filegate.services.moderation import ModerateContentClient
from filegate.services.session_gate import SessionGate, is_public_path
from filegate.services.storage import StorageManager

logger = logging.getLogger(__name__)


def _unauthorized(request: Request) -> Response:
    path = request.url.path
    if path.startswith("/api/") or path.startswith("/upload"):
        return JSONResponse(
            status_code=401,
            content={"error": "Unauthorized", "message": "Please log in first"},
        )
    origin = f"{request.url.scheme}://{request.url.netloc}"
    return RedirectResponse(
        url=f"{origin}/login.html?redirect={quote(path, safe='')}", status_code=302
    )


def create_app(
    settings: Settings | None = None,
    storage: StorageManager | None = None,
    moderation: ModerateContentClient | None = None,
) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level, settings.log_json)

    if storage is None:
        storage = StorageManager.from_settings(settings)
    if moderation is None and settings.moderation_enabled:
        moderation = ModerateContentClient(
            settings.moderate_content_api_key,
            api_url=settings.moderation_api_url,
            timeout=settings.http_timeout_seconds,
        )

    app = FastAPI(title="filegate")
    app.state.settings = settings
    app.state.storage = storage
    app.state.session_gate = SessionGate(settings, storage.index)
    app.state.delivery = DeliveryPipeline(storage, settings, moderation=moderation)
    register_error_handlers(app)

    @app.middleware("http")
    async def session_gate_middleware(request: Request, call_next):
        request.state.auth = None
        if is_public_path(request.url.path):
            return await call_next(request)
        gate: SessionGate = request.app.state.session_gate
        result = await run_in_threadpool(gate.authenticate, request)
        if not result.authenticated:
            return _unauthorized(request)
        request.state.auth = result
        return await call_next(request)

    # Added last so it wraps the gate and every response carries a request id.
    app.add_middleware(ObservabilityMiddleware)

    app.include_router(auth_router)
    app.include_router(upload_router)
    app.include_router(manage_router)
    app.include_router(status_router)
    app.include_router(files_router)

    @app.on_event("startup")
    def _ensure_bucket():
        if storage.blob is None:
            return
        try:
            storage.blob.ensure_bucket()
        except Exception:
            logger.exception("Failed to ensure storage bucket during startup")

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        data = generate_latest()
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    logger.info(
        "app_configured auth=%s index=%s blob=%s use_r2=%s moderation=%s",
        settings.auth_required,
        storage.index is not None,
        storage.blob is not None,
        storage.use_r2,
        moderation is not None,
    )
    return app


app = create_app()
