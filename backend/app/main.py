from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.app.api.library_routes import router as library_router
from backend.app.api.routes import error_response
from backend.app.api.routes import router as youtube_router
from backend.app.config import cors_origins
from backend.app.dependencies import get_notification_service, get_settings, get_telemetry
from backend.app.logging_config import configure_application_logging
from backend.app.services.library_service import (
    ForcedSubscriptionError,
    LibraryError,
    PlaylistNotFoundError,
)
from backend.app.services.scheduler_service import SchedulerService
from backend.app.telemetry import elapsed_ms

LOGGER = logging.getLogger("tube_clone.api")


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_application_logging(settings)
    scheduler: SchedulerService | None = None

    if settings.notifications_poll_enabled:
        scheduler = SchedulerService(
            get_notification_service(),
            settings.notifications_poll_interval_seconds,
            telemetry=get_telemetry(),
            lock_path=settings.data_dir / "scheduler.lock",
        )
        scheduler.start()

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


async def _library_error_handler(_: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, PlaylistNotFoundError):
        return error_response(404, str(exc))
    if isinstance(exc, ForcedSubscriptionError):
        return error_response(409, str(exc))
    LOGGER.error("library request failed error=%s", exc)
    return error_response(500, str(exc))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.exception(
        "unhandled request error method=%s path=%s error=%s",
        request.method,
        request.url.path,
        exc,
    )
    return error_response(500, str(exc) or type(exc).__name__)


async def _validation_error_handler(_: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    messages: list[str] = []
    for error in errors:
        location = ".".join(
            str(part) for part in error.get("loc", ()) if part not in {"query", "body", "path"}
        )
        message = str(error.get("msg", "invalid value"))
        messages.append(f"{location}: {message}" if location else message)
    return error_response(400, "; ".join(messages) or "Invalid request")


def create_app() -> FastAPI:
    app = FastAPI(title="Tube Clone API", version="0.1.0", lifespan=app_lifespan)
    settings = get_settings()

    async def request_context_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        telemetry = get_telemetry()
        incoming_request_id = request.headers.get("X-Request-ID")
        request_id = (
            incoming_request_id.strip()
            if isinstance(incoming_request_id, str) and incoming_request_id.strip()
            else str(uuid4())
        )
        context_tokens = bind_contextvars(
            http_request_id=request_id,
            http_method=request.method,
            http_path=request.url.path,
        )
        started_at = perf_counter()
        telemetry.emit(
            "http.request.start",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        except Exception as exc:
            telemetry.emit(
                "http.request.error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration_ms=elapsed_ms(started_at),
                error_type=type(exc).__name__,
            )
            raise
        else:
            response.headers["X-Request-ID"] = request_id
            telemetry.emit(
                "http.request.finish",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration_ms=elapsed_ms(started_at),
                status_code=response.status_code,
            )
            return response
        finally:
            reset_contextvars(**context_tokens)

    app.middleware("http")(request_context_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(settings),
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    app.add_exception_handler(LibraryError, _library_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    app.include_router(youtube_router)
    app.include_router(library_router)
    _mount_web_ui(app=app, web_dist_dir=settings.web_ui_dist_dir)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )

    return app


def _mount_web_ui(*, app: FastAPI, web_dist_dir: Path) -> None:
    index_path = web_dist_dir / "index.html"
    static_assets_path = web_dist_dir / "assets"

    if static_assets_path.is_dir():
        app.mount("/assets", StaticFiles(directory=static_assets_path), name="web_static_assets")
        app.mount(
            "/app/assets",
            StaticFiles(directory=static_assets_path),
            name="web_static_assets_scoped",
        )

    def _serve_index() -> Response:
        if index_path.is_file():
            return FileResponse(
                index_path,
                headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
            )
        return error_response(
            404,
            "Web UI build not found. Build the front end and point "
            "TUBE_CLONE_WEB_UI_DIST_DIR to it.",
        )

    def _web_ui_subpath(path: str) -> Response:
        _ = path
        return _serve_index()

    app.add_api_route("/app", _serve_index, methods=["GET"], include_in_schema=False)
    app.add_api_route(
        "/app/{path:path}",
        _web_ui_subpath,
        methods=["GET"],
        include_in_schema=False,
    )


app = create_app()
