import asyncio
from contextlib import suppress
from datetime import datetime, timezone
import logging
import time
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from autopublish.db import engine
from autopublish.errors import ApiError, error_response
from autopublish.logging_utils import setup_json_logging
from autopublish.routers import auto_publish, certificates
from autopublish.services.auto_publish import run_auto_publish
from autopublish.services.email import EmailChannel
from autopublish.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from autopublish.settings import get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(settings.log_level)
logger = logging.getLogger("autopublish.request")
worker_logger = logging.getLogger("autopublish.worker")

MIN_WORKER_INTERVAL_SECONDS = 60

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    request.state.request_id = request_id
    request.state.actor = getattr(request.state, "actor", "anonymous")
    request.state.actor_id = getattr(request.state, "actor_id", "anonymous")

    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "request_complete",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "latency_ms": latency_ms,
                "actor": getattr(request.state, "actor", "anonymous"),
                "actor_id": getattr(request.state, "actor_id", "anonymous"),
            },
        )


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "api_error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "code": exc.code,
                "path": request.url.path,
            },
        )
    elif exc.status_code == 401:
        logger.warning(
            "unauthorized_request",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "method": request.method,
            },
        )
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
    )


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    status_code = exc.status_code
    code_map = {
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
    }
    code = code_map.get(status_code, "HTTP_ERROR")
    message = str(exc.detail) if exc.detail else "Request failed."
    return error_response(
        request,
        status_code=status_code,
        code=code,
        message=message,
    )


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status_code=422,
        code="VALIDATION_ERROR",
        message=str(exc.errors()),
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return error_response(
        request,
        status_code=500,
        code="INTERNAL_ERROR",
        message="Internal server error.",
    )


app.include_router(auto_publish.router)
app.include_router(certificates.router)


def _default_schema_guard_result() -> SchemaGuardResult:
    return SchemaGuardResult(
        ok=False,
        checked_at_utc=datetime.now(timezone.utc),
        issues=["SCHEMA_GUARD_NOT_RUN"],
        warnings=[],
    )


def _worker_interval_seconds() -> int:
    return max(MIN_WORKER_INTERVAL_SECONDS, int(settings.auto_publish_worker_interval_seconds))


async def _auto_publish_worker_loop(stop_event: asyncio.Event) -> None:
    interval_seconds = _worker_interval_seconds()
    while not stop_event.is_set():
        if settings.auto_publish_enabled:
            try:
                report = await asyncio.to_thread(run_auto_publish)
            except Exception:
                worker_logger.exception("auto_publish_worker_tick_failed")
            else:
                if report.sessions_scanned or report.scan_error:
                    worker_logger.info(
                        "auto_publish_worker_tick",
                        extra={
                            "sessions_scanned": report.sessions_scanned,
                            "sessions_succeeded": report.sessions_succeeded,
                            "certificates_created": report.certificates_created,
                            "scan_error": report.scan_error,
                        },
                    )

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def run_schema_guard() -> None:
    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        worker_logger.info("schema_guard_ok", extra=result.to_dict())
        return

    worker_logger.error("schema_guard_failed", extra=result.to_dict())
    if settings.schema_guard_strict:
        joined_issues = "; ".join(result.issues)
        raise RuntimeError(f"Runtime schema guard failed: {joined_issues}")


@app.on_event("startup")
async def start_auto_publish_worker() -> None:
    email_status = EmailChannel().config_status()
    if email_status.get("missing_fields"):
        worker_logger.warning(
            "notification_email_channel_not_configured",
            extra={"missing_fields": email_status["missing_fields"]},
        )
    if not settings.auto_publish_worker_enabled:
        return
    if getattr(app.state, "auto_publish_worker_task", None) is not None:
        return

    stop_event = asyncio.Event()
    task = asyncio.create_task(_auto_publish_worker_loop(stop_event))
    app.state.auto_publish_worker_stop_event = stop_event
    app.state.auto_publish_worker_task = task
    worker_logger.info(
        "auto_publish_worker_started",
        extra={
            "interval_seconds": _worker_interval_seconds(),
            "auto_publish_enabled": settings.auto_publish_enabled,
        },
    )


@app.on_event("shutdown")
async def stop_auto_publish_worker() -> None:
    stop_event: asyncio.Event | None = getattr(app.state, "auto_publish_worker_stop_event", None)
    task: asyncio.Task[None] | None = getattr(app.state, "auto_publish_worker_task", None)
    if stop_event is not None:
        stop_event.set()
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
    app.state.auto_publish_worker_stop_event = None
    app.state.auto_publish_worker_task = None


@app.get("/health")
def health() -> dict[str, Any]:
    schema_guard_result: SchemaGuardResult = getattr(app.state, "schema_guard_result", _default_schema_guard_result())
    return {
        "status": "ok",
        "auto_publish_enabled": bool(settings.auto_publish_enabled),
        "auto_publish_worker_enabled": bool(settings.auto_publish_worker_enabled),
        "schema_guard": schema_guard_result.to_dict(),
        "email_channel": EmailChannel().config_status(),
    }
