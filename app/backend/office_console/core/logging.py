"""Structured logging setup and request middlewares."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from office_console.core.config import Settings

REQUEST_ID_HEADER = "X-Request-ID"

logger = structlog.get_logger()


def configure_logging(settings: Settings) -> None:
    """Configure structlog processors and the minimum log level."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if settings.app_env == "development"
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, settings.log_level)),
        cache_logger_on_first_use=False,
    )


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Ensure every request carries an id for tracing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Structured request/response logging with timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = getattr(request.state, "request_id", "unknown")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        logger.info("request_started")

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "request_failed",
                error=str(exc),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise

        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return response
