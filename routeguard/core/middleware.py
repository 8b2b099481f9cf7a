"""CORS, request-id, and access logging middleware."""

import uuid
import time
import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from routeguard.core.config import settings

logger = logging.getLogger("routeguard")

DENIAL_STATUSES = (401, 403)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and write one access line for it.

    The line names the caller when the request got far enough to resolve
    one. Denials (401/403) log at WARNING.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Response-Time-Ms"] = str(elapsed_ms)

        principal = getattr(request.state, "principal", None)
        logger.log(
            logging.WARNING if response.status_code in DENIAL_STATUSES else logging.INFO,
            "%s %s -> %s in %sms employee=%s rid=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            principal.employee_id if principal else "-",
            request_id,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )
    app.add_middleware(RequestIdMiddleware)
