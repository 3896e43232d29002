"""
Request Context & Correlation IDs — Observability Middleware

• request_id / correlation_id contextvars, readable from any log call
• Inbound header values are sanitized; a uuid4 is minted when absent
• Response carries the ids back plus a Server-Timing header
"""

from __future__ import annotations

import os
import time
import uuid
import typing as t
import contextvars

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


REQ_ID_HEADER = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")
CORR_ID_HEADER = os.getenv("CORRELATION_ID_HEADER", "X-Correlation-ID")

TRUST_INCOMING_IDS = os.getenv("REQUEST_CONTEXT_TRUST_INCOMING", "true").lower() == "true"
INCLUDE_TIMING_HEADERS = os.getenv("REQUEST_CONTEXT_TIMING_HEADERS", "true").lower() == "true"


# ────────────────────────────────────────────────
# Contextvars
# ────────────────────────────────────────────────
_request_id_var: contextvars.ContextVar[t.Optional[str]] = contextvars.ContextVar("request_id", default=None)
_correlation_id_var: contextvars.ContextVar[t.Optional[str]] = contextvars.ContextVar("correlation_id", default=None)
_start_ts_var: contextvars.ContextVar[t.Optional[float]] = contextvars.ContextVar("request_start_ts", default=None)


def current_request_id() -> t.Optional[str]:
    return _request_id_var.get()


def current_correlation_id() -> t.Optional[str]:
    return _correlation_id_var.get()


def request_log_context() -> t.Dict[str, t.Any]:
    """Return the ids of the request being served, if any."""
    ctx = {
        "request_id": current_request_id(),
        "correlation_id": current_correlation_id(),
        "request_start_ts": _start_ts_var.get(),
    }
    return {k: v for k, v in ctx.items() if v is not None}


def _sanitize_header(value: t.Optional[str]) -> t.Optional[str]:
    if not value:
        return None
    v = value.strip()
    return v if v else None


def _safe_id(header_value: t.Optional[str]) -> str:
    sanitized = _sanitize_header(header_value)
    if TRUST_INCOMING_IDS and sanitized:
        return sanitized
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Binds request/correlation ids for the lifetime of one request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = _safe_id(request.headers.get(REQ_ID_HEADER))
        corr_id = _sanitize_header(request.headers.get(CORR_ID_HEADER)) or req_id

        req_token = _request_id_var.set(req_id)
        corr_token = _correlation_id_var.set(corr_id)
        start_ts = time.time()
        ts_token = _start_ts_var.set(start_ts)

        request.state.request_id = req_id
        request.state.correlation_id = corr_id

        try:
            response = await call_next(request)
        finally:
            _request_id_var.reset(req_token)
            _correlation_id_var.reset(corr_token)
            _start_ts_var.reset(ts_token)

        response.headers[REQ_ID_HEADER] = req_id
        response.headers[CORR_ID_HEADER] = corr_id

        if INCLUDE_TIMING_HEADERS:
            dur_ms = max((time.time() - start_ts) * 1000.0, 0.0)
            response.headers["Server-Timing"] = f"app;dur={dur_ms:.2f}"

        return response
