#!/usr/bin/env python3
"""
logging_utils.py — Observability helpers (JSON logs + request_id)

• One JSON object per line on stdout (LOG_JSON=true, default)
• Human-readable single line when LOG_JSON=false
• Level filter via LOG_LEVEL
• request_id / correlation_id pulled from the active request context
• oversized field trimming and reserved-key sanitization
"""

from __future__ import annotations
import json, os, sys, time, uuid
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from contextvars import ContextVar

from observability.request_context import request_log_context

# Contextvar for request_id outside of HTTP requests (CLI runs)
_request_id_ctx: ContextVar[Optional[str]] = ContextVar("_request_id", default=None)

# Env configuration
LOG_JSON = os.getenv("LOG_JSON", "true").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "WARNING": 30, "ERROR": 40}
_MIN = _LEVELS.get(LOG_LEVEL, 20)

_MAX_FIELD_LEN = 5000
_FORBIDDEN_KEYS = {
    "ts", "level", "request_id", "correlation_id",
    "message", "status", "action", "scope",
}


# ────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────
def set_request_id(value: Optional[str]) -> None:
    _request_id_ctx.set(value)


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _should(level: str) -> bool:
    return _LEVELS.get(level.upper(), 20) >= _MIN


def _safe_truncate(value: Any) -> Any:
    if isinstance(value, str) and len(value) > _MAX_FIELD_LEN:
        return value[:_MAX_FIELD_LEN] + "...[truncated]"
    return value


def _sanitize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Ensure user fields cannot override core metadata."""
    clean = {}
    for k, v in fields.items():
        if k in _FORBIDDEN_KEYS:
            clean[f"user_{k}"] = _safe_truncate(v)
        else:
            clean[k] = _safe_truncate(v)
    return clean


# ────────────────────────────────────────────────
# Emit — JSON or human-readable
# ────────────────────────────────────────────────
def _emit(record: Dict[str, Any]) -> None:
    if LOG_JSON:
        line = json.dumps(record, ensure_ascii=False, default=str)
    else:
        ts = record.get("ts")
        lvl = record.get("level")
        rid = record.get("request_id", "-")
        scope = record.get("scope")
        msg = record.get("message", "")
        line = f"[{ts}] {lvl} ({rid}) {scope}: {msg}"
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def init_logging() -> None:
    """Assign a process-level request id so CLI runs correlate their lines."""
    if _request_id_ctx.get() is None:
        set_request_id(str(uuid.uuid4()))


# ────────────────────────────────────────────────
# Core logging function
# ────────────────────────────────────────────────
def log_event(
    level: str = "INFO",
    message: str = "",
    *,
    scope: str = "",
    action: str = "",
    status: str = "ok",
    **fields: Any,
) -> None:

    if not _should(level):
        return

    ctx = request_log_context()

    payload = {
        "ts": _now_iso(),
        "level": level.upper(),
        "request_id": ctx.get("request_id") or _request_id_ctx.get(),
        "correlation_id": ctx.get("correlation_id"),
        "scope": scope or "general",
        "action": action or "log",
        "status": status,
        "message": _safe_truncate(message),
        **_sanitize_fields(fields),
    }

    _emit(payload)


# ────────────────────────────────────────────────
# Timing Log
# ────────────────────────────────────────────────
def log_timing(scope: str, action: str, t_start: float, **fields: Any) -> None:
    ms = int((time.time() - t_start) * 1000)
    log_event(
        "INFO",
        f"{action} completed",
        scope=scope,
        action=action,
        duration_ms=ms,
        **fields,
    )


# ────────────────────────────────────────────────
# Error Log
# ────────────────────────────────────────────────
def log_error(message: str, *, scope: str, action: str, **fields: Any) -> None:
    log_event(
        "ERROR",
        message,
        scope=scope,
        action=action,
        status="error",
        **fields,
    )


if __name__ == "__main__":
    init_logging()
    log_event("INFO", "logging system bootstrap", scope="obs", action="boot")
    t0 = time.time()
    time.sleep(0.005)
    log_timing("obs", "sleep", t0, note="demo")
    log_error("example error", scope="obs", action="demo", detail="only a test")
