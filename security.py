# ════════════════════════════════════════════════
# security.py — Octachain
# API key guard for the /chain routes
# ════════════════════════════════════════════════
"""
The /chain routes read and write files on the server, so they sit behind an
API key:

• OCTACHAIN_API_KEY (or the older INTERNAL_API_KEY) sets the key
• MODE=DEV without a key leaves the routes open for local use
• Any other combination requires X-Internal-API-Key to match
"""

import hmac
import os

from fastapi import Header, HTTPException, Request, status

from observability.logging_utils import log_error

CHAIN_API_KEY = os.getenv("OCTACHAIN_API_KEY") or os.getenv("INTERNAL_API_KEY", "")
MODE = os.getenv("MODE", "DEV").upper()

FAIL_OPEN = (MODE == "DEV" and not CHAIN_API_KEY)

_SCOPE = "security"


def _reject(request: Request, code: int, message: str) -> HTTPException:
    log_error(message, scope=_SCOPE, action="chain_key", path=request.url.path, http_status=code)
    return HTTPException(
        status_code=code,
        detail={"error": "Unauthorized" if code == 401 else "Forbidden",
                "message": message, "scope": "/chain"},
    )


async def require_chain_key(
    request: Request,
    x_internal_api_key: str = Header(None),
) -> None:
    """Reject /chain requests without a matching X-Internal-API-Key (unless fail-open)."""
    if FAIL_OPEN:
        return

    if not x_internal_api_key:
        raise _reject(
            request, status.HTTP_401_UNAUTHORIZED,
            "X-Internal-API-Key header is required for /chain",
        )

    if not hmac.compare_digest(x_internal_api_key.encode(), CHAIN_API_KEY.encode()):
        raise _reject(
            request, status.HTTP_403_FORBIDDEN,
            "X-Internal-API-Key does not match the /chain key",
        )


def summarize_security() -> dict:
    return {
        "mode": MODE,
        "chain_key_set": bool(CHAIN_API_KEY),
        "fail_open": FAIL_OPEN,
    }
