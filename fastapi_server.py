#!/usr/bin/env python3
"""
Octachain — FastAPI Server

Local HTTP surface over the sample-chain builder:
• /chain/build, /chain/inspect, /chain/verify
• /health, /live, /version
• request/correlation ids on every response (RequestIdMiddleware)
"""

import datetime

from fastapi import FastAPI

from config import DEBUG, PORT, summarize_config
from observability.logging_utils import init_logging
from observability.request_context import RequestIdMiddleware, current_request_id
from routes.chain import router as chain_router
from security import summarize_security

app = FastAPI(
    title="Octachain",
    version="1.0",
    description="Builds Octatrack sample chains (.wav + .ot) from mono 16-bit WAV files.",
)

init_logging()
app.add_middleware(RequestIdMiddleware)
app.include_router(chain_router, prefix="/chain")


def ts() -> str:
    return datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


@app.get("/health")
async def health():
    payload = {
        "status": "ok",
        "time_utc": ts(),
        "debug": DEBUG,
        "config": summarize_config(),
        "security": summarize_security(),
    }

    req_id = current_request_id()
    if req_id:
        payload["request_id"] = req_id

    return payload


@app.get("/live")
async def live():
    return {"ok": True, "time_utc": ts()}


@app.get("/version")
async def version():
    return {
        "service": "octachain",
        "version": app.version,
        "time_utc": ts(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fastapi_server:app",
        host="0.0.0.0",
        port=PORT,
        reload=DEBUG,
    )
