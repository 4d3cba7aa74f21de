"""Relay API routes."""

import json
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from frontdesk.utils.logger import get_logger
from .service import UpstreamRelay, envelope_params, error_envelope

logger = get_logger(__name__)

router = APIRouter(tags=["Relay"])

# Relay will be injected from app.py
_relay: Optional[UpstreamRelay] = None


def set_relay(relay: Optional[UpstreamRelay]):
    """Set relay instance."""
    global _relay
    _relay = relay


def get_relay() -> UpstreamRelay:
    """Get relay."""
    if _relay is None:
        raise HTTPException(500, "Relay not initialized")
    return _relay


@router.api_route("/api", methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
async def proxy(request: Request):
    """Forward the call to the spreadsheet script."""
    relay = get_relay()
    method = request.method
    params = request.query_params.multi_items()

    raw = await request.body()
    body = None
    if raw:
        try:
            body = json.loads(raw)
        except ValueError:
            logger.warning("relay_malformed_body", method=method, params=envelope_params(params))
            envelope = error_envelope(
                "Malformed JSON body",
                method=method,
                url=relay.upstream_url,
                params=params,
                body=raw.decode(errors="replace"),
                status=400,
            )
            return JSONResponse(envelope, status_code=400)

    logger.info("relay_request", method=method, params=envelope_params(params), body=body)

    result = await relay.forward(method, params, body)
    return Response(
        content=result.content,
        status_code=result.status,
        media_type=result.media_type,
    )


@router.get("/health", tags=["Health"])
async def health_check():
    """Liveness only; does not touch the upstream."""
    return {"status": "Proxy server is running"}
