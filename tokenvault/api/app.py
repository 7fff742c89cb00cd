"""
Secure Tokens API — FastAPI service exposing the multiplexed vault entry point.

    POST /api/secure-tokens   {operation, siteId, tokenType, tokenValue?, identifier?}
    GET  /health

Error mapping:
    ValidationError           -> 400
    StorageError (retryable)  -> 503
    StorageError (otherwise)  -> 500

Start:
  tokenvault serve
  # or
  uvicorn tokenvault.api.app:app --host 127.0.0.1 --port 9120
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from tokenvault import __version__
from tokenvault.vault.dispatch import TokenDispatcher, get_dispatcher
from tokenvault.vault.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Attach a unique X-Correlation-Id to every request/response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get("x-correlation-id") or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        response = await call_next(request)
        response.headers["X-Correlation-Id"] = correlation_id
        return response


app = FastAPI(
    title="Secure Tokens API",
    description="Tenant-scoped credential vault: store, verify, check and delete secrets.",
    version=__version__,
)
app.add_middleware(CorrelationMiddleware)


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(StorageError)
async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
    logger.warning(
        "Storage error [%s]: %s",
        getattr(request.state, "correlation_id", "-"),
        exc,
    )
    status = 503 if exc.retryable else 500
    return JSONResponse({"error": str(exc), "retryable": exc.retryable}, status_code=status)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid request body") from None


@app.post("/api/secure-tokens")
def secure_tokens(
    body: Any = Depends(_json_body),
    dispatcher: TokenDispatcher = Depends(get_dispatcher),
):
    if not isinstance(body, dict):
        raise ValidationError("Invalid request body")
    result = dispatcher.dispatch(body)
    if body.get("operation") == "retrieve" and result.get("tokenValue") is None:
        return JSONResponse({"error": "Token not found"}, status_code=404)
    return result
