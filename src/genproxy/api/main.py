"""genproxy - FastAPI Application.

This module is the single entry point for the web service.  It defines the
FastAPI ``app`` instance, the REST routes, and the ``main()`` CLI function
that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :data:`~genproxy.core.config.config`
  (``GENPROXY_*`` environment variables).
- **Generation** is delegated to :class:`~genproxy.core.proxy.GenerationProxy`,
  created once in the lifespan together with the shared ``httpx`` client.
- **Failures** never escape as bare HTTP errors: every generation call
  answers with ``{"success": true, "data": ...}`` or
  ``{"success": false, "error": ...}``.
- **CORS** headers are attached to every generation response, including
  the ``OPTIONS`` preflight answer, so a browser app on any origin can call
  the proxy directly.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
OPTIONS   ``/``, ``/api/generate``      CORS preflight, no upstream work
POST      ``/``, ``/api/generate``      Run one generation request
GET       ``/api/config``               Non-secret runtime settings
GET       ``/api/health``               Liveness probe
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    genproxy

Direct invocation::

    python -m genproxy.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from genproxy import __version__
from genproxy.api.models import ConfigResponse, ErrorResponse, GenerationResponse
from genproxy.core.config import config
from genproxy.core.errors import ProxyError, redact_secret
from genproxy.core.models import GenerationRequest
from genproxy.core.proxy import GenerationProxy

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


# ---------------------------------------------------------------------------
# Application lifecycle - shared HTTP client and proxy setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Opens one :class:`httpx.AsyncClient` with the configured transport
        timeout and builds a :class:`GenerationProxy` on top of it.  The
        client carries no credentials; each request supplies its own.

    On shutdown:
        Closes the HTTP client and its connections.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    http = httpx.AsyncClient(timeout=config.request_timeout_seconds)
    app.state.http = http
    app.state.proxy = GenerationProxy.from_config(config, http)
    logger.info(
        "GenerationProxy ready (upstream=%s, budget=%d x %.1fs = %.0fs).",
        config.upstream_base_url,
        config.max_poll_attempts,
        config.poll_interval_seconds,
        config.poll_budget_seconds,
    )

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    await http.aclose()
    logger.info("Upstream HTTP client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="genproxy",
    description="Synchronous proxy for asynchronous image-generation predictions.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_allow_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_proxy(request: Request) -> GenerationProxy:
    """Return the proxy created in :func:`lifespan`."""
    return request.app.state.proxy


# ---------------------------------------------------------------------------
# Envelope helpers.
# ---------------------------------------------------------------------------


def _error_response(message: str, status_code: int) -> JSONResponse:
    """Build a ``success: false`` envelope with CORS headers."""
    return JSONResponse(
        content=ErrorResponse(error=message).model_dump(),
        status_code=status_code,
        headers=CORS_HEADERS,
    )


def _describe_validation_error(exc: RequestValidationError) -> str:
    """Condense FastAPI's validation errors into one readable line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid request body: " + ("; ".join(parts) or "could not be parsed")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed bodies with the failure envelope instead of a 422."""
    return _error_response(_describe_validation_error(exc), 400)


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.options("/")
@app.options("/api/generate")
async def preflight() -> PlainTextResponse:
    """Answer a CORS preflight without reading the body or calling upstream."""
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@app.post(
    "/",
    response_model=GenerationResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
@app.post(
    "/api/generate",
    response_model=GenerationResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def generate(
    req: GenerationRequest,
    proxy: GenerationProxy = Depends(get_proxy),
) -> JSONResponse:
    """Run one generation request to completion.

    This endpoint:

    1. Rejects a missing ``apiKey`` or ``prompt`` (400, no upstream call).
    2. Submits one prediction to the upstream service.
    3. Polls until the prediction finishes or the budget runs out.
    4. Returns every produced artifact with the parameters that made it.

    Args:
        req: Parsed :class:`GenerationRequest` payload.
        proxy: The application's :class:`GenerationProxy`.

    Returns:
        ``{"success": true, "data": [...]}`` on success, or
        ``{"success": false, "error": "..."}`` with status 400 (rejected
        before any upstream call) or 500 (anything later).
    """
    api_key = (req.api_key or "").strip()
    try:
        results = await proxy.generate(req)
    except ProxyError as exc:
        message = redact_secret(str(exc), api_key)
        logger.error("Generation request failed: %s", message)
        return _error_response(message, exc.status_code)
    except Exception as exc:
        # Transport errors can quote the Authorization header verbatim.
        message = redact_secret(str(exc), api_key) or type(exc).__name__
        logger.error("Unexpected %s while generating: %s", type(exc).__name__, message)
        return _error_response(message, 500)

    return JSONResponse(
        content=GenerationResponse(data=results).model_dump(by_alias=True),
        headers=CORS_HEADERS,
    )


@app.get("/api/config", response_model=ConfigResponse)
async def get_config() -> ConfigResponse:
    """Return the non-secret settings a client can use to pre-fill a form."""
    return ConfigResponse(
        version=__version__,
        default_model_version=config.default_model_version,
        default_width=config.default_width,
        default_height=config.default_height,
        poll_interval_seconds=config.poll_interval_seconds,
        max_poll_attempts=config.max_poll_attempts,
    )


@app.get("/api/health")
async def health() -> dict:
    """Liveness probe."""
    return {"status": "ok", "version": __version__}


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~genproxy.core.config.config`
    (``GENPROXY_SERVER_HOST``, ``GENPROXY_SERVER_PORT``,
    ``GENPROXY_LOG_LEVEL``).  Defaults to ``0.0.0.0:8000``.

    This function is registered as the ``genproxy`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    uvicorn.run(
        "genproxy.api.main:app",
        host=config.server_host,
        port=config.server_port,
        log_level=config.log_level,
        reload=False,
    )


if __name__ == "__main__":
    main()
