"""FastAPI application for the release notes service.

Endpoints:
- GET /?title=...&pipeline=...&counter=... - build and publish release notes
- GET /health - health check for load balancers and monitoring

Responses of GET /:
- 200 with the notes as JSON ({"<group>": ["line", ...]})
- 204 when there is nothing to publish (no issues, or no notes on them)
- 400 with a plain-text message for bad parameters or upstream failures
- 502 with the notes as JSON when they were built but publishing failed;
  the error is in the X-Publish-Error header
Any other method on / gets 501.

To run locally:
    uvicorn gocd_release_notes.main:app --reload --port 8080
or
    gocd-release-notes-server
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from gocd_release_notes import __version__
from gocd_release_notes.config import load_settings
from gocd_release_notes.errors import ReleaseNotesError
from gocd_release_notes.logging_config import new_request_context, setup_logging
from gocd_release_notes.orchestrator import ReleaseNotesOrchestrator
from gocd_release_notes.schemas import QueryParams

REQUEST_ID_HEADER = "X-Request-ID"
PUBLISH_ERROR_HEADER = "X-Publish-Error"


# ---------------------------------------------------------------------------
# Application Lifespan (startup/shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load settings and build the shared HTTP client once at startup."""
    settings = load_settings()
    setup_logging(environment=settings.environment, log_level=settings.log_level)

    http = httpx.AsyncClient(verify=settings.verify_tls, timeout=settings.http_timeout)
    app.state.settings = settings
    app.state.orchestrator = ReleaseNotesOrchestrator.from_settings(settings, http)
    yield
    await http.aclose()


# ---------------------------------------------------------------------------
# FastAPI App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="GoCD Release Notes",
    description="Publishes release notes of GoCD pipeline runs from Jira to Confluence",
    version=__version__,
    lifespan=lifespan,
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a RequestContext to each request and log the outcome."""

    async def dispatch(self, request, call_next):
        ctx = new_request_context(request.headers.get(REQUEST_ID_HEADER))
        request.state.ctx = ctx
        start = time.time()
        response = await call_next(request)
        ctx.logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration=round(time.time() - start, 3),
        )
        response.headers[REQUEST_ID_HEADER] = ctx.request_id
        return response


app.add_middleware(RequestContextMiddleware)


def _header_value(message: str, limit: int = 512) -> str:
    # header values must be single-line latin-1
    flat = " ".join(message.split())
    return flat.encode("ascii", "replace").decode("ascii")[:limit]


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


@app.exception_handler(ReleaseNotesError)
async def release_notes_error_handler(
    request: Request, exc: ReleaseNotesError
) -> PlainTextResponse:
    """Report validation and upstream errors as plain-text 400 responses."""
    ctx = getattr(request.state, "ctx", None)
    if ctx is not None:
        ctx.logger.error("request_failed", error=str(exc), error_type=type(exc).__name__)
    return PlainTextResponse(str(exc), status_code=400)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@app.get("/")
async def create_release_notes(
    request: Request,
    title: str = "",
    pipeline: str = "",
    counter: str = "",
) -> Response:
    """Build the release notes of a pipeline run and publish them.

    Args:
        request: The incoming HTTP request (app state and request context)
        title: Product title, prefix of the blog post title
        pipeline: GoCD pipeline name
        counter: GoCD pipeline run counter (positive integer)

    Returns:
        The notes as JSON, or an empty 204 when there is nothing to publish
    """
    params = QueryParams.from_query(title=title, pipeline=pipeline, counter=counter)
    orchestrator: ReleaseNotesOrchestrator = request.app.state.orchestrator

    result = await orchestrator.create_release_notes(params, request.state.ctx)
    if not result.has_content:
        return Response(status_code=204)

    if result.publish_error is not None:
        return JSONResponse(
            result.notes.groups,
            status_code=502,
            headers={PUBLISH_ERROR_HEADER: _header_value(str(result.publish_error))},
        )
    return JSONResponse(result.notes.groups)


@app.api_route(
    "/",
    methods=["HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE", "TRACE"],
    include_in_schema=False,
)
async def method_not_implemented() -> Response:
    return Response(status_code=501)


def serve() -> None:
    """Run the service with uvicorn on the configured port."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
