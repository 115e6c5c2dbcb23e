"""Response handling shared by the GoCD, Jira and Confluence clients."""

from __future__ import annotations

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from gocd_release_notes.errors import (
    MalformedResponseError,
    UnauthorizedError,
    UpstreamError,
)
from gocd_release_notes.logging_config import RequestContext

ModelT = TypeVar("ModelT", bound=BaseModel)

AUTH_REJECTED = frozenset({401, 403})


async def send(
    http: httpx.AsyncClient,
    service: str,
    method: str,
    url: str,
    ctx: RequestContext,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request, turning transport failures into UpstreamError."""
    ctx.logger.info("calling_upstream", service=service, method=method, url=url)
    try:
        resp = await http.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        raise UpstreamError(service, f"request to {url} failed: {exc}") from exc
    ctx.logger.debug("upstream_responded", service=service, status=resp.status_code)
    return resp


def check_status(service: str, resp: httpx.Response) -> None:
    """Raise UnauthorizedError or UpstreamError for a non-success status."""
    if resp.status_code in AUTH_REJECTED:
        raise UnauthorizedError(service, resp.status_code)
    if not resp.is_success:
        raise UpstreamError(
            service,
            f"unexpected status {resp.status_code}: {resp.text}",
            resp.status_code,
        )


def parse_model(service: str, resp: httpx.Response, model: type[ModelT]) -> ModelT:
    """Parse a JSON object body and validate it against ``model``.

    Raises:
        MalformedResponseError: If the body is not a JSON object or does
            not match the model
    """
    try:
        data = resp.json()
    except ValueError:
        raise MalformedResponseError(
            service, "cannot create object - invalid json", resp.status_code
        ) from None
    if not isinstance(data, dict):
        raise MalformedResponseError(
            service, "cannot create object - expected a json object", resp.status_code
        )
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedResponseError(
            service, f"data validation failed: {exc}", resp.status_code
        ) from exc
