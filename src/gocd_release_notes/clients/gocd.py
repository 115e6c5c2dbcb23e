"""GoCD API client for pipeline runs and run comparisons.

The release notes for run N are built from the commits between run N-1
and run N, so two calls are made per request:
1. GET /go/api/pipelines/{pipeline}/{counter} - run metadata (label, date)
2. GET /go/api/pipelines/{pipeline}/compare/{counter-1}/{counter} - changes

Design notes:
- GoCD versions its API through the Accept header, so each endpoint sends
  its own media type
- Auth is a personal access token sent as a bearer token
- The counter is not validated here; the caller rejects counters <= 0

GoCD API docs: https://api.gocd.org/current/
"""

from __future__ import annotations

from typing import Protocol

import httpx

from gocd_release_notes.clients.base import check_status, parse_model, send
from gocd_release_notes.logging_config import RequestContext
from gocd_release_notes.notes import find_issue_keys
from gocd_release_notes.schemas import PipelineComparison, PipelineRun

# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class GocdClientProtocol(Protocol):
    """Interface for fetching pipeline data, real or mocked."""

    async def get_run_metadata(
        self, pipeline: str, counter: int, ctx: RequestContext
    ) -> PipelineRun:
        """Fetch one run of ``pipeline``."""
        ...

    async def get_run_comparison(
        self, pipeline: str, counter: int, ctx: RequestContext
    ) -> PipelineComparison:
        """Fetch the changes between run ``counter - 1`` and run ``counter``."""
        ...


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class GocdClient:
    """GoCD client built on a shared httpx.AsyncClient.

    Usage:
        client = GocdClient("https://gocd.example.com", token, http)
        run = await client.get_run_metadata("my-pipeline", 42, ctx)
    """

    SERVICE = "gocd"
    HISTORY_MEDIA_TYPE = "application/vnd.go.cd.v1+json"
    COMPARE_MEDIA_TYPE = "application/vnd.go.cd.v2+json"

    def __init__(self, base_url: str, api_key: str, http: httpx.AsyncClient) -> None:
        """Initialize the GoCD client.

        Args:
            base_url: GoCD server root, e.g. "https://gocd.example.com"
            api_key: Personal access token
            http: Shared async HTTP client (owned by the caller)
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._http = http

    def _headers(self, media_type: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": media_type,
        }

    async def get_run_metadata(
        self, pipeline: str, counter: int, ctx: RequestContext
    ) -> PipelineRun:
        """Fetch the metadata of one pipeline run.

        Raises:
            UnauthorizedError: If GoCD rejects the token
            MalformedResponseError: If the body is not a valid pipeline run
            UpstreamError: On transport failures or other error statuses
        """
        url = f"{self._base_url}/go/api/pipelines/{pipeline}/{counter}"
        resp = await send(
            self._http, self.SERVICE, "GET", url, ctx,
            headers=self._headers(self.HISTORY_MEDIA_TYPE),
        )
        check_status(self.SERVICE, resp)
        return parse_model(self.SERVICE, resp, PipelineRun)

    async def get_run_comparison(
        self, pipeline: str, counter: int, ctx: RequestContext
    ) -> PipelineComparison:
        """Fetch the comparison between the previous run and this one.

        Raises:
            UnauthorizedError: If GoCD rejects the token
            MalformedResponseError: If the body is not a valid comparison
            UpstreamError: On transport failures or other error statuses
        """
        url = (
            f"{self._base_url}/go/api/pipelines/{pipeline}"
            f"/compare/{counter - 1}/{counter}"
        )
        resp = await send(
            self._http, self.SERVICE, "GET", url, ctx,
            headers=self._headers(self.COMPARE_MEDIA_TYPE),
        )
        check_status(self.SERVICE, resp)
        return parse_model(self.SERVICE, resp, PipelineComparison)


def derive_issue_keys(comparison: PipelineComparison) -> list[str]:
    """Collect issue keys from every commit message of a comparison.

    Keys are returned in change-then-revision order and are not
    deduplicated.
    """
    keys: list[str] = []
    for change in comparison.changes:
        for revision in change.revision:
            if revision.commit_message:
                keys.extend(find_issue_keys(revision.commit_message))
    return keys


# ---------------------------------------------------------------------------
# Mock Implementation
# ---------------------------------------------------------------------------


class MockGocdClient:
    """Mock GoCD client returning predefined runs and comparisons.

    Every call is recorded in ``calls`` as ``(method, pipeline, counter)``.
    """

    def __init__(
        self,
        run: PipelineRun | None = None,
        comparison: PipelineComparison | None = None,
        error: Exception | None = None,
    ) -> None:
        self._run = run
        self._comparison = comparison
        self._error = error
        self.calls: list[tuple[str, str, int]] = []

    async def get_run_metadata(
        self, pipeline: str, counter: int, ctx: RequestContext
    ) -> PipelineRun:
        self.calls.append(("get_run_metadata", pipeline, counter))
        if self._error is not None:
            raise self._error
        if self._run is not None:
            return self._run
        return PipelineRun(
            name=pipeline,
            counter=counter,
            label=f"1.0.{counter}",
            scheduled_date=1615391237492,
        )

    async def get_run_comparison(
        self, pipeline: str, counter: int, ctx: RequestContext
    ) -> PipelineComparison:
        self.calls.append(("get_run_comparison", pipeline, counter))
        if self._error is not None:
            raise self._error
        if self._comparison is not None:
            return self._comparison
        return PipelineComparison(
            pipeline_name=pipeline,
            from_counter=counter - 1,
            to_counter=counter,
        )
