"""Confluence publisher for release notes blog posts.

Publishing takes two calls:
1. POST /rest/api/contentbody/convert/{format} - Confluence converts our
   wiki markup to its storage format. Jira issue links and macros in the
   notes only render correctly when Confluence does this conversion
   itself, so the markup is never converted locally.
2. POST /rest/api/content/ - create the blog post with the converted body,
   labelled with the pipeline name.

Confluence API docs:
https://developer.atlassian.com/cloud/confluence/rest/v1/api-group-content/
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

import httpx

from gocd_release_notes.clients.base import AUTH_REJECTED, parse_model, send
from gocd_release_notes.errors import PublishFailedError, UnauthorizedError
from gocd_release_notes.logging_config import RequestContext
from gocd_release_notes.schemas import (
    ConfluencePost,
    ContentBody,
    ContentMetadata,
    Label,
    Notes,
    PipelineRun,
    PublishedPage,
    Space,
    StorageBody,
)

# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_wiki_markup(notes: Notes) -> str:
    """Render notes as Confluence wiki markup, one h1 per group."""
    parts: list[str] = []
    for name, bullet_points in notes.groups.items():
        parts.append(f"\nh1. {name}\n")
        parts.extend(f"{line}\n" for line in bullet_points)
    return "".join(parts)


def format_post_title(title: str, version: str, scheduled_at: datetime) -> str:
    """E.g. "The Best Web Release Notes 1.2.3 - 2021-03-10"."""
    return f"{title} Release Notes {version} - {scheduled_at:%Y-%m-%d}"


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConfluenceClientProtocol(Protocol):
    """Interface for publishing release notes."""

    async def publish(
        self,
        run: PipelineRun,
        title: str,
        pipeline: str,
        notes: Notes,
        ctx: RequestContext,
    ) -> PublishedPage:
        """Publish ``notes`` for ``run`` as a new blog post."""
        ...


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class ConfluenceClient:
    """Confluence client using basic auth (same Atlassian account as Jira)."""

    SERVICE = "confluence"

    def __init__(
        self,
        base_url: str,
        user: str,
        api_key: str,
        space_key: str,
        http: httpx.AsyncClient,
        content_format: str = "editor2",
    ) -> None:
        """Initialize the Confluence client.

        Args:
            base_url: Confluence root, e.g. "https://example.atlassian.net/wiki"
            user: Atlassian account
            api_key: Atlassian API token
            space_key: Space the blog posts are created in
            http: Shared async HTTP client (owned by the caller)
            content_format: Representation the markup is converted to
        """
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(user, api_key)
        self._space_key = space_key
        self._http = http
        self._format = content_format

    def _check(self, resp: httpx.Response, action: str) -> None:
        if resp.status_code in AUTH_REJECTED:
            raise UnauthorizedError(self.SERVICE, resp.status_code)
        if not resp.is_success:
            raise PublishFailedError(
                self.SERVICE,
                f"failed to {action}: {resp.status_code} {resp.text}",
                resp.status_code,
            )

    async def convert_to_storage(self, markup: str, ctx: RequestContext) -> str:
        """Convert wiki markup with Confluence's own converter.

        Raises:
            UnauthorizedError: If Confluence rejects the credentials
            PublishFailedError: On any other error status
            MalformedResponseError: If the response is not a storage body
        """
        url = f"{self._base_url}/rest/api/contentbody/convert/{self._format}"
        payload = StorageBody(value=markup, representation="wiki")
        resp = await send(
            self._http, self.SERVICE, "POST", url, ctx,
            auth=self._auth,
            json=payload.model_dump(),
        )
        self._check(resp, "convert content")
        return parse_model(self.SERVICE, resp, StorageBody).value

    async def create_post(self, post: ConfluencePost, ctx: RequestContext) -> PublishedPage:
        """Create a page or blog post.

        Raises:
            UnauthorizedError: If Confluence rejects the credentials
            PublishFailedError: On any other error status
            MalformedResponseError: If the response is not a created page
        """
        url = f"{self._base_url}/rest/api/content/"
        resp = await send(
            self._http, self.SERVICE, "POST", url, ctx,
            auth=self._auth,
            json=post.model_dump(),
        )
        self._check(resp, "create post")
        return parse_model(self.SERVICE, resp, PublishedPage)

    async def publish(
        self,
        run: PipelineRun,
        title: str,
        pipeline: str,
        notes: Notes,
        ctx: RequestContext,
    ) -> PublishedPage:
        """Render, convert and post the release notes of ``run``.

        Args:
            run: Pipeline run the notes belong to (label and date)
            title: Product title, used as the post title prefix
            pipeline: Pipeline name, attached as the post label
            notes: Aggregated release notes
            ctx: Request context

        Returns:
            The created blog post
        """
        content = await self.convert_to_storage(render_wiki_markup(notes), ctx)
        post = ConfluencePost(
            type="blogpost",
            space=Space(key=self._space_key),
            status="current",
            title=format_post_title(title, run.label, run.scheduled_at),
            body=ContentBody(
                storage=StorageBody(value=content, representation=self._format)
            ),
            metadata=ContentMetadata(labels=[Label(name=pipeline)]),
        )
        page = await self.create_post(post, ctx)
        ctx.logger.info("release_notes_published", page_id=page.id, title=page.title)
        return page


# ---------------------------------------------------------------------------
# Mock Implementation
# ---------------------------------------------------------------------------


class MockConfluenceClient:
    """Mock publisher that records what it was asked to publish.

    Raises ``error`` (if given) instead of publishing.
    """

    def __init__(self, error: Exception | None = None) -> None:
        self._error = error
        self.published: list[tuple[str, Notes]] = []

    async def publish(
        self,
        run: PipelineRun,
        title: str,
        pipeline: str,
        notes: Notes,
        ctx: RequestContext,
    ) -> PublishedPage:
        if self._error is not None:
            raise self._error
        post_title = format_post_title(title, run.label, run.scheduled_at)
        self.published.append((post_title, notes.model_copy(deep=True)))
        return PublishedPage(
            id=str(len(self.published)),
            type="blogpost",
            status="current",
            title=post_title,
        )
