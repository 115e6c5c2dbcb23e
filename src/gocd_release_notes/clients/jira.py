"""Jira client for fetching the issues referenced by a pipeline run.

Release notes are written by the team on each issue, in a custom rich
text field. The id of that field differs between Jira sites, so it is
passed in from configuration (``jira_release_notes_field``).

Issues are fetched one at a time, in key order. If any fetch fails the
whole operation fails and already fetched issues are discarded: callers
get every issue or an error, never a partial list.

Jira API docs: https://developer.atlassian.com/cloud/jira/software/rest/
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

import httpx

from gocd_release_notes.clients.base import check_status, parse_model, send
from gocd_release_notes.errors import MalformedResponseError
from gocd_release_notes.logging_config import RequestContext
from gocd_release_notes.notes import unique
from gocd_release_notes.schemas import Issue, JiraIssueResponse

DEFAULT_RELEASE_NOTES_FIELD = "customfield_10110"

# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class JiraClientProtocol(Protocol):
    """Interface for fetching a single Jira issue."""

    async def get_issue(self, key: str, ctx: RequestContext) -> Issue:
        """Fetch the issue identified by ``key``."""
        ...


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class JiraClient:
    """Jira client using basic auth (Atlassian account + API token).

    Usage:
        client = JiraClient("https://example.atlassian.net", user, token, http)
        issue = await client.get_issue("JI-1234", ctx)
    """

    SERVICE = "jira"

    def __init__(
        self,
        base_url: str,
        user: str,
        api_key: str,
        http: httpx.AsyncClient,
        release_notes_field: str = DEFAULT_RELEASE_NOTES_FIELD,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(user, api_key)
        self._http = http
        self._release_notes_field = release_notes_field

    async def get_issue(self, key: str, ctx: RequestContext) -> Issue:
        """Fetch one issue and reduce it to an Issue.

        Raises:
            UnauthorizedError: If Jira rejects the credentials
            MalformedResponseError: If the body is not a valid issue, or the
                release notes field is not text
            UpstreamError: On transport failures or other error statuses
        """
        url = f"{self._base_url}/rest/agile/latest/issue/{key}"
        resp = await send(
            self._http, self.SERVICE, "GET", url, ctx,
            auth=self._auth,
            headers={"Accept": "application/json"},
        )
        check_status(self.SERVICE, resp)
        data = parse_model(self.SERVICE, resp, JiraIssueResponse)
        return self._to_issue(data)

    def _to_issue(self, data: JiraIssueResponse) -> Issue:
        raw_notes = data.fields.custom_field(self._release_notes_field)
        if raw_notes is None:
            raw_notes = ""
        if not isinstance(raw_notes, str):
            raise MalformedResponseError(
                self.SERVICE,
                f"{data.key}: field {self._release_notes_field} is not text",
            )
        return Issue(
            key=data.key,
            issue_type=data.fields.issuetype.name,
            release_notes=raw_notes,
        )


async def fetch_unique_issues(
    client: JiraClientProtocol,
    keys: Iterable[str],
    ctx: RequestContext,
) -> list[Issue]:
    """Fetch each distinct key once, in first-occurrence order.

    Args:
        client: Jira client to fetch with
        keys: Issue keys, possibly with duplicates
        ctx: Request context

    Returns:
        One Issue per distinct key (empty, without any call, for no keys)

    Raises:
        ReleaseNotesError: The first fetch error; no partial result is kept
    """
    issues: list[Issue] = []
    for key in unique(keys):
        issues.append(await client.get_issue(key, ctx))
    return issues


# ---------------------------------------------------------------------------
# Mock Implementation
# ---------------------------------------------------------------------------


class MockJiraClient:
    """Mock Jira client serving issues from a dict keyed by issue key.

    Unknown keys return an issue without release notes. Keys listed in
    ``errors`` raise the given exception. Requested keys are recorded in
    ``requested``.
    """

    def __init__(
        self,
        issues: dict[str, Issue] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self._issues = issues or {}
        self._errors = errors or {}
        self.requested: list[str] = []

    async def get_issue(self, key: str, ctx: RequestContext) -> Issue:
        self.requested.append(key)
        if key in self._errors:
            raise self._errors[key]
        return self._issues.get(key) or Issue(key=key, issue_type="Story")
