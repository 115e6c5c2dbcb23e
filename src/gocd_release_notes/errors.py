"""Error types raised across the release notes pipeline.

Every stage raises one of these immediately and lets it propagate; nothing
retries locally. The HTTP layer turns any ``ReleaseNotesError`` into a
plain-text 400 response, the orchestrator only catches errors raised while
publishing (so the computed notes still reach the caller).
"""

from __future__ import annotations


class ReleaseNotesError(Exception):
    """Base class for every error the service reports to its caller."""


class BadRequestError(ReleaseNotesError):
    """A query parameter is missing or invalid."""


class UpstreamError(ReleaseNotesError):
    """An upstream service call failed.

    Attributes:
        service: Which upstream failed ("gocd", "jira" or "confluence")
        status_code: HTTP status returned, if a response was received
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class UnauthorizedError(UpstreamError):
    """The upstream service rejected our credentials."""

    def __init__(self, service: str, status_code: int = 401) -> None:
        super().__init__(service, f"{status_code} Unauthorized", status_code)


class MalformedResponseError(UpstreamError):
    """The upstream body is not JSON or does not have the expected shape."""


class PublishFailedError(UpstreamError):
    """Confluence refused to convert the markup or create the page."""
