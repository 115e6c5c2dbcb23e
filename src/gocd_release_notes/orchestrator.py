"""Orchestrator for building and publishing the release notes of a run.

The pipeline runs strictly in sequence, each step able to end the request:
1. Fetch the run metadata and the comparison with the previous run (GoCD)
2. Extract issue keys from the commit messages and fetch each issue (Jira)
   - no issues: nothing to publish ("no content")
3. Extract the release notes of every issue and merge them by group
   - no notes on any issue: nothing to publish ("no content")
4. Publish the notes as a blog post (Confluence)
   - a publish failure is reported next to the notes, it does not discard them

Errors from steps 1-3 propagate to the caller unchanged.

This module is also the CLI entry point (``gocd-release-notes``).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass, field
from enum import StrEnum

import httpx

from gocd_release_notes.clients.confluence import (
    ConfluenceClient,
    ConfluenceClientProtocol,
)
from gocd_release_notes.clients.gocd import (
    GocdClient,
    GocdClientProtocol,
    derive_issue_keys,
)
from gocd_release_notes.clients.jira import (
    JiraClient,
    JiraClientProtocol,
    fetch_unique_issues,
)
from gocd_release_notes.config import Settings, load_settings
from gocd_release_notes.errors import ReleaseNotesError
from gocd_release_notes.logging_config import (
    RequestContext,
    new_request_context,
    setup_logging,
)
from gocd_release_notes.notes import extract_release_notes
from gocd_release_notes.schemas import Notes, PublishedPage, QueryParams


class Outcome(StrEnum):
    """How a release notes request ended.

    NO_ISSUES: The commits reference no Jira issues
    NO_NOTES: Issues were found but none has release notes
    PUBLISHED: Notes were published
    PUBLISH_FAILED: Notes were built but publishing failed
    NOT_PUBLISHED: Notes were built and publishing was skipped on purpose
    """

    NO_ISSUES = "NO_ISSUES"
    NO_NOTES = "NO_NOTES"
    PUBLISHED = "PUBLISHED"
    PUBLISH_FAILED = "PUBLISH_FAILED"
    NOT_PUBLISHED = "NOT_PUBLISHED"


@dataclass
class ReleaseNotesResult:
    """Result of one run of the pipeline."""

    outcome: Outcome
    notes: Notes = field(default_factory=Notes)
    page: PublishedPage | None = None
    publish_error: ReleaseNotesError | None = None

    @property
    def has_content(self) -> bool:
        return self.outcome not in (Outcome.NO_ISSUES, Outcome.NO_NOTES)


class ReleaseNotesOrchestrator:
    """Sequences GoCD → Jira → notes extraction → Confluence.

    Stateless between calls: every request builds its notes from scratch.

    Usage:
        orchestrator = ReleaseNotesOrchestrator.from_settings(settings, http)
        result = await orchestrator.create_release_notes(params, ctx)
    """

    def __init__(
        self,
        gocd: GocdClientProtocol,
        jira: JiraClientProtocol,
        confluence: ConfluenceClientProtocol,
    ) -> None:
        self.gocd = gocd
        self.jira = jira
        self.confluence = confluence

    @classmethod
    def from_settings(
        cls, settings: Settings, http: httpx.AsyncClient
    ) -> ReleaseNotesOrchestrator:
        """Wire the real clients from settings around a shared HTTP client."""
        return cls(
            gocd=GocdClient(settings.gocd_url, settings.gocd_api_key, http),
            jira=JiraClient(
                settings.jira_url,
                settings.jira_user,
                settings.jira_api_key,
                http,
                release_notes_field=settings.jira_release_notes_field,
            ),
            confluence=ConfluenceClient(
                settings.confluence_url,
                settings.jira_user,
                settings.jira_api_key,
                settings.confluence_space_key,
                http,
                content_format=settings.confluence_format,
            ),
        )

    async def create_release_notes(
        self,
        params: QueryParams,
        ctx: RequestContext,
        publish: bool = True,
    ) -> ReleaseNotesResult:
        """Build the release notes of one pipeline run and publish them.

        Args:
            params: Validated request parameters
            ctx: Request context
            publish: Set to False to stop after building the notes

        Returns:
            The outcome, the notes and the published page or publish error

        Raises:
            ReleaseNotesError: If fetching the run, its changes or its
                issues fails
        """
        log = ctx.logger.bind(pipeline=params.pipeline, counter=params.counter)
        log.info("release_notes_started", title=params.title)

        run = await self.gocd.get_run_metadata(params.pipeline, params.counter, ctx)
        comparison = await self.gocd.get_run_comparison(
            params.pipeline, params.counter, ctx
        )

        keys = derive_issue_keys(comparison)
        issues = await fetch_unique_issues(self.jira, keys, ctx)
        if not issues:
            log.info("release_notes_no_issues", keys_found=len(keys))
            return ReleaseNotesResult(outcome=Outcome.NO_ISSUES)

        notes = extract_release_notes(issues, ctx)
        if notes.is_empty():
            log.info("release_notes_empty", issues=len(issues))
            return ReleaseNotesResult(outcome=Outcome.NO_NOTES)

        if not publish:
            return ReleaseNotesResult(outcome=Outcome.NOT_PUBLISHED, notes=notes)

        try:
            page = await self.confluence.publish(
                run, params.title, params.pipeline, notes, ctx
            )
        except ReleaseNotesError as exc:
            log.error("release_notes_publish_failed", error=str(exc))
            return ReleaseNotesResult(
                outcome=Outcome.PUBLISH_FAILED, notes=notes, publish_error=exc
            )

        log.info("release_notes_complete", groups=len(notes.groups), page_id=page.id)
        return ReleaseNotesResult(outcome=Outcome.PUBLISHED, notes=notes, page=page)


# ---------------------------------------------------------------------------
# CLI Entry Point
# ---------------------------------------------------------------------------


async def _run_once(settings: Settings, params: QueryParams, publish: bool) -> ReleaseNotesResult:
    async with httpx.AsyncClient(
        verify=settings.verify_tls, timeout=settings.http_timeout
    ) as http:
        orchestrator = ReleaseNotesOrchestrator.from_settings(settings, http)
        return await orchestrator.create_release_notes(
            params, new_request_context(), publish=publish
        )


def main(argv: list[str] | None = None) -> int:
    """Build (and publish) the release notes of one run from the command line.

    Usage:
        gocd-release-notes --title "The Best Web" --pipeline web --counter 614
        gocd-release-notes --title Web --pipeline web --counter 614 --no-publish
    """
    parser = argparse.ArgumentParser(description="GoCD release notes publisher")
    parser.add_argument("--title", required=True, help="Product title for the post")
    parser.add_argument("--pipeline", required=True, help="GoCD pipeline name")
    parser.add_argument("--counter", required=True, help="Pipeline run counter")
    parser.add_argument("--config", "-c", help="Path to the YAML config file")
    parser.add_argument(
        "--no-publish",
        action="store_true",
        help="Print the notes without posting them to Confluence",
    )
    args = parser.parse_args(argv)

    try:
        params = QueryParams.from_query(args.title, args.pipeline, args.counter)
        settings = load_settings(args.config)
    except (ReleaseNotesError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        environment=settings.environment,
        log_level=settings.log_level,
        stream=sys.stderr,
    )

    try:
        result = asyncio.run(_run_once(settings, params, publish=not args.no_publish))
    except ReleaseNotesError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if not result.has_content:
        print(f"no release notes ({result.outcome})", file=sys.stderr)
        return 0

    print(json.dumps(result.notes.groups, indent=2))
    if result.publish_error is not None:
        print(f"error: {result.publish_error}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
