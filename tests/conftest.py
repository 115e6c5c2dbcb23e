"""Shared fixtures: canned upstream responses and a request context."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

from gocd_release_notes.logging_config import RequestContext, new_request_context
from gocd_release_notes.schemas import Issue, PipelineComparison, PipelineRun

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES / name).read_text())


@pytest.fixture
def ctx() -> RequestContext:
    return new_request_context("test-request")


@pytest_asyncio.fixture
async def http() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def history_json() -> dict:
    return load_fixture("gocd-pipeline-history.json")


@pytest.fixture
def comparison_json() -> dict:
    return load_fixture("gocd-pipeline-compare.json")


@pytest.fixture
def issue_json() -> dict:
    return load_fixture("jira-issue.json")


@pytest.fixture
def sample_run(history_json: dict) -> PipelineRun:
    return PipelineRun.model_validate(history_json)


@pytest.fixture
def sample_comparison(comparison_json: dict) -> PipelineComparison:
    return PipelineComparison.model_validate(comparison_json)


@pytest.fixture
def sample_issues() -> dict[str, Issue]:
    """Issues matching the keys referenced by the sample comparison."""
    return {
        "JI-1227": Issue(
            key="JI-1227",
            issue_type="Story",
            release_notes="h4. Breaking Change\n\n* rename API methods\nh4. Features\n* login page",
        ),
        "JI-1228": Issue(
            key="JI-1228",
            issue_type="Bug",
            release_notes="* fix styling of the login button\nh4. Breaking Change\n* drop IE11",
        ),
    }
