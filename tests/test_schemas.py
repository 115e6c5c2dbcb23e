"""Tests for the pydantic models.

These tests verify that the models:
- Accept real upstream payloads (fixtures captured from GoCD and Jira)
- Tolerate polymorphic fields we never read
- Reject invalid request parameters with BadRequestError

Run with: pytest tests/test_schemas.py -v
"""

from __future__ import annotations

import pytest

from gocd_release_notes.errors import BadRequestError
from gocd_release_notes.schemas import (
    JiraIssueResponse,
    Notes,
    PipelineComparison,
    PipelineRun,
    PublishedPage,
    QueryParams,
)

# ---------------------------------------------------------------------------
# GoCD
# ---------------------------------------------------------------------------


class TestPipelineRun:
    """Tests for the PipelineRun model."""

    def test_parses_history_fixture(self, history_json: dict) -> None:
        run = PipelineRun.model_validate(history_json)
        assert run.name == "iotic-webbing"
        assert run.counter == 614
        assert run.label == "1.4.614"

    def test_scheduled_at_truncates_milliseconds(self, sample_run: PipelineRun) -> None:
        assert sample_run.scheduled_at.strftime("%Y-%m-%d") == "2021-03-10"
        assert sample_run.scheduled_at.microsecond == 0

    @pytest.mark.parametrize("comment", ["manual run", {"text": "x"}, None])
    def test_comment_accepts_any_shape(self, history_json: dict, comment) -> None:
        run = PipelineRun.model_validate({**history_json, "comment": comment})
        assert run.comment == comment

    def test_requires_label(self, history_json: dict) -> None:
        data = {k: v for k, v in history_json.items() if k != "label"}
        with pytest.raises(Exception):
            PipelineRun.model_validate(data)


class TestPipelineComparison:
    """Tests for the PipelineComparison model."""

    def test_parses_compare_fixture(self, comparison_json: dict) -> None:
        comparison = PipelineComparison.model_validate(comparison_json)
        assert comparison.from_counter == 613
        assert comparison.to_counter == 614
        assert len(comparison.changes) == 2

    def test_dependency_revision_has_empty_commit_message(
        self, sample_comparison: PipelineComparison
    ) -> None:
        dependency = sample_comparison.changes[1]
        assert dependency.material.type == "dependency"
        assert dependency.material.attributes.pipeline == "iotic-base"
        assert dependency.revision[0].commit_message == ""
        assert dependency.revision[0].pipeline_counter == "77"

    def test_changes_default_to_empty(self) -> None:
        comparison = PipelineComparison(pipeline_name="p", from_counter=1, to_counter=2)
        assert comparison.changes == []


# ---------------------------------------------------------------------------
# Jira / Confluence
# ---------------------------------------------------------------------------


class TestJiraIssueResponse:
    """Tests for the JiraIssueResponse model."""

    def test_parses_issue_fixture(self, issue_json: dict) -> None:
        issue = JiraIssueResponse.model_validate(issue_json)
        assert issue.key == "JI-1227"
        assert issue.fields.issuetype.name == "Story"
        assert issue.fields.custom_field("customfield_10110").startswith("h4. ")

    def test_unknown_custom_field_is_none(self, issue_json: dict) -> None:
        issue = JiraIssueResponse.model_validate(issue_json)
        assert issue.fields.custom_field("customfield_99999") is None

    def test_structured_assignee_is_tolerated(self, issue_json: dict) -> None:
        issue = JiraIssueResponse.model_validate(issue_json)
        assert issue.fields.assignee == {"accountId": "abc", "displayName": "Dev One"}

    def test_requires_key(self) -> None:
        with pytest.raises(Exception):
            JiraIssueResponse.model_validate({"fields": {}})


class TestPublishedPage:
    def test_requires_id(self) -> None:
        with pytest.raises(Exception):
            PublishedPage.model_validate({"id": "", "title": "x"})


# ---------------------------------------------------------------------------
# Notes and request
# ---------------------------------------------------------------------------


class TestNotes:
    def test_empty_by_default(self) -> None:
        assert Notes().is_empty()

    def test_not_empty_with_group(self) -> None:
        assert not Notes(groups={"Changes": ["x"]}).is_empty()


class TestQueryParams:
    """Tests for QueryParams.from_query()."""

    def test_valid_params(self) -> None:
        params = QueryParams.from_query("The Best Web", "iotic-webbing", "614")
        assert params == QueryParams(title="The Best Web", pipeline="iotic-webbing", counter=614)

    @pytest.mark.parametrize(
        ("title", "pipeline", "counter", "message"),
        [
            ("", "p", "1", "set title in query string"),
            (None, "p", "1", "set title in query string"),
            ("t", "", "1", "set pipeline in query string"),
            ("t", "p", "", "set counter in query string"),
            ("t", "p", "abc", "could not process counter"),
            ("t", "p", "1.5", "could not process counter"),
            ("t", "p", "1_0", "could not process counter"),
            ("t", "p", " 5 ", "could not process counter"),
            ("t", "p", "\u0665", "could not process counter"),
            ("t", "p", "0x10", "could not process counter"),
            ("t", "p", "0", "counter must be a positive integer"),
            ("t", "p", "-3", "counter must be a positive integer"),
        ],
    )
    def test_invalid_params(self, title, pipeline, counter, message: str) -> None:
        with pytest.raises(BadRequestError, match=message):
            QueryParams.from_query(title, pipeline, counter)
