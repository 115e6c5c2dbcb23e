"""Pydantic models for the data flowing through the release notes pipeline.

Three groups of models live here:
- Upstream snapshots (GoCD pipeline runs and comparisons, Jira issues,
  Confluence storage bodies and pages), validated as soon as a response
  body is parsed
- The notes themselves (Group, Notes)
- The request contract (QueryParams)

Design notes:
- Upstream models only declare the fields the pipeline reads. Unknown keys
  are ignored so schema drift in GoCD or Jira does not break parsing.
- Fields whose upstream type varies (GoCD ``comment``, ``email_address``,
  Jira ``assignee``...) are typed as ``LooseValue``: a string, a structured
  value we never inspect, or absent.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from gocd_release_notes.errors import BadRequestError

# Optionally signed ASCII decimal integer
COUNTER_PATTERN = re.compile(r"[+-]?\d+", re.ASCII)

# Present-string, structured-but-unused, or absent.
LooseValue = str | dict[str, Any] | list[Any] | None


# ---------------------------------------------------------------------------
# GoCD
# ---------------------------------------------------------------------------


class PipelineRun(BaseModel):
    """One executed GoCD pipeline (``GET /go/api/pipelines/{name}/{counter}``).

    Attributes:
        name: Pipeline name
        counter: Run counter
        label: Human label of the run, used as the release version
        scheduled_date: When the run was scheduled, in epoch milliseconds
        comment: Free-form run comment (unused)
    """

    name: str = Field(..., min_length=1, description="Pipeline name")
    counter: int = Field(..., description="Run counter")
    label: str = Field(..., description="Run label / release version")
    scheduled_date: int = Field(..., description="Epoch milliseconds")
    natural_order: float | None = None
    can_run: bool = False
    comment: LooseValue = None

    @property
    def scheduled_at(self) -> datetime:
        """The scheduled date truncated to whole seconds, in UTC."""
        return datetime.fromtimestamp(self.scheduled_date // 1000, tz=UTC)


class MaterialAttributes(BaseModel):
    name: str | None = None
    url: str | None = None
    branch: str | None = None
    destination: str | None = None
    # dependency materials
    pipeline: str | None = None
    stage: str | None = None


class Material(BaseModel):
    type: str = ""
    attributes: MaterialAttributes = Field(default_factory=MaterialAttributes)


class Revision(BaseModel):
    """One revision of a changed material.

    SCM materials carry a commit; dependency materials carry an upstream
    pipeline revision and an empty commit message.
    """

    revision_sha: str = ""
    modified_by: str = ""
    modified_at: str | None = None
    commit_message: str = ""
    revision: str | None = None
    pipeline_counter: str | int | None = None
    completed_at: str | None = None
    email_address: LooseValue = None


class MaterialChange(BaseModel):
    material: Material = Field(default_factory=Material)
    revision: list[Revision] = Field(default_factory=list)


class PipelineComparison(BaseModel):
    """Changes between two runs of a pipeline (``/compare/{from}/{to}``)."""

    pipeline_name: str = Field(..., min_length=1)
    from_counter: int
    to_counter: int
    is_bisect: bool = False
    changes: list[MaterialChange] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Jira
# ---------------------------------------------------------------------------


class IssueType(BaseModel):
    name: str = ""
    subtask: bool = False


class IssueStatus(BaseModel):
    name: str = ""


class IssueFields(BaseModel):
    """The ``fields`` object of a Jira issue.

    Extra keys are kept (``extra="allow"``) because the release notes live
    in a custom field whose name is only known from configuration.
    """

    model_config = {"extra": "allow"}

    issuetype: IssueType = Field(default_factory=IssueType)
    status: IssueStatus | None = None
    labels: list[str] = Field(default_factory=list)
    assignee: LooseValue = None
    epic: LooseValue = None
    resolutiondate: str | None = None

    def custom_field(self, name: str) -> Any:
        """Return the raw value of a custom field, or None if absent."""
        return (self.model_extra or {}).get(name)


class JiraIssueResponse(BaseModel):
    """Body of ``GET /rest/agile/latest/issue/{key}``."""

    id: str = ""
    key: str = Field(..., min_length=1)
    self_url: str = Field("", alias="self")
    fields: IssueFields = Field(default_factory=IssueFields)


class Issue(BaseModel):
    """A Jira issue reduced to what the notes pipeline needs.

    Attributes:
        key: Issue key, e.g. "JI-1234"
        issue_type: Issue type name, e.g. "Story"
        release_notes: Content of the release notes field ("" when unset)
    """

    key: str
    issue_type: str = ""
    release_notes: str = ""


# ---------------------------------------------------------------------------
# Confluence
# ---------------------------------------------------------------------------


class StorageBody(BaseModel):
    """A Confluence content body in a given representation."""

    value: str
    representation: str


class ContentBody(BaseModel):
    storage: StorageBody


class Space(BaseModel):
    key: str


class Label(BaseModel):
    name: str


class ContentMetadata(BaseModel):
    labels: list[Label] = Field(default_factory=list)


class ConfluencePost(BaseModel):
    """Request body for ``POST /rest/api/content/``."""

    type: str = "blogpost"
    space: Space
    status: str = "current"
    title: str = Field(..., min_length=1)
    body: ContentBody
    metadata: ContentMetadata = Field(default_factory=ContentMetadata)


class PublishedPage(BaseModel):
    """The page Confluence created for us."""

    id: str = Field(..., min_length=1)
    type: str = ""
    status: str = ""
    title: str = ""


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class Group(BaseModel):
    """A named bucket of release note lines, in source order."""

    name: str
    bullet_points: list[str] = Field(default_factory=list)


class Notes(BaseModel):
    """Release notes merged across issues: group name → bullet lines."""

    groups: dict[str, list[str]] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.groups


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class QueryParams(BaseModel):
    """Validated query string of a release notes request."""

    title: str = Field(..., min_length=1, description="Product title for the post")
    pipeline: str = Field(..., min_length=1, description="GoCD pipeline name")
    counter: int = Field(..., gt=0, description="GoCD pipeline run counter")

    @classmethod
    def from_query(
        cls,
        title: str | None,
        pipeline: str | None,
        counter: str | None,
    ) -> QueryParams:
        """Build QueryParams from raw query string values.

        Raises:
            BadRequestError: If a parameter is missing or invalid
        """
        if not title:
            raise BadRequestError("set title in query string")
        if not pipeline:
            raise BadRequestError("set pipeline in query string")
        if not counter:
            raise BadRequestError("set counter in query string")
        if COUNTER_PATTERN.fullmatch(counter) is None:
            raise BadRequestError("could not process counter")
        counter_value = int(counter)
        if counter_value <= 0:
            raise BadRequestError("counter must be a positive integer")
        return cls(title=title, pipeline=pipeline, counter=counter_value)
