"""Text extraction for release notes.

Two small parsers and one aggregator:
- ``find_issue_keys`` pulls Jira keys out of commit messages. A key only
  counts when it starts a line (``JI-1234 fix login``), which is the
  commit convention the pipelines follow.
- ``extract_groups`` splits the release notes field of one issue into
  groups, using Jira wiki headings (``h1.`` .. ``h9.``) as group names.
- ``merge_groups`` / ``extract_release_notes`` fold the per-issue groups
  into a single Notes mapping.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import TYPE_CHECKING, TypeVar

from gocd_release_notes.schemas import Group, Issue, Notes

if TYPE_CHECKING:
    from gocd_release_notes.logging_config import RequestContext

T = TypeVar("T")

ISSUE_KEY_PATTERN = re.compile(r"^\w+-\d+", re.MULTILINE | re.ASCII)
HEADING_PATTERN = re.compile(r"^h\d\.\s(.*)", re.ASCII)

# Name of the group collecting lines that appear before any heading
DEFAULT_GROUP = "Changes"


# ---------------------------------------------------------------------------
# Issue keys
# ---------------------------------------------------------------------------


def find_issue_keys(text: str) -> list[str]:
    """Find issue keys at the start of each line of ``text``.

    Examples:
        >>> find_issue_keys("JI-1234 abc\\nJI-5678 xyz\\n")
        ['JI-1234', 'JI-5678']
        >>> find_issue_keys("abc JI-1234")
        []
    """
    return ISSUE_KEY_PATTERN.findall(text)


def unique(items: Iterable[T]) -> list[T]:
    """Drop duplicates, keeping the first occurrence of each item."""
    return list(dict.fromkeys(items))


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


def find_heading(line: str) -> str:
    """Return the title of a ``hN. Title`` heading line, or "" otherwise."""
    match = HEADING_PATTERN.match(line)
    if match is None:
        return ""
    return match.group(1)


def extract_groups(note_text: str) -> list[Group]:
    """Split the release notes of one issue into groups.

    Lines are split on newlines only, dropping a trailing carriage return.
    Blank lines are skipped. A heading line opens a new group; any other line is
    appended verbatim to the current group. Lines before the first
    heading go to an implicit "Changes" group.

    Args:
        note_text: Raw content of the release notes field

    Returns:
        Groups in the order they were encountered (empty for empty input)
    """
    groups: list[Group] = []
    for line in note_text.split("\n"):
        line = line.removesuffix("\r")
        if not line.strip():
            continue
        heading = find_heading(line)
        if heading:
            groups.append(Group(name=heading))
            continue
        if not groups:
            groups.append(Group(name=DEFAULT_GROUP))
        groups[-1].bullet_points.append(line)
    return groups


def merge_groups(target: dict[str, list[str]], new_groups: Iterable[Group]) -> None:
    """Merge ``new_groups`` into ``target`` in place.

    Bullets of a group that already exists are appended after the existing
    ones; unknown groups are added as new entries.
    """
    for group in new_groups:
        if group.name in target:
            target[group.name].extend(group.bullet_points)
            continue
        target[group.name] = list(group.bullet_points)


def extract_release_notes(
    issues: Iterable[Issue],
    ctx: RequestContext | None = None,
) -> Notes:
    """Build the combined Notes for a list of issues, in issue order."""
    notes = Notes()
    for issue in issues:
        if ctx is not None:
            ctx.logger.info(
                "issue_release_notes",
                issue_key=issue.key,
                issue_type=issue.issue_type,
                has_notes=bool(issue.release_notes),
            )
        if not issue.release_notes:
            continue
        merge_groups(notes.groups, extract_groups(issue.release_notes))
    return notes
