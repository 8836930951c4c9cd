"""Conventional-commit parsing for pull request titles."""

from __future__ import annotations

import re
from dataclasses import dataclass

HEADER_PATTERN = re.compile(r"^(\w*)(?:\(([\w$.\-*/ ]*)\))?(!?): (.*)$", re.ASCII)

BREAKING_NOTE_PATTERN = re.compile(r"^[\s|*]*BREAKING CHANGE[:\s]+")


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """Structured view of a conventional-commit title.

    Missing parts are empty strings rather than ``None`` so callers can test them
    uniformly for truthiness.
    """

    type: str = ""
    scope: str = ""
    breaking: bool = False


def parse_title(title: str) -> CommitInfo:
    """Parse ``type(scope)!: description`` out of a PR title.

    Leading whitespace is ignored. The header is the first line; any later line starting
    with a ``BREAKING CHANGE`` note (optionally bulleted) also marks the change as breaking.
    """

    lines = title.lstrip().splitlines() or [""]
    header, body = lines[0], lines[1:]

    breaking = any(BREAKING_NOTE_PATTERN.match(line) for line in body)

    match = HEADER_PATTERN.match(header)
    if match is None:
        return CommitInfo(breaking=breaking)

    commit_type, scope, bang, _subject = match.groups()
    return CommitInfo(
        type=commit_type or "",
        scope=scope or "",
        breaking=breaking or bang == "!",
    )
