"""Test configuration and fixtures."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import Mock

import pytest

from conventional_pr_labeler.config import LabelerConfig
from conventional_pr_labeler.github.client import GitHubClient, LabelLookup, LookupStatus

_ENV_VARS = (
    "INPUT_TASK_TYPES",
    "INPUT_CUSTOM_LABELS",
    "INPUT_SCOPE_CUSTOM_LABELS",
    "INPUT_TICKET_KEY_REGEX",
    "INPUT_ADD_LABEL",
    "INPUT_ADD_SCOPE_LABEL",
    "INPUT_SCOPE_LABEL_PREFIX",
    "INPUT_TOKEN",
    "INPUT_LOG_LEVEL",
    "GITHUB_TOKEN",
    "GITHUB_REPOSITORY",
    "GITHUB_EVENT_PATH",
    "GITHUB_API_URL",
)


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate settings from the runner environment and any local `.env`."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def labeler_config() -> LabelerConfig:
    """Provide a minimal labeler configuration."""
    return LabelerConfig(task_types=("feat", "fix"))


@pytest.fixture
def mock_github() -> Mock:
    """Provide a GitHub client double with no labels attached and none defined."""
    github = Mock(spec=GitHubClient)
    github.repository = "octo-org/octo-repo"
    github.list_issue_labels.return_value = set()
    github.get_label.side_effect = lambda *, name: LabelLookup(
        name=name, status=LookupStatus.NOT_FOUND
    )
    github.create_label.return_value = True
    github.remove_label.return_value = True
    github.previous_title.return_value = None
    return github
