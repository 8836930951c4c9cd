"""Configuration for the labeler.

Configuration is loaded from:
- GitHub Actions inputs, which the runner exposes as `INPUT_<NAME>` environment variables
- runner context variables (`GITHUB_REPOSITORY`, `GITHUB_EVENT_PATH`, `GITHUB_API_URL`)
- and a local `.env` file (if present), for running outside of Actions

Action inputs are always strings. They are kept raw in `ActionInputs` and parsed exactly
once into a typed `LabelerConfig`; any malformed input is reported as a `ConfigError`
naming the offending input.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from conventional_pr_labeler.errors import ConfigError

_TASK_TYPES_ADAPTER: TypeAdapter[list[str]] = TypeAdapter(list[str])
_LABEL_MAP_ADAPTER: TypeAdapter[dict[str, str]] = TypeAdapter(dict[str, str])


class LabelerConfig(BaseModel):
    """Typed, validated labeler configuration."""

    model_config = ConfigDict(frozen=True)

    task_types: tuple[str, ...]
    custom_labels: dict[str, str] = Field(default_factory=dict)
    scope_custom_labels: dict[str, str] = Field(default_factory=dict)
    ticket_key_regex: str | None = None
    add_label: bool = True
    add_scope_label: bool = True
    scope_label_prefix: str = ""

    @property
    def ticket_pattern(self) -> re.Pattern[str] | None:
        if not self.ticket_key_regex:
            return None
        return re.compile(self.ticket_key_regex)


def _parse_task_types(raw: str) -> tuple[str, ...]:
    if not raw.strip():
        raise ConfigError("task_types", "Missing required input: task_types")
    try:
        task_types = _TASK_TYPES_ADAPTER.validate_json(raw, strict=True)
    except PydanticValidationError as e:
        raise ConfigError(
            "task_types", "Invalid task_types input. Expecting a JSON array of strings."
        ) from e
    if not task_types:
        raise ConfigError("task_types", "Invalid task_types input. The list must not be empty.")
    return tuple(task_types)


def _parse_label_map(field: str, raw: str) -> dict[str, str]:
    if not raw.strip():
        return {}
    try:
        json.loads(raw)
    except ValueError as e:
        raise ConfigError(field, f"Invalid {field} input. Unable to parse JSON.") from e
    try:
        return _LABEL_MAP_ADAPTER.validate_json(raw, strict=True)
    except PydanticValidationError as e:
        raise ConfigError(
            field, f"Invalid {field} input. Expecting a JSON object with string keys and values."
        ) from e


def _parse_ticket_regex(raw: str) -> str | None:
    if not raw:
        return None
    try:
        re.compile(raw)
    except re.error as e:
        raise ConfigError("ticket_key_regex", f"Invalid ticket_key_regex input: {e}") from e
    return raw


def _is_enabled(raw: str) -> bool:
    return raw.strip().lower() != "false"


class ActionInputs(BaseSettings):
    """Raw action inputs.

    Environment variables (as set by the Actions runner for `with:` inputs):
    - INPUT_TASK_TYPES           (required) JSON array of allowed commit types
    - INPUT_CUSTOM_LABELS        (optional) JSON object: commit type -> label
    - INPUT_SCOPE_CUSTOM_LABELS  (optional) JSON object: scope -> label
    - INPUT_TICKET_KEY_REGEX     (optional) regex the title must contain a match for
    - INPUT_ADD_LABEL            (optional) "false" disables type/breaking labels
    - INPUT_ADD_SCOPE_LABEL      (optional) "false" disables scope labels
    - INPUT_SCOPE_LABEL_PREFIX   (optional) prefix for scope labels
    - INPUT_TOKEN                (optional) GitHub token; falls back to GITHUB_TOKEN
    - INPUT_LOG_LEVEL            (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `ActionInputs(_env_file=path_to_env)`.
    """

    task_types: str = Field(default="", description="JSON array of allowed commit types")
    custom_labels: str = Field(default="", description="JSON object mapping type -> label")
    scope_custom_labels: str = Field(
        default="", description="JSON object mapping scope -> label"
    )
    ticket_key_regex: str = Field(default="", description="Regex for the ticket key")
    add_label: str = Field(default="true", description="Set to 'false' to skip type labels")
    add_scope_label: str = Field(
        default="true", description="Set to 'false' to skip scope labels"
    )
    scope_label_prefix: str = Field(default="", description="Prefix for scope labels")
    token: str = Field(
        default="",
        validation_alias=AliasChoices("INPUT_TOKEN", "GITHUB_TOKEN"),
        description="GitHub token used for API authentication",
    )
    log_level: str = Field(default="INFO", description="Root logging level")

    model_config = SettingsConfigDict(
        env_prefix="INPUT_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    def to_config(self) -> LabelerConfig:
        """Parse the raw inputs into a `LabelerConfig`.

        Raises:
            ConfigError: if any input is missing or malformed.
        """

        return LabelerConfig(
            task_types=_parse_task_types(self.task_types),
            custom_labels=_parse_label_map("custom_labels", self.custom_labels),
            scope_custom_labels=_parse_label_map("scope_custom_labels", self.scope_custom_labels),
            ticket_key_regex=_parse_ticket_regex(self.ticket_key_regex),
            add_label=_is_enabled(self.add_label),
            add_scope_label=_is_enabled(self.add_scope_label),
            scope_label_prefix=self.scope_label_prefix,
        )


class RunnerSettings(BaseSettings):
    """Context provided by the GitHub Actions runner."""

    repository: str = Field(
        default="",
        validation_alias="GITHUB_REPOSITORY",
        description="Repository in the form 'owner/repo'",
    )
    event_path: Path | None = Field(
        default=None,
        validation_alias="GITHUB_EVENT_PATH",
        description="Path to the JSON payload of the triggering event",
    )
    api_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_API_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )


class PullRequestRef(BaseModel):
    """The pull request a run acts on."""

    model_config = ConfigDict(frozen=True)

    repository: str
    number: int = Field(gt=0)
    title: str


def load_pull_request_event(path: Path, *, repository: str) -> PullRequestRef:
    """Read the pull request out of a `pull_request`/`pull_request_target` event payload.

    Raises:
        ConfigError: if the payload is missing or does not describe a pull request.
    """

    try:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError("event_path", f"Unable to read event payload {path}: {e}") from e

    pr = payload.get("pull_request") if isinstance(payload, dict) else None
    if not isinstance(pr, dict):
        raise ConfigError("event_path", "Event payload does not contain a pull_request")

    if not repository:
        repo_info = payload.get("repository")
        if isinstance(repo_info, dict) and isinstance(repo_info.get("full_name"), str):
            repository = repo_info["full_name"]

    try:
        return PullRequestRef(
            repository=repository,
            number=pr.get("number"),
            title=pr.get("title") or "",
        )
    except PydanticValidationError as e:
        raise ConfigError("event_path", f"Invalid pull_request in event payload: {e}") from e
