"""Error types raised by the labeler."""

from __future__ import annotations


class LabelerError(Exception):
    """Base class for failures that stop a labeling run."""


class ConfigError(LabelerError):
    """An action input is missing or malformed.

    Raised before any GitHub API call is made.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class TitleValidationError(LabelerError):
    """The pull request title does not satisfy the type or ticket constraints."""

    def __init__(self, title: str, message: str) -> None:
        super().__init__(message)
        self.title = title


class RemoteWriteError(LabelerError):
    """One or more label mutations failed.

    Reconciliation re-diffs from fresh state, so the run can simply be retried.
    """

    def __init__(self, message: str, *, failed_labels: list[str]) -> None:
        super().__init__(message)
        self.failed_labels = failed_labels
