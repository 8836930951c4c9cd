"""Conventional PR labeler.

Validates pull request titles against the conventional-commit format and keeps a small,
managed set of PR labels (task type, breaking change, scope) in sync with the title:
- configuration loaded from GitHub Actions inputs (or `.env`)
- structured logging
- idempotent label reconciliation against the GitHub REST API
"""

__version__ = "0.1.0"

from conventional_pr_labeler.config import ActionInputs, LabelerConfig

__all__ = ["__version__", "ActionInputs", "LabelerConfig"]
