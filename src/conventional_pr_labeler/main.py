"""CLI entrypoint for the labeler.

Inside GitHub Actions everything comes from the environment (`INPUT_*`, `GITHUB_*`);
the flags exist so the same run can be reproduced locally against a real PR.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from conventional_pr_labeler import __version__
from conventional_pr_labeler.config import (
    ActionInputs,
    PullRequestRef,
    RunnerSettings,
    load_pull_request_event,
)
from conventional_pr_labeler.errors import ConfigError, LabelerError
from conventional_pr_labeler.github.client import GitHubClient
from conventional_pr_labeler.logging import configure_logging
from conventional_pr_labeler.workflow import PullRequestLabeler

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _annotate_error(message: str) -> None:
    """Report a failure to the Actions UI as an `::error::` workflow command."""

    # Workflow commands are line-based; newlines must be escaped.
    escaped = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
    print(f"::error::{escaped}")


def _pull_number(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid pull request number: '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"pull request number must be positive: {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="conventional-pr-labeler",
        description="Validate a PR title against conventional commits and sync its labels",
    )
    parser.add_argument(
        "--version", action="version", version=f"conventional-pr-labeler {__version__}"
    )
    parser.add_argument(
        "--repo",
        "--repository",
        dest="repository",
        default=None,
        help="Repository in the form 'owner/repo' (defaults to GITHUB_REPOSITORY)",
    )
    parser.add_argument(
        "--pr-number",
        type=_pull_number,
        default=None,
        help="Pull request number (defaults to the one in the event payload)",
    )
    parser.add_argument(
        "--title",
        default=None,
        help="PR title to validate (defaults to the event payload, or fetched from GitHub)",
    )
    parser.add_argument(
        "--event-path",
        type=Path,
        default=None,
        help="Path to the event payload (defaults to GITHUB_EVENT_PATH)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and compute label changes without applying them",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        inputs = ActionInputs()
        runner = RunnerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check the action inputs):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(inputs.log_level)

    github: GitHubClient | None = None
    try:
        config = inputs.to_config()

        repository = args.repository or runner.repository
        event_pr: PullRequestRef | None = None
        if args.pr_number is None:
            event_path = args.event_path or runner.event_path
            if event_path is None:
                raise ConfigError(
                    "event_path", "No pull request: pass --pr-number or set GITHUB_EVENT_PATH"
                )
            event_pr = load_pull_request_event(event_path, repository=repository)
            repository = event_pr.repository

        if not repository:
            raise ConfigError("repository", "Missing repository: pass --repo or GITHUB_REPOSITORY")
        if not inputs.token:
            raise ConfigError("token", "Missing required input: token")

        github = GitHubClient(token=inputs.token, repository=repository, base_url=runner.api_url)

        if event_pr is not None:
            number = event_pr.number
            title = args.title if args.title is not None else event_pr.title
        else:
            number = args.pr_number
            title = (
                args.title
                if args.title is not None
                else github.get_pull_request_title(pull_number=number)
            )
        pr = PullRequestRef(repository=repository, number=number, title=title)

        labeler = PullRequestLabeler(config=config, github=github, dry_run=args.dry_run)
        outcome = labeler.run(pr)
        logger.info(
            "Pull request labeled",
            extra={
                "repo": pr.repository,
                "pull_number": pr.number,
                "state": outcome.state.value,
                "dry_run": args.dry_run,
            },
        )
        return EXIT_OK

    except ConfigError as e:
        logger.error(str(e), extra={"field": e.field})
        _annotate_error(str(e))
        return EXIT_CONFIG_ERROR

    except LabelerError as e:
        logger.error(str(e))
        _annotate_error(str(e))
        return EXIT_FAILED

    except Exception as e:
        logger.exception("Labeling failed")
        _annotate_error(str(e))
        return EXIT_FAILED

    finally:
        if github is not None:
            github.close()


if __name__ == "__main__":
    raise SystemExit(main())
