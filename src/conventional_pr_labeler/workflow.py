"""Labeling workflow for a single pull request.

A run is a linear state machine:

    PARSE_CONFIG -> VALIDATE_TITLE_TYPE -> VALIDATE_TICKET_NUMBER
        -> RECONCILE_TYPE_LABEL -> RECONCILE_SCOPE_LABEL -> DONE

Any state may move to FAILED; both DONE and FAILED are terminal. The first hard
validation failure ends the run before any label is touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

import requests
from github import GithubException

from conventional_pr_labeler.commit_title import CommitInfo, parse_title
from conventional_pr_labeler.config import LabelerConfig, PullRequestRef
from conventional_pr_labeler.errors import TitleValidationError
from conventional_pr_labeler.github.client import GitHubClient
from conventional_pr_labeler.github_labels import (
    BREAKING_CHANGE_LABEL,
    scope_label_for,
    type_label_for,
)
from conventional_pr_labeler.reconcile import LabelPlan, LabelReconciler

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    PARSE_CONFIG = "parse_config"
    VALIDATE_TITLE_TYPE = "validate_title_type"
    VALIDATE_TICKET_NUMBER = "validate_ticket_number"
    RECONCILE_TYPE_LABEL = "reconcile_type_label"
    RECONCILE_SCOPE_LABEL = "reconcile_scope_label"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[WorkflowState, set[WorkflowState]] = {
    WorkflowState.PARSE_CONFIG: {WorkflowState.VALIDATE_TITLE_TYPE},
    WorkflowState.VALIDATE_TITLE_TYPE: {WorkflowState.VALIDATE_TICKET_NUMBER},
    WorkflowState.VALIDATE_TICKET_NUMBER: {WorkflowState.RECONCILE_TYPE_LABEL},
    WorkflowState.RECONCILE_TYPE_LABEL: {WorkflowState.RECONCILE_SCOPE_LABEL},
    WorkflowState.RECONCILE_SCOPE_LABEL: {WorkflowState.DONE},
    WorkflowState.DONE: set(),
    WorkflowState.FAILED: set(),
}


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: WorkflowState, to: WorkflowState) -> WorkflowState:
    if to is WorkflowState.FAILED and current is not WorkflowState.DONE:
        return to
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


@dataclass(slots=True)
class LabelingOutcome:
    """What a run did, for logging and tests."""

    commit: CommitInfo | None = None
    type_plan: LabelPlan | None = None
    scope_plan: LabelPlan | None = None
    states: list[WorkflowState] = field(default_factory=lambda: [WorkflowState.PARSE_CONFIG])

    @property
    def state(self) -> WorkflowState:
        return self.states[-1]


def managed_type_labels(config: LabelerConfig) -> frozenset[str]:
    """Labels the type step may add or remove."""

    custom = frozenset(config.custom_labels.values())
    return frozenset(config.task_types) | {BREAKING_CHANGE_LABEL} | custom


def desired_type_labels(commit: CommitInfo, config: LabelerConfig) -> frozenset[str]:
    labels = {type_label_for(commit.type, config.custom_labels)}
    if commit.breaking:
        labels.add(BREAKING_CHANGE_LABEL)
    return frozenset(labels)


def validate_title_type(title: str, commit: CommitInfo, config: LabelerConfig) -> None:
    if not commit.type or commit.type not in config.task_types:
        raise TitleValidationError(
            title,
            f"Invalid or missing task type: '{commit.type}'. "
            f"Must be one of: {', '.join(config.task_types)}",
        )


def validate_ticket_number(title: str, config: LabelerConfig) -> None:
    pattern = config.ticket_pattern
    if pattern is None:
        return
    match = pattern.search(title)
    ticket = match.group(0) if match else ""
    if not ticket:
        raise TitleValidationError(
            title,
            f"Invalid or missing task number: '{ticket}'. Must match: {config.ticket_key_regex}",
        )


class PullRequestLabeler:
    """Validate a PR title and keep its labels in sync with it."""

    def __init__(
        self, *, config: LabelerConfig, github: GitHubClient, dry_run: bool = False
    ) -> None:
        self._config = config
        self._github = github
        self._reconciler = LabelReconciler(github, dry_run=dry_run)

    def run(self, pr: PullRequestRef) -> LabelingOutcome:
        """Run the whole workflow for one pull request.

        Raises:
            TitleValidationError: if the title fails type or ticket validation.
            RemoteWriteError: if label mutations failed.
        """

        outcome = LabelingOutcome()
        try:
            self._run(pr, outcome)
        except Exception:
            self._advance(outcome, WorkflowState.FAILED)
            raise
        return outcome

    def _advance(self, outcome: LabelingOutcome, to: WorkflowState) -> None:
        outcome.states.append(transition(current=outcome.state, to=to))
        logger.debug("Workflow state changed", extra={"state": to.value})

    def _run(self, pr: PullRequestRef, outcome: LabelingOutcome) -> None:
        self._advance(outcome, WorkflowState.VALIDATE_TITLE_TYPE)
        commit = parse_title(pr.title)
        outcome.commit = commit
        logger.info(
            "Parsed pull request title",
            extra={
                "pull_number": pr.number,
                "type": commit.type,
                "scope": commit.scope,
                "breaking": commit.breaking,
            },
        )
        validate_title_type(pr.title, commit, self._config)

        self._advance(outcome, WorkflowState.VALIDATE_TICKET_NUMBER)
        validate_ticket_number(pr.title, self._config)

        # Neither step removes a label the other one wants.
        type_desired = (
            desired_type_labels(commit, self._config) if self._config.add_label else frozenset()
        )
        scope_desired = (
            self._scope_label(commit)
            if commit.scope and self._config.add_scope_label
            else None
        )

        self._advance(outcome, WorkflowState.RECONCILE_TYPE_LABEL)
        if self._config.add_label:
            outcome.type_plan = self._reconciler.apply(
                issue_number=pr.number,
                desired=type_desired,
                managed=managed_type_labels(self._config) - {scope_desired or ""},
            )
        else:
            logger.info("Type labeling disabled", extra={"pull_number": pr.number})

        self._advance(outcome, WorkflowState.RECONCILE_SCOPE_LABEL)
        if scope_desired is not None:
            outcome.scope_plan = self._reconcile_scope_label(
                pr, desired=scope_desired, keep=type_desired
            )

        self._advance(outcome, WorkflowState.DONE)

    def _scope_label(self, commit: CommitInfo) -> str:
        return scope_label_for(
            commit.scope,
            prefix=self._config.scope_label_prefix,
            custom_labels=self._config.scope_custom_labels,
        )

    def _reconcile_scope_label(
        self, pr: PullRequestRef, *, desired: str, keep: frozenset[str]
    ) -> LabelPlan:
        """Attach the label for the current scope and drop the label of a previous scope.

        Previous scope labels are recognised by the configured prefix, by being a custom
        scope label, or (without a prefix) by parsing the title from before the last rename.
        Labels in `keep` are never removed.
        """

        prefix = self._config.scope_label_prefix
        custom = self._config.scope_custom_labels

        current = self._github.list_issue_labels(issue_number=pr.number)
        managed = {desired, *custom.values()}
        if prefix:
            managed.update(label for label in current if label.startswith(prefix))
        else:
            previous_scope = self._previous_scope(pr)
            if previous_scope:
                managed.add(scope_label_for(previous_scope, prefix=prefix, custom_labels=custom))

        return self._reconciler.apply(
            issue_number=pr.number,
            desired={desired},
            managed=managed - keep,
            current=current,
        )

    def _previous_scope(self, pr: PullRequestRef) -> str:
        try:
            previous_title = self._github.previous_title(issue_number=pr.number)
        except (GithubException, requests.RequestException) as e:
            logger.warning(
                "Unable to read previous title; stale scope labels will be kept",
                extra={"pull_number": pr.number, "error": str(e)},
            )
            return ""
        if not previous_title:
            return ""
        return parse_title(previous_title).scope
