"""Label reconciliation.

Brings the labels of one pull request from their current state to a desired state with
the minimal number of API calls. Only labels in the managed set are ever removed, so
labels added by people or other tools are left alone.

The remote label list is the only state: every run re-reads it and re-diffs, which makes
reconciliation idempotent and safe to retry after a partial failure.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import requests
from github import GithubException

from conventional_pr_labeler.errors import RemoteWriteError
from conventional_pr_labeler.github.client import GitHubClient, LookupStatus
from conventional_pr_labeler.github_labels import label_spec_for

logger = logging.getLogger(__name__)

_REMOTE_ERRORS = (GithubException, requests.RequestException)


@dataclass(frozen=True, slots=True)
class LabelPlan:
    """Label mutations needed to converge on the desired state."""

    to_remove: frozenset[str]
    to_add: frozenset[str]

    @property
    def is_empty(self) -> bool:
        return not self.to_remove and not self.to_add

    def applied_to(self, current: Iterable[str]) -> frozenset[str]:
        """Return the label set that results from applying this plan to `current`."""

        return (frozenset(current) - self.to_remove) | self.to_add


def plan_label_changes(
    current: Iterable[str], desired: Iterable[str], managed: Iterable[str]
) -> LabelPlan:
    """Compute which labels to remove and which to add.

    - remove: currently attached, managed, and not desired
    - add: desired and not currently attached
    """

    current_set = frozenset(current)
    desired_set = frozenset(desired)
    managed_set = frozenset(managed)
    return LabelPlan(
        to_remove=frozenset(
            label for label in current_set if label in managed_set and label not in desired_set
        ),
        to_add=desired_set - current_set,
    )


class LabelReconciler:
    """Apply label plans to a pull request through a `GitHubClient`."""

    def __init__(self, github: GitHubClient, *, dry_run: bool = False) -> None:
        self._github = github
        self._dry_run = dry_run

    def apply(
        self,
        *,
        issue_number: int,
        desired: Iterable[str],
        managed: Iterable[str],
        current: Iterable[str] | None = None,
    ) -> LabelPlan:
        """Reconcile the labels of one issue or pull request.

        Args:
            issue_number: Issue or PR number.
            desired: Labels that should be attached after this call.
            managed: Labels this tool may remove. Desired labels are always managed.
            current: Labels attached right now; fetched from GitHub when omitted.

        Returns:
            The plan that was applied.

        Raises:
            RemoteWriteError: if any removal, creation or attachment failed. All removals
                are attempted; the add phase stops at its first failure.
        """

        desired_set = frozenset(desired)
        managed_set = frozenset(managed) | desired_set
        if current is None:
            current = self._github.list_issue_labels(issue_number=issue_number)
        current = frozenset(current)

        plan = plan_label_changes(current, desired_set, managed_set)
        logger.info(
            "Label plan computed",
            extra={
                "issue_number": issue_number,
                "to_remove": plan.to_remove,
                "to_add": plan.to_add,
                "dry_run": self._dry_run,
            },
        )
        if plan.is_empty or self._dry_run:
            return plan

        failed: list[str] = []
        for label in sorted(plan.to_remove):
            try:
                self._github.remove_label(issue_number=issue_number, name=label)
            except _REMOTE_ERRORS:
                logger.exception(
                    "Failed to remove label", extra={"issue_number": issue_number, "label": label}
                )
                failed.append(label)

        for label in sorted(plan.to_add):
            try:
                self._ensure_label(label)
                self._github.add_labels(issue_number=issue_number, names=[label])
            except _REMOTE_ERRORS:
                logger.exception(
                    "Failed to add label", extra={"issue_number": issue_number, "label": label}
                )
                failed.append(label)
                break

        if failed:
            raise RemoteWriteError(
                f"Failed to update labels on #{issue_number}: {', '.join(failed)}",
                failed_labels=failed,
            )
        logger.info(
            "Labels updated",
            extra={"issue_number": issue_number, "labels": plan.applied_to(current)},
        )
        return plan

    def _ensure_label(self, label: str) -> None:
        """Create the repository label unless it is known to exist.

        An inconclusive lookup is treated as "absent"; creating an existing label is benign.
        """

        lookup = self._github.get_label(name=label)
        if lookup.exists:
            return
        if lookup.status is LookupStatus.ERROR:
            logger.warning(
                "Label lookup inconclusive; attempting creation",
                extra={"label": label, "error": str(lookup.error)},
            )

        spec = label_spec_for(label)
        self._github.create_label(name=spec.name, color=spec.color)
