"""GitHub API client wrapper.

This wraps PyGithub and the REST API to keep GitHub calls out of the labeling logic and
make tests easy. Only the label operations the labeler needs are exposed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote

import requests
from github import Auth, Github, GithubException, UnknownObjectException
from github.Repository import Repository

logger = logging.getLogger(__name__)


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class LabelLookup:
    """Outcome of a repository-level label lookup.

    Lookup failures are returned as `LookupStatus.ERROR` rather than raised, so callers
    decide how to treat an unknown answer.
    """

    name: str
    status: LookupStatus
    error: Exception | None = None

    @property
    def exists(self) -> bool:
        return self.status is LookupStatus.FOUND


def _is_already_exists(error: GithubException) -> bool:
    if error.status != 422:
        return False
    data = error.data if isinstance(error.data, dict) else {}
    errors = data.get("errors")
    if not isinstance(errors, list):
        return False
    return any(isinstance(e, dict) and e.get("code") == "already_exists" for e in errors)


class GitHubClient:
    """Small wrapper around PyGithub and the REST API for label management."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        base_url: str = "https://api.github.com",
        repo: Repository | None = None,
        github_api: Github | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")
        if not repository.strip("/"):
            raise ValueError("GitHub repository is required")

        self._repository_name = repository.strip("/")
        self._rest_base_url = base_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "conventional-pr-labeler",
            }
        )

        if repo is not None:
            self._repo = repo
            self._github = None
            logger.debug("Using injected Repository instance")
            return

        auth = Auth.Token(token)
        self._github = github_api or Github(auth=auth, base_url=self._rest_base_url)

        self._repo = self._github.get_repo(self._repository_name)
        logger.info(
            "Authenticated with GitHub and connected to repository",
            extra={"repo": self._repository_name},
        )

    @property
    def repository(self) -> str:
        """Return the configured repository name ("owner/repo")."""

        return self._repository_name

    def _issues_url(self, *, issue_number: int, suffix: str = "") -> str:
        if issue_number <= 0:
            raise ValueError("issue_number must be a positive integer")
        if suffix and not suffix.startswith("/"):
            suffix = "/" + suffix
        return f"{self._rest_base_url}/repos/{self._repository_name}/issues/{issue_number}{suffix}"

    def _pulls_url(self, *, pull_number: int) -> str:
        if pull_number <= 0:
            raise ValueError("pull_number must be a positive integer")
        return f"{self._rest_base_url}/repos/{self._repository_name}/pulls/{pull_number}"

    def _get_paginated_json_list(self, url: str) -> list[dict[str, Any]]:
        """Fetch a REST endpoint that returns a JSON list, following basic pagination.

        Notes:
            Fetches up to 10 pages of 100 items each; a PR never carries more labels or
            timeline events than that in practice.
        """

        items: list[dict[str, Any]] = []
        per_page = 100
        for page in range(1, 11):
            resp = self._session.get(
                url,
                params={"per_page": per_page, "page": page},
                timeout=30,
            )
            resp.raise_for_status()
            payload = resp.json()
            if not isinstance(payload, list):
                break

            page_items: list[dict[str, Any]] = [p for p in payload if isinstance(p, dict)]
            items.extend(page_items)

            if len(payload) < per_page:
                break
        return items

    def get_pull_request_title(self, *, pull_number: int) -> str:
        url = self._pulls_url(pull_number=pull_number)
        resp = self._session.get(url, timeout=30)
        resp.raise_for_status()
        data: dict[str, Any] = resp.json()
        title = data.get("title")
        return title if isinstance(title, str) else ""

    def list_issue_labels(self, *, issue_number: int) -> set[str]:
        """Return the names of the labels currently attached to an issue or PR."""

        url = self._issues_url(issue_number=issue_number, suffix="labels")
        names = {
            item["name"]
            for item in self._get_paginated_json_list(url)
            if isinstance(item.get("name"), str)
        }
        logger.debug(
            "Issue labels fetched",
            extra={"repo": self._repository_name, "issue_number": issue_number, "labels": names},
        )
        return names

    def get_label(self, *, name: str) -> LabelLookup:
        """Look up a repository-level label by name."""

        try:
            self._repo.get_label(name)
        except UnknownObjectException:
            return LabelLookup(name=name, status=LookupStatus.NOT_FOUND)
        except (GithubException, requests.RequestException) as e:
            logger.warning(
                "Label lookup failed",
                extra={"repo": self._repository_name, "label": name, "error": str(e)},
            )
            return LabelLookup(name=name, status=LookupStatus.ERROR, error=e)
        return LabelLookup(name=name, status=LookupStatus.FOUND)

    def create_label(self, *, name: str, color: str, description: str = "") -> bool:
        """Create a repository-level label.

        Returns:
            True if the label was created, False if it already existed.
        """

        try:
            self._repo.create_label(name=name, color=color, description=description)
        except GithubException as e:
            if _is_already_exists(e):
                logger.info(
                    "Label already exists", extra={"repo": self._repository_name, "label": name}
                )
                return False
            raise

        logger.info(
            "Label created",
            extra={"repo": self._repository_name, "label": name, "color": color},
        )
        return True

    def add_labels(self, *, issue_number: int, names: list[str]) -> None:
        normalized = [n for n in names if n]
        if not normalized:
            raise ValueError("At least one label is required")

        url = self._issues_url(issue_number=issue_number, suffix="labels")
        resp = self._session.post(url, json={"labels": normalized}, timeout=30)
        resp.raise_for_status()
        logger.info(
            "Labels added",
            extra={
                "repo": self._repository_name,
                "issue_number": issue_number,
                "labels": normalized,
            },
        )

    def remove_label(self, *, issue_number: int, name: str) -> bool:
        """Remove a label from an issue or PR.

        Returns:
            True if the label was removed, False if it was not attached.
        """

        url = self._issues_url(issue_number=issue_number, suffix=f"labels/{quote(name, safe='')}")
        resp = self._session.delete(url, timeout=30)
        if resp.status_code == 404:
            logger.info(
                "Label was not attached",
                extra={"repo": self._repository_name, "issue_number": issue_number, "label": name},
            )
            return False
        resp.raise_for_status()
        logger.info(
            "Label removed",
            extra={"repo": self._repository_name, "issue_number": issue_number, "label": name},
        )
        return True

    def list_timeline_events(self, *, issue_number: int) -> list[dict[str, Any]]:
        url = self._issues_url(issue_number=issue_number, suffix="timeline")
        return self._get_paginated_json_list(url)

    def previous_title(self, *, issue_number: int) -> str | None:
        """Return the title the issue had before its most recent rename, if any."""

        previous: str | None = None
        for event in self.list_timeline_events(issue_number=issue_number):
            if event.get("event") != "renamed":
                continue
            rename = event.get("rename")
            if isinstance(rename, dict) and isinstance(rename.get("from"), str):
                previous = rename["from"]
        return previous

    def close(self) -> None:
        self._session.close()
        if self._github is not None:
            self._github.close()
