"""Unit tests for the pull request labeling workflow."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
import requests

from conventional_pr_labeler.config import LabelerConfig, PullRequestRef
from conventional_pr_labeler.errors import TitleValidationError
from conventional_pr_labeler.github_labels import color_for_label
from conventional_pr_labeler.workflow import (
    IllegalTransitionError,
    PullRequestLabeler,
    WorkflowState,
    managed_type_labels,
    transition,
)


def _pr(title: str) -> PullRequestRef:
    return PullRequestRef(repository="octo-org/octo-repo", number=7, title=title)


def _mutations(github: Mock) -> list[tuple[str, dict[str, object]]]:
    names = {"create_label", "add_labels", "remove_label"}
    return [(c[0], c[2]) for c in github.mock_calls if c[0] in names]


def test_transition_rejects_skipping_states() -> None:
    with pytest.raises(IllegalTransitionError):
        transition(current=WorkflowState.PARSE_CONFIG, to=WorkflowState.RECONCILE_TYPE_LABEL)


def test_transition_allows_failing_from_any_running_state() -> None:
    assert (
        transition(current=WorkflowState.RECONCILE_TYPE_LABEL, to=WorkflowState.FAILED)
        is WorkflowState.FAILED
    )
    with pytest.raises(IllegalTransitionError):
        transition(current=WorkflowState.DONE, to=WorkflowState.FAILED)


def test_managed_type_labels_cover_vocabulary_breaking_and_custom_labels() -> None:
    config = LabelerConfig(task_types=("feat", "fix"), custom_labels={"feat": "✨ feature"})

    assert managed_type_labels(config) == {"feat", "fix", "breaking change", "✨ feature"}


def test_new_feature_pr_gets_type_label(mock_github: Mock, labeler_config: LabelerConfig) -> None:
    labeler = PullRequestLabeler(config=labeler_config, github=mock_github)

    outcome = labeler.run(_pr("feat(auth): add login"))

    assert outcome.state is WorkflowState.DONE
    assert outcome.states == [
        WorkflowState.PARSE_CONFIG,
        WorkflowState.VALIDATE_TITLE_TYPE,
        WorkflowState.VALIDATE_TICKET_NUMBER,
        WorkflowState.RECONCILE_TYPE_LABEL,
        WorkflowState.RECONCILE_SCOPE_LABEL,
        WorkflowState.DONE,
    ]
    assert outcome.type_plan is not None
    assert outcome.type_plan.to_add == {"feat"}
    assert outcome.type_plan.to_remove == frozenset()
    mock_github.create_label.assert_any_call(
        name="feat", color=color_for_label("feat")
    )
    mock_github.add_labels.assert_any_call(issue_number=7, names=["feat"])
    mock_github.remove_label.assert_not_called()


def test_breaking_fix_replaces_feature_label(
    mock_github: Mock, labeler_config: LabelerConfig
) -> None:
    mock_github.list_issue_labels.return_value = {"feat"}

    outcome = PullRequestLabeler(config=labeler_config, github=mock_github).run(
        _pr("fix!: critical bug")
    )

    assert outcome.type_plan is not None
    assert outcome.type_plan.to_add == {"fix", "breaking change"}
    assert outcome.type_plan.to_remove == {"feat"}
    assert outcome.scope_plan is None
    mock_github.remove_label.assert_called_once_with(issue_number=7, name="feat")


def test_custom_label_replaces_type_name(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("feat", "fix"), custom_labels={"feat": "✨ feature"})

    PullRequestLabeler(config=config, github=mock_github).run(_pr("feat: x"))

    mock_github.add_labels.assert_called_once_with(issue_number=7, names=["✨ feature"])


def test_invalid_type_touches_no_labels(mock_github: Mock, labeler_config: LabelerConfig) -> None:
    labeler = PullRequestLabeler(config=labeler_config, github=mock_github)

    with pytest.raises(TitleValidationError, match="Must be one of: feat, fix"):
        labeler.run(_pr("docs: update readme"))

    assert mock_github.mock_calls == []


def test_missing_ticket_number_is_fatal_before_labeling(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("feat",), ticket_key_regex=r"[A-Z]+-\d+")

    with pytest.raises(TitleValidationError, match="Invalid or missing task number"):
        PullRequestLabeler(config=config, github=mock_github).run(_pr("feat: no ticket"))

    assert mock_github.mock_calls == []


def test_matching_ticket_number_passes(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("feat",), ticket_key_regex=r"[A-Z]+-\d+")

    outcome = PullRequestLabeler(config=config, github=mock_github).run(_pr("feat: PROJ-42 login"))

    assert outcome.state is WorkflowState.DONE


def test_empty_ticket_match_counts_as_missing(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("feat",), ticket_key_regex=r"\d*")

    with pytest.raises(TitleValidationError):
        PullRequestLabeler(config=config, github=mock_github).run(_pr("feat: no digits"))


def test_disabled_type_labeling_skips_type_step(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("feat",), add_label=False, add_scope_label=False)

    outcome = PullRequestLabeler(config=config, github=mock_github).run(_pr("feat(x): y"))

    assert outcome.state is WorkflowState.DONE
    assert outcome.type_plan is None
    assert mock_github.mock_calls == []


def test_scope_label_already_attached_is_a_no_op(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("feat", "fix"), scope_label_prefix="scope:")
    mock_github.list_issue_labels.return_value = {"fix", "scope:auth"}

    outcome = PullRequestLabeler(config=config, github=mock_github).run(_pr("fix(auth): y"))

    assert outcome.scope_plan is not None
    assert outcome.scope_plan.is_empty
    assert _mutations(mock_github) == []


def test_scope_change_replaces_previous_prefixed_scope_label(mock_github: Mock) -> None:
    config = LabelerConfig(
        task_types=("fix",), scope_label_prefix="scope:", add_label=False
    )
    mock_github.list_issue_labels.return_value = {"scope:old", "team:web"}

    outcome = PullRequestLabeler(config=config, github=mock_github).run(_pr("fix(auth): y"))

    assert outcome.scope_plan is not None
    assert outcome.scope_plan.to_remove == {"scope:old"}
    assert outcome.scope_plan.to_add == {"scope:auth"}
    mock_github.previous_title.assert_not_called()
    mock_github.remove_label.assert_called_once_with(issue_number=7, name="scope:old")
    mock_github.add_labels.assert_called_once_with(issue_number=7, names=["scope:auth"])


def test_unprefixed_scope_change_uses_previous_title(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("fix",), add_label=False)
    mock_github.list_issue_labels.return_value = {"billing", "help wanted"}
    mock_github.previous_title.return_value = "fix(billing): y"

    outcome = PullRequestLabeler(config=config, github=mock_github).run(_pr("fix(auth): y"))

    assert outcome.scope_plan is not None
    assert outcome.scope_plan.to_remove == {"billing"}
    assert outcome.scope_plan.to_add == {"auth"}


def test_unreadable_timeline_keeps_stale_scope_label(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("fix",), add_label=False)
    mock_github.list_issue_labels.return_value = {"billing"}
    mock_github.previous_title.side_effect = requests.ConnectionError("timeline down")

    outcome = PullRequestLabeler(config=config, github=mock_github).run(_pr("fix(auth): y"))

    assert outcome.scope_plan is not None
    assert outcome.scope_plan.to_remove == frozenset()
    assert outcome.scope_plan.to_add == {"auth"}


def test_custom_scope_label(mock_github: Mock) -> None:
    config = LabelerConfig(
        task_types=("fix",),
        add_label=False,
        scope_label_prefix="scope:",
        scope_custom_labels={"auth": "🔐 auth", "billing": "💳 billing"},
    )
    mock_github.list_issue_labels.return_value = {"💳 billing"}

    outcome = PullRequestLabeler(config=config, github=mock_github).run(_pr("fix(auth): y"))

    assert outcome.scope_plan is not None
    assert outcome.scope_plan.to_remove == {"💳 billing"}
    assert outcome.scope_plan.to_add == {"🔐 auth"}


def test_scope_labeling_can_be_disabled(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("fix",), add_scope_label=False)

    outcome = PullRequestLabeler(config=config, github=mock_github).run(_pr("fix(auth): y"))

    assert outcome.scope_plan is None
    mock_github.add_labels.assert_called_once_with(issue_number=7, names=["fix"])


def test_remote_read_failure_propagates(mock_github: Mock) -> None:
    mock_github.list_issue_labels.side_effect = requests.HTTPError("502 Bad Gateway")
    labeler = PullRequestLabeler(
        config=LabelerConfig(task_types=("feat",)), github=mock_github
    )

    with pytest.raises(requests.HTTPError):
        labeler.run(_pr("feat: x"))


def test_dry_run_makes_no_mutations(mock_github: Mock, labeler_config: LabelerConfig) -> None:
    mock_github.list_issue_labels.return_value = {"feat"}

    outcome = PullRequestLabeler(config=labeler_config, github=mock_github, dry_run=True).run(
        _pr("fix(auth)!: y")
    )

    assert outcome.type_plan is not None
    assert outcome.type_plan.to_add == {"fix", "breaking change"}
    assert _mutations(mock_github) == []


def _track_labels(github: Mock, attached: set[str]) -> None:
    """Make the client double keep `attached` in sync with the calls it receives."""

    github.list_issue_labels.side_effect = lambda *, issue_number: set(attached)
    github.add_labels.side_effect = lambda *, issue_number, names: attached.update(names)
    github.remove_label.side_effect = lambda *, issue_number, name: (
        attached.discard(name) or True
    )


def test_scope_named_like_a_task_type_converges(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("feat", "fix", "docs"))
    attached: set[str] = set()
    _track_labels(mock_github, attached)
    labeler = PullRequestLabeler(config=config, github=mock_github)

    labeler.run(_pr("fix(docs): typo"))
    assert attached == {"fix", "docs"}

    mock_github.reset_mock()
    outcome = labeler.run(_pr("fix(docs): typo"))

    assert attached == {"fix", "docs"}
    assert outcome.type_plan is not None and outcome.type_plan.is_empty
    assert outcome.scope_plan is not None and outcome.scope_plan.is_empty
    assert _mutations(mock_github) == []


def test_type_label_survives_previous_scope_with_the_same_name(mock_github: Mock) -> None:
    config = LabelerConfig(task_types=("feat", "fix", "docs"))
    attached = {"docs"}
    _track_labels(mock_github, attached)
    mock_github.previous_title.return_value = "docs(fix): typo"

    PullRequestLabeler(config=config, github=mock_github).run(_pr("fix(api): typo"))

    assert attached == {"fix", "api"}
