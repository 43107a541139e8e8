"""Tests for data models."""

import pytest

from merge_agent.models import (
    MergeableState,
    PullRequestIdentifier,
    PullRequestState,
    ReviewState,
    RunConclusion,
    RunStatus,
    StatusState,
)

from .fakes import T0, make_run, make_status


class TestPullRequestIdentifier:
    """Tests for PR URL parsing."""

    def test_parses_pull_request_url(self):
        """Given a PR web URL, should extract owner, repo and number."""
        identifier = PullRequestIdentifier.from_url("https://github.com/acme/widgets.py/pull/42")

        assert identifier == PullRequestIdentifier("acme", "widgets.py", 42)
        assert identifier.repo_full_name == "acme/widgets.py"
        assert str(identifier) == "acme/widgets.py#42"

    @pytest.mark.parametrize("url", [
        "https://github.com/acme/widgets/issues/42",
        "https://github.com/acme/widgets/pull/",
        "https://gitlab.com/acme/widgets/pull/42",
        "http://github.com/acme/widgets/pull/42",
        "https://github.com/acme/widgets/pull/42/files",
        "acme/widgets#42",
    ])
    def test_rejects_other_urls(self, url):
        """Given anything but a PR URL, should raise ValueError."""
        with pytest.raises(ValueError):
            PullRequestIdentifier.from_url(url)


class TestMergeableState:
    """Tests for mergeable state parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("clean", MergeableState.CLEAN),
        ("behind", MergeableState.BEHIND),
        ("blocked", MergeableState.BLOCKED),
        ("unstable", MergeableState.UNSTABLE),
        ("dirty", MergeableState.DIRTY),
        ("has_hooks", MergeableState.CLEAN),
        ("unknown", MergeableState.UNKNOWN),
        ("draft", MergeableState.UNKNOWN),
        (None, MergeableState.UNKNOWN),
    ])
    def test_parse(self, value, expected):
        assert MergeableState.parse(value) == expected

    def test_only_blocked_and_unstable_are_blocked_by_checks(self):
        """Only BLOCKED and UNSTABLE should trigger CI inspection."""
        blocked = {state for state in MergeableState if state.blocked_by_checks}

        assert blocked == {MergeableState.BLOCKED, MergeableState.UNSTABLE}


class TestStates:
    def test_pull_request_state_parse(self):
        assert PullRequestState.parse("open") == PullRequestState.OPEN
        assert PullRequestState.parse("closed") == PullRequestState.CLOSED
        assert PullRequestState.parse("locked") == PullRequestState.UNKNOWN

    def test_revoking_review_states(self):
        """Only changes requested and dismissal should revoke an approval."""
        revoking = {state for state in ReviewState if state.revokes_approval}

        assert revoking == {ReviewState.CHANGES_REQUESTED, ReviewState.DISMISSED}


class TestWorkflowRun:
    """Tests for run classification."""

    @pytest.mark.parametrize("raw", ["queued", "in_progress", "waiting", "requested", None])
    def test_unfinished_statuses_are_pending(self, raw):
        assert RunStatus.parse(raw) == RunStatus.PENDING

    @pytest.mark.parametrize("raw", ["cancelled", "skipped", "neutral", "timed_out", None])
    def test_other_conclusions_are_unknown(self, raw):
        assert RunConclusion.parse(raw) == RunConclusion.UNKNOWN

    def test_failed_means_completed_with_failure(self):
        """Given a completed failed run, should be failed and not pending."""
        run = make_run(1, 10, T0, conclusion=RunConclusion.FAILURE)

        assert run.is_failed
        assert not run.is_pending

    def test_cancelled_run_is_neither_failed_nor_pending(self):
        run = make_run(1, 10, T0, conclusion=RunConclusion.UNKNOWN)

        assert not run.is_failed
        assert not run.is_pending


class TestStatus:
    @pytest.mark.parametrize("state,failed", [
        (StatusState.PENDING, False),
        (StatusState.SUCCESS, False),
        (StatusState.FAILURE, True),
        (StatusState.ERROR, True),
    ])
    def test_failed_states(self, state, failed):
        assert make_status("ci/x", state).is_failed == failed
