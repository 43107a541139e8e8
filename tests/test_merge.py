"""Tests for merging with method fallback."""

import asyncio

import pytest

from merge_agent.exceptions import ClientError, NoMergeMethodAllowedError
from merge_agent.models import MergeMethod
from merge_agent.orchestrator import DefaultPullRequestMerger, DryRunPullRequestMerger
from merge_agent.orchestrator.merge import build_merge_methods, build_merge_request

from .fakes import FakeGitHub, make_pull_request

NOT_ALLOWED = ClientError("Merge commits are not allowed on this repository.", 405)


class TestBuildMergeMethods:
    """Tests for merge method ordering."""

    @pytest.mark.parametrize("default,expected", [
        (MergeMethod.SQUASH, [MergeMethod.SQUASH, MergeMethod.MERGE, MergeMethod.REBASE]),
        (MergeMethod.MERGE, [MergeMethod.MERGE, MergeMethod.SQUASH, MergeMethod.REBASE]),
        (MergeMethod.REBASE, [MergeMethod.REBASE, MergeMethod.SQUASH, MergeMethod.MERGE]),
    ])
    def test_default_first_then_fallbacks(self, default, expected):
        """Given a default method, should try it first and each method once."""
        assert build_merge_methods(default) == expected


class TestBuildMergeRequest:
    """Tests for the merge call body."""

    def test_squash_uses_pull_request_body(self):
        """Given squash, should use the PR body as commit message."""
        pr = make_pull_request(head_sha="abc", body="Long description")

        request = build_merge_request(pr, MergeMethod.SQUASH)

        assert request.sha == "abc"
        assert request.commit_title == "Add frobnicator"
        assert request.commit_message == "Long description"

    @pytest.mark.parametrize("method", [MergeMethod.MERGE, MergeMethod.REBASE])
    def test_other_methods_leave_message_to_github(self, method):
        """Given merge or rebase, should not set a commit message."""
        request = build_merge_request(make_pull_request(), method)

        assert request.commit_message is None
        assert request.merge_method == method


class TestDefaultPullRequestMerger:
    """Tests for the merge fallback protocol."""

    def test_default_method_succeeds_first(self):
        """Given the default method is allowed, should merge once."""
        github = FakeGitHub()
        merger = DefaultPullRequestMerger(github, MergeMethod.SQUASH)

        asyncio.run(merger.merge(github.pull_request))

        assert [m.merge_method for m in github.merges] == [MergeMethod.SQUASH]

    def test_falls_back_until_allowed(self):
        """Given squash isn't allowed and merge is, should never try rebase."""
        # Given
        github = FakeGitHub()
        github.merge_errors[MergeMethod.SQUASH] = NOT_ALLOWED
        merger = DefaultPullRequestMerger(github, MergeMethod.SQUASH)

        # When
        asyncio.run(merger.merge(github.pull_request))

        # Then
        assert [m.merge_method for m in github.merges] == [MergeMethod.SQUASH, MergeMethod.MERGE]

    def test_all_methods_rejected(self):
        """Given every method is forbidden, should raise after trying all three."""
        github = FakeGitHub()
        for method in MergeMethod:
            github.merge_errors[method] = NOT_ALLOWED

        with pytest.raises(NoMergeMethodAllowedError):
            asyncio.run(DefaultPullRequestMerger(github).merge(github.pull_request))
        assert len(github.merges) == 3

    def test_other_errors_are_not_retried(self):
        """Given a 409 on the first method, should raise without trying others."""
        github = FakeGitHub()
        github.merge_errors[MergeMethod.MERGE] = ClientError("Head branch was modified", 409)

        with pytest.raises(ClientError) as excinfo:
            asyncio.run(DefaultPullRequestMerger(github, MergeMethod.MERGE).merge(github.pull_request))

        assert excinfo.value.conflict()
        assert len(github.merges) == 1


class TestDryRunPullRequestMerger:
    def test_never_calls_github(self):
        """Given a dry run, should succeed without merging."""
        github = FakeGitHub()

        asyncio.run(DryRunPullRequestMerger().merge(github.pull_request))

        assert github.merges == []
