"""Merge executor for pull requests that passed every check."""

from abc import ABC, abstractmethod
from typing import List

from ..exceptions import ClientError, NoMergeMethodAllowedError
from ..models import MergeMethod, MergeRequest, PullRequest
from ..tools import GitHubTool
from ..utils import get_logger


FALLBACK_ORDER = [MergeMethod.SQUASH, MergeMethod.MERGE, MergeMethod.REBASE]


def build_merge_methods(default_method: MergeMethod) -> List[MergeMethod]:
    """Default method first, then the rest in fallback order."""
    return [default_method] + [m for m in FALLBACK_ORDER if m != default_method]


class PullRequestMerger(ABC):
    @abstractmethod
    async def merge(self, pull_request: PullRequest) -> None:
        ...


class DefaultPullRequestMerger(PullRequestMerger):
    """
    Merges a pull request, falling back across merge methods.

    Repositories may forbid some methods. GitHub answers those with
    405 Method Not Allowed, in which case the next method is tried. Any
    other failure is raised right away.
    """

    def __init__(self, github: GitHubTool, default_method: MergeMethod = MergeMethod.MERGE):
        """
        Initialize merger.

        Args:
            github: GitHub client
            default_method: Method to try first
        """
        self.github = github
        self.merge_methods = build_merge_methods(default_method)
        self.logger = get_logger()

    async def merge(self, pull_request: PullRequest) -> None:
        for method in self.merge_methods:
            self.logger.info(f"Attempting to merge pull request using '{method.value}' merge method")
            try:
                await self.github.merge_pull_request(
                    pull_request.identifier,
                    build_merge_request(pull_request, method),
                )
            except ClientError as e:
                if e.method_not_allowed():
                    self.logger.warning(f"Merge method '{method.value}' not allowed")
                    continue
                raise
            self.logger.info(f"Pull request {pull_request.identifier} merged")
            return
        raise NoMergeMethodAllowedError()


def build_merge_request(pull_request: PullRequest, method: MergeMethod) -> MergeRequest:
    # Only squash commits get the PR body as message, others keep GitHub's default
    message = pull_request.body if method == MergeMethod.SQUASH else None
    return MergeRequest(
        sha=pull_request.head.sha,
        commit_title=pull_request.title,
        merge_method=method,
        commit_message=message,
    )


class DryRunPullRequestMerger(PullRequestMerger):
    """Pretends to merge. Used for dry runs."""

    def __init__(self):
        self.logger = get_logger()

    async def merge(self, pull_request: PullRequest) -> None:
        self.logger.info(f"Dry run, skipping merge of {pull_request.identifier}")
