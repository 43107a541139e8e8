"""Readiness checks run against every pull request snapshot."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable

from ..config import AgentConfig
from ..exceptions import CannotProceedError, ClientError, UnsupportedPullRequestStateError
from ..models import (
    BranchProtection,
    MergeableState,
    PullRequest,
    PullRequestState,
    Review,
    ReviewState,
)
from ..tools import GitHubTool
from ..utils import get_logger


class StepStatus(Enum):
    """Outcome of a step that didn't fail."""
    PASSED = "passed"
    WAITING = "waiting"


class Step(ABC):
    """
    A single readiness test against the current pull request state.

    Steps run again on every poll, so execute() must be safe to repeat.
    Conditions that polling won't fix are raised as errors.
    """

    name: str = "step"

    @abstractmethod
    async def execute(self, pull_request: PullRequest) -> StepStatus:
        ...

    def __str__(self) -> str:
        return self.name


class CheckCurrentState(Step):
    """Checks that the pull request is open, not a draft and has no conflicts."""

    name = "check current state"

    async def execute(self, pull_request: PullRequest) -> StepStatus:
        if pull_request.state == PullRequestState.OPEN:
            if pull_request.draft:
                raise CannotProceedError("pull request is a draft")
            if pull_request.mergeable_state == MergeableState.DIRTY:
                raise CannotProceedError("pull request has conflicts")
            return StepStatus.PASSED

        if pull_request.state == PullRequestState.CLOSED:
            if pull_request.merged:
                raise CannotProceedError("pull request is already merged")
            raise CannotProceedError("pull request is closed")

        raise UnsupportedPullRequestStateError("pull request state is unknown")


class CheckReviews(Step):
    """
    Checks the pull request has enough approvals.

    The requirement is the larger of the base branch protection rule and the
    configured count for the repository. Missing approvals are an error, since
    waiting won't make a human review the change.
    """

    name = "check reviews"

    def __init__(self, github: GitHubTool, config: AgentConfig):
        self.github = github
        self.config = config
        self.logger = get_logger()

    async def execute(self, pull_request: PullRequest) -> StepStatus:
        protection = await self._fetch_branch_protection(pull_request)
        identifier = pull_request.identifier
        configured = self.config.repo_settings(identifier.owner, identifier.repo).required_approvals
        approvals_needed = max(protection.required_approvals, configured)

        reviews = await self.github.fetch_reviews(identifier)
        approvals = compute_approvals(reviews)

        if approvals < approvals_needed:
            raise CannotProceedError(
                f"not enough approvals (need {approvals_needed}, have {approvals})"
            )
        self.logger.debug(f"Pull request has {approvals}/{approvals_needed} approvals")
        return StepStatus.PASSED

    async def _fetch_branch_protection(self, pull_request: PullRequest) -> BranchProtection:
        try:
            return await self.github.fetch_branch_protection(pull_request.base)
        except ClientError as e:
            if e.not_found():
                self.logger.debug(f"No branch protection on '{pull_request.base.name}'")
                return BranchProtection()
            raise


def compute_approvals(reviews: Iterable[Review]) -> int:
    """
    Count distinct reviewers whose latest review approves.

    A later CHANGES_REQUESTED or DISMISSED revokes that reviewer's approval;
    comments and pending reviews leave it as it was.
    """
    ordered = sorted(
        reviews,
        key=lambda r: (r.submitted_at is None, r.submitted_at.timestamp() if r.submitted_at else 0.0),
    )
    approved = set()
    for review in ordered:
        if review.state == ReviewState.APPROVED:
            approved.add(review.reviewer)
        elif review.state.revokes_approval:
            approved.discard(review.reviewer)
    return len(approved)


class CheckBehindBase(Step):
    """Checks whether the pull request is behind its base branch, and updates it if so."""

    name = "check behind base"

    def __init__(self, github: GitHubTool):
        self.github = github
        self.logger = get_logger()

    async def execute(self, pull_request: PullRequest) -> StepStatus:
        if pull_request.mergeable_state != MergeableState.BEHIND:
            return StepStatus.PASSED

        self.logger.info(f"Pull request is behind '{pull_request.base.name}', updating branch")
        try:
            await self.github.update_branch(pull_request.identifier, pull_request.head.sha)
        except ClientError as e:
            # The head moved under us, someone else is updating the branch already
            if e.unprocessable_entity() or e.conflict():
                self.logger.info("Head changed while updating branch, waiting for it to settle")
                return StepStatus.WAITING
            raise
        return StepStatus.WAITING
