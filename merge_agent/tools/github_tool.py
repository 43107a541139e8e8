"""GitHub API wrapper for the merge agent's pull request operations."""

import asyncio
from typing import Callable, List, Optional, TypeVar

import requests
from github import Auth, Github, GithubException, GithubRetry, RateLimitExceededException
from github.PullRequest import PullRequest as GHPullRequest
from github.PullRequestPart import PullRequestPart as GHPullRequestPart
from github.Repository import Repository as GHRepository

from ..exceptions import ClientError, RateLimitExhaustedError
from ..models import (
    Branch,
    BranchProtection,
    MergeableState,
    MergeRequest,
    PullRequest,
    PullRequestIdentifier,
    PullRequestState,
    Review,
    ReviewState,
    RunConclusion,
    RunStatus,
    Status,
    StatusState,
    WorkflowRun,
)
from ..utils import get_logger

T = TypeVar("T")


class GitHubTool:
    """
    GitHub API wrapper for merge operations.

    PyGithub is blocking, so every call runs in a worker thread and the
    public methods are coroutines. PyGithub failures are translated into
    ClientError so callers classify them by status code. Rate limiting is
    retried with backoff by PyGithub's GithubRetry.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        max_retries: int = 5,
        gh: Optional[Github] = None
    ):
        """
        Initialize GitHub tool.

        Args:
            token: GitHub API token
            max_retries: Retry budget for rate-limited and 5xx responses
            gh: Pre-built PyGithub client (mainly for tests)
        """
        if gh is None:
            if not token:
                raise ValueError("GitHub token required")
            gh = Github(
                auth=Auth.Token(token),
                retry=GithubRetry(total=max_retries),
                lazy=True,
            )
        self.gh = gh
        self.logger = get_logger()

    async def fetch_pull_request(self, identifier: PullRequestIdentifier) -> PullRequest:
        return await self._call(self._fetch_pull_request, identifier)

    async def fetch_reviews(self, identifier: PullRequestIdentifier) -> List[Review]:
        return await self._call(self._fetch_reviews, identifier)

    async def fetch_branch_protection(self, branch: Branch) -> BranchProtection:
        """Fetch protection rules. Raises ClientError (404) when none are configured."""
        return await self._call(self._fetch_branch_protection, branch)

    async def update_branch(self, identifier: PullRequestIdentifier, expected_head_sha: str) -> None:
        """Merge the base branch into the PR. Raises ClientError (422) on a stale SHA."""
        await self._call(self._update_branch, identifier, expected_head_sha)

    async def fetch_workflow_runs(self, pull_request: PullRequest) -> List[WorkflowRun]:
        return await self._call(self._fetch_workflow_runs, pull_request)

    async def rerun_workflow(self, repo_full_name: str, run_id: int) -> None:
        await self._call(self._rerun_workflow, repo_full_name, run_id)

    async def fetch_statuses(self, pull_request: PullRequest) -> List[Status]:
        return await self._call(self._fetch_statuses, pull_request)

    async def merge_pull_request(
        self,
        identifier: PullRequestIdentifier,
        request: MergeRequest
    ) -> None:
        """Submit a merge. Raises ClientError (405) if the method isn't allowed."""
        await self._call(self._merge_pull_request, identifier, request)

    async def _call(self, fn: Callable[..., T], *args) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except RateLimitExceededException as e:
            raise RateLimitExhaustedError() from e
        except GithubException as e:
            raise ClientError(_error_message(e), status_code=e.status) from e
        except requests.exceptions.RetryError as e:
            raise RateLimitExhaustedError(f"retries exhausted: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ClientError(f"GitHub request failed: {e}") from e

    def _repo(self, full_name: str) -> GHRepository:
        return self.gh.get_repo(full_name)

    def _pull(self, identifier: PullRequestIdentifier) -> GHPullRequest:
        return self._repo(identifier.repo_full_name).get_pull(identifier.number)

    def _fetch_pull_request(self, identifier: PullRequestIdentifier) -> PullRequest:
        pr = self._pull(identifier)
        links = pr.raw_data.get("_links") or {}
        return PullRequest(
            identifier=identifier,
            state=PullRequestState.parse(pr.state),
            mergeable_state=MergeableState.parse(pr.mergeable_state),
            title=pr.title,
            head=_to_branch(pr.head),
            base=_to_branch(pr.base),
            merged=bool(pr.merged),
            draft=bool(pr.draft),
            body=pr.body,
            statuses_url=(links.get("statuses") or {}).get("href"),
        )

    def _fetch_reviews(self, identifier: PullRequestIdentifier) -> List[Review]:
        reviews = []
        for review in self._pull(identifier).get_reviews():
            try:
                state = ReviewState(review.state)
            except ValueError:
                self.logger.debug(f"Ignoring review with unknown state '{review.state}'")
                continue
            reviews.append(Review(
                reviewer=review.user.login if review.user else "ghost",
                state=state,
                submitted_at=review.submitted_at,
            ))
        return reviews

    def _fetch_branch_protection(self, branch: Branch) -> BranchProtection:
        protection = self._repo(branch.repo_full_name).get_branch(branch.name).get_protection()
        reviews = protection.required_pull_request_reviews
        if reviews is None:
            return BranchProtection()
        return BranchProtection(required_approvals=reviews.required_approving_review_count or 0)

    def _update_branch(self, identifier: PullRequestIdentifier, expected_head_sha: str) -> None:
        # PullRequest.update_branch() returns False on failure instead of raising
        self.gh.requester.requestJsonAndCheck(
            "PUT",
            f"/repos/{identifier.repo_full_name}/pulls/{identifier.number}/update-branch",
            input={"expected_head_sha": expected_head_sha},
        )

    def _fetch_workflow_runs(self, pull_request: PullRequest) -> List[WorkflowRun]:
        head_sha = pull_request.head.sha
        repo = self._repo(pull_request.base.repo_full_name)
        runs = []
        for run in repo.get_workflow_runs(head_sha=head_sha):
            if run.head_sha != head_sha:
                continue
            runs.append(WorkflowRun(
                id=run.id,
                workflow_id=run.workflow_id,
                name=run.name,
                head_sha=run.head_sha,
                status=RunStatus.parse(run.status),
                conclusion=RunConclusion.parse(run.conclusion),
                created_at=run.created_at,
                url=run.html_url,
            ))
        return runs

    def _rerun_workflow(self, repo_full_name: str, run_id: int) -> None:
        # WorkflowRun.rerun() also returns False on failure
        self.gh.requester.requestJsonAndCheck(
            "POST", f"/repos/{repo_full_name}/actions/runs/{run_id}/rerun"
        )

    def _fetch_statuses(self, pull_request: PullRequest) -> List[Status]:
        commit = self._repo(pull_request.base.repo_full_name).get_commit(pull_request.head.sha)
        statuses = []
        for status in commit.get_statuses():
            try:
                state = StatusState(status.state)
            except ValueError:
                self.logger.debug(f"Ignoring status '{status.context}' with state '{status.state}'")
                continue
            statuses.append(Status(
                context=status.context,
                state=state,
                created_at=status.created_at,
                target_url=status.target_url,
                description=status.description,
            ))
        return statuses

    def _merge_pull_request(self, identifier: PullRequestIdentifier, request: MergeRequest) -> None:
        kwargs = {
            "commit_title": request.commit_title,
            "merge_method": request.merge_method.value,
            "sha": request.sha,
        }
        # Leaving the message out lets GitHub fill in its default
        if request.commit_message is not None:
            kwargs["commit_message"] = request.commit_message
        self._pull(identifier).merge(**kwargs)


def _to_branch(part: GHPullRequestPart) -> Branch:
    if part.repo is not None:
        owner, name = part.repo.owner.login, part.repo.name
    else:
        # Fork was deleted
        owner, name = part.user.login, ""
    return Branch(sha=part.sha, name=part.ref, repo_owner=owner, repo_name=name)


def _error_message(e: GithubException) -> str:
    if isinstance(e.data, dict) and e.data.get("message"):
        return str(e.data["message"])
    return f"GitHub request failed with status {e.status}"
