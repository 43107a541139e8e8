"""Data models for the merge agent."""

from .pull_request import (
    MergeableState,
    PullRequestState,
    ReviewState,
    MergeMethod,
    PullRequestIdentifier,
    Branch,
    PullRequest,
    Review,
    BranchProtection,
    MergeRequest,
)
from .ci import (
    RunStatus,
    RunConclusion,
    StatusState,
    WorkflowRun,
    Status,
    CircleCiJob,
)

__all__ = [
    "MergeableState",
    "PullRequestState",
    "ReviewState",
    "MergeMethod",
    "PullRequestIdentifier",
    "Branch",
    "PullRequest",
    "Review",
    "BranchProtection",
    "MergeRequest",
    "RunStatus",
    "RunConclusion",
    "StatusState",
    "WorkflowRun",
    "Status",
    "CircleCiJob",
]
