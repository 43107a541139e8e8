"""Data models for pull requests, reviews and branch protection."""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


_PULL_REQUEST_URL = re.compile(r"^https://github\.com/([\w.-]+)/([\w.-]+)/pull/(\d+)$")


class MergeableState(Enum):
    """GitHub's summary of whether a PR can be merged right now."""
    CLEAN = "clean"
    BEHIND = "behind"
    BLOCKED = "blocked"
    UNSTABLE = "unstable"
    DIRTY = "dirty"          # Conflicts with the base branch
    UNKNOWN = "unknown"      # Not computed yet, or a value we don't model

    @classmethod
    def parse(cls, value: Optional[str]) -> "MergeableState":
        if value == "has_hooks":
            # Mergeable, only pre-receive hooks pending
            return cls.CLEAN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def blocked_by_checks(self) -> bool:
        """Whether this is the class of states where CI may be the blocker."""
        return self in (MergeableState.BLOCKED, MergeableState.UNSTABLE)


class PullRequestState(Enum):
    OPEN = "open"
    CLOSED = "closed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PullRequestState":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class ReviewState(Enum):
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    DISMISSED = "DISMISSED"
    PENDING = "PENDING"

    @property
    def revokes_approval(self) -> bool:
        return self in (ReviewState.CHANGES_REQUESTED, ReviewState.DISMISSED)


class MergeMethod(Enum):
    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


@dataclass(frozen=True)
class PullRequestIdentifier:
    """Identifies exactly one pull request."""
    owner: str
    repo: str
    number: int

    @classmethod
    def from_url(cls, url: str) -> "PullRequestIdentifier":
        """
        Parse a pull request web URL.

        Args:
            url: URL like https://github.com/owner/repo/pull/123

        Returns:
            PullRequestIdentifier

        Raises:
            ValueError: If the URL is not a pull request URL
        """
        match = _PULL_REQUEST_URL.match(url.strip())
        if match is None:
            raise ValueError(f"malformed pull request URL: {url}")
        owner, repo, number = match.groups()
        return cls(owner=owner, repo=repo, number=int(number))

    @property
    def repo_full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"


@dataclass(frozen=True)
class Branch:
    """A head or base ref of a pull request."""
    sha: str
    name: str
    repo_owner: str
    repo_name: str

    @property
    def repo_full_name(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"


@dataclass(frozen=True)
class PullRequest:
    """Point-in-time snapshot of a pull request, re-fetched every poll."""
    identifier: PullRequestIdentifier
    state: PullRequestState
    mergeable_state: MergeableState
    title: str
    head: Branch
    base: Branch
    merged: bool = False
    draft: bool = False
    body: Optional[str] = None
    statuses_url: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state == PullRequestState.OPEN


@dataclass(frozen=True)
class Review:
    reviewer: str
    state: ReviewState
    submitted_at: Optional[datetime] = None


@dataclass(frozen=True)
class BranchProtection:
    """Base branch rules. No protection configured means zero approvals."""
    required_approvals: int = 0


@dataclass(frozen=True)
class MergeRequest:
    """Body of a merge call."""
    sha: str
    commit_title: str
    merge_method: MergeMethod
    commit_message: Optional[str] = None
