"""Data models for CI runs and commit statuses."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class RunStatus(Enum):
    """Lifecycle of a CI execution, collapsed to what we act on."""
    PENDING = "pending"       # queued, waiting, in progress
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RunStatus":
        return cls.COMPLETED if value == "completed" else cls.PENDING


class RunConclusion(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    UNKNOWN = "unknown"       # skipped, cancelled, neutral, not concluded yet...

    @classmethod
    def parse(cls, value: Optional[str]) -> "RunConclusion":
        if value == "success":
            return cls.SUCCESS
        if value == "failure":
            return cls.FAILURE
        return cls.UNKNOWN


class StatusState(Enum):
    """State of an externally reported commit status."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"

    @property
    def failed(self) -> bool:
        return self in (StatusState.FAILURE, StatusState.ERROR)


@dataclass(frozen=True)
class WorkflowRun:
    """One execution of a GitHub Actions workflow."""
    id: int
    workflow_id: int
    name: str
    head_sha: str
    status: RunStatus
    conclusion: RunConclusion
    created_at: datetime
    url: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RunStatus.PENDING

    @property
    def is_failed(self) -> bool:
        return self.status == RunStatus.COMPLETED and self.conclusion == RunConclusion.FAILURE


@dataclass(frozen=True)
class Status:
    """A commit status reported by an external CI service."""
    context: str
    state: StatusState
    created_at: datetime
    target_url: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.state == StatusState.PENDING

    @property
    def is_failed(self) -> bool:
        return self.state.failed


@dataclass(frozen=True)
class CircleCiJob:
    """A CircleCI job and the workflow it last ran in."""
    name: str
    number: int
    status: str
    workflow_id: str
