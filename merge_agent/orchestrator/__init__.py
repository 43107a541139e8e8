"""Pull request merge orchestration.

This module provides:
- Director: Poll-cycle control loop for one pull request
- Step and its checks: CheckCurrentState, CheckReviews, CheckBehindBase, CheckBuildHealth
- WorkflowRunner: Re-runs failed external CI jobs
- PullRequestMerger: Merges with merge method fallback
"""

from .director import Director, DirectorState
from .steps import Step, StepStatus, CheckCurrentState, CheckReviews, CheckBehindBase
from .build import CheckBuildHealth
from .runners import WorkflowRunner, RunnerOutcome, CircleCiWorkflowRunner
from .merge import PullRequestMerger, DefaultPullRequestMerger, DryRunPullRequestMerger

__all__ = [
    "Director",
    "DirectorState",
    "Step",
    "StepStatus",
    "CheckCurrentState",
    "CheckReviews",
    "CheckBehindBase",
    "CheckBuildHealth",
    "WorkflowRunner",
    "RunnerOutcome",
    "CircleCiWorkflowRunner",
    "PullRequestMerger",
    "DefaultPullRequestMerger",
    "DryRunPullRequestMerger",
]
