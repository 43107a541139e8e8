"""Control loop that drives one pull request to merge."""

from enum import Enum
from typing import List, Optional, Sequence

from ..config import AgentConfig
from ..models import PullRequestIdentifier
from ..tools import GitHubTool
from ..utils import get_logger
from .build import CheckBuildHealth
from .merge import DefaultPullRequestMerger, DryRunPullRequestMerger, PullRequestMerger
from .runners import WorkflowRunner
from .steps import CheckBehindBase, CheckCurrentState, CheckReviews, Step, StepStatus


class DirectorState(Enum):
    WAITING = "waiting"   # Call run() again later
    DONE = "done"         # Merged


class Director:
    """
    Runs the check pipeline for one pull request and merges it when ready.

    Each run() fetches a fresh snapshot and runs every step in order,
    stopping at the first one that isn't PASSED. The caller decides how long
    to wait between runs. Step errors are not caught here.
    """

    def __init__(
        self,
        github: GitHubTool,
        identifier: PullRequestIdentifier,
        config: Optional[AgentConfig] = None,
        runners: Optional[Sequence[WorkflowRunner]] = None,
        merger: Optional[PullRequestMerger] = None
    ):
        """
        Initialize director.

        Args:
            github: GitHub client shared by all steps
            identifier: Pull request to drive
            config: Agent configuration
            runners: Workflow runners for external CI providers
            merger: Merger to use (defaults from config)
        """
        self.github = github
        self.identifier = identifier
        self.config = config or AgentConfig()
        self.logger = get_logger()

        if merger is None:
            if self.config.dry_run:
                merger = DryRunPullRequestMerger()
            else:
                merger = DefaultPullRequestMerger(github, self.config.default_merge_method)
        self.merger = merger
        self.steps = self._build_steps(runners or [])

    def _build_steps(self, runners: Sequence[WorkflowRunner]) -> List[Step]:
        return [
            CheckCurrentState(),
            CheckReviews(self.github, self.config),
            CheckBehindBase(self.github),
            CheckBuildHealth(self.github, self.config, runners),
        ]

    async def run(self) -> DirectorState:
        """
        Run one poll cycle.

        Returns:
            WAITING if some step is waiting, DONE once merged

        Raises:
            MergeAgentError: If a step or the merge failed
        """
        pull_request = await self.github.fetch_pull_request(self.identifier)
        for step in self.steps:
            status = await step.execute(pull_request)
            if status == StepStatus.WAITING:
                self.logger.debug(f"Step '{step}' is pending")
                return DirectorState.WAITING
            self.logger.debug(f"Step '{step}' passed")

        self.logger.info("All checks passed, attempting to merge pull request")
        await self.merger.merge(pull_request)
        return DirectorState.DONE
