"""CI health check: waits on running builds and re-runs failed ones."""

from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, TypeVar

from ..config import AgentConfig, RepoSettings
from ..exceptions import CannotProceedError
from ..models import PullRequest, Status, WorkflowRun
from ..tools import GitHubTool
from ..utils import get_logger
from .runners import RunnerOutcome, WorkflowRunner
from .steps import Step, StepStatus

R = TypeVar("R", WorkflowRun, Status)


def latest_by(records: Iterable[R], key: Callable[[R], Hashable]) -> List[R]:
    """Keep only the most recently created record per key."""
    latest: Dict[Hashable, R] = {}
    for record in records:
        current = latest.get(key(record))
        if current is None or record.created_at > current.created_at:
            latest[key(record)] = record
    return list(latest.values())


class CheckBuildHealth(Step):
    """
    Checks whether CI is green for the pull request head.

    Looks at both GitHub Actions runs and external commit statuses on every
    poll. Failed Actions workflows are re-run through GitHub, failed external
    jobs through the configured workflow runners. Failures of statuses that
    have a max_failures setting are counted per head SHA and abort the run
    once the limit is reached.
    """

    name = "check build health"

    def __init__(
        self,
        github: GitHubTool,
        config: AgentConfig,
        runners: Optional[Sequence[WorkflowRunner]] = None
    ):
        self.github = github
        self.config = config
        self.runners = list(runners or [])
        self.logger = get_logger()

        self._head_sha: Optional[str] = None
        self._failure_counts: Dict[str, int] = {}

    @property
    def failure_counts(self) -> Dict[str, int]:
        """Failures seen per status check for the current head."""
        return dict(self._failure_counts)

    async def execute(self, pull_request: PullRequest) -> StepStatus:
        self._track_head(pull_request.head.sha)

        if not pull_request.mergeable_state.blocked_by_checks:
            return StepStatus.PASSED

        # Both always run so each side's state gets logged. Statuses go first:
        # they may abort the run, and then no Actions re-run should go out.
        statuses_status = await self._check_statuses(pull_request)
        actions_status = await self._check_actions(pull_request)

        if statuses_status == StepStatus.PASSED and actions_status == StepStatus.PASSED:
            raise CannotProceedError(
                f"pull request is {pull_request.mergeable_state.value} for unknown reasons"
            )
        return StepStatus.WAITING

    def _track_head(self, head_sha: str) -> None:
        if self._head_sha is not None and head_sha != self._head_sha:
            if self._failure_counts:
                self.logger.info(f"Head changed to {head_sha[:7]}, resetting failure counts")
            self._failure_counts.clear()
        self._head_sha = head_sha

    async def _check_actions(self, pull_request: PullRequest) -> StepStatus:
        runs = latest_by(
            await self.github.fetch_workflow_runs(pull_request),
            key=lambda run: run.workflow_id,
        )
        pending = [run for run in runs if run.is_pending]
        failed = [run for run in runs if run.is_failed]

        if pending:
            self.logger.info(f"Waiting for {len(pending)} Actions workflows to finish running")
            return StepStatus.WAITING
        if not failed:
            return StepStatus.PASSED

        for run in failed:
            self.logger.info(f"Actions workflow '{run.name}' failed, re-running it")
            await self.github.rerun_workflow(pull_request.base.repo_full_name, run.id)
        return StepStatus.WAITING

    async def _check_statuses(self, pull_request: PullRequest) -> StepStatus:
        statuses = latest_by(
            await self.github.fetch_statuses(pull_request),
            key=lambda status: status.context,
        )
        pending = [status for status in statuses if status.is_pending]
        failed = [status for status in statuses if status.is_failed]

        if len(pending) == 1:
            self.logger.info(f"Waiting for external job '{pending[0].context}' to finish running")
            return StepStatus.WAITING
        if pending:
            self.logger.info(f"Waiting for {len(pending)} external jobs to finish running")
            return StepStatus.WAITING
        if not failed:
            return StepStatus.PASSED

        identifier = pull_request.identifier
        self._count_failures(failed, self.config.repo_settings(identifier.owner, identifier.repo))

        self.logger.info(f"Processing {len(failed)} failed external jobs")
        job_urls = [status.target_url for status in failed if status.target_url]
        triggered = False
        for runner in self.runners:
            outcome = await runner.process_failed_jobs(job_urls)
            if outcome == RunnerOutcome.TRIGGERED:
                triggered = True

        if not triggered:
            names = ", ".join(sorted(status.context for status in failed))
            raise CannotProceedError(f"no workflow runner can re-run failed jobs: {names}")
        return StepStatus.WAITING

    def _count_failures(self, failed: Sequence[Status], settings: RepoSettings) -> None:
        exhausted = []
        for status in failed:
            max_failures = settings.max_failures(status.context)
            if max_failures is None:
                continue
            count = self._failure_counts.get(status.context, 0) + 1
            self._failure_counts[status.context] = count
            self.logger.debug(f"Status '{status.context}' failed {count}/{max_failures} times")
            if count >= max_failures:
                exhausted.append(f"'{status.context}' ({count} failures)")

        if exhausted:
            raise CannotProceedError(
                f"status checks failed too many times: {', '.join(exhausted)}"
            )
