"""Re-triggering failed jobs on external CI providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence
from urllib.parse import urlparse

from ..exceptions import InvalidJobUrlError
from ..tools import CircleCiTool
from ..utils import get_logger


class RunnerOutcome(Enum):
    NO_ACTION = "no_action"    # None of the jobs belong to this provider
    TRIGGERED = "triggered"    # At least one re-run was requested


class WorkflowRunner(ABC):
    """Re-runs failed jobs hosted by one CI provider."""

    name: str = "workflow runner"

    @abstractmethod
    async def process_failed_jobs(self, job_urls: Sequence[str]) -> RunnerOutcome:
        """
        Re-run the workflows behind failed jobs.

        Args:
            job_urls: Target URLs of failed status checks, any provider

        Returns:
            TRIGGERED if any re-run was requested, NO_ACTION otherwise
        """


@dataclass(frozen=True)
class CircleCiJobRef:
    owner: str
    repo: str
    job_number: int


def parse_circleci_job_url(url: str) -> Optional[CircleCiJobRef]:
    """
    Parse a CircleCI job URL like https://circleci.com/gh/owner/repo/123.

    Returns None for URLs on any other host.

    Raises:
        InvalidJobUrlError: If a circleci.com URL has an unexpected shape
    """
    parsed = urlparse(url)
    if parsed.hostname != "circleci.com":
        return None
    segments = [segment for segment in parsed.path.split("/") if segment]
    if len(segments) != 4:
        raise InvalidJobUrlError(f"invalid CircleCI job URL: {url}")
    _, owner, repo, job_number = segments
    if not job_number.isdigit():
        raise InvalidJobUrlError(f"invalid CircleCI job id in URL: {url}")
    return CircleCiJobRef(owner=owner, repo=repo, job_number=int(job_number))


class CircleCiWorkflowRunner(WorkflowRunner):
    """
    Re-runs CircleCI workflows from their failed jobs.

    Several failed jobs usually belong to the same workflow, so jobs are
    resolved to workflow ids first and each workflow is re-run once.
    """

    name = "circleci"

    def __init__(self, client: CircleCiTool):
        self.client = client
        self.logger = get_logger()

    async def process_failed_jobs(self, job_urls: Sequence[str]) -> RunnerOutcome:
        jobs = []
        for url in job_urls:
            job = parse_circleci_job_url(url)
            if job is not None and job not in jobs:
                jobs.append(job)

        # dict keeps insertion order, re-runs go out in the order jobs were seen
        workflow_ids: Dict[str, None] = {}
        for job in jobs:
            info = await self.client.fetch_job(job.owner, job.repo, job.job_number)
            workflow_ids[info.workflow_id] = None

        if not workflow_ids:
            return RunnerOutcome.NO_ACTION

        self.logger.info(f"Re-running {len(workflow_ids)} failed CircleCI workflows")
        for workflow_id in workflow_ids:
            await self.client.rerun_workflow(workflow_id)
        return RunnerOutcome.TRIGGERED
