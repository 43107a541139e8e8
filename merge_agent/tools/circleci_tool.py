"""CircleCI v2 API client."""

import asyncio
import random
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..exceptions import ClientError, RateLimitExhaustedError
from ..models import CircleCiJob
from ..utils import get_logger


API_BASE = "https://circleci.com/api/v2"


@dataclass
class RetryConfig:
    """Backoff settings for rate-limited requests."""

    max_retries: int = 5
    backoff_factor: float = 2.0
    respect_retry_after: bool = True
    max_backoff: float = 60.0  # Maximum backoff time in seconds
    jitter: float = 0.1  # Jitter factor (0.1 = ±10%)


class CircleCiTool:
    """
    Async CircleCI client.

    Handles:
    - Job lookups, to find the workflow a failed job belongs to
    - Workflow re-runs from the failed jobs
    - Exponential backoff with jitter on 429 responses
    """

    def __init__(
        self,
        token: str,
        base_url: str = API_BASE,
        timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize CircleCI client.

        Args:
            token: CircleCI personal API token
            base_url: API base URL
            timeout: Request timeout in seconds
            retry_config: Configuration for rate limit retries
            transport: Custom httpx transport (mainly for tests)
        """
        self.retry_config = retry_config or RetryConfig()
        self.logger = get_logger()
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Circle-Token": token, "Accept": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "CircleCiTool":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def fetch_job(self, owner: str, repo: str, job_number: int) -> CircleCiJob:
        """
        Fetch a job of a GitHub-hosted project.

        Args:
            owner: GitHub organization or user
            repo: Repository name
            job_number: Job number from the job URL

        Returns:
            CircleCiJob
        """
        path = f"/project/gh/{owner}/{repo}/job/{job_number}"
        data = await self._execute_with_retry(lambda: self._client.get(path))
        try:
            return CircleCiJob(
                name=data["name"],
                number=int(data.get("number", job_number)),
                status=data.get("status", "unknown"),
                workflow_id=data["latest_workflow"]["id"],
            )
        except (KeyError, TypeError) as e:
            raise ClientError(f"unexpected CircleCI job payload for {path}: missing {e}") from e

    async def rerun_workflow(self, workflow_id: str) -> None:
        """Re-run a workflow starting from its failed jobs."""
        path = f"/workflow/{workflow_id}/rerun"
        await self._execute_with_retry(
            lambda: self._client.post(path, json={"from_failed": True})
        )

    async def _execute_with_retry(
        self, request_fn: Callable[[], Coroutine[Any, Any, httpx.Response]]
    ) -> dict[str, Any]:
        for attempt in range(self.retry_config.max_retries + 1):
            try:
                response = await request_fn()
            except httpx.RequestError as e:
                raise ClientError(f"CircleCI request failed: {e}") from e

            if response.status_code == 429:
                if attempt >= self.retry_config.max_retries:
                    break
                wait_time = self._get_backoff_time(attempt, response.headers.get("Retry-After"))
                self.logger.info(f"CircleCI rate limit hit, sleeping for {wait_time:.1f}s")
                await asyncio.sleep(wait_time)
                continue

            if response.status_code >= 400:
                raise ClientError(_error_message(response), status_code=response.status_code)

            if not response.content:
                return {}
            return response.json()

        raise RateLimitExhaustedError("CircleCI rate limit, max attempts reached")

    def _get_backoff_time(self, attempt: int, retry_after: Optional[str]) -> float:
        """
        Calculate backoff time for retry.

        Uses exponential backoff with jitter, respecting Retry-After header
        if present.
        """
        if retry_after and self.retry_config.respect_retry_after:
            try:
                return min(float(retry_after), self.retry_config.max_backoff)
            except ValueError:
                pass  # Fall through to exponential backoff

        base_wait = self.retry_config.backoff_factor ** attempt
        jitter_range = base_wait * self.retry_config.jitter
        wait_time = base_wait + random.uniform(-jitter_range, jitter_range)
        return min(wait_time, self.retry_config.max_backoff)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = {}
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"CircleCI request failed with status {response.status_code}"
