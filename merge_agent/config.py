"""Configuration for the merge agent."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Generic, List, Optional, TypeVar
import os

import yaml

from .exceptions import ConfigurationError
from .models import MergeMethod


DEFAULT_CONFIG_PATH = "~/.config/merge-agent/config.yaml"

T = TypeVar("T")


@dataclass(frozen=True)
class RepoPattern:
    """An owner/repo key in the per-repo overrides. The repo may be `*`."""
    owner: str
    repo: str

    WILDCARD = "*"

    @classmethod
    def parse(cls, value: str) -> "RepoPattern":
        chunks = value.split("/")
        if len(chunks) > 2:
            raise ConfigurationError(f"malformed repo name '{value}': too many slashes")
        if len(chunks) < 2:
            raise ConfigurationError(f"malformed repo name '{value}': too few slashes")
        owner, repo = chunks
        if not owner or not repo:
            raise ConfigurationError(f"malformed repo name '{value}': empty owner/repo name")
        if owner == cls.WILDCARD:
            raise ConfigurationError(f"malformed repo name '{value}': owner cannot be wildcard")
        return cls(owner=owner, repo=repo)

    @property
    def is_wildcard(self) -> bool:
        return self.repo == self.WILDCARD

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}"


class RepoMap(Generic[T]):
    """
    Values keyed by repository, with owner wildcards and a default.

    Lookup order is exact owner/repo, then owner/*, then the default.
    """

    def __init__(self, default: T):
        self.default = default
        self._entries: Dict[RepoPattern, T] = {}

    def insert(self, pattern: RepoPattern, value: T) -> None:
        if pattern in self._entries:
            raise ConfigurationError(f"duplicate repo entry: {pattern}")
        self._entries[pattern] = value

    def get(self, owner: str, repo: str) -> T:
        exact = RepoPattern(owner, repo)
        if exact in self._entries:
            return self._entries[exact]
        return self._entries.get(RepoPattern(owner, RepoPattern.WILDCARD), self.default)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class GitHubConfig:
    token: str = ""
    username: Optional[str] = None


@dataclass
class CircleCiConfig:
    token: str = ""


@dataclass
class StatusConfig:
    """Per status-check settings."""
    name: str
    max_failures: Optional[int] = None  # None: retry forever


@dataclass
class RepoSettings:
    """Settings that apply to one repository."""
    required_approvals: int = 0
    statuses: List[StatusConfig] = field(default_factory=list)

    def max_failures(self, status_name: str) -> Optional[int]:
        for status in self.statuses:
            if status.name == status_name:
                return status.max_failures
        return None


@dataclass
class AgentConfig:
    """Configuration for the merge agent."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    circleci: Optional[CircleCiConfig] = None

    # Merge behavior
    default_merge_method: MergeMethod = MergeMethod.MERGE
    dry_run: bool = False           # Skip the actual merge call

    # Polling
    poll_interval_seconds: float = 30.0
    max_rate_limit_retries: int = 5

    repos: RepoMap[RepoSettings] = field(default_factory=lambda: RepoMap(RepoSettings()))

    def repo_settings(self, owner: str, repo: str) -> RepoSettings:
        return self.repos.get(owner, repo)

    @classmethod
    def from_dict(cls, data: dict) -> "AgentConfig":
        """
        Build config from a parsed config file.

        Args:
            data: Mapping as loaded from YAML

        Returns:
            AgentConfig
        """
        config = cls()

        github = data.get("github") or {}
        config.github = GitHubConfig(
            token=str(github.get("token", "")),
            username=github.get("username"),
        )

        circleci = (data.get("workflows") or {}).get("circleci")
        if circleci:
            config.circleci = CircleCiConfig(token=str(circleci.get("token", "")))

        merge = data.get("merge") or {}
        if "default_method" in merge:
            config.default_merge_method = _parse_merge_method(merge["default_method"])

        if "poll_interval" in data:
            config.poll_interval_seconds = float(data["poll_interval"])

        default_settings = RepoSettings(
            required_approvals=_parse_approvals(data.get("reviews")),
            statuses=_parse_statuses(data.get("statuses")),
        )
        config.repos = RepoMap(default_settings)
        for entry in data.get("repos") or []:
            if "repo" not in entry:
                raise ConfigurationError("repo entry is missing the 'repo' key")
            pattern = RepoPattern.parse(str(entry["repo"]))
            settings = RepoSettings(
                required_approvals=_parse_approvals(
                    entry.get("reviews"), default_settings.required_approvals
                ),
                statuses=_parse_statuses(entry.get("statuses"), default_settings.statuses),
            )
            config.repos.insert(pattern, settings)

        return config

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_PATH) -> "AgentConfig":
        """Load config from a YAML file. A missing file yields defaults."""
        config_path = Path(path).expanduser()
        if not config_path.exists():
            return cls()
        try:
            data = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid config file {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"invalid config file {config_path}: expected a mapping")
        return cls.from_dict(data)

    def apply_env(self) -> "AgentConfig":
        """Override settings from environment variables."""
        token = os.environ.get("MERGE_AGENT_GITHUB_TOKEN") or os.environ.get("GITHUB_TOKEN")
        if token:
            self.github.token = token
        username = os.environ.get("MERGE_AGENT_GITHUB_USERNAME")
        if username:
            self.github.username = username
        circleci_token = os.environ.get("MERGE_AGENT_CIRCLECI_TOKEN")
        if circleci_token:
            self.circleci = CircleCiConfig(token=circleci_token)
        merge_method = os.environ.get("MERGE_AGENT_MERGE_METHOD")
        if merge_method:
            self.default_merge_method = _parse_merge_method(merge_method)
        poll_interval = os.environ.get("MERGE_AGENT_POLL_INTERVAL")
        if poll_interval:
            self.poll_interval_seconds = float(poll_interval)
        return self

    def validate(self) -> None:
        if not self.github.token:
            raise ConfigurationError(
                "GitHub token required. Set it in the config file or MERGE_AGENT_GITHUB_TOKEN"
            )
        if self.circleci is not None and not self.circleci.token:
            raise ConfigurationError("CircleCI is configured without a token")
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError("poll interval must be positive")


def load_config(path: str = DEFAULT_CONFIG_PATH) -> AgentConfig:
    """Load config from file, then environment."""
    return AgentConfig.from_file(path).apply_env()


def _parse_merge_method(value: str) -> MergeMethod:
    try:
        return MergeMethod(str(value).lower())
    except ValueError:
        raise ConfigurationError(
            f"invalid merge method '{value}', expected one of: merge, squash, rebase"
        ) from None


def _parse_approvals(reviews: Optional[dict], default: int = 0) -> int:
    if not reviews or "approvals" not in reviews:
        return default
    approvals = int(reviews["approvals"])
    if approvals < 0:
        raise ConfigurationError("required approvals cannot be negative")
    return approvals


def _parse_statuses(
    statuses: Optional[list], default: Optional[List[StatusConfig]] = None
) -> List[StatusConfig]:
    if statuses is None:
        return list(default or [])
    parsed = []
    for entry in statuses:
        if "name" not in entry:
            raise ConfigurationError("status entry is missing the 'name' key")
        max_failures = entry.get("max_failures")
        if max_failures is not None:
            max_failures = int(max_failures)
            if max_failures < 1:
                raise ConfigurationError(
                    f"max_failures for status '{entry['name']}' must be at least 1"
                )
        parsed.append(StatusConfig(name=str(entry["name"]), max_failures=max_failures))
    return parsed
