"""Clients for the services the merge agent talks to."""

from .github_tool import GitHubTool
from .circleci_tool import CircleCiTool, RetryConfig

__all__ = ["GitHubTool", "CircleCiTool", "RetryConfig"]
