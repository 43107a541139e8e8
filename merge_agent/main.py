#!/usr/bin/env python3
"""
Merge Agent - Main Entry Point

Watches a GitHub pull request until it is ready and merges it: keeps the
branch up to date with its base, waits for CI, re-runs failed builds and
merges once every check passes.

Usage:
    python -m merge_agent.main run https://github.com/owner/repo/pull/123
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import DEFAULT_CONFIG_PATH, AgentConfig, load_config
from .exceptions import MergeAgentError
from .models import MergeMethod, PullRequestIdentifier
from .orchestrator import CircleCiWorkflowRunner, Director, DirectorState, WorkflowRunner
from .tools import CircleCiTool, GitHubTool, RetryConfig
from .utils import setup_logging, get_logger


async def run_agent(
    config: AgentConfig,
    identifier: PullRequestIdentifier,
    once: bool = False
) -> DirectorState:
    """
    Drive a pull request until it's merged.

    Args:
        config: Agent configuration
        identifier: Pull request to merge
        once: Run a single poll cycle instead of looping

    Returns:
        Final director state

    Raises:
        MergeAgentError: If the pull request can't be merged
    """
    logger = get_logger()

    github = GitHubTool(token=config.github.token, max_retries=config.max_rate_limit_retries)
    circleci: Optional[CircleCiTool] = None
    runners: List[WorkflowRunner] = []
    if config.circleci is not None:
        circleci = CircleCiTool(
            token=config.circleci.token,
            retry_config=RetryConfig(max_retries=config.max_rate_limit_retries),
        )
        runners.append(CircleCiWorkflowRunner(circleci))

    director = Director(github, identifier, config=config, runners=runners)
    logger.info(f"Processing pull request {identifier}")

    try:
        while True:
            state = await director.run()
            if state == DirectorState.DONE or once:
                return state
            logger.debug(
                f"Waiting for pull request to be ready, checking again in "
                f"{config.poll_interval_seconds:g}s"
            )
            await asyncio.sleep(config.poll_interval_seconds)
    finally:
        if circleci is not None:
            await circleci.close()


def build_config(args) -> AgentConfig:
    """Load config from file and environment, then apply CLI overrides."""
    config = load_config(args.config)
    if args.merge_method:
        config.default_merge_method = MergeMethod(args.merge_method)
    if getattr(args, "poll_interval", None) is not None:
        config.poll_interval_seconds = args.poll_interval
    if args.dry_run:
        config.dry_run = True
    config.validate()
    return config


def _run(args, once: bool) -> None:
    setup_logging(level=logging.DEBUG if args.debug else logging.INFO)
    logger = get_logger()

    try:
        identifier = PullRequestIdentifier.from_url(args.url)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        config = build_config(args)
        state = asyncio.run(run_agent(config, identifier, once=once))
    except MergeAgentError as e:
        logger.error(f"Error processing pull request: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)

    if once:
        print(state.value)
    sys.exit(0)


def cmd_run(args):
    """Handle 'run' subcommand."""
    _run(args, once=False)


def cmd_check(args):
    """Handle 'check' subcommand."""
    _run(args, once=True)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "url",
        type=str,
        help="Pull request URL, e.g. https://github.com/owner/repo/pull/123"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Config file path (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument(
        "--merge-method",
        type=str,
        choices=[m.value for m in MergeMethod],
        help="Merge method to try first (default: from config, else merge)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run every check but don't merge"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Merge GitHub pull requests once they are ready"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Poll a pull request until it's merged")
    _add_common_arguments(run_parser)
    run_parser.add_argument(
        "--poll-interval",
        type=float,
        help="Seconds between checks (default: from config, else 30)"
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Run the checks once and print the resulting state"
    )
    _add_common_arguments(check_parser)

    args = parser.parse_args()

    if args.command == "run":
        cmd_run(args)
    elif args.command == "check":
        cmd_check(args)
    else:
        # No subcommand - show help
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
