"""
ghtui command line entry point.

Usage:
    ghtui                      # repository from the origin remote
    ghtui --repo owner/name
    ghtui --pr 123             # open straight into a pull request
    ghtui --pr https://github.com/owner/name/pull/123
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ghtui.config import API_BASE, DEFAULT_LOG_FILE, resolve_config
from ghtui.credentials import resolve_token
from ghtui.dispatch import DEFAULT_TASK_TIMEOUT
from ghtui.errors import FatalInitError
from ghtui.providers import MergeStrategy
from ghtui.status import DEFAULT_NOTIFY_TICKS

logger = logging.getLogger("ghtui")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ghtui",
        description="Terminal UI for GitHub pull requests and Actions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--repo", help="Repository as owner/name (default: origin remote)")
    parser.add_argument("--pr", help="Pull request number or URL to open on startup")
    parser.add_argument(
        "--tick-ms",
        type=int,
        default=100,
        help="Main loop tick interval in milliseconds (default: 100)",
    )
    parser.add_argument(
        "--notify-ticks",
        type=int,
        default=DEFAULT_NOTIFY_TICKS,
        help=f"Ticks a notification stays visible (default: {DEFAULT_NOTIFY_TICKS})",
    )
    parser.add_argument(
        "--task-timeout",
        type=float,
        default=DEFAULT_TASK_TIMEOUT,
        help=f"Seconds before a background request fails (default: {DEFAULT_TASK_TIMEOUT:g})",
    )
    parser.add_argument(
        "--merge-strategy",
        choices=[s.value for s in MergeStrategy],
        default=MergeStrategy.SQUASH.value,
        help="Merge method used by 'm' (default: squash)",
    )
    parser.add_argument("--api-url", default=API_BASE, help="GitHub API base URL")
    parser.add_argument(
        "--log-file",
        type=Path,
        default=DEFAULT_LOG_FILE,
        help=f"Log file; the terminal belongs to the UI (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def setup_logging(log_file: Path, verbose: bool = False) -> None:
    logging.basicConfig(
        filename=str(log_file),
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Keep request-level chatter out unless asked for
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    if args.tick_ms <= 0 or args.notify_ticks <= 0 or args.task_timeout <= 0:
        print("Error: --tick-ms, --notify-ticks and --task-timeout must be positive", file=sys.stderr)
        return 2

    try:
        config = resolve_config(
            repo=args.repo,
            pr=args.pr,
            tick_interval=args.tick_ms / 1000,
            notify_ticks=args.notify_ticks,
            task_timeout=args.task_timeout,
            merge_strategy=MergeStrategy(args.merge_strategy),
            api_url=args.api_url,
        )
        token = resolve_token()
    except FatalInitError as e:
        logger.error("Startup failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # Imported late so --help works without the UI stack loaded
    from ghtui.app import run
    from ghtui.github_client import GitHubProvider

    logger.info("Starting for %s (initial PR: %s)", config.repo, config.initial_pr)
    provider = GitHubProvider(token, config.repo, base_url=config.api_url)
    run(config, provider)
    return 0


if __name__ == "__main__":
    sys.exit(main())
