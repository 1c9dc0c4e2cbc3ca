"""
Startup configuration.

Resolves the repository and the initial pull request before the main loop
starts. Anything unresolvable here is a FatalInitError.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ghtui.dispatch import DEFAULT_TASK_TIMEOUT
from ghtui.errors import FatalInitError
from ghtui.events import DEFAULT_TICK_INTERVAL
from ghtui.providers import MergeStrategy
from ghtui.status import DEFAULT_NOTIFY_TICKS

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
DEFAULT_LOG_FILE = Path("ghtui.log")

_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_PR_URL_RE = re.compile(r"github\.com/([^/\s]+)/([^/\s]+)/pull/(\d+)")


@dataclass(frozen=True)
class AppConfig:
    """Immutable startup state injected into the controller."""

    repo: str
    initial_pr: int | None = None
    tick_interval: float = DEFAULT_TICK_INTERVAL
    notify_ticks: int = DEFAULT_NOTIFY_TICKS
    task_timeout: float = DEFAULT_TASK_TIMEOUT
    merge_strategy: MergeStrategy = MergeStrategy.SQUASH
    api_url: str = API_BASE

    @property
    def owner(self) -> str:
        return self.repo.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.repo.split("/", 1)[1]


def parse_pr_arg(value: str | None) -> tuple[str | None, int | None]:
    """Parse a PR selector: a number or a full pull request URL.

    Returns (repo or None, number or None).
    """
    if not value:
        return None, None
    value = value.strip().lstrip("#")
    if value.isdigit():
        return None, int(value)
    match = _PR_URL_RE.search(value)
    if match:
        owner, name, number = match.groups()
        return f"{owner}/{name}", int(number)
    return None, None


def repo_from_remote_url(url: str) -> str | None:
    """Extract owner/repo from an ssh or https GitHub remote URL."""
    url = url.strip()
    if "github.com" not in url:
        return None
    for prefix in ("git@github.com:", "ssh://git@github.com/", "https://github.com/", "http://github.com/"):
        if url.startswith(prefix):
            url = url[len(prefix):]
            break
    else:
        return None
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url if _REPO_RE.match(url) else None


def detect_repo(cwd: Path | None = None) -> str | None:
    """Repository of the origin remote in the working directory, if any."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("git remote lookup failed: %s", e)
        return None
    if result.returncode != 0:
        return None
    return repo_from_remote_url(result.stdout)


def resolve_config(
    repo: str | None = None,
    pr: str | None = None,
    cwd: Path | None = None,
    **options,
) -> AppConfig:
    """Build the AppConfig. Repo precedence: explicit, PR URL, git remote."""
    repo_from_pr, pr_number = parse_pr_arg(pr)
    if pr and pr_number is None:
        raise FatalInitError(f"Invalid --pr value: {pr!r} (expected a number or pull request URL)")

    resolved = repo or repo_from_pr or detect_repo(cwd)
    if not resolved:
        raise FatalInitError(
            "Could not determine the repository. Pass --repo owner/name "
            "or run inside a clone with a GitHub origin remote."
        )
    if not _REPO_RE.match(resolved):
        raise FatalInitError(f"Invalid repository {resolved!r} (expected owner/name)")

    return AppConfig(repo=resolved, initial_pr=pr_number, **options)
