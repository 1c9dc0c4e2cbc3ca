"""
GitHub token resolution.

Sources, first hit wins: GITHUB_TOKEN / GH_TOKEN environment variables,
.env.local / .env in the working directory, the gh CLI hosts file, and
finally `gh auth token`.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Mapping
from pathlib import Path

import yaml

from ghtui.errors import FatalInitError

logger = logging.getLogger(__name__)

TOKEN_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
ENV_FILES = (".env.local", ".env")
GH_HOSTS_FILE = Path(".config") / "gh" / "hosts.yml"


def token_from_env(env: Mapping[str, str]) -> str | None:
    for var in TOKEN_VARS:
        value = env.get(var, "").strip()
        if value:
            return value
    return None


def token_from_env_files(directory: Path) -> str | None:
    """Look for GITHUB_TOKEN= or GH_TOKEN= lines in dotenv files."""
    for name in ENV_FILES:
        path = directory / name
        try:
            content = path.read_text()
        except OSError:
            continue
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            for var in TOKEN_VARS:
                prefix = f"{var}="
                if line.startswith(prefix):
                    token = line[len(prefix):].strip().strip("\"'")
                    if token:
                        return token
    return None


def token_from_gh_hosts(home: Path) -> str | None:
    """Read oauth_token for github.com from the gh CLI hosts file."""
    path = home / GH_HOSTS_FILE
    try:
        hosts = yaml.safe_load(path.read_text())
    except OSError:
        return None
    except yaml.YAMLError as e:
        logger.warning("Could not parse %s: %s", path, e)
        return None
    if not isinstance(hosts, dict):
        return None
    host = hosts.get("github.com")
    if not isinstance(host, dict):
        return None
    token = host.get("oauth_token")
    return str(token).strip() if token else None


def token_from_gh_cli() -> str | None:
    """Ask the gh CLI (keyring-backed logins store no token in hosts.yml)."""
    if shutil.which("gh") is None:
        return None
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("gh auth token failed: %s", e)
        return None
    token = result.stdout.strip()
    return token if result.returncode == 0 and token else None


def resolve_token(
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    home: Path | None = None,
    use_gh_cli: bool = True,
) -> str:
    """Return a GitHub token or raise FatalInitError."""
    env = os.environ if env is None else env
    cwd = Path.cwd() if cwd is None else cwd
    home = Path.home() if home is None else home

    token = (
        token_from_env(env)
        or token_from_env_files(cwd)
        or token_from_gh_hosts(home)
        or (token_from_gh_cli() if use_gh_cli else None)
    )
    if not token:
        raise FatalInitError(
            "No GitHub token found. Set GITHUB_TOKEN or log in with `gh auth login`."
        )
    return token
