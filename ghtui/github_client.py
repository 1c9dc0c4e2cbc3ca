"""
GitHub REST implementation of the DataProvider protocol.

All HTTP goes through one httpx.AsyncClient. Transport failures and non-2xx
responses surface as ProviderError; the dispatcher turns those into error
results. Checkout and PR creation shell out to the gh CLI.
"""

from __future__ import annotations

import asyncio
import io
import logging
import shutil
import zipfile
from typing import Any

import httpx

from ghtui.config import API_BASE
from ghtui.errors import ProviderError
from ghtui.providers import (
    Branch,
    Commit,
    Job,
    Label,
    MergeStrategy,
    PrFilter,
    PullRequest,
    Review,
    Step,
    User,
    WorkflowRun,
)

logger = logging.getLogger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.github.diff"
DEFAULT_HTTP_TIMEOUT = 20.0
LOGS_NOT_READY = "Logs not available yet. The run may still be in progress or queued."


# =============================================================================
# Response parsing
# =============================================================================


def _user_from_dict(data: dict | None) -> User:
    data = data or {}
    return User(login=data.get("login", "ghost"), avatar_url=data.get("avatar_url", ""))


def _branch_from_dict(data: dict | None) -> Branch:
    data = data or {}
    return Branch(ref=data.get("ref", ""), sha=data.get("sha", ""))


def _pr_from_dict(data: dict) -> PullRequest:
    return PullRequest(
        number=data["number"],
        title=data.get("title", ""),
        state=data.get("state", "open"),
        user=_user_from_dict(data.get("user")),
        head=_branch_from_dict(data.get("head")),
        base=_branch_from_dict(data.get("base")),
        draft=bool(data.get("draft", False)),
        merged=bool(data.get("merged", False)),
        mergeable=data.get("mergeable"),
        body=data.get("body"),
        created_at=data.get("created_at", ""),
        updated_at=data.get("updated_at", ""),
        html_url=data.get("html_url", ""),
        labels=tuple(
            Label(name=l.get("name", ""), color=l.get("color", ""))
            for l in data.get("labels") or ()
        ),
        requested_reviewers=tuple(
            _user_from_dict(u) for u in data.get("requested_reviewers") or ()
        ),
    )


def _run_from_dict(data: dict) -> WorkflowRun:
    return WorkflowRun(
        id=data["id"],
        name=data.get("name") or data.get("display_title") or "workflow",
        head_branch=data.get("head_branch") or "",
        head_sha=data.get("head_sha", ""),
        status=data.get("status", ""),
        conclusion=data.get("conclusion"),
        run_number=data.get("run_number", 0),
        event=data.get("event", ""),
        created_at=data.get("created_at", ""),
        updated_at=data.get("updated_at", ""),
        html_url=data.get("html_url", ""),
    )


def _job_from_dict(data: dict) -> Job:
    return Job(
        id=data["id"],
        run_id=data.get("run_id", 0),
        name=data.get("name", ""),
        status=data.get("status", ""),
        conclusion=data.get("conclusion"),
        started_at=data.get("started_at") or "",
        completed_at=data.get("completed_at"),
        steps=tuple(
            Step(
                number=s.get("number", 0),
                name=s.get("name", ""),
                status=s.get("status", ""),
                conclusion=s.get("conclusion"),
            )
            for s in data.get("steps") or ()
        ),
    )


def _commit_from_dict(data: dict) -> Commit:
    commit = data.get("commit") or {}
    author = commit.get("author") or {}
    login = (data.get("author") or {}).get("login")
    return Commit(
        sha=data["sha"],
        message=commit.get("message", ""),
        author=login or author.get("name", "unknown"),
        date=author.get("date", ""),
    )


def _review_from_dict(data: dict) -> Review:
    return Review(
        user=_user_from_dict(data.get("user")),
        state=data.get("state", ""),
        submitted_at=data.get("submitted_at"),
    )


def extract_log_archive(content: bytes) -> str:
    """Flatten a zipped log archive into text, one header per file.

    Bodies that are not zip archives are returned decoded as-is.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile:
        return content.decode("utf-8", errors="replace")

    with archive:
        parts = []
        for name in sorted(n for n in archive.namelist() if not n.endswith("/")):
            text = archive.read(name).decode("utf-8", errors="replace")
            parts.append(f"\n=== {name} ===\n{text}")
    return "".join(parts)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return f"{response.status_code} {data['message']}"
    return f"{response.status_code} {response.reason_phrase}"


# =============================================================================
# Provider
# =============================================================================


class GitHubProvider:
    """DataProvider backed by the GitHub REST API."""

    def __init__(
        self,
        token: str,
        repo: str,
        base_url: str = API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self.repo = repo
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "github-tui",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )
        self._login: str | None = None
        self._commit_diffs: dict[str, str] = {}

    async def aclose(self) -> None:
        await self._client.aclose()

    def _path(self, suffix: str) -> str:
        return f"/repos/{self.repo}{suffix}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(f"{method} {url}: {e}") from e
        if response.is_error:
            raise ProviderError(_error_message(response), status_code=response.status_code)
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response

    async def _get_json(self, url: str, **params) -> Any:
        response = await self._request("GET", url, params=params or None)
        return response.json()

    async def _get_diff(self, url: str) -> str:
        response = await self._request("GET", url, headers={"Accept": DIFF_MEDIA_TYPE})
        return response.text

    async def current_login(self) -> str:
        if self._login is None:
            data = await self._get_json("/user")
            self._login = data["login"]
        return self._login

    # -- fetches -------------------------------------------------------------

    async def list_pull_requests(self, pr_filter: PrFilter) -> tuple[PullRequest, ...]:
        data = await self._get_json(self._path("/pulls"), state="open", per_page=50)
        prs = tuple(_pr_from_dict(d) for d in data)
        if pr_filter is PrFilter.ALL:
            return prs
        login = await self.current_login()
        if pr_filter is PrFilter.MINE:
            return tuple(p for p in prs if p.user.login == login)
        return tuple(
            p for p in prs if any(u.login == login for u in p.requested_reviewers)
        )

    async def get_pull_request(self, number: int) -> PullRequest:
        return _pr_from_dict(await self._get_json(self._path(f"/pulls/{number}")))

    async def list_workflow_runs(self) -> tuple[WorkflowRun, ...]:
        data = await self._get_json(self._path("/actions/runs"), per_page=30)
        return tuple(_run_from_dict(d) for d in data.get("workflow_runs", ()))

    async def list_runs_for_commit(self, sha: str) -> tuple[WorkflowRun, ...]:
        data = await self._get_json(self._path("/actions/runs"), head_sha=sha, per_page=30)
        return tuple(_run_from_dict(d) for d in data.get("workflow_runs", ()))

    async def list_jobs(self, run_id: int) -> tuple[Job, ...]:
        data = await self._get_json(self._path(f"/actions/runs/{run_id}/jobs"))
        return tuple(_job_from_dict(d) for d in data.get("jobs", ()))

    async def get_diff(self, number: int) -> str:
        return await self._get_diff(self._path(f"/pulls/{number}"))

    async def list_commits(self, number: int) -> tuple[Commit, ...]:
        data = await self._get_json(self._path(f"/pulls/{number}/commits"), per_page=100)
        return tuple(_commit_from_dict(d) for d in data)

    async def get_commit_diff(self, sha: str) -> str:
        # Commits are immutable
        if sha not in self._commit_diffs:
            self._commit_diffs[sha] = await self._get_diff(self._path(f"/commits/{sha}"))
        return self._commit_diffs[sha]

    async def list_reviews(self, number: int) -> tuple[Review, ...]:
        data = await self._get_json(self._path(f"/pulls/{number}/reviews"))
        return tuple(_review_from_dict(d) for d in data)

    async def get_log(self, run_id: int, job_id: int | None = None) -> str:
        if job_id is not None:
            url = self._path(f"/actions/jobs/{job_id}/logs")
        else:
            url = self._path(f"/actions/runs/{run_id}/logs")
        try:
            response = await self._request("GET", url)
        except ProviderError as e:
            if e.status_code == 404:
                return LOGS_NOT_READY
            raise
        return await asyncio.to_thread(extract_log_archive, response.content)

    # -- mutations -----------------------------------------------------------

    async def post_comment(self, number: int, text: str) -> None:
        await self._request("POST", self._path(f"/issues/{number}/comments"), json={"body": text})

    async def set_title(self, number: int, text: str) -> None:
        await self._request("PATCH", self._path(f"/pulls/{number}"), json={"title": text})

    async def add_labels(self, number: int, labels: tuple[str, ...]) -> None:
        await self._request(
            "POST", self._path(f"/issues/{number}/labels"), json={"labels": list(labels)}
        )

    async def add_reviewers(self, number: int, users: tuple[str, ...]) -> None:
        await self._request(
            "POST",
            self._path(f"/pulls/{number}/requested_reviewers"),
            json={"reviewers": list(users)},
        )

    async def approve(self, number: int) -> None:
        await self._request(
            "POST", self._path(f"/pulls/{number}/reviews"), json={"event": "APPROVE"}
        )

    async def request_changes(self, number: int, text: str) -> None:
        await self._request(
            "POST",
            self._path(f"/pulls/{number}/reviews"),
            json={"event": "REQUEST_CHANGES", "body": text},
        )

    async def merge(self, number: int, strategy: MergeStrategy) -> None:
        await self._request(
            "PUT", self._path(f"/pulls/{number}/merge"), json={"merge_method": strategy.value}
        )

    async def rerun_workflow(self, run_id: int) -> None:
        """Rerun failed jobs, or the whole run when nothing failed."""
        try:
            await self._request("POST", self._path(f"/actions/runs/{run_id}/rerun-failed-jobs"))
        except ProviderError as e:
            logger.info("rerun-failed-jobs for %d rejected (%s), rerunning all", run_id, e)
            await self._request("POST", self._path(f"/actions/runs/{run_id}/rerun"))

    async def checkout(self, number: int) -> None:
        await self._gh("pr", "checkout", str(number), "--repo", self.repo)

    async def create_pull_request(self) -> None:
        await self._gh("pr", "create", "--web", "--repo", self.repo)

    async def _gh(self, *args: str) -> str:
        if shutil.which("gh") is None:
            raise ProviderError("gh CLI not found on PATH")
        proc = await asyncio.create_subprocess_exec(
            "gh",
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await proc.communicate()
        finally:
            # Cancelled by a timeout; don't leave gh running behind us
            if proc.returncode is None:
                logger.info("Killing gh %s (pid %d)", args[0], proc.pid)
                proc.kill()
                await proc.wait()
        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip() or f"gh exited with {proc.returncode}"
            raise ProviderError(message)
        return stdout.decode(errors="replace")
