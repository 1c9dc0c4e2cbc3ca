"""
Data providers for the TUI.

Entity snapshots are immutable records replaced wholesale on every
successful fetch. The DataProvider protocol defines the remote operations;
implementations can be swapped for testing or alternative backends.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class PrFilter(Enum):
    """Which open pull requests the list shows."""

    ALL = "all"
    MINE = "mine"
    REVIEW_REQUESTED = "review_requested"

    @property
    def label(self) -> str:
        return {
            PrFilter.ALL: "All",
            PrFilter.MINE: "Mine",
            PrFilter.REVIEW_REQUESTED: "Review requested",
        }[self]

    def next(self) -> "PrFilter":
        members = list(PrFilter)
        return members[(members.index(self) + 1) % len(members)]


class MergeStrategy(Enum):
    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


@dataclass(frozen=True)
class User:
    login: str
    avatar_url: str = ""


@dataclass(frozen=True)
class Branch:
    ref: str
    sha: str


@dataclass(frozen=True)
class Label:
    name: str
    color: str = ""


@dataclass(frozen=True)
class PullRequest:
    """Immutable snapshot of a pull request."""

    number: int
    title: str
    state: str
    user: User
    head: Branch
    base: Branch
    draft: bool = False
    merged: bool = False
    mergeable: bool | None = None
    body: str | None = None
    created_at: str = ""
    updated_at: str = ""
    html_url: str = ""
    labels: tuple[Label, ...] = ()
    requested_reviewers: tuple[User, ...] = ()

    @property
    def status_icon(self) -> str:
        if self.merged:
            return "⊗"
        if self.state == "closed":
            return "✗"
        if self.draft:
            return "◯"
        return "◉"


def _run_icon(status: str, conclusion: str | None) -> str:
    conclusion_icons = {
        "success": "✓",
        "failure": "✗",
        "cancelled": "⊘",
        "skipped": "⊘",
    }
    if conclusion in conclusion_icons:
        return conclusion_icons[conclusion]
    return {"in_progress": "◷", "queued": "◯"}.get(status, "○")


@dataclass(frozen=True)
class WorkflowRun:
    """Immutable snapshot of a workflow run."""

    id: int
    name: str
    head_branch: str
    head_sha: str
    status: str
    conclusion: str | None
    run_number: int
    event: str
    created_at: str = ""
    updated_at: str = ""
    html_url: str = ""

    @property
    def status_icon(self) -> str:
        return _run_icon(self.status, self.conclusion)


@dataclass(frozen=True)
class Step:
    number: int
    name: str
    status: str
    conclusion: str | None = None

    @property
    def status_icon(self) -> str:
        return _run_icon(self.status, self.conclusion)


@dataclass(frozen=True)
class Job:
    """Immutable snapshot of a workflow job."""

    id: int
    run_id: int
    name: str
    status: str
    conclusion: str | None = None
    started_at: str = ""
    completed_at: str | None = None
    steps: tuple[Step, ...] = ()

    @property
    def status_icon(self) -> str:
        return _run_icon(self.status, self.conclusion)

    @property
    def duration(self) -> str:
        if self.completed_at:
            return "completed"
        if self.started_at:
            return "running..."
        return "-"


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str
    author: str
    date: str = ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def first_line(self) -> str:
        return self.message.splitlines()[0] if self.message else ""


@dataclass(frozen=True)
class Review:
    user: User
    state: str
    submitted_at: str | None = None

    @property
    def status_icon(self) -> str:
        return {
            "APPROVED": "✓",
            "CHANGES_REQUESTED": "✗",
            "COMMENTED": "💬",
            "PENDING": "◯",
            "DISMISSED": "⊘",
        }.get(self.state, "○")


class DataProvider(Protocol):
    """Protocol for the remote code-review and CI service.

    Every operation is a coroutine. Failures raise ProviderError.
    """

    async def list_pull_requests(self, pr_filter: PrFilter) -> tuple[PullRequest, ...]:
        ...

    async def get_pull_request(self, number: int) -> PullRequest:
        ...

    async def list_workflow_runs(self) -> tuple[WorkflowRun, ...]:
        ...

    async def list_runs_for_commit(self, sha: str) -> tuple[WorkflowRun, ...]:
        ...

    async def list_jobs(self, run_id: int) -> tuple[Job, ...]:
        ...

    async def get_diff(self, number: int) -> str:
        ...

    async def list_commits(self, number: int) -> tuple[Commit, ...]:
        ...

    async def get_commit_diff(self, sha: str) -> str:
        ...

    async def list_reviews(self, number: int) -> tuple[Review, ...]:
        ...

    async def get_log(self, run_id: int, job_id: int | None = None) -> str:
        ...

    async def post_comment(self, number: int, text: str) -> None:
        ...

    async def set_title(self, number: int, text: str) -> None:
        ...

    async def add_labels(self, number: int, labels: tuple[str, ...]) -> None:
        ...

    async def add_reviewers(self, number: int, users: tuple[str, ...]) -> None:
        ...

    async def approve(self, number: int) -> None:
        ...

    async def request_changes(self, number: int, text: str) -> None:
        ...

    async def merge(self, number: int, strategy: MergeStrategy) -> None:
        ...

    async def rerun_workflow(self, run_id: int) -> None:
        ...

    async def checkout(self, number: int) -> None:
        ...

    async def create_pull_request(self) -> None:
        ...
