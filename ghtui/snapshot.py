"""Read-only view of controller state, sampled once per frame by the renderer."""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass

from ghtui.dispatch import ResourceKey, ResourceKind
from ghtui.providers import (
    Commit,
    Job,
    PrFilter,
    PullRequest,
    Review,
    WorkflowRun,
)
from ghtui.state import DiffMode, UiState
from ghtui.status import StatusMessage

_ANY = object()


@dataclass(frozen=True)
class Snapshot:
    repo: str
    ui: UiState
    status: StatusMessage | None
    clock: int
    viewport: tuple[int, int]
    loading: frozenset[ResourceKey]

    # Pull requests
    prs: tuple[PullRequest, ...] = ()
    pr_cursor: int = 0
    pr_filter: PrFilter = PrFilter.ALL
    pr: PullRequest | None = None
    diff: str | None = None
    checks: tuple[WorkflowRun, ...] = ()
    check_cursor: int = 0
    commits: tuple[Commit, ...] = ()
    reviews: tuple[Review, ...] = ()
    diff_mode: DiffMode = DiffMode.FULL
    commit_cursor: int = 0
    commit_diff: str | None = None
    detail_scroll: int = 0
    diff_scroll: int = 0

    # Actions
    runs: tuple[WorkflowRun, ...] = ()
    run_cursor: int = 0
    run: WorkflowRun | None = None
    jobs: tuple[Job, ...] = ()
    job_cursor: int = 0

    # Logs
    log: str | None = None
    log_title: str = ""
    log_scroll: int = 0
    log_pan: int = 0
    search: str | None = None
    matches: tuple[int, ...] = ()
    match_index: int = 0

    def is_loading(self, kind: ResourceKind, target: Hashable = _ANY) -> bool:
        """Whether a request for kind (optionally for one target) is in flight."""
        if target is _ANY:
            return any(k is kind for k, _ in self.loading)
        return (kind, target) in self.loading

    @property
    def busy(self) -> bool:
        return bool(self.loading)

    @property
    def selected_commit(self) -> Commit | None:
        if 0 <= self.commit_cursor < len(self.commits):
            return self.commits[self.commit_cursor]
        return None
