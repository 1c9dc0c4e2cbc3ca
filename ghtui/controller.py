"""
Application controller.

The controller is the only writer of UI state. It consumes terminal events
and dispatcher results on one logical thread: keys go through the pure
state machine in ghtui.state, the resulting intent is carried out here, and
background work is handed to the dispatcher as immutable requests whose
results come back through the result queue.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import webbrowser
from collections.abc import Callable, Hashable
from dataclasses import dataclass, replace

from ghtui.config import AppConfig
from ghtui.dispatch import Dispatcher, Request, RequestTracker, ResourceKind, Result
from ghtui.events import Event, Key, Resize, Tick
from ghtui.input import InputMode, InputState
from ghtui.intents import Action, Intent
from ghtui.providers import DataProvider, Job, PrFilter, PullRequest, WorkflowRun
from ghtui.snapshot import Snapshot
from ghtui.state import DiffMode, Focus, Tab, UiState, View, normalize, transition
from ghtui.status import StatusLine

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = (80, 24)

# Tab bar, panel borders and the status line
CHROME_LINES = 8

PR_SCOPED_KINDS = (
    ResourceKind.PR_DETAIL,
    ResourceKind.PR_DIFF,
    ResourceKind.PR_CHECKS,
    ResourceKind.PR_COMMITS,
    ResourceKind.PR_REVIEWS,
)

_OPERATIONS = {
    ResourceKind.PR_LIST: "list_pull_requests",
    ResourceKind.PR_DETAIL: "get_pull_request",
    ResourceKind.PR_DIFF: "get_diff",
    ResourceKind.PR_CHECKS: "list_runs_for_commit",
    ResourceKind.PR_COMMITS: "list_commits",
    ResourceKind.PR_REVIEWS: "list_reviews",
    ResourceKind.COMMIT_DIFF: "get_commit_diff",
    ResourceKind.RUN_LIST: "list_workflow_runs",
    ResourceKind.JOBS: "list_jobs",
    ResourceKind.LOG: "get_log",
    ResourceKind.COMMENT: "post_comment",
    ResourceKind.REQUEST_CHANGES: "request_changes",
    ResourceKind.SET_TITLE: "set_title",
    ResourceKind.ADD_LABELS: "add_labels",
    ResourceKind.ADD_REVIEWERS: "add_reviewers",
    ResourceKind.APPROVE: "approve",
    ResourceKind.MERGE: "merge",
    ResourceKind.RERUN: "rerun_workflow",
    ResourceKind.CHECKOUT: "checkout",
    ResourceKind.CREATE_PR: "create_pull_request",
}

INPUT_ACTIONS = {
    InputMode.COMMENT: ResourceKind.COMMENT,
    InputMode.REQUEST_CHANGES: ResourceKind.REQUEST_CHANGES,
    InputMode.EDIT_TITLE: ResourceKind.SET_TITLE,
    InputMode.ADD_LABEL: ResourceKind.ADD_LABELS,
    InputMode.ADD_REVIEWER: ResourceKind.ADD_REVIEWERS,
}


@dataclass(frozen=True)
class LogTarget:
    """Logs of a whole run, or of one job when job_id is set."""

    run_id: int
    job_id: int | None = None


async def open_url(url: str) -> bool:
    return await asyncio.to_thread(webbrowser.open, url)


def _wrap(index: int, delta: int, length: int) -> int:
    if length == 0:
        return 0
    return (index + delta) % length


def _clamp(index: int, length: int) -> int:
    if length == 0:
        return 0
    return max(0, min(index, length - 1))


class Controller:
    """Owns all mutable UI state; see module docstring."""

    def __init__(
        self,
        config: AppConfig,
        provider: DataProvider,
        dispatcher: Dispatcher,
        clipboard: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config
        self._clipboard = clipboard
        self._provider = provider
        self._dispatcher = dispatcher
        self.tracker = RequestTracker()
        self.status = StatusLine(config.notify_ticks)

        self.ui = UiState()
        self.clock = 0
        self.viewport = DEFAULT_VIEWPORT
        self.should_quit = False

        # Pull requests
        self.prs: tuple[PullRequest, ...] = ()
        self.pr_cursor = 0
        self.pr_filter = PrFilter.ALL
        self.selected_pr: int | None = None
        self.pr_details: dict[int, PullRequest] = {}
        self.diffs: dict[int, str] = {}
        self.checks: dict[int, tuple[WorkflowRun, ...]] = {}
        self.commits: dict[int, tuple] = {}
        self.reviews: dict[int, tuple] = {}
        self.commit_diffs: dict[str, str] = {}
        self.check_cursor = 0
        self.diff_mode = DiffMode.FULL
        self.commit_cursor = 0
        self.detail_scroll = 0
        self.diff_scroll = 0
        self._prs_loaded = False

        # Actions
        self.runs: tuple[WorkflowRun, ...] = ()
        self.run_cursor = 0
        self.selected_run: WorkflowRun | None = None
        self.jobs: dict[int, tuple[Job, ...]] = {}
        self.job_cursor = 0

        # Logs
        self.log_target: LogTarget | None = None
        self.log_title = ""
        self.logs: dict[LogTarget, str] = {}
        self.log_scroll = 0
        self.log_pan = 0
        self.search: str | None = None
        self.matches: tuple[int, ...] = ()
        self.match_index = 0

    # =========================================================================
    # Main loop entry points
    # =========================================================================

    def start(self) -> None:
        """Kick off the initial fetches."""
        self.spawn_fetch(ResourceKind.PR_LIST, None, self.pr_filter)
        self.spawn_fetch(ResourceKind.RUN_LIST)
        if self.config.initial_pr is not None:
            self._select_pr(self.config.initial_pr)
            self.ui = normalize(replace(self.ui, view=View.DETAIL, focus=Focus.DETAIL))

    def handle_event(self, event: Event) -> None:
        """Route one event from the event source."""
        if isinstance(event, Tick):
            self.handle_tick()
        elif isinstance(event, Key):
            self.handle_key(event)
        elif isinstance(event, Resize):
            self.viewport = (event.width, event.height)
        # ResultsReady only wakes the loop; results are drained after every event

    def handle_key(self, key: Key) -> None:
        """Advance the state machine and carry out the resulting intent.

        An intent that cannot be carried out keeps the previous state.
        """
        if key.is_named("escape") and self.ui.input is None:
            self.status.dismiss()

        proposed, intent = transition(self.ui, key)
        if intent is not None:
            handler = getattr(self, f"_on_{intent.action.value}")
            committed = handler(proposed, intent)
            if committed is None:
                logger.debug("Intent %s refused in %s", intent.action.name, self.ui)
                return
            proposed = committed
        self.ui = normalize(proposed)

    def handle_tick(self) -> None:
        """Advance the clock, expire notices and restore a pending prompt."""
        self.clock += 1
        self.status.expire(self.clock)
        if self.ui.input is not None and self.status.current is None:
            self.status.prompt(self.ui.input.mode.prompt)

    def process_messages(self) -> int:
        """Drain the result queue in arrival order. Returns the number applied."""
        applied = 0
        while True:
            try:
                result = self._dispatcher.results.get_nowait()
            except asyncio.QueueEmpty:
                break
            if not self.tracker.settle(result):
                logger.debug(
                    "Discarding stale %s result for %s (generation %d, current %d)",
                    result.kind.name,
                    result.target,
                    result.generation,
                    self.tracker.current(result.kind, result.target),
                )
                continue
            self._apply(result)
            applied += 1
        return applied

    def spawn_fetch(
        self,
        kind: ResourceKind,
        target: Hashable = None,
        *args,
        force: bool = False,
    ) -> int | None:
        """Hand a request to the dispatcher unless one is already pending.

        args are passed to the provider operation; they default to (target,).
        force supersedes an in-flight request for the same key. Returns the
        stamped generation, or None when suppressed.
        """
        generation = self.tracker.begin(kind, target, force=force)
        if generation is None:
            logger.debug("%s for %s already pending", kind.name, target)
            return None
        if not args and target is not None:
            args = (target,)
        call = functools.partial(self._operation(kind), *args)
        self._dispatcher.spawn(Request(kind, target, generation, call))
        logger.debug("Spawned %s for %s (generation %d)", kind.name, target, generation)
        return generation

    def _operation(self, kind: ResourceKind):
        if kind is ResourceKind.OPEN_BROWSER:
            return open_url
        return getattr(self._provider, _OPERATIONS[kind])

    # =========================================================================
    # Derived state
    # =========================================================================

    @property
    def page_size(self) -> int:
        return max(1, self.viewport[1] - CHROME_LINES)

    @property
    def current_pr(self) -> PullRequest | None:
        if self.selected_pr is None:
            return None
        detail = self.pr_details.get(self.selected_pr)
        if detail is not None:
            return detail
        return next((p for p in self.prs if p.number == self.selected_pr), None)

    @property
    def current_checks(self) -> tuple[WorkflowRun, ...]:
        if self.selected_pr is None:
            return ()
        return self.checks.get(self.selected_pr, ())

    @property
    def current_commits(self) -> tuple:
        if self.selected_pr is None:
            return ()
        return self.commits.get(self.selected_pr, ())

    @property
    def current_jobs(self) -> tuple[Job, ...]:
        if self.selected_run is None:
            return ()
        return self.jobs.get(self.selected_run.id, ())

    @property
    def current_log(self) -> str | None:
        if self.log_target is None:
            return None
        return self.logs.get(self.log_target)

    def _pr_under_cursor(self) -> PullRequest | None:
        return self.prs[self.pr_cursor] if self.prs else None

    def _check_under_cursor(self) -> WorkflowRun | None:
        checks = self.current_checks
        return checks[self.check_cursor] if checks else None

    def _run_under_cursor(self) -> WorkflowRun | None:
        return self.runs[self.run_cursor] if self.runs else None

    def _job_under_cursor(self) -> Job | None:
        jobs = self.current_jobs
        return jobs[self.job_cursor] if jobs else None

    def snapshot(self) -> Snapshot:
        commits = self.current_commits
        commit_diff = None
        if 0 <= self.commit_cursor < len(commits):
            commit_diff = self.commit_diffs.get(commits[self.commit_cursor].sha)
        return Snapshot(
            repo=self.config.repo,
            ui=self.ui,
            status=self.status.current,
            clock=self.clock,
            viewport=self.viewport,
            loading=self.tracker.pending,
            prs=self.prs,
            pr_cursor=self.pr_cursor,
            pr_filter=self.pr_filter,
            pr=self.current_pr,
            diff=self.diffs.get(self.selected_pr) if self.selected_pr is not None else None,
            checks=self.current_checks,
            check_cursor=self.check_cursor,
            commits=commits,
            reviews=self.reviews.get(self.selected_pr, ()) if self.selected_pr is not None else (),
            diff_mode=self.diff_mode,
            commit_cursor=self.commit_cursor,
            commit_diff=commit_diff,
            detail_scroll=self.detail_scroll,
            diff_scroll=self.diff_scroll,
            runs=self.runs,
            run_cursor=self.run_cursor,
            run=self.selected_run,
            jobs=self.current_jobs,
            job_cursor=self.job_cursor,
            log=self.current_log,
            log_title=self.log_title,
            log_scroll=self.log_scroll,
            log_pan=self.log_pan,
            search=self.search,
            matches=self.matches,
            match_index=self.match_index,
        )

    # =========================================================================
    # Selection and target switching
    # =========================================================================

    def _select_pr(self, number: int, head_sha: str | None = None) -> None:
        if self.selected_pr != number:
            self._discard_pr_snapshots()
            self.selected_pr = number
            self.check_cursor = 0
            self.commit_cursor = 0
            self.diff_mode = DiffMode.FULL
            self.detail_scroll = 0
            self.diff_scroll = 0
        self.spawn_fetch(ResourceKind.PR_DETAIL, number)
        self.spawn_fetch(ResourceKind.PR_DIFF, number)
        self.spawn_fetch(ResourceKind.PR_COMMITS, number)
        self.spawn_fetch(ResourceKind.PR_REVIEWS, number)
        if head_sha:
            self.spawn_fetch(ResourceKind.PR_CHECKS, number, head_sha)

    def _discard_pr_snapshots(self) -> None:
        if self.selected_pr is not None:
            for kind in PR_SCOPED_KINDS:
                self.tracker.invalidate(kind, self.selected_pr)
        for kind, target in self.tracker.pending:
            if kind is ResourceKind.COMMIT_DIFF:
                self.tracker.invalidate(kind, target)
        self.pr_details.clear()
        self.diffs.clear()
        self.checks.clear()
        self.commits.clear()
        self.reviews.clear()
        self.commit_diffs.clear()

    def _select_run(self, run: WorkflowRun) -> None:
        if self.selected_run is not None and self.selected_run.id != run.id:
            self.tracker.invalidate(ResourceKind.JOBS, self.selected_run.id)
            self.jobs.clear()
            self.job_cursor = 0
        self.selected_run = run
        self.spawn_fetch(ResourceKind.JOBS, run.id)

    def _open_log(self, target: LogTarget, title: str) -> None:
        if self.log_target != target:
            if self.log_target is not None:
                self.tracker.invalidate(ResourceKind.LOG, self.log_target)
            self.logs.clear()
            self.log_target = target
        self.log_title = title
        self.log_scroll = 0
        self.log_pan = 0
        self._clear_search()
        self.spawn_fetch(ResourceKind.LOG, target, target.run_id, target.job_id)

    def _fetch_commit_diff(self) -> None:
        commits = self.current_commits
        if not commits:
            return
        sha = commits[_clamp(self.commit_cursor, len(commits))].sha
        if sha not in self.commit_diffs:
            self.spawn_fetch(ResourceKind.COMMIT_DIFF, sha)

    def _require_pr(self) -> int | None:
        if self.selected_pr is None:
            self.status.error("No pull request selected", self.clock)
        return self.selected_pr

    def _spawn_mutation(self, kind: ResourceKind, target: Hashable, *args) -> bool:
        if self.spawn_fetch(kind, target, *args) is None:
            self.status.notify(f"Still waiting to {kind.value}, try again shortly", self.clock)
            return False
        return True

    # =========================================================================
    # Search
    # =========================================================================

    def _clear_search(self) -> None:
        self.search = None
        self.matches = ()
        self.match_index = 0

    def _find_matches(self) -> None:
        log = self.current_log
        if not self.search or not log:
            self.matches = ()
            self.match_index = 0
            return
        needle = self.search.lower()
        self.matches = tuple(
            i for i, line in enumerate(log.splitlines()) if needle in line.lower()
        )
        self.match_index = 0

    def _apply_search(self, term: str | None) -> None:
        """Search the current log and jump to the first match."""
        self.search = term or None
        self._find_matches()
        if self.matches:
            self.log_scroll = self.matches[0]
        elif self.search:
            self.status.notify(f"No matches for {self.search!r}", self.clock)

    # =========================================================================
    # Intent handlers: return the state to commit, or None to refuse
    # =========================================================================

    def _on_quit(self, state: UiState, intent: Intent) -> UiState:
        """Stop the main loop after this frame."""
        self.should_quit = True
        return state

    def _on_refresh(self, state: UiState, intent: Intent) -> UiState:
        """Refetch everything the active tab shows."""
        self.status.dismiss()
        if state.tab is Tab.PRS:
            self.spawn_fetch(ResourceKind.PR_LIST, None, self.pr_filter, force=True)
            pr = self.current_pr
            if pr is not None:
                self.spawn_fetch(ResourceKind.PR_DETAIL, pr.number, force=True)
                self.spawn_fetch(ResourceKind.PR_CHECKS, pr.number, pr.head.sha, force=True)
                self.spawn_fetch(ResourceKind.PR_REVIEWS, pr.number, force=True)
                if state.view is View.DIFF:
                    self.spawn_fetch(ResourceKind.PR_DIFF, pr.number, force=True)
        elif state.tab is Tab.ACTIONS:
            self.spawn_fetch(ResourceKind.RUN_LIST, force=True)
            if state.view is View.JOBS and self.selected_run is not None:
                self.spawn_fetch(ResourceKind.JOBS, self.selected_run.id, force=True)
        elif self.log_target is not None:
            target = self.log_target
            self.spawn_fetch(ResourceKind.LOG, target, target.run_id, target.job_id, force=True)
        return state

    def _on_switch_tab(self, state: UiState, intent: Intent) -> UiState:
        """Load the new tab's list if nothing is loaded yet."""
        if state.tab is Tab.PRS and not self.prs:
            self.spawn_fetch(ResourceKind.PR_LIST, None, self.pr_filter)
        elif state.tab is Tab.ACTIONS and not self.runs:
            self.spawn_fetch(ResourceKind.RUN_LIST)
        return state

    def _move_focused(self, state: UiState, delta: int, paging: bool) -> None:
        def step(index: int, length: int) -> int:
            if paging:
                return _clamp(index + delta, length)
            return _wrap(index, delta, length)

        if state.tab is Tab.PRS:
            if state.view is View.DIFF:
                self.diff_scroll = max(0, self.diff_scroll + delta)
            elif state.focus is Focus.LIST:
                self.pr_cursor = step(self.pr_cursor, len(self.prs))
            elif state.focus is Focus.CHECKS:
                self.check_cursor = step(self.check_cursor, len(self.current_checks))
            else:
                self.detail_scroll = max(0, self.detail_scroll + delta)
        elif state.tab is Tab.ACTIONS:
            if state.view is View.JOBS:
                self.job_cursor = step(self.job_cursor, len(self.current_jobs))
            else:
                self.run_cursor = step(self.run_cursor, len(self.runs))
        else:
            line_count = len((self.current_log or "").splitlines())
            self.log_scroll = _clamp(self.log_scroll + delta, line_count)

    def _on_move(self, state: UiState, intent: Intent) -> UiState:
        """Move the cursor or scroll position of the focused panel."""
        self._move_focused(state, intent.amount, paging=False)
        return state

    def _on_page(self, state: UiState, intent: Intent) -> UiState:
        """Move by a screenful."""
        self._move_focused(state, intent.amount * self.page_size, paging=True)
        return state

    def _on_pan(self, state: UiState, intent: Intent) -> UiState:
        """Scroll the log sideways."""
        self.log_pan = max(0, self.log_pan + intent.amount)
        return state

    def _on_pan_reset(self, state: UiState, intent: Intent) -> UiState:
        """Return the log to column zero."""
        self.log_pan = 0
        return state

    def _on_jump_top(self, state: UiState, intent: Intent) -> UiState:
        """Jump to the first log line."""
        self.log_scroll = 0
        self.log_pan = 0
        return state

    def _on_jump_bottom(self, state: UiState, intent: Intent) -> UiState:
        """Jump to the last page of the log."""
        line_count = len((self.current_log or "").splitlines())
        self.log_scroll = max(0, line_count - self.page_size)
        return state

    def _on_select_pr(self, state: UiState, intent: Intent) -> UiState | None:
        """Open the pull request under the cursor."""
        pr = self._pr_under_cursor()
        if pr is None:
            return None
        self._select_pr(pr.number, pr.head.sha)
        return state

    def _on_open_diff(self, state: UiState, intent: Intent) -> UiState | None:
        """Show the diff, fetching it on first use."""
        number = self.selected_pr
        if number is None:
            return None
        self.diff_scroll = 0
        if self.diff_mode is DiffMode.BY_COMMIT:
            self._fetch_commit_diff()
        elif number not in self.diffs:
            self.spawn_fetch(ResourceKind.PR_DIFF, number)
        return state

    def _on_toggle_diff_mode(self, state: UiState, intent: Intent) -> UiState | None:
        """Switch between the full diff and commit-by-commit."""
        number = self.selected_pr
        if number is None:
            return None
        self.diff_scroll = 0
        if self.diff_mode is DiffMode.FULL:
            self.diff_mode = DiffMode.BY_COMMIT
            if number not in self.commits:
                self.spawn_fetch(ResourceKind.PR_COMMITS, number)
            self._fetch_commit_diff()
        else:
            self.diff_mode = DiffMode.FULL
            if number not in self.diffs:
                self.spawn_fetch(ResourceKind.PR_DIFF, number)
        return state

    def _on_commit_step(self, state: UiState, intent: Intent) -> UiState:
        """Step to the previous or next commit."""
        commits = self.current_commits
        if self.diff_mode is not DiffMode.BY_COMMIT or not commits:
            return state
        self.commit_cursor = _clamp(self.commit_cursor + intent.amount, len(commits))
        self.diff_scroll = 0
        self._fetch_commit_diff()
        return state

    def _on_cycle_filter(self, state: UiState, intent: Intent) -> UiState:
        """Cycle the PR filter and refetch the list."""
        self.pr_filter = self.pr_filter.next()
        self.pr_cursor = 0
        self.spawn_fetch(ResourceKind.PR_LIST, None, self.pr_filter, force=True)
        self.status.notify(f"Filter: {self.pr_filter.label}", self.clock)
        return state

    def _on_approve(self, state: UiState, intent: Intent) -> UiState | None:
        """Approve the selected pull request."""
        number = self._require_pr()
        if number is None:
            return None
        self._spawn_mutation(ResourceKind.APPROVE, number)
        return state

    def _on_merge(self, state: UiState, intent: Intent) -> UiState | None:
        """Merge the selected pull request."""
        number = self._require_pr()
        if number is None:
            return None
        self._spawn_mutation(ResourceKind.MERGE, number, number, self.config.merge_strategy)
        return state

    def _on_checkout(self, state: UiState, intent: Intent) -> UiState | None:
        """Check out the selected pull request locally."""
        number = self._require_pr()
        if number is None:
            return None
        self._spawn_mutation(ResourceKind.CHECKOUT, number)
        return state

    def _on_create_pr(self, state: UiState, intent: Intent) -> UiState:
        """Start creating a pull request in the browser."""
        if self._spawn_mutation(ResourceKind.CREATE_PR, None):
            self.status.notify("Opening PR creation in browser...", self.clock)
        return state

    def _on_copy(self, state: UiState, intent: Intent) -> UiState | None:
        """Copy the branch, checkout command or URL of a pull request."""
        pr = self._pr_under_cursor() if state.view is View.LIST else self.current_pr
        if pr is None:
            self.status.error("No pull request selected", self.clock)
            return None
        text = {
            "branch": pr.head.ref,
            "checkout": f"gh pr checkout {pr.number}",
            "url": pr.html_url or f"https://github.com/{self.config.repo}/pull/{pr.number}",
        }[intent.payload]
        if self._clipboard is None:
            self.status.error("Clipboard not available", self.clock)
            return state
        self._clipboard(text)
        self.status.notify(f"Copied: {text}", self.clock)
        return state

    def _on_open_browser(self, state: UiState, intent: Intent) -> UiState | None:
        """Open the selected pull request in the browser."""
        number = self._require_pr()
        if number is None:
            return None
        pr = self.current_pr
        url = pr.html_url if pr and pr.html_url else f"https://github.com/{self.config.repo}/pull/{number}"
        self._spawn_mutation(ResourceKind.OPEN_BROWSER, url)
        return state

    def _on_rerun_check(self, state: UiState, intent: Intent) -> UiState | None:
        """Rerun the check under the cursor."""
        check = self._check_under_cursor()
        if check is None:
            self.status.error("No check selected", self.clock)
            return None
        self._spawn_mutation(ResourceKind.RERUN, check.id)
        return state

    def _on_view_check_logs(self, state: UiState, intent: Intent) -> UiState | None:
        """Show the logs of the check under the cursor."""
        check = self._check_under_cursor()
        if check is None:
            return None
        self._select_run(check)
        self._open_log(LogTarget(check.id), f"{check.name} #{check.run_number}")
        return state

    def _on_view_check_jobs(self, state: UiState, intent: Intent) -> UiState | None:
        """Show the jobs of the check under the cursor."""
        check = self._check_under_cursor()
        if check is None:
            return None
        self._select_run(check)
        return state

    def _on_select_run(self, state: UiState, intent: Intent) -> UiState:
        """Drill into the jobs of the run under the cursor."""
        run = self._run_under_cursor()
        if run is None:
            # Nothing to drill into yet; the jobs view shows a placeholder
            if not self.runs:
                self.spawn_fetch(ResourceKind.RUN_LIST)
            return state
        self._select_run(run)
        self.job_cursor = 0
        return state

    def _on_rerun_run(self, state: UiState, intent: Intent) -> UiState | None:
        """Rerun the selected workflow run."""
        run = self.selected_run if state.view is View.JOBS else self._run_under_cursor()
        if run is None:
            self.status.error("No workflow run selected", self.clock)
            return None
        self._spawn_mutation(ResourceKind.RERUN, run.id)
        return state

    def _on_view_job_logs(self, state: UiState, intent: Intent) -> UiState | None:
        """Show the logs of the job under the cursor."""
        run = self.selected_run
        if run is None:
            return None
        job = self._job_under_cursor()
        title = f"{run.name} #{run.run_number}"
        if job is not None:
            title = f"{title} / {job.name}"
        self._open_log(LogTarget(run.id, job.id if job else None), title)
        return state

    def _on_search_step(self, state: UiState, intent: Intent) -> UiState:
        """Jump to the next or previous search match."""
        if self.matches:
            self.match_index = _wrap(self.match_index, intent.amount, len(self.matches))
            self.log_scroll = self.matches[self.match_index]
        return state

    def _on_clear_search(self, state: UiState, intent: Intent) -> UiState:
        """Drop the log search."""
        self._clear_search()
        return state

    def _on_begin_input(self, state: UiState, intent: Intent) -> UiState | None:
        """Prompt for text, prefilling the title when editing it."""
        mode = intent.mode
        if mode.needs_pull_request:
            pr = self.current_pr
            if pr is None:
                self.status.error("No pull request selected", self.clock)
                return None
            if mode is InputMode.EDIT_TITLE:
                state = replace(state, input=InputState(mode, pr.title))
        self.status.prompt(mode.prompt)
        return state

    def _on_submit_input(self, state: UiState, intent: Intent) -> UiState | None:
        """Run the action bound to the input, or keep editing if it is busy."""
        if intent.mode is InputMode.SEARCH:
            self.status.clear_prompt()
            self._apply_search(intent.payload)
            return state
        kind = INPUT_ACTIONS[intent.mode]
        number = self.selected_pr
        if number is not None and self.tracker.is_pending(kind, number):
            # Buffer and mode survive; the prompt comes back once this expires
            self.status.notify(f"Still waiting to {kind.value}, try again shortly", self.clock)
            return None
        self.status.clear_prompt()
        number = self._require_pr()
        if number is not None:
            self._spawn_mutation(kind, number, number, intent.payload)
        return state

    def _on_cancel_input(self, state: UiState, intent: Intent) -> UiState:
        """Discard the buffer."""
        self.status.clear_prompt()
        return state

    def _on_reject_input(self, state: UiState, intent: Intent) -> UiState:
        """Keep editing and explain why the buffer was refused."""
        self.status.error(intent.payload, self.clock)
        return state

    # =========================================================================
    # Result application
    # =========================================================================

    def _apply(self, result: Result) -> None:
        """Apply one current result, or report its error."""
        if not result.ok:
            self.status.error(f"Failed to {result.kind.value}: {result.error}", self.clock)
            return
        logger.debug("Applying %s result for %s", result.kind.name, result.target)
        getattr(self, f"_apply_{result.kind.name.lower()}")(result.target, result.payload)

    def _apply_pr_list(self, target: None, prs: tuple[PullRequest, ...]) -> None:
        """Replace the PR list and keep the cursor in range."""
        self.prs = prs
        if not self._prs_loaded and self.selected_pr is not None:
            for i, pr in enumerate(prs):
                if pr.number == self.selected_pr:
                    self.pr_cursor = i
                    break
        self._prs_loaded = True
        self.pr_cursor = _clamp(self.pr_cursor, len(prs))

    def _apply_pr_detail(self, number: int, pr: PullRequest) -> None:
        """Store the detail and fetch checks for its head commit."""
        self.pr_details[number] = pr
        if number == self.selected_pr and number not in self.checks:
            self.spawn_fetch(ResourceKind.PR_CHECKS, number, pr.head.sha)

    def _apply_pr_diff(self, number: int, diff: str) -> None:
        """Store the full diff."""
        self.diffs[number] = diff

    def _apply_pr_checks(self, number: int, checks: tuple[WorkflowRun, ...]) -> None:
        """Store the check runs for the PR head."""
        self.checks[number] = checks
        self.check_cursor = _clamp(self.check_cursor, len(checks))

    def _apply_pr_commits(self, number: int, commits: tuple) -> None:
        """Store the commits and load the diff of the current one."""
        self.commits[number] = commits
        self.commit_cursor = _clamp(self.commit_cursor, len(commits))
        if self.diff_mode is DiffMode.BY_COMMIT and number == self.selected_pr:
            self._fetch_commit_diff()

    def _apply_pr_reviews(self, number: int, reviews: tuple) -> None:
        """Store the reviews."""
        self.reviews[number] = reviews

    def _apply_commit_diff(self, sha: str, diff: str) -> None:
        """Cache a single commit's diff."""
        self.commit_diffs[sha] = diff

    def _apply_run_list(self, target: None, runs: tuple[WorkflowRun, ...]) -> None:
        """Replace the workflow run list."""
        self.runs = runs
        self.run_cursor = _clamp(self.run_cursor, len(runs))

    def _apply_jobs(self, run_id: int, jobs: tuple[Job, ...]) -> None:
        """Store the jobs of a run."""
        self.jobs[run_id] = jobs
        self.job_cursor = _clamp(self.job_cursor, len(jobs))

    def _apply_log(self, target: LogTarget, text: str) -> None:
        """Store log text and refresh search matches if it is on screen."""
        self.logs[target] = text
        if target == self.log_target:
            self.log_scroll = _clamp(self.log_scroll, len(text.splitlines()))
            if self.search:
                self._find_matches()

    def _notify_done(self, text: str) -> None:
        self.status.notify(text, self.clock)

    def _refresh_pr(self, number: int, *kinds: ResourceKind) -> None:
        if number != self.selected_pr:
            return
        for kind in kinds:
            self.spawn_fetch(kind, number, force=True)

    def _apply_comment(self, number: int, _: None) -> None:
        """Report the posted comment."""
        self._notify_done(f"Comment posted on PR #{number}")

    def _apply_request_changes(self, number: int, _: None) -> None:
        """Report the review and refresh reviews."""
        self._notify_done(f"Requested changes on PR #{number}")
        self._refresh_pr(number, ResourceKind.PR_REVIEWS)

    def _apply_set_title(self, number: int, _: None) -> None:
        """Report the rename and refresh the detail and list."""
        self._notify_done(f"Updated title of PR #{number}")
        self._refresh_pr(number, ResourceKind.PR_DETAIL)
        self.spawn_fetch(ResourceKind.PR_LIST, None, self.pr_filter, force=True)

    def _apply_add_labels(self, number: int, _: None) -> None:
        """Report the added labels and refresh the detail."""
        self._notify_done(f"Added labels to PR #{number}")
        self._refresh_pr(number, ResourceKind.PR_DETAIL)

    def _apply_add_reviewers(self, number: int, _: None) -> None:
        """Report the requested reviewers and refresh the detail."""
        self._notify_done(f"Requested reviewers on PR #{number}")
        self._refresh_pr(number, ResourceKind.PR_DETAIL)

    def _apply_approve(self, number: int, _: None) -> None:
        """Report the approval and refresh reviews."""
        self._notify_done(f"Approved PR #{number}")
        self._refresh_pr(number, ResourceKind.PR_REVIEWS)

    def _apply_merge(self, number: int, _: None) -> None:
        """Report the merge and refresh the detail and list."""
        self._notify_done(f"Merged PR #{number}")
        self._refresh_pr(number, ResourceKind.PR_DETAIL)
        self.spawn_fetch(ResourceKind.PR_LIST, None, self.pr_filter, force=True)

    def _apply_rerun(self, run_id: int, _: None) -> None:
        """Report the rerun and refresh runs and PR checks."""
        known = (*self.runs, *self.current_checks)
        name = next((r.name for r in known if r.id == run_id), f"run {run_id}")
        self._notify_done(f"Rerun triggered for {name}")
        self.spawn_fetch(ResourceKind.RUN_LIST, force=True)
        pr = self.current_pr
        if pr is not None:
            self.spawn_fetch(ResourceKind.PR_CHECKS, pr.number, pr.head.sha, force=True)

    def _apply_checkout(self, number: int, _: None) -> None:
        """Report the checkout."""
        self._notify_done(f"Checked out PR #{number}")

    def _apply_create_pr(self, target: None, _: None) -> None:
        """Report that the browser was opened."""
        self._notify_done("Opened PR creation in browser")

    def _apply_open_browser(self, url: str, opened: bool) -> None:
        """Report whether the browser could be opened."""
        if opened:
            self._notify_done(f"Opened {url}")
        else:
            self.status.error("No browser available", self.clock)
