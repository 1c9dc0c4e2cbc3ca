"""Tests for controller.py - intents, result application and staleness."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ghtui.config import AppConfig
from ghtui.controller import Controller, LogTarget
from ghtui.dispatch import Request, ResourceKind, Result
from ghtui.events import Key, Resize, Tick
from ghtui.input import InputMode
from ghtui.intents import Action
from ghtui.providers import (
    Branch,
    Commit,
    Job,
    PrFilter,
    PullRequest,
    User,
    WorkflowRun,
)
from ghtui.state import DiffMode, Focus, Tab, View
from ghtui.status import Notification, Prompt
from ghtui.views.widgets import render_jobs

ANY = object()


class ManualDispatcher:
    """Records requests instead of running them; tests deliver results by hand."""

    def __init__(self) -> None:
        self.results: asyncio.Queue[Result] = asyncio.Queue()
        self.requests: list[Request] = []

    def spawn(self, request: Request) -> None:
        self.requests.append(request)

    def find(self, kind: ResourceKind, target=ANY) -> list[Request]:
        return [
            r for r in self.requests
            if r.kind is kind and (target is ANY or r.target == target)
        ]

    def last(self, kind: ResourceKind, target=ANY) -> Request:
        return self.find(kind, target)[-1]

    def deliver(self, request: Request, payload=None, error: str | None = None) -> None:
        if error is not None:
            self.results.put_nowait(Result.failure(request, error))
        else:
            self.results.put_nowait(Result.success(request, payload))


def make_pr(number: int, title: str = "Fix bug", sha: str = "abc123") -> PullRequest:
    return PullRequest(
        number=number,
        title=title,
        state="open",
        user=User("alice"),
        head=Branch("feature", sha),
        base=Branch("main", "0000000"),
        html_url=f"https://github.com/octo/repo/pull/{number}",
    )


def make_run(run_id: int, name: str = "CI") -> WorkflowRun:
    return WorkflowRun(
        id=run_id,
        name=name,
        head_branch="main",
        head_sha="abc123",
        status="completed",
        conclusion="failure",
        run_number=run_id,
        event="push",
    )


def make_job(job_id: int, run_id: int, name: str = "build") -> Job:
    return Job(id=job_id, run_id=run_id, name=name, status="completed", conclusion="success")


@pytest.fixture
def dispatcher() -> ManualDispatcher:
    return ManualDispatcher()


@pytest.fixture
def provider() -> MagicMock:
    return MagicMock()


@pytest.fixture
def controller(dispatcher: ManualDispatcher, provider: MagicMock) -> Controller:
    config = AppConfig(repo="octo/repo", notify_ticks=5)
    ctl = Controller(config, provider, dispatcher)
    ctl.start()
    return ctl


def press(controller: Controller, *codes: str) -> None:
    for code in codes:
        controller.handle_key(Key(code))
        controller.process_messages()


def type_text(controller: Controller, text: str) -> None:
    press(controller, *text)


def load_prs(controller: Controller, dispatcher: ManualDispatcher, *prs: PullRequest) -> None:
    dispatcher.deliver(dispatcher.last(ResourceKind.PR_LIST), tuple(prs))
    controller.process_messages()


def load_runs(controller: Controller, dispatcher: ManualDispatcher, *runs: WorkflowRun) -> None:
    dispatcher.deliver(dispatcher.last(ResourceKind.RUN_LIST), tuple(runs))
    controller.process_messages()


def open_pr(controller: Controller, dispatcher: ManualDispatcher, pr: PullRequest) -> None:
    load_prs(controller, dispatcher, pr)
    press(controller, "enter")


def open_job_log(controller: Controller, dispatcher: ManualDispatcher) -> Request:
    load_runs(controller, dispatcher, make_run(10))
    press(controller, "2", "enter")
    dispatcher.deliver(dispatcher.last(ResourceKind.JOBS, 10), (make_job(100, 10),))
    controller.process_messages()
    press(controller, "enter")
    return dispatcher.last(ResourceKind.LOG)


class TestHandlerTables:
    """Every action and result kind has a documented handler."""

    @pytest.mark.parametrize("action", list(Action))
    def test_intent_handlers(self, action: Action) -> None:
        handler = getattr(Controller, f"_on_{action.value}")
        assert handler.__doc__

    @pytest.mark.parametrize("kind", list(ResourceKind))
    def test_result_handlers(self, kind: ResourceKind) -> None:
        handler = getattr(Controller, f"_apply_{kind.name.lower()}")
        assert handler.__doc__


class TestStartup:
    """Tests for initial fetches."""

    def test_start_fetches_lists(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        assert [r.kind for r in dispatcher.requests] == [ResourceKind.PR_LIST, ResourceKind.RUN_LIST]
        assert dispatcher.requests[0].call.args == (PrFilter.ALL,)
        snapshot = controller.snapshot()
        assert snapshot.is_loading(ResourceKind.PR_LIST)
        assert snapshot.is_loading(ResourceKind.RUN_LIST)

    def test_initial_pr_opens_detail(self, dispatcher: ManualDispatcher, provider: MagicMock) -> None:
        ctl = Controller(AppConfig(repo="octo/repo", initial_pr=42), provider, dispatcher)
        ctl.start()
        assert (ctl.ui.view, ctl.ui.focus) == (View.DETAIL, Focus.DETAIL)
        assert dispatcher.find(ResourceKind.PR_DETAIL, 42)

    def test_pr_list_failure_becomes_error_notification(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        dispatcher.deliver(dispatcher.last(ResourceKind.PR_LIST), error="500 boom")
        controller.process_messages()

        status = controller.snapshot().status
        assert isinstance(status, Notification)
        assert status.is_error
        assert status.text == "Failed to fetch pull requests: 500 boom"
        assert not controller.snapshot().is_loading(ResourceKind.PR_LIST)


class TestStaleness:
    """Tests for duplicate suppression and generation checks."""

    def test_duplicate_spawn_gives_single_update(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        assert controller.spawn_fetch(ResourceKind.PR_DETAIL, 5) == 1
        assert controller.spawn_fetch(ResourceKind.PR_DETAIL, 5) is None
        assert len(dispatcher.find(ResourceKind.PR_DETAIL, 5)) == 1

        dispatcher.deliver(dispatcher.last(ResourceKind.PR_DETAIL, 5), make_pr(5))
        assert controller.process_messages() == 1
        assert controller.pr_details[5] == make_pr(5)

    def test_late_older_log_does_not_overwrite_newer(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        first = open_job_log(controller, dispatcher)
        assert first.call.args == (10, 100)
        press(controller, "r")
        second = dispatcher.last(ResourceKind.LOG)
        assert (first.generation, second.generation) == (1, 2)

        dispatcher.deliver(second, "second")
        dispatcher.deliver(first, "first")
        assert controller.process_messages() == 1

        snapshot = controller.snapshot()
        assert snapshot.log == "second"
        assert not snapshot.is_loading(ResourceKind.LOG)

    def test_superseded_result_keeps_loading_flag(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        first = open_job_log(controller, dispatcher)
        press(controller, "r")
        dispatcher.deliver(first, "first")
        controller.process_messages()

        snapshot = controller.snapshot()
        assert snapshot.log is None
        assert snapshot.is_loading(ResourceKind.LOG, LogTarget(10, 100))

    def test_switching_pr_discards_old_results(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        load_prs(controller, dispatcher, make_pr(1), make_pr(2))
        press(controller, "enter")
        old_detail = dispatcher.last(ResourceKind.PR_DETAIL, 1)
        old_diff = dispatcher.last(ResourceKind.PR_DIFF, 1)

        press(controller, "escape", "j", "enter")
        assert controller.selected_pr == 2

        dispatcher.deliver(old_detail, make_pr(1, "stale"))
        dispatcher.deliver(old_diff, error="late failure")
        assert controller.process_messages() == 0
        assert controller.snapshot().pr.number == 2
        assert controller.snapshot().status is None
        assert not controller.tracker.is_pending(ResourceKind.PR_DETAIL, 1)

    def test_detail_replaces_snapshot(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        open_pr(controller, dispatcher, make_pr(123, "Old title"))
        assert controller.ui.view is View.DETAIL

        fresh = make_pr(123, "New title")
        dispatcher.deliver(dispatcher.last(ResourceKind.PR_DETAIL, 123), fresh)
        controller.process_messages()
        assert controller.snapshot().pr == fresh

    def test_detail_fetches_checks_for_head_sha(
        self, dispatcher: ManualDispatcher, provider: MagicMock
    ) -> None:
        ctl = Controller(AppConfig(repo="octo/repo", initial_pr=7), provider, dispatcher)
        ctl.start()
        assert not dispatcher.find(ResourceKind.PR_CHECKS)

        dispatcher.deliver(dispatcher.last(ResourceKind.PR_DETAIL, 7), make_pr(7, sha="feedbee"))
        ctl.process_messages()
        assert dispatcher.last(ResourceKind.PR_CHECKS, 7).call.args == (7, "feedbee")


class TestNavigation:
    """Tests for cursor movement and view changes."""

    def test_list_cursor_wraps(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        load_prs(controller, dispatcher, make_pr(1), make_pr(2), make_pr(3))
        press(controller, "k")
        assert controller.pr_cursor == 2
        press(controller, "j")
        assert controller.pr_cursor == 0

    def test_enter_on_empty_pr_list_is_refused(self, controller: Controller) -> None:
        press(controller, "enter")
        assert controller.ui.view is View.LIST
        assert controller.selected_pr is None

    def test_empty_actions_enter_shows_jobs_placeholder(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        press(controller, "2", "enter")
        assert (controller.ui.tab, controller.ui.view) == (Tab.ACTIONS, View.JOBS)
        snapshot = controller.snapshot()
        assert snapshot.run is None
        assert "Loading" in render_jobs(snapshot, 20)

        load_runs(controller, dispatcher)
        assert "No workflow run selected" in render_jobs(controller.snapshot(), 20)

    def test_switch_tab_lazily_fetches_runs(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        load_runs(controller, dispatcher)
        before = len(dispatcher.find(ResourceKind.RUN_LIST))
        press(controller, "2")
        assert len(dispatcher.find(ResourceKind.RUN_LIST)) == before + 1

    def test_jump_bottom_uses_viewport(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        request = open_job_log(controller, dispatcher)
        dispatcher.deliver(request, "\n".join(f"line {i}" for i in range(100)))
        controller.process_messages()

        controller.handle_event(Resize(80, 18))
        press(controller, "G")
        assert controller.log_scroll == 100 - (18 - 8)
        press(controller, "g")
        assert controller.log_scroll == 0

    def test_pan_never_negative(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        open_job_log(controller, dispatcher)
        press(controller, "l", "l", "h")
        assert controller.log_pan == 10
        press(controller, "h", "h")
        assert controller.log_pan == 0

    def test_check_logs_switch_target(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        open_pr(controller, dispatcher, make_pr(9))
        dispatcher.deliver(dispatcher.last(ResourceKind.PR_CHECKS, 9), (make_run(50), make_run(51)))
        controller.process_messages()

        press(controller, "l", "j", "enter")
        assert controller.ui.tab is Tab.LOGS
        assert controller.log_target == LogTarget(51)
        assert dispatcher.last(ResourceKind.LOG).call.args == (51, None)

    def test_quit(self, controller: Controller) -> None:
        press(controller, "q")
        assert controller.should_quit


class TestDiff:
    """Tests for the diff view and commit-by-commit mode."""

    def test_commit_mode_fetches_commit_diffs(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        open_pr(controller, dispatcher, make_pr(4))
        commits = (Commit("a" * 40, "first", "alice"), Commit("b" * 40, "second", "bob"))
        dispatcher.deliver(dispatcher.last(ResourceKind.PR_COMMITS, 4), commits)
        controller.process_messages()

        press(controller, "d", "p")
        assert controller.diff_mode is DiffMode.BY_COMMIT
        assert dispatcher.find(ResourceKind.COMMIT_DIFF, "a" * 40)

        press(controller, "]")
        assert controller.commit_cursor == 1
        assert dispatcher.find(ResourceKind.COMMIT_DIFF, "b" * 40)

        press(controller, "]")
        assert controller.commit_cursor == 1

    def test_diff_without_selection_refused(self, controller: Controller) -> None:
        press(controller, "d")
        assert controller.ui.view is View.LIST


class TestInput:
    """Tests for input modes driven through the controller."""

    def test_enter_submits_exactly_once(
        self, controller: Controller, dispatcher: ManualDispatcher, provider: MagicMock
    ) -> None:
        open_pr(controller, dispatcher, make_pr(123))
        press(controller, "c")
        assert controller.snapshot().status == Prompt("Enter comment:")
        type_text(controller, "LGTM")
        press(controller, "enter")

        comments = dispatcher.find(ResourceKind.COMMENT)
        assert len(comments) == 1
        assert comments[0].call.func is provider.post_comment
        assert comments[0].call.args == (123, "LGTM")
        assert controller.ui.input is None
        assert controller.snapshot().status is None

    def test_busy_submit_keeps_buffer(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        """A second comment while the first is in flight stays in the editor."""
        open_pr(controller, dispatcher, make_pr(123))
        press(controller, "c")
        type_text(controller, "first")
        press(controller, "enter")
        press(controller, "c")
        type_text(controller, "second comment")
        press(controller, "enter")

        assert [r.call.args for r in dispatcher.find(ResourceKind.COMMENT)] == [(123, "first")]
        assert controller.ui.input.mode is InputMode.COMMENT
        assert controller.ui.input.buffer == "second comment"
        assert controller.snapshot().status.text.startswith("Still waiting to post comment")

        dispatcher.deliver(dispatcher.last(ResourceKind.COMMENT, 123))
        controller.process_messages()
        press(controller, "enter")

        assert [r.call.args for r in dispatcher.find(ResourceKind.COMMENT)] == [
            (123, "first"),
            (123, "second comment"),
        ]
        assert controller.ui.input is None

    def test_escape_submits_nothing(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        open_pr(controller, dispatcher, make_pr(123))
        press(controller, "c")
        type_text(controller, "never mind")
        press(controller, "escape")

        assert dispatcher.find(ResourceKind.COMMENT) == []
        assert controller.ui.input is None

    def test_input_without_pr_refused(self, controller: Controller) -> None:
        press(controller, "c")
        assert controller.ui.input is None
        assert controller.snapshot().status.text == "No pull request selected"

    def test_edit_title_prefilled(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        open_pr(controller, dispatcher, make_pr(8, "Typo in README"))
        press(controller, "e")
        assert controller.ui.input.mode is InputMode.EDIT_TITLE
        assert controller.ui.input.buffer == "Typo in README"

    def test_labels_payload(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        open_pr(controller, dispatcher, make_pr(8))
        press(controller, "b")
        type_text(controller, "bug,ui")
        press(controller, "enter")
        assert dispatcher.last(ResourceKind.ADD_LABELS).call.args == (8, ("bug", "ui"))

    def test_prompt_returns_after_rejection_expires(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        open_pr(controller, dispatcher, make_pr(1))
        press(controller, "c", "enter")
        status = controller.snapshot().status
        assert isinstance(status, Notification) and status.is_error
        assert controller.ui.input is not None

        for _ in range(5):
            controller.handle_event(Tick())
        assert controller.snapshot().status == Prompt("Enter comment:")

    def test_log_search(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        request = open_job_log(controller, dispatcher)
        dispatcher.deliver(request, "setup\nERROR one\nok\nerror two\n")
        controller.process_messages()

        press(controller, "/")
        type_text(controller, "error")
        press(controller, "enter")
        assert controller.matches == (1, 3)
        assert controller.log_scroll == 1

        press(controller, "n")
        assert controller.log_scroll == 3
        press(controller, "n")
        assert controller.log_scroll == 1

        press(controller, "escape")
        assert controller.search is None
        assert (controller.ui.tab, controller.ui.view) == (Tab.ACTIONS, View.JOBS)


class TestMutations:
    """Tests for mutation intents and their follow-up refreshes."""

    def test_approve_notifies_and_refreshes_reviews(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        open_pr(controller, dispatcher, make_pr(12))
        dispatcher.deliver(dispatcher.last(ResourceKind.PR_REVIEWS, 12), ())
        controller.process_messages()

        press(controller, "v")
        dispatcher.deliver(dispatcher.last(ResourceKind.APPROVE, 12))
        controller.process_messages()

        assert controller.snapshot().status.text == "Approved PR #12"
        assert len(dispatcher.find(ResourceKind.PR_REVIEWS, 12)) == 2

    def test_duplicate_mutation_suppressed(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        open_pr(controller, dispatcher, make_pr(12))
        press(controller, "v", "v")
        assert len(dispatcher.find(ResourceKind.APPROVE)) == 1
        assert controller.snapshot().status.text.startswith("Still waiting to approve")

    def test_copy_keys(self, dispatcher: ManualDispatcher, provider: MagicMock) -> None:
        copied: list[str] = []
        ctl = Controller(AppConfig(repo="octo/repo"), provider, dispatcher, clipboard=copied.append)
        ctl.start()
        load_prs(ctl, dispatcher, make_pr(5), make_pr(6, sha="def"))

        press(ctl, "j", "y", "Y", "u")
        assert copied == [
            "feature",
            "gh pr checkout 6",
            "https://github.com/octo/repo/pull/6",
        ]
        assert ctl.snapshot().status.text == "Copied: https://github.com/octo/repo/pull/6"

    def test_copy_without_clipboard(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        load_prs(controller, dispatcher, make_pr(5))
        press(controller, "y")
        assert controller.snapshot().status.text == "Clipboard not available"

    def test_merge_uses_configured_strategy(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        open_pr(controller, dispatcher, make_pr(12))
        press(controller, "m")
        request = dispatcher.last(ResourceKind.MERGE, 12)
        assert request.call.args == (12, controller.config.merge_strategy)

    def test_filter_cycle_forces_new_list(
        self, controller: Controller, dispatcher: ManualDispatcher
    ) -> None:
        press(controller, "f")
        latest = dispatcher.last(ResourceKind.PR_LIST)
        assert latest.generation == 2
        assert latest.call.args == (PrFilter.MINE,)
        assert controller.snapshot().status.text == "Filter: Mine"

    def test_rerun_from_actions_list(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        load_runs(controller, dispatcher, make_run(3, "Deploy"))
        press(controller, "2", "R")
        request = dispatcher.last(ResourceKind.RERUN, 3)
        dispatcher.deliver(request)
        controller.process_messages()
        assert controller.snapshot().status.text == "Rerun triggered for Deploy"

    def test_rerun_without_run_refused(self, controller: Controller) -> None:
        press(controller, "2", "R")
        assert controller.snapshot().status.text == "No workflow run selected"

    def test_browser_failure_reported(self, controller: Controller, dispatcher: ManualDispatcher) -> None:
        open_pr(controller, dispatcher, make_pr(5))
        press(controller, "w")
        request = dispatcher.last(ResourceKind.OPEN_BROWSER)
        assert request.target == "https://github.com/octo/repo/pull/5"
        dispatcher.deliver(request, False)
        controller.process_messages()
        assert controller.snapshot().status.is_error


class TestCoverage:
    """Every intent and result kind has a handler."""

    def test_every_action_handled(self, controller: Controller) -> None:
        for action in Action:
            assert callable(getattr(controller, f"_on_{action.value}"))

    def test_every_result_kind_applied(self, controller: Controller) -> None:
        for kind in ResourceKind:
            assert callable(getattr(controller, f"_apply_{kind.name.lower()}"))
