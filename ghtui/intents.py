"""Intents produced by the state machine and carried out by the controller."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ghtui.input import InputMode


class Action(Enum):
    QUIT = "quit"
    REFRESH = "refresh"
    SWITCH_TAB = "switch_tab"

    # Cursor and scrolling; the focused panel decides what moves
    MOVE = "move"
    PAGE = "page"
    PAN = "pan"
    PAN_RESET = "pan_reset"
    JUMP_TOP = "jump_top"
    JUMP_BOTTOM = "jump_bottom"

    # Pull requests
    SELECT_PR = "select_pr"
    OPEN_DIFF = "open_diff"
    TOGGLE_DIFF_MODE = "toggle_diff_mode"
    COMMIT_STEP = "commit_step"
    CYCLE_FILTER = "cycle_filter"
    APPROVE = "approve"
    MERGE = "merge"
    CHECKOUT = "checkout"
    CREATE_PR = "create_pr"
    OPEN_BROWSER = "open_browser"
    RERUN_CHECK = "rerun_check"
    COPY = "copy"
    VIEW_CHECK_LOGS = "view_check_logs"
    VIEW_CHECK_JOBS = "view_check_jobs"

    # Actions
    SELECT_RUN = "select_run"
    RERUN_RUN = "rerun_run"
    VIEW_JOB_LOGS = "view_job_logs"

    # Logs
    SEARCH_STEP = "search_step"
    CLEAR_SEARCH = "clear_search"

    # Input modes
    BEGIN_INPUT = "begin_input"
    SUBMIT_INPUT = "submit_input"
    CANCEL_INPUT = "cancel_input"
    REJECT_INPUT = "reject_input"


@dataclass(frozen=True)
class Intent:
    """A side effect requested by a key, with its parameters."""

    action: Action
    amount: int = 0
    mode: InputMode | None = None
    payload: Any = None
