"""
Navigation state machine.

The UI mode is a composite value (Tab, View, Focus, InputMode). transition()
is a pure, total function of (state, key): every key in every state yields a
valid successor state plus at most one intent for the controller to carry
out. Unknown keys leave the state unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from ghtui.events import Key
from ghtui.input import InputMode, InputState, edit
from ghtui.intents import Action, Intent


class Tab(Enum):
    PRS = "prs"
    ACTIONS = "actions"
    LOGS = "logs"

    @property
    def label(self) -> str:
        return {Tab.PRS: "Pull Requests", Tab.ACTIONS: "Actions", Tab.LOGS: "Logs"}[self]


class View(Enum):
    LIST = "list"
    DETAIL = "detail"
    DIFF = "diff"
    JOBS = "jobs"


class Focus(Enum):
    LIST = "list"
    DETAIL = "detail"
    CHECKS = "checks"


class DiffMode(Enum):
    FULL = "full"
    BY_COMMIT = "by_commit"


VALID_VIEWS: dict[Tab, tuple[View, ...]] = {
    Tab.PRS: (View.LIST, View.DETAIL, View.DIFF),
    Tab.ACTIONS: (View.LIST, View.JOBS),
    Tab.LOGS: (View.LIST,),
}

# First entry is the default focus when a transition lands on an invalid one
VALID_FOCUS: dict[tuple[Tab, View], tuple[Focus, ...]] = {
    (Tab.PRS, View.LIST): (Focus.LIST, Focus.DETAIL, Focus.CHECKS),
    (Tab.PRS, View.DETAIL): (Focus.LIST, Focus.DETAIL, Focus.CHECKS),
    (Tab.PRS, View.DIFF): (Focus.DETAIL,),
    (Tab.ACTIONS, View.LIST): (Focus.LIST,),
    (Tab.ACTIONS, View.JOBS): (Focus.LIST,),
    (Tab.LOGS, View.LIST): (Focus.DETAIL,),
}

TAB_ORDER = (Tab.PRS, Tab.ACTIONS, Tab.LOGS)

FOCUS_CYCLE = {
    Focus.LIST: Focus.DETAIL,
    Focus.DETAIL: Focus.CHECKS,
    Focus.CHECKS: Focus.LIST,
}

PR_INPUT_KEYS = {
    "c": InputMode.COMMENT,
    "x": InputMode.REQUEST_CHANGES,
    "e": InputMode.EDIT_TITLE,
    "b": InputMode.ADD_LABEL,
    "a": InputMode.ADD_REVIEWER,
}

PR_ACTION_KEYS = {
    "v": Action.APPROVE,
    "m": Action.MERGE,
    "C": Action.CHECKOUT,
    "w": Action.OPEN_BROWSER,
    "f": Action.CYCLE_FILTER,
    "R": Action.RERUN_CHECK,
}

# Payload names what gets copied from the pull request
PR_COPY_KEYS = {
    "y": "branch",
    "Y": "checkout",
    "u": "url",
}


@dataclass(frozen=True)
class UiState:
    """Which panel and mode is active. Owned by the controller."""

    tab: Tab = Tab.PRS
    view: View = View.LIST
    focus: Focus = Focus.LIST
    input: InputState | None = None
    show_help: bool = False

    @property
    def input_mode(self) -> InputMode | None:
        return self.input.mode if self.input else None


Transition = tuple[UiState, Intent | None]


def is_valid(state: UiState) -> bool:
    return (
        state.view in VALID_VIEWS[state.tab]
        and state.focus in VALID_FOCUS[(state.tab, state.view)]
    )


def normalize(state: UiState) -> UiState:
    """Pull view and focus back into the valid set for the current tab."""
    if state.view not in VALID_VIEWS[state.tab]:
        state = replace(state, view=VALID_VIEWS[state.tab][0])
    focuses = VALID_FOCUS[(state.tab, state.view)]
    if state.focus not in focuses:
        state = replace(state, focus=focuses[0])
    return state


def enter_tab(state: UiState, tab: Tab) -> UiState:
    return normalize(replace(state, tab=tab, view=View.LIST, focus=Focus.LIST))


def _step(key: Key, down: tuple[str, ...], up: tuple[str, ...]) -> int:
    if key.is_named(*down):
        return 1
    if key.is_named(*up):
        return -1
    return 0


def _movement(key: Key) -> Intent | None:
    """j/k, arrows and page keys shared by every scrollable panel."""
    if delta := _step(key, ("j", "down"), ("k", "up")):
        return Intent(Action.MOVE, amount=delta)
    if delta := _step(key, ("pagedown",), ("pageup",)):
        return Intent(Action.PAGE, amount=delta)
    return None


def _commit_keys(key: Key) -> Intent | None:
    if key.is_named("p"):
        return Intent(Action.TOGGLE_DIFF_MODE)
    if delta := _step(key, ("]",), ("[",)):
        return Intent(Action.COMMIT_STEP, amount=delta)
    return None


def _global(state: UiState, key: Key) -> Transition | None:
    if key.is_named("q") and not (state.tab is Tab.PRS and state.view is View.DIFF):
        return state, Intent(Action.QUIT)
    if key.is_named("?"):
        return replace(state, show_help=True), None
    if key.code in ("1", "2", "3") and not key.modifiers:
        tab = TAB_ORDER[int(key.code) - 1]
        return enter_tab(state, tab), Intent(Action.SWITCH_TAB)
    if key.code == "tab" and key.modifiers == frozenset({"shift"}):
        tab = TAB_ORDER[(TAB_ORDER.index(state.tab) - 1) % len(TAB_ORDER)]
        return enter_tab(state, tab), Intent(Action.SWITCH_TAB)
    if key.is_named("tab"):
        if state.tab is Tab.PRS and state.view in (View.LIST, View.DETAIL):
            return replace(state, focus=FOCUS_CYCLE[state.focus]), None
        tab = TAB_ORDER[(TAB_ORDER.index(state.tab) + 1) % len(TAB_ORDER)]
        return enter_tab(state, tab), Intent(Action.SWITCH_TAB)
    if key.is_named("r"):
        return state, Intent(Action.REFRESH)
    if key.is_named("n") and state.tab is Tab.PRS and state.view is View.LIST:
        return state, Intent(Action.CREATE_PR)
    return None


def _pr_keys(state: UiState, key: Key) -> Transition:
    if state.view is View.DIFF:
        if key.is_named("escape", "q"):
            return replace(state, view=View.DETAIL, focus=Focus.DETAIL), None
        return state, _movement(key) or _commit_keys(key)

    if intent := _movement(key):
        return state, intent
    if key.is_named("h", "left"):
        return replace(state, focus=Focus.LIST), None
    if key.is_named("l", "right"):
        if state.focus is Focus.LIST:
            return replace(state, focus=Focus.DETAIL), None
        return replace(state, focus=Focus.CHECKS), None
    if key.is_named("o"):
        return replace(state, focus=FOCUS_CYCLE[state.focus]), None
    if key.is_named("enter"):
        if state.focus is Focus.LIST:
            return (
                replace(state, view=View.DETAIL, focus=Focus.DETAIL),
                Intent(Action.SELECT_PR),
            )
        if state.focus is Focus.CHECKS:
            return enter_tab(state, Tab.LOGS), Intent(Action.VIEW_CHECK_LOGS)
        return state, None
    if key.is_named("escape"):
        if state.view is View.DETAIL:
            return replace(state, view=View.LIST, focus=Focus.LIST), None
        return state, None
    if key.is_named("d"):
        return replace(state, view=View.DIFF, focus=Focus.DETAIL), Intent(Action.OPEN_DIFF)
    if key.is_named("L"):
        jobs = replace(state, tab=Tab.ACTIONS, view=View.JOBS, focus=Focus.LIST)
        return jobs, Intent(Action.VIEW_CHECK_JOBS)
    if not key.modifiers and key.code in PR_INPUT_KEYS:
        mode = PR_INPUT_KEYS[key.code]
        return replace(state, input=InputState(mode)), Intent(Action.BEGIN_INPUT, mode=mode)
    if intent := _commit_keys(key):
        return state, intent
    if not key.modifiers and key.code in PR_ACTION_KEYS:
        return state, Intent(PR_ACTION_KEYS[key.code])
    if not key.modifiers and key.code in PR_COPY_KEYS:
        return state, Intent(Action.COPY, payload=PR_COPY_KEYS[key.code])
    return state, None


def _actions_keys(state: UiState, key: Key) -> Transition:
    if intent := _movement(key):
        return state, intent
    if key.is_named("R"):
        return state, Intent(Action.RERUN_RUN)
    if state.view is View.LIST:
        if key.is_named("enter"):
            return replace(state, view=View.JOBS), Intent(Action.SELECT_RUN)
        return state, None
    if key.is_named("enter", "L"):
        return enter_tab(state, Tab.LOGS), Intent(Action.VIEW_JOB_LOGS)
    if key.is_named("escape"):
        return replace(state, view=View.LIST), None
    return state, None


def _logs_keys(state: UiState, key: Key) -> Transition:
    if intent := _movement(key):
        return state, intent
    if delta := _step(key, ("l", "right"), ("h", "left")):
        return state, Intent(Action.PAN, amount=delta * 10)
    if key.is_named("g", "home"):
        return state, Intent(Action.JUMP_TOP)
    if key.is_named("G", "end"):
        return state, Intent(Action.JUMP_BOTTOM)
    if key.is_named("0"):
        return state, Intent(Action.PAN_RESET)
    if key.is_named("/"):
        search = InputState(InputMode.SEARCH)
        return replace(state, input=search), Intent(Action.BEGIN_INPUT, mode=InputMode.SEARCH)
    if delta := _step(key, ("n",), ("N",)):
        return state, Intent(Action.SEARCH_STEP, amount=delta)
    if key.is_named("escape"):
        back = replace(state, tab=Tab.ACTIONS, view=View.JOBS, focus=Focus.LIST)
        return back, Intent(Action.CLEAR_SEARCH)
    return state, None


_TAB_HANDLERS = {
    Tab.PRS: _pr_keys,
    Tab.ACTIONS: _actions_keys,
    Tab.LOGS: _logs_keys,
}


def transition(state: UiState, key: Key) -> Transition:
    """Compute the successor of state for key. Pure and total."""
    if key.is_interrupt:
        return state, Intent(Action.QUIT)

    if state.input is not None:
        new_input, intent = edit(state.input, key)
        return replace(state, input=new_input), intent

    if state.show_help:
        if key.is_named("?", "escape"):
            return replace(state, show_help=False), None
        if key.is_named("q"):
            return state, Intent(Action.QUIT)
        return state, None

    result = _global(state, key)
    if result is None:
        result = _TAB_HANDLERS[state.tab](state, key)
    new_state, intent = result
    return normalize(new_state), intent
