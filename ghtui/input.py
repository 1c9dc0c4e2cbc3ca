"""
Input modes and text buffering.

While an input mode is active every key edits its buffer: characters append,
backspace deletes, Enter commits the payload and Esc discards it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum

from ghtui.errors import InputValidationError
from ghtui.events import Key
from ghtui.intents import Action, Intent

__all__ = [
    "InputMode",
    "InputState",
    "InputValidationError",
    "edit",
    "validate",
]


class InputMode(Enum):
    SEARCH = "search"
    COMMENT = "comment"
    REQUEST_CHANGES = "request_changes"
    EDIT_TITLE = "edit_title"
    ADD_LABEL = "add_label"
    ADD_REVIEWER = "add_reviewer"

    @property
    def prompt(self) -> str:
        return _PROMPTS[self]

    @property
    def noun(self) -> str:
        return _NOUNS[self]

    @property
    def needs_pull_request(self) -> bool:
        return self is not InputMode.SEARCH


_PROMPTS = {
    InputMode.SEARCH: "Search:",
    InputMode.COMMENT: "Enter comment:",
    InputMode.REQUEST_CHANGES: "Enter comment for request changes:",
    InputMode.EDIT_TITLE: "New title:",
    InputMode.ADD_LABEL: "Label(s) to add:",
    InputMode.ADD_REVIEWER: "Reviewer(s) to add:",
}

_NOUNS = {
    InputMode.SEARCH: "Search",
    InputMode.COMMENT: "Comment",
    InputMode.REQUEST_CHANGES: "Review comment",
    InputMode.EDIT_TITLE: "Title",
    InputMode.ADD_LABEL: "Label",
    InputMode.ADD_REVIEWER: "Reviewer",
}

_LIST_SEPARATORS = re.compile(r"[,\s]+")


@dataclass(frozen=True)
class InputState:
    mode: InputMode
    buffer: str = ""


def validate(state: InputState) -> str | tuple[str, ...]:
    """Return the payload a committed buffer stands for.

    An empty search is allowed and clears the active search. Every other
    mode needs non-blank text. Labels and reviewers are split into a list.
    """
    text = state.buffer.strip()
    if state.mode is InputMode.SEARCH:
        return text
    if not text:
        raise InputValidationError(f"{state.mode.noun} cannot be empty")
    if state.mode in (InputMode.ADD_LABEL, InputMode.ADD_REVIEWER):
        items = tuple(i for i in _LIST_SEPARATORS.split(text) if i)
        if state.mode is InputMode.ADD_REVIEWER:
            items = tuple(i.lstrip("@") for i in items if i.lstrip("@"))
            if not items:
                raise InputValidationError("Reviewer cannot be empty")
        return items
    return text


def edit(state: InputState, key: Key) -> tuple[InputState | None, Intent | None]:
    """Apply one key to an active input. None as the new state ends the mode."""
    if key.is_named("escape"):
        return None, Intent(Action.CANCEL_INPUT, mode=state.mode)

    if key.is_named("enter"):
        try:
            payload = validate(state)
        except InputValidationError as e:
            return state, Intent(Action.REJECT_INPUT, mode=state.mode, payload=str(e))
        return None, Intent(Action.SUBMIT_INPUT, mode=state.mode, payload=payload)

    if key.is_named("backspace"):
        return replace(state, buffer=state.buffer[:-1]), None

    if key == Key.ctrl("u"):
        return replace(state, buffer=""), None

    if key.is_printable:
        return replace(state, buffer=state.buffer + key.code), None

    return state, None
