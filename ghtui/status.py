"""
Status line: one slot holding either an auto-expiring notification or a
sticky prompt.

Expiry is measured in ticks of the main loop clock, never wall time, so the
same tick source drives rendering cadence and message lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_NOTIFY_TICKS = 30


@dataclass(frozen=True)
class Notification:
    text: str
    expires_at: int
    level: str = "info"

    @property
    def is_error(self) -> bool:
        return self.level == "error"


@dataclass(frozen=True)
class Prompt:
    text: str


StatusMessage = Notification | Prompt


class StatusLine:
    """The single status message slot. A new message replaces the current one."""

    def __init__(self, default_ticks: int = DEFAULT_NOTIFY_TICKS) -> None:
        self.default_ticks = default_ticks
        self._current: StatusMessage | None = None

    @property
    def current(self) -> StatusMessage | None:
        return self._current

    def notify(
        self,
        text: str,
        now: int,
        duration: int | None = None,
        level: str = "info",
    ) -> Notification:
        """Show text for ticks [now, now + duration)."""
        ticks = self.default_ticks if duration is None else duration
        self._current = Notification(text, now + ticks, level)
        return self._current

    def error(self, text: str, now: int) -> Notification:
        return self.notify(text, now, level="error")

    def prompt(self, text: str) -> Prompt:
        self._current = Prompt(text)
        return self._current

    def clear_prompt(self) -> None:
        if isinstance(self._current, Prompt):
            self._current = None

    def dismiss(self) -> None:
        if isinstance(self._current, Notification):
            self._current = None

    def expire(self, now: int) -> bool:
        """Drop a notification whose expiry tick has been reached."""
        current = self._current
        if isinstance(current, Notification) and now >= current.expires_at:
            self._current = None
            return True
        return False
