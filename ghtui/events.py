"""
Terminal events and the event source feeding the main loop.

The event source merges a fixed-cadence tick, key presses and resizes into
one ordered stream. Results delivered by the dispatcher wake the loop with
ResultsReady, which does not advance the clock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.1

MODIFIERS = ("ctrl", "alt", "shift", "meta", "super", "hyper")


@dataclass(frozen=True)
class Key:
    """A key press: a single character or a named key, plus modifiers."""

    code: str
    modifiers: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def ctrl(cls, code: str) -> Key:
        return cls(code, frozenset({"ctrl"}))

    @property
    def is_printable(self) -> bool:
        """Single printable character without ctrl/alt."""
        return (
            len(self.code) == 1
            and self.code.isprintable()
            and not (self.modifiers & {"ctrl", "alt", "meta"})
        )

    @property
    def is_interrupt(self) -> bool:
        return self.code == "c" and "ctrl" in self.modifiers

    def is_named(self, *names: str) -> bool:
        """True for an unmodified named key such as 'enter' or 'escape'."""
        return not self.modifiers and self.code in names


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class ResultsReady:
    pass


Event = Tick | Key | Resize | ResultsReady


def key_from_textual(key: str, character: str | None) -> Key:
    """Translate a Textual key name/character pair into a Key.

    Textual names printable keys ("question_mark", "left_square_bracket"),
    so the character wins whenever one is printable and no control-type
    modifier is held.
    """
    parts = key.split("+")
    modifiers = frozenset(p for p in parts[:-1] if p in MODIFIERS)
    name = parts[-1] if parts[-1] else key
    if (
        character
        and len(character) == 1
        and character.isprintable()
        and not (modifiers - {"shift"})
    ):
        return Key(character)
    return Key(name, modifiers)


class EventSource:
    """Single ordered stream of Tick / Key / Resize events."""

    def __init__(self, tick_interval: float = DEFAULT_TICK_INTERVAL) -> None:
        self._tick_interval = tick_interval
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._ticker: asyncio.Task | None = None
        self._wake_pending = False

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    def start(self) -> None:
        """Start the tick producer on the running loop."""
        if self._ticker is None:
            self._ticker = asyncio.create_task(self._tick(), name="event-source-tick")

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self._queue.put_nowait(Tick())

    def feed_key(self, key: Key) -> None:
        self._queue.put_nowait(key)

    def feed_resize(self, width: int, height: int) -> None:
        self._queue.put_nowait(Resize(width, height))

    def wake(self) -> None:
        """Signal that results are waiting. Coalesced until consumed."""
        if not self._wake_pending:
            self._wake_pending = True
            self._queue.put_nowait(ResultsReady())

    async def next(self) -> Event:
        event = await self._queue.get()
        if isinstance(event, ResultsReady):
            self._wake_pending = False
        return event

    def __aiter__(self) -> EventSource:
        return self

    async def __anext__(self) -> Event:
        return await self.next()

    def close(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None
            logger.debug("Event source stopped")
