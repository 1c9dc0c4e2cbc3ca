"""
Async task dispatch and the staleness protocol.

Every fetch or mutation runs as its own asyncio task and reports back with
exactly one Result on a shared queue. Tasks never touch controller state.
Each request is stamped with the generation current for its
(kind, target) key at spawn time; the controller applies a result only while
that generation is still current, so a later spawn silently supersedes an
earlier one. Tasks are never cancelled for relevance, only outlived.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ghtui.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TASK_TIMEOUT = 30.0


class ResourceKind(Enum):
    """What a request fetches or changes. The value reads as a verb phrase."""

    PR_LIST = "fetch pull requests"
    PR_DETAIL = "fetch pull request"
    PR_DIFF = "fetch diff"
    PR_CHECKS = "fetch checks"
    PR_COMMITS = "fetch commits"
    PR_REVIEWS = "fetch reviews"
    COMMIT_DIFF = "fetch commit diff"
    RUN_LIST = "fetch workflow runs"
    JOBS = "fetch jobs"
    LOG = "fetch logs"

    COMMENT = "post comment"
    REQUEST_CHANGES = "request changes"
    SET_TITLE = "edit title"
    ADD_LABELS = "add labels"
    ADD_REVIEWERS = "add reviewers"
    APPROVE = "approve"
    MERGE = "merge"
    RERUN = "rerun workflow"
    CHECKOUT = "check out"
    CREATE_PR = "create pull request"
    OPEN_BROWSER = "open browser"

    @property
    def is_mutation(self) -> bool:
        return self not in _FETCHES


_FETCHES = frozenset(
    {
        ResourceKind.PR_LIST,
        ResourceKind.PR_DETAIL,
        ResourceKind.PR_DIFF,
        ResourceKind.PR_CHECKS,
        ResourceKind.PR_COMMITS,
        ResourceKind.PR_REVIEWS,
        ResourceKind.COMMIT_DIFF,
        ResourceKind.RUN_LIST,
        ResourceKind.JOBS,
        ResourceKind.LOG,
    }
)

ResourceKey = tuple[ResourceKind, Hashable]


@dataclass(frozen=True)
class Request:
    kind: ResourceKind
    target: Hashable
    generation: int
    call: Callable[[], Awaitable[Any]] = field(compare=False, repr=False)

    @property
    def key(self) -> ResourceKey:
        return (self.kind, self.target)


@dataclass(frozen=True)
class Result:
    kind: ResourceKind
    target: Hashable
    generation: int
    payload: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def key(self) -> ResourceKey:
        return (self.kind, self.target)

    @classmethod
    def success(cls, request: Request, payload: Any) -> Result:
        return cls(request.kind, request.target, request.generation, payload=payload)

    @classmethod
    def failure(cls, request: Request, error: str) -> Result:
        return cls(request.kind, request.target, request.generation, error=error)


class RequestTracker:
    """Pending set and per-key generation counters."""

    def __init__(self) -> None:
        self._pending: set[ResourceKey] = set()
        self._generations: dict[ResourceKey, int] = {}

    @property
    def pending(self) -> frozenset[ResourceKey]:
        return frozenset(self._pending)

    def is_pending(self, kind: ResourceKind, target: Hashable = None) -> bool:
        return (kind, target) in self._pending

    def current(self, kind: ResourceKind, target: Hashable = None) -> int:
        return self._generations.get((kind, target), 0)

    def begin(self, kind: ResourceKind, target: Hashable = None, force: bool = False) -> int | None:
        """Mark a key pending and return its new generation.

        Returns None when the key is already pending and force is not set.
        """
        key = (kind, target)
        if key in self._pending and not force:
            return None
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        self._pending.add(key)
        return generation

    def settle(self, result: Result) -> bool:
        """Accept a result if its generation is current; clears the pending flag.

        Stale results leave the pending flag alone: a newer request for the
        same key is still in flight.
        """
        if result.generation != self._generations.get(result.key):
            return False
        self._pending.discard(result.key)
        return True

    def invalidate(self, kind: ResourceKind, target: Hashable = None) -> None:
        """Make any in-flight result for this key stale."""
        key = (kind, target)
        if key in self._generations:
            self._generations[key] += 1
        self._pending.discard(key)


class Dispatcher:
    """Spawns one task per request; results arrive on a single queue."""

    def __init__(
        self,
        timeout: float | None = DEFAULT_TASK_TIMEOUT,
        on_result: Callable[[], None] | None = None,
    ) -> None:
        self.results: asyncio.Queue[Result] = asyncio.Queue()
        self._timeout = timeout
        self._on_result = on_result
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def spawn(self, request: Request) -> None:
        """Start the request and return immediately."""
        task = asyncio.create_task(
            self._run(request),
            name=f"{request.kind.name}:{request.target}#{request.generation}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, request: Request) -> None:
        try:
            payload = await asyncio.wait_for(request.call(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %ss", request.kind.value, self._timeout)
            result = Result.failure(request, f"timed out after {self._timeout:g}s")
        except ProviderError as e:
            logger.warning("Failed to %s (%s): %s", request.kind.value, request.target, e)
            result = Result.failure(request, str(e))
        except Exception as e:
            logger.exception("Unexpected error in %s task", request.kind.name)
            result = Result.failure(request, str(e) or type(e).__name__)
        else:
            result = Result.success(request, payload)

        self.results.put_nowait(result)
        if self._on_result is not None:
            self._on_result()

    async def close(self) -> None:
        """Cancel outstanding tasks. Only used at shutdown."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
