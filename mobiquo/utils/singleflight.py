"""Single-flight coordination for non-idempotent state transitions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any


class SingleFlight:
    """Run a transition at most once per observed generation.

    A caller reads ``generation`` before the work that may need a transition,
    then passes it to ``run``. Under the lock, if the generation already moved
    on, some other caller completed a transition in the meantime and its
    outcome (value or exception) is reused instead of running ``fn`` again.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._generation = 0
        self._result: Any = None
        self._error: BaseException | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def run(self, observed: int, fn: Callable[[], Awaitable[Any]]) -> Any:
        async with self._lock:
            if self._generation != observed:
                if self._error is not None:
                    raise self._error
                return self._result
            # A cancelled transition does not count: the next caller runs it again.
            try:
                result = await fn()
            except Exception as exc:
                self._result = None
                self._error = exc
                self._generation += 1
                raise
            self._result = result
            self._error = None
            self._generation += 1
            return result
