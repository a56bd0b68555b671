"""
Phase timing for the pipeline and the entity store.

    with Timer("entity_resolution", ctx.metadata.timings):
        entities = await resolve_entities(...)

    @timed("sql_entity_store.list_records")
    async def list_records(self, collection, organization_id):
        ...
"""

from __future__ import annotations

import functools
import inspect
import time
from typing import Any, Callable, MutableMapping

from nlpipe.utils.logging import get_logger

logger = get_logger("nlpipe.timing")


class Timer:
    """
    Wall-clock timer usable with ``with`` and ``async with``.

    When ``sink`` is given, the elapsed milliseconds are stored under
    ``label`` on exit, even if the block raised.
    """

    def __init__(self, label: str = "", sink: MutableMapping[str, float] | None = None):
        self.label = label
        self.sink = sink
        self._start: float = 0.0
        self.elapsed_s: float = 0.0

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed_s * 1000

    def _start_clock(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def _stop_clock(self) -> None:
        self.elapsed_s = time.perf_counter() - self._start
        if self.sink is not None and self.label:
            self.sink[self.label] = self.elapsed_ms
        if self.label:
            logger.debug("[TIMING] %s took %.1fms", self.label, self.elapsed_ms)

    def __enter__(self) -> "Timer":
        return self._start_clock()

    def __exit__(self, *_: Any) -> None:
        self._stop_clock()

    async def __aenter__(self) -> "Timer":
        return self._start_clock()

    async def __aexit__(self, *_: Any) -> None:
        self._stop_clock()


def timed(label: str | None = None) -> Callable:
    """Log how long each call of the decorated (sync or async) function takes."""

    def decorator(fn: Callable) -> Callable:
        _label = label or fn.__qualname__

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                async with Timer(_label):
                    return await fn(*args, **kwargs)

            return async_wrapper

        @functools.wraps(fn)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with Timer(_label):
                return fn(*args, **kwargs)

        return sync_wrapper

    return decorator
