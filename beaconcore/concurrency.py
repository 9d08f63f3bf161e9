"""Bounded admission of asynchronous requests."""

import asyncio
import functools
import logging
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

from .exceptions import ConfigError
from . import metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

RequestFactory = Callable[[], Awaitable[T]]


class ThrottlingRequestGate:
    """Admit at most max_in_flight requests at a time, in FIFO order.

    Requests are submitted as zero-argument factories returning an awaitable,
    so nothing starts until the request is admitted. Every submit resolves
    its future exactly once, with the request's result or exception, and the
    in-flight slot is released either way.

    The queue and counter are only touched from event loop callbacks and
    synchronous code, never across an await.
    """

    def __init__(self, max_in_flight: int, name: str = "default"):
        if max_in_flight < 1:
            raise ConfigError(f"max_in_flight must be >= 1, got {max_in_flight}")
        self.max_in_flight = max_in_flight
        self.name = name
        self._queue: deque[tuple[RequestFactory, asyncio.Future]] = deque()
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def queued(self) -> int:
        return len(self._queue)

    def submit(self, request_factory: RequestFactory) -> asyncio.Future:
        """Queue a request and return a future for its result.

        Must be called with a running event loop.
        """
        future = asyncio.get_running_loop().create_future()
        self._queue.append((request_factory, future))
        self._drain()
        return future

    async def run(self, request_factory: RequestFactory) -> Any:
        """Submit a request and wait for its result."""
        return await self.submit(request_factory)

    def _drain(self) -> None:
        while self._in_flight < self.max_in_flight and self._queue:
            request_factory, future = self._queue.popleft()
            if future.done():
                # Cancelled by the caller while queued
                continue
            try:
                task = asyncio.ensure_future(request_factory())
            except Exception as e:
                logger.debug(f"Gate {self.name}: request factory failed: {e}")
                future.set_exception(e)
                continue

            self._in_flight += 1
            task.add_done_callback(functools.partial(self._on_request_done, future))
            future.add_done_callback(functools.partial(self._on_caller_done, task))

        metrics.update_gate(self.name, self._in_flight, len(self._queue))

    def _on_request_done(self, future: asyncio.Future, task: asyncio.Future) -> None:
        self._in_flight -= 1
        if task.cancelled():
            future.cancel()
        elif task.exception() is not None:
            if not future.done():
                future.set_exception(task.exception())
        elif not future.done():
            future.set_result(task.result())
        self._drain()

    @staticmethod
    def _on_caller_done(task: asyncio.Future, future: asyncio.Future) -> None:
        if future.cancelled() and not task.done():
            task.cancel()
