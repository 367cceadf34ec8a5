"""
Sequential request queue for the public GMGN API.

Every outbound call is funnelled through one FIFO queue per client instance.
A single drain loop executes the queued operations one at a time and sleeps
``delay`` seconds between the end of one operation and the start of the next,
so callers can fire requests concurrently without tripping upstream limits.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger

from gmgn_sniper.errors import ClientClosed, OperationTimeout

Operation = Callable[[], Awaitable[Any]]


@dataclass
class QueuedRequest:
    operation: Operation
    future: asyncio.Future
    label: str = "request"


@dataclass
class QueueStats:
    enqueued: int = 0
    dispatched: int = 0
    failed: int = 0
    timed_out: int = 0
    drain_loops: int = 0
    pending: int = 0
    draining: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "enqueued": self.enqueued,
            "dispatched": self.dispatched,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "drain_loops": self.drain_loops,
            "pending": self.pending,
            "draining": self.draining,
        }


@dataclass
class SequentialRateLimitedClient:
    """
    FIFO, single-flight request queue with a fixed inter-request delay.

    Args:
        delay: Seconds to wait after an operation completes before the next
            queued one starts. Not applied after the last queued item.
        timeout: Optional per-operation limit in seconds. An operation that
            exceeds it fails its own future with ``OperationTimeout`` and the
            queue moves on. ``None`` means operations may run forever.
        name: Used in log lines only.

    Example:
        limiter = SequentialRateLimitedClient(delay=1.0)
        info = await limiter.enqueue(lambda: fetch_token(addr))
    """

    delay: float = 1.0
    timeout: float | None = None
    name: str = "gmgn"
    _queue: deque[QueuedRequest] = field(default_factory=deque, init=False, repr=False)
    _draining: bool = field(default=False, init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)
    _stats: QueueStats = field(default_factory=QueueStats, init=False, repr=False)

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def draining(self) -> bool:
        return self._draining

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> dict[str, Any]:
        self._stats.pending = len(self._queue)
        self._stats.draining = self._draining
        return self._stats.to_dict()

    def enqueue(self, operation: Operation, label: str = "request") -> asyncio.Future:
        """Append ``operation`` to the queue and return the future that settles with its outcome.

        Never raises; must be called from inside a running event loop.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        if self._closed:
            future.set_exception(ClientClosed())
            return future
        self._queue.append(QueuedRequest(operation=operation, future=future, label=label))
        self._stats.enqueued += 1
        self._trigger(loop)
        return future

    def _trigger(self, loop: asyncio.AbstractEventLoop) -> None:
        # A scheduled but not yet started drain task will pick up this item too.
        if self._draining or (self._task is not None and not self._task.done()):
            return
        self._task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        if self._draining:
            return
        self._draining = True
        self._stats.drain_loops += 1
        try:
            while self._queue:
                req = self._queue.popleft()
                await self._dispatch(req)
                if self._queue:
                    await asyncio.sleep(self.delay)
        finally:
            self._draining = False

    async def _dispatch(self, req: QueuedRequest) -> None:
        self._stats.dispatched += 1
        try:
            if self.timeout is None:
                result = await req.operation()
            else:
                result = await asyncio.wait_for(req.operation(), self.timeout)
        except asyncio.TimeoutError:
            self._stats.timed_out += 1
            logger.warning(
                "[{}] queued {} timed out after {}s", self.name, req.label, self.timeout
            )
            _settle(req.future, exc=OperationTimeout(f"{req.label} timed out after {self.timeout}s"))
        except Exception as e:
            self._stats.failed += 1
            logger.warning("[{}] queued {} failed: {}", self.name, req.label, e)
            _settle(req.future, exc=e)
        else:
            _settle(req.future, result=result)

    def close(self) -> None:
        """Reject new work. Items already queued still run."""
        self._closed = True

    async def wait_idle(self) -> None:
        """Wait until the queue is empty and no drain loop is active."""
        while self._draining or self._queue:
            task = self._task
            if task is not None and not task.done():
                await asyncio.shield(task)
            else:
                await asyncio.sleep(0)

    async def aclose(self) -> None:
        self.close()
        await self.wait_idle()


def _settle(future: asyncio.Future, result: Any = None, exc: BaseException | None = None) -> None:
    # The caller may have cancelled its await; the operation still ran, drop the outcome.
    if future.done():
        return
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(result)
