# =============================================================================
# core/queue.py  —  Serialized request queue with per-call retry
# =============================================================================
#
# The Hue bridge copes badly with bursts, so HueClient funnels every call
# through one RequestQueue:
#
#   submit()          enqueue a coroutine factory and await its result
#   _process_queue()  the single worker; takes calls in FIFO order and runs
#                     each one to completion before the next starts
#   stop()            cancel the worker and fail whatever is still queued
#
# A call is tried up to max_attempts times with no delay between tries.
# Each try is bounded by the timeout, and a timeout counts as a failed try.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

from core.config import DEFAULT_MAX_ATTEMPTS, DEFAULT_REQUEST_TIMEOUT

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]


def _always_retry(err: BaseException) -> bool:
    return True


@dataclass
class QueuedRequest:
    """A bridge call waiting for its turn."""

    label: str
    operation: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    should_retry: RetryPredicate


class RequestQueue:
    """Single-consumer FIFO queue for bridge calls.

    Producers enqueue a zero-argument coroutine factory and await its result.
    One worker task drains the queue, so at most one call is in flight and a
    call only starts after every earlier call has settled.  Each call gets up
    to ``max_attempts`` tries with no delay between them; every try is bounded
    by ``timeout`` seconds and a timeout counts as a failed try.
    """

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._queue: asyncio.Queue[QueuedRequest] = asyncio.Queue()
        self._max_attempts = max_attempts
        self._timeout = timeout
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending_count(self) -> int:
        """Number of calls waiting behind the one in flight."""
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the worker task if it is not already running."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._process_queue())
        _LOGGER.debug("Bridge request queue started")

    async def stop(self) -> None:
        """Stop the worker and fail anything still queued."""
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        while not self._queue.empty():
            request = self._queue.get_nowait()
            if not request.future.done():
                request.future.set_exception(RuntimeError("Bridge request queue stopped"))
            self._queue.task_done()
        _LOGGER.debug("Bridge request queue stopped")

    async def submit(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        label: str = "request",
        should_retry: RetryPredicate = _always_retry,
    ) -> T:
        """Queue a call and wait for its result.

        Args:
            operation: A callable returning a fresh coroutine per attempt.
            label: Short description used in log lines.
            should_retry: Decides whether a failed attempt may be repeated.

        Raises:
            The exception of the last failed attempt.
        """
        self.start()
        loop = asyncio.get_running_loop()
        request = QueuedRequest(
            label=label,
            operation=operation,
            future=loop.create_future(),
            should_retry=should_retry,
        )
        self._queue.put_nowait(request)
        _LOGGER.debug("Queued %s, queue size: %d", label, self._queue.qsize())
        return await request.future

    async def _process_queue(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                if request.future.cancelled():
                    continue
                try:
                    result = await self._run_with_retries(request)
                except asyncio.CancelledError:
                    if not request.future.done():
                        request.future.set_exception(RuntimeError("Bridge request queue stopped"))
                    raise
                except Exception as err:
                    if not request.future.done():
                        request.future.set_exception(err)
                else:
                    if not request.future.done():
                        request.future.set_result(result)
            finally:
                self._queue.task_done()

    async def _run_with_retries(self, request: QueuedRequest) -> Any:
        attempt = 1
        while True:
            try:
                return await asyncio.wait_for(request.operation(), timeout=self._timeout)
            except asyncio.TimeoutError:
                err: Exception = TimeoutError(
                    f"{request.label} timed out after {self._timeout:g}s"
                )
            except Exception as exc:
                err = exc

            if attempt >= self._max_attempts or not request.should_retry(err):
                _LOGGER.debug("%s failed on attempt %d: %s", request.label, attempt, err)
                raise err
            _LOGGER.warning(
                "%s failed (attempt %d/%d): %s", request.label, attempt, self._max_attempts, err
            )
            attempt += 1
