"""
Run-scoped cancellation.

A single RunCancellation is shared by every job and attempt in a run. It is
only ever fired by the host (operator abort, SIGINT/SIGTERM), never by the
retry logic. Per-attempt deadlines are handled separately by the HTTP
client timeout and surface as asyncio.TimeoutError.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OrchestratorError(Exception):
    """Base exception for orchestrator errors."""
    pass


class RunAbortedError(OrchestratorError):
    """
    Raised when the run-scoped cancellation fires.

    Attributes:
        result: Partial BatchResult, attached by the orchestrator
    """

    def __init__(self, message: str = "Run aborted", result=None):
        self.result = result
        super().__init__(message)


class RunCancellation:
    """
    Operator-initiated abort signal for a whole run.

    Usage:
        cancellation = RunCancellation()
        response = await cancellation.guard(session_call())
        ...
        cancellation.cancel("operator abort")  # from a signal handler
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancellation requested") -> None:
        """Fire the signal. Idempotent."""
        if not self._event.is_set():
            self._reason = reason
            logger.warning(f"Run cancellation requested: {reason}")
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunAbortedError(f"Run aborted: {self._reason}")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the run is cancelled first.

        Args:
            awaitable: Coroutine or future to run

        Returns:
            The awaitable's result

        Raises:
            RunAbortedError: If cancellation fires before the awaitable finishes.
                             The awaitable is cancelled.
        """
        work = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            work.cancel()
            self.raise_if_cancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()

        if work in done:
            return work.result()

        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Abandoned operation raised during abort: {e}")
        self.raise_if_cancelled()
        raise RunAbortedError("Run aborted")
