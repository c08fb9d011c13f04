"""
One-time asynchronous initialization gate.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from kybrisk.refdata.errors import UninitializedError

logger = logging.getLogger("kybrisk.refdata.lifecycle")


class LifecycleState(str, Enum):
    """Initialization state of a gated component."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class LifecycleGate:
    """Runs an initializer at most once and guards access until it succeeded.

    ``UNINITIALIZED -> INITIALIZING -> READY``, or ``FAILED`` if the
    initializer raised. FAILED is terminal: later calls re-raise the original
    error.

    Every caller waits on the same shielded run, so cancelling one caller
    does not cancel the run for the others. The run is cancelled only when
    the last caller waiting on it is cancelled; the gate then returns to
    UNINITIALIZED and a later call starts over.
    """

    def __init__(self, name: str = "component"):
        self.name = name
        self.state = LifecycleState.UNINITIALIZED
        self._task: Optional["asyncio.Task[None]"] = None
        self._waiters = 0

    @property
    def is_ready(self) -> bool:
        return self.state is LifecycleState.READY

    async def open(self, initializer: Callable[[], Awaitable[None]]) -> None:
        """Run ``initializer`` unless it already ran or is running.

        A call made while initialization is in flight waits for that run and
        shares its outcome.

        Raises:
            Exception: Whatever the initializer raised, on this or any later call
        """
        if self.state is LifecycleState.READY:
            logger.info(f"{self.name} already initialized")
            return

        if self._task is None:
            self.state = LifecycleState.INITIALIZING
            self._task = asyncio.ensure_future(self._run(initializer))
            # Registered first so the state is settled before any caller resumes
            self._task.add_done_callback(self._on_done)
        elif self.state is LifecycleState.INITIALIZING:
            logger.info(f"{self.name} initialization already in progress, waiting")

        task = self._task
        self._waiters += 1
        try:
            # A finished run re-raises its error here
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done() and self._waiters == 1:
                task.cancel()
                await asyncio.wait([task])
            raise
        finally:
            self._waiters -= 1

    async def _run(self, initializer: Callable[[], Awaitable[None]]) -> None:
        try:
            await initializer()
        except Exception as e:
            logger.error(f"Failed to initialize {self.name}: {str(e)}")
            self.state = LifecycleState.FAILED
            raise
        self.state = LifecycleState.READY

    def _on_done(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled() and task is self._task:
            logger.warning(f"{self.name} initialization cancelled")
            self.state = LifecycleState.UNINITIALIZED
            self._task = None

    def ensure_ready(self) -> None:
        """Raise UninitializedError unless initialization succeeded."""
        if self.state is not LifecycleState.READY:
            raise UninitializedError(
                f"{self.name} not initialized (state: {self.state.value}). Call init() first."
            )
