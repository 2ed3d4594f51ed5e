"""
Batch Aggregator.

Collapses bursts of events into a single summary once a threshold is
crossed within a window.

State machine:
    IDLE -> ACCUMULATING (first add, delivered individually)
    ACCUMULATING -> ARMED (add past the threshold arms the window timer)
    ARMED -> IDLE (timer fires: overflow sent as one batch, state reset)

Events up to the threshold are the caller's to deliver immediately;
events past it are held for the flush. The batch is swapped out under
the lock before any delivery happens.
"""

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BatchState(str, Enum):
    """Aggregator lifecycle state."""

    IDLE = "idle"
    ACCUMULATING = "accumulating"
    ARMED = "armed"


class BatchAggregator(Generic[T]):
    """Threshold-plus-window batcher.

    Attributes:
        threshold: Events delivered individually per window
        window_seconds: Delay between arming and flushing
    """

    def __init__(
        self,
        threshold: int,
        window_seconds: float,
        on_flush: Callable[[list[T]], Awaitable[None]],
    ) -> None:
        """Initialize the aggregator.

        Args:
            threshold: Events delivered individually before batching starts
            window_seconds: Window after which the overflow is flushed
            on_flush: Coroutine receiving the overflow events
        """
        if threshold < 0:
            raise ValueError("threshold must be non-negative")
        self.threshold = threshold
        self.window_seconds = window_seconds
        self._on_flush = on_flush
        self._lock = threading.Lock()
        self._batch: list[T] = []
        self._timer: Optional[asyncio.Task] = None
        self._flushes: set[asyncio.Task] = set()

    @property
    def state(self) -> BatchState:
        with self._lock:
            if self._timer is not None:
                return BatchState.ARMED
            if self._batch:
                return BatchState.ACCUMULATING
            return BatchState.IDLE

    @property
    def pending(self) -> int:
        """Events accumulated in the current window."""
        with self._lock:
            return len(self._batch)

    def add(self, item: T) -> bool:
        """Add an event to the current window.

        Must be called from a running event loop; crossing the threshold
        schedules the flush there.

        Returns:
            True if the caller should deliver the event individually,
            False if it is held for the batch flush
        """
        with self._lock:
            self._batch.append(item)
            if len(self._batch) <= self.threshold:
                return True
            if self._timer is None:
                logger.info(
                    f"Batch threshold {self.threshold} exceeded, "
                    f"flushing overflow in {self.window_seconds:g}s"
                )
                self._timer = asyncio.get_running_loop().create_task(self._run_timer())
            return False

    async def flush_now(self) -> None:
        """Flush immediately, canceling a pending timer.

        Used on shutdown so held events are not lost.
        """
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        await self._flush()
        if self._flushes:
            await asyncio.gather(*self._flushes, return_exceptions=True)

    async def _run_timer(self) -> None:
        await asyncio.sleep(self.window_seconds)
        with self._lock:
            # Detach before flushing so flush_now cannot cancel delivery.
            if self._timer is not asyncio.current_task():
                return
            self._timer = None
        task = asyncio.current_task()
        if task is not None:
            self._flushes.add(task)
            task.add_done_callback(self._flushes.discard)
        await self._flush()

    async def _flush(self) -> None:
        with self._lock:
            batch, self._batch = self._batch, []

        if len(batch) <= self.threshold:
            return

        overflow = batch[self.threshold :]
        try:
            await self._on_flush(overflow)
        except Exception as e:
            logger.error(f"Batch flush of {len(overflow)} events failed: {e}")
