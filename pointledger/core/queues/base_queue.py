"""Fire-and-forget delivery queue running on its own thread and event loop.

Request handlers hand events over with `enqueue()`, which never awaits and
never raises. A daemon worker drains the queue in small batches and passes
each event to `_process_event()`.
"""

import asyncio
import atexit
import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar

from pointledger.core.patterns import ThreadSafeSingleton

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_SIZE = 1000
DEFAULT_BATCH_SIZE = 50
POLL_INTERVAL_SECONDS = 0.5

_STOP = object()


@dataclass
class QueueStats:
    """Delivery counters since the queue was created."""

    delivered: int = 0
    failed: int = 0
    dropped: int = 0


class BackgroundQueue(Generic[T], ThreadSafeSingleton, ABC):
    """
    Base class for out-of-band event delivery.

    Subclasses name the queue and say how one event is delivered:

        class UsageEventQueue(BackgroundQueue[UsageEvent]):
            def _get_queue_name(self) -> str:
                return "usage-event-queue"

            async def _process_event(self, event: UsageEvent) -> None:
                await publish(event)

    A failing delivery is counted and logged; the worker keeps going.
    Events still queued at shutdown are delivered before the worker exits.
    """

    def _initialize(self) -> None:
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=self._get_max_size())
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._started = False
        self.stats = QueueStats()

        atexit.register(self.shutdown)

    def _get_max_size(self) -> int:
        return DEFAULT_MAX_SIZE

    def _get_batch_size(self) -> int:
        return DEFAULT_BATCH_SIZE

    @abstractmethod
    def _get_queue_name(self) -> str:
        """Name used for the worker thread and in log lines."""

    @abstractmethod
    async def _process_event(self, event: T) -> None:
        """Deliver one event."""

    def start(self) -> None:
        if self._started:
            return

        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._worker,
            name=self._get_queue_name(),
            daemon=True,
        )
        self._started = True
        self._thread.start()
        logger.info(f"{self._get_queue_name()} started")

    def _worker(self) -> None:
        try:
            asyncio.run(self._drain_forever())
        except Exception as e:
            logger.error(f"{self._get_queue_name()} worker crashed: {e}")
        finally:
            logger.info(f"{self._get_queue_name()} worker stopped")

    def _next_batch(self) -> Optional[List[object]]:
        """Block briefly for one item, then take whatever else is ready."""
        try:
            first = self._queue.get(timeout=POLL_INTERVAL_SECONDS)
        except queue.Empty:
            return None

        batch = [first]
        while len(batch) < self._get_batch_size():
            try:
                batch.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return batch

    async def _drain_forever(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            batch = await loop.run_in_executor(None, self._next_batch)
            if batch is None:
                if self._stopping.is_set():
                    return
                continue

            for item in batch:
                if item is _STOP:
                    return
                await self._deliver(item)  # type: ignore[arg-type]

    async def _deliver(self, event: T) -> None:
        try:
            await self._process_event(event)
            self.stats.delivered += 1
        except Exception as e:
            self.stats.failed += 1
            logger.warning(f"{self._get_queue_name()} delivery failed: {e}")

    def enqueue(self, event: T) -> None:
        """Queue an event without blocking; it is dropped when the queue is full."""
        if not self._started:
            self.start()

        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.stats.dropped += 1
            logger.warning(f"{self._get_queue_name()} full, dropping event")

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        """Deliver what is already queued, then stop the worker."""
        if not self._started:
            return

        logger.info(f"Stopping {self._get_queue_name()} ({self.queue_size} pending)")
        self._stopping.set()
        try:
            self._queue.put_nowait(_STOP)
        except queue.Full:
            # Worker exits on the next empty poll once the backlog is gone
            pass

        if wait and self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)

        self._started = False
        logger.info(
            f"{self._get_queue_name()} stopped: delivered={self.stats.delivered} "
            f"failed={self.stats.failed} dropped={self.stats.dropped}"
        )

    def _cleanup(self) -> None:
        self.shutdown(wait=True, timeout=1.0)

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()
