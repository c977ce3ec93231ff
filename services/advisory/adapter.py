"""
AdvisoryAdapter - Fire-and-forget bridge to the advisory engine.

Single responsibility: deliver committed transitions to the engine off the
commit path, and keep the latest recommendations per instance.
"""

import logging
import queue
import threading
import time
from typing import Dict, List, Optional, Tuple

from domain.recommendations import Recommendation
from domain.records import TransitionRecord
from .engine import AdvisoryEngine, NullAdvisoryEngine


_STOP = object()


class AdvisoryAdapter:
    """
    Bounded queue plus worker threads in front of an AdvisoryEngine.

    ``notify`` never blocks and never raises: when the queue is full the
    notification is dropped. Engine failures are caught and logged in the
    worker. ``get_recommendations`` answers from the local board, so a hung
    engine cannot stall readers either.
    """

    def __init__(
        self,
        engine: AdvisoryEngine,
        queue_size: int = 1000,
        workers: int = 1,
        autostart: bool = True,
    ):
        """
        Initialize adapter.

        Args:
            engine: Advisory engine to feed
            queue_size: Maximum pending notifications before dropping
            workers: Number of worker threads
            autostart: Start workers immediately
        """
        if queue_size <= 0:
            raise ValueError(f"queue_size must be positive, got {queue_size}")
        if workers <= 0:
            raise ValueError(f"workers must be positive, got {workers}")

        self.engine = engine
        self.workers = workers
        self.logger = logging.getLogger(self.__class__.__name__)

        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._board: Dict[str, Tuple[Recommendation, ...]] = {}
        self._board_lock = threading.Lock()
        self._threads: List[threading.Thread] = []
        self._stats_lock = threading.Lock()

        self.delivered_count = 0
        self.dropped_count = 0
        self.failure_count = 0

        if autostart:
            self.start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Start worker threads (idempotent)."""
        if self._threads:
            return
        for index in range(self.workers):
            thread = threading.Thread(
                target=self._worker,
                name=f"advisory-worker-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float = 5.0):
        """Ask workers to exit after the queued notifications."""
        for _ in self._threads:
            try:
                self._queue.put(_STOP, timeout=timeout)
            except queue.Full:
                self.logger.warning("Advisory queue full, workers may not stop cleanly")
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []

    def drain(self, timeout: float = 5.0) -> bool:
        """
        Wait until every queued notification has been processed.

        Returns:
            True if the queue emptied before the timeout
        """
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    # ------------------------------------------------------------------
    # Orchestrator-facing API
    # ------------------------------------------------------------------

    def notify(self, snapshot, record: TransitionRecord) -> bool:
        """
        Enqueue a committed transition for the engine.

        Returns:
            False if the notification was dropped
        """
        try:
            self._queue.put_nowait((snapshot, record))
            return True
        except queue.Full:
            with self._stats_lock:
                self.dropped_count += 1
            self.logger.debug(
                f"Advisory queue full, dropped notification for {snapshot.id} ({record.action})"
            )
            return False

    def get_recommendations(self, instance_id: str) -> List[Recommendation]:
        """Latest recommendations received for an instance."""
        return list(self._board.get(instance_id, ()))

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _worker(self):
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                snapshot, record = item
                self._deliver(snapshot, record)
            finally:
                self._queue.task_done()

    def _deliver(self, snapshot, record: TransitionRecord):
        try:
            self.engine.notify_transition(snapshot, record)
            recommendations = tuple(self.engine.get_recommendations(snapshot.id) or ())
        except Exception as e:
            with self._stats_lock:
                self.failure_count += 1
            self.logger.warning(
                f"Advisory engine failed for {snapshot.id} ({record.action}): {e}",
                exc_info=True,
            )
            return

        with self._board_lock:
            self._board[snapshot.id] = recommendations
        with self._stats_lock:
            self.delivered_count += 1

        if recommendations:
            self.logger.debug(
                f"{len(recommendations)} recommendation(s) for {snapshot.id} after {record.action}"
            )

    def get_stats(self) -> dict:
        return {
            "delivered": self.delivered_count,
            "dropped": self.dropped_count,
            "failed": self.failure_count,
            "pending": self._queue.qsize(),
        }


def build_adapter(engine: Optional[AdvisoryEngine], queue_size: int = 1000,
                  workers: int = 1) -> AdvisoryAdapter:
    """Wrap an engine, substituting the null engine when none is given."""
    return AdvisoryAdapter(engine or NullAdvisoryEngine(), queue_size=queue_size, workers=workers)
