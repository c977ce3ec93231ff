"""
In-memory instance store and per-instance lock table.

Context versions are immutable, so readers take the current version
without locking. Writers hold the instance lock while they build and swap
in the next version.
"""

import logging
import threading
from typing import Dict, Iterator, Optional

from domain.errors import ActionCancelledError
from .context import PipelineContext


class InstanceStore:
    """Current context version per instance id."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._contexts: Dict[str, PipelineContext] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._table_lock = threading.Lock()

    def add(self, context: PipelineContext):
        """Insert a new instance with its own lock."""
        with self._table_lock:
            if context.id in self._contexts:
                raise ValueError(f"Instance {context.id} already exists")
            self._locks[context.id] = threading.Lock()
            self._contexts[context.id] = context

    def get(self, instance_id: str) -> Optional[PipelineContext]:
        return self._contexts.get(instance_id)

    def put(self, context: PipelineContext):
        """Swap in a new version. Caller must hold the instance lock."""
        self._contexts[context.id] = context

    def lock_for(self, instance_id: str) -> Optional[threading.Lock]:
        return self._locks.get(instance_id)

    def __iter__(self) -> Iterator[PipelineContext]:
        return iter(list(self._contexts.values()))

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, instance_id: str) -> bool:
        return instance_id in self._contexts


class InstanceLock:
    """
    Context manager around an instance lock with cooperative cancellation.

    While waiting, the caller's cancel token is polled every
    ``poll_interval`` seconds. Once acquired, cancellation is ignored until
    the lock is released.
    """

    def __init__(
        self,
        lock: threading.Lock,
        instance_id: str,
        cancel_token: Optional[threading.Event] = None,
        poll_interval: float = 0.05,
    ):
        self._lock = lock
        self.instance_id = instance_id
        self.cancel_token = cancel_token
        self.poll_interval = poll_interval

    def __enter__(self) -> 'InstanceLock':
        while True:
            if self.cancel_token is not None and self.cancel_token.is_set():
                raise ActionCancelledError(
                    "Action cancelled before the instance lock was acquired",
                    self.instance_id,
                )
            if self._lock.acquire(timeout=self.poll_interval):
                return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()
        return False
