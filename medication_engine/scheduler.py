"""
Worker and delivery contexts.

Threading model
---------------
- Every filesystem operation runs on one `SerialWorker`: a single dedicated
  thread per controller that executes submitted calls one at a time, in
  submission order.
- Results are handed to callers through a `DeliveryContext`, which decides on
  which thread callbacks run (for example a GUI main thread).
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Protocol, TypeVar

logger = logging.getLogger("rxshelf.scheduler")

T = TypeVar("T")


class DeliveryContext(Protocol):
    """A place where completion callbacks are executed."""

    def post(self, callback: Callable[[], None]) -> None:
        """Schedule `callback` to run on this context. Must be thread-safe."""
        ...


class ThreadDelivery:
    """
    Delivery context that runs callbacks in order on its own background thread.

    Used by the controller when the caller supplies no context, so callbacks
    never run on the worker. Callbacks posted after `shutdown` are dropped.
    """

    def __init__(self, name: str = "rxshelf-delivery") -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._lock = threading.Lock()
        self._closed = False

    def post(self, callback: Callable[[], None]) -> None:
        """Queue `callback` for the delivery thread."""
        with self._lock:
            if self._closed:
                logger.debug("delivery context shut down; dropping callback")
                return
            self._executor.submit(self._run, callback)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting callbacks. Already posted callbacks still run."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("delivery callback failed")


class QueuedDelivery:
    """
    Delivery context backed by a thread-safe queue.

    The thread that owns this object drains it with `run_pending`, the way a
    main-thread run loop would. Callbacks therefore never run on the worker.
    """

    def __init__(self) -> None:
        self._pending: queue.SimpleQueue[Callable[[], None]] = queue.SimpleQueue()

    def post(self, callback: Callable[[], None]) -> None:
        """Enqueue `callback` for the owning thread."""
        self._pending.put(callback)

    def run_pending(self, timeout: float | None = None) -> int:
        """
        Run queued callbacks on the calling thread.

        Parameters
        ----------
        timeout:
            If given, wait up to this many seconds for the first callback when
            the queue is empty. None returns immediately when nothing is queued.

        Returns
        -------
        int
            Number of callbacks executed.
        """
        executed = 0
        try:
            if timeout is None:
                callback = self._pending.get_nowait()
            else:
                callback = self._pending.get(timeout=timeout)
        except queue.Empty:
            return 0

        while True:
            callback()
            executed += 1
            try:
                callback = self._pending.get_nowait()
            except queue.Empty:
                return executed


class SerialWorker:
    """
    A single background thread that runs submitted calls one at a time.

    Parameters
    ----------
    name:
        Thread name prefix, useful in logs and debuggers.
    """

    def __init__(self, name: str = "rxshelf-worker") -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, fn: Callable[..., T], *args: Any) -> Future[T]:
        """
        Enqueue `fn(*args)` behind all previously submitted calls.

        Returns
        -------
        Future
            Completes with the call's return value or exception.

        Raises
        ------
        RuntimeError
            If the worker has been shut down.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("SerialWorker has been shut down")
            return self._executor.submit(fn, *args)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting calls. Already queued calls still run to completion."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
