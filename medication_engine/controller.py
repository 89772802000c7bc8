"""
Public medications controller.

The controller composes the directory store, the change notifier, one serial
worker and a delivery context:

    notifier signal / save / delete
        -> SerialWorker (list_records, save, delete)
        -> DeliveryContext (on_next / on_error / on_complete)

Threading model
--------------
- Every filesystem operation runs on the controller's single worker thread, in
  enqueue order. Notifier-triggered scans share that queue with save/delete.
- Each records subscription owns one dispatch loop thread that consumes a
  signal channel. Signals that arrive while a scan is running are coalesced
  into one follow-up scan.
- Callbacks run on the delivery context, never on the worker.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from functools import partial
from typing import Callable
from uuid import UUID

from .data_models import Medication
from .directory_store import DirectoryStore, require_name
from .errors import CannotDeleteError, CannotSaveError, DirectoryListError, MedicationsControllerError
from .notifier import ChangeNotifier, PollingDirectoryWatcher, WatchHandle
from .paths import StoreConfig
from .scheduler import DeliveryContext, SerialWorker, ThreadDelivery
from .serializer import MedicationJsonSerializer, Serializer

logger = logging.getLogger("rxshelf.controller")

RecordsCallback = Callable[[list[Medication]], None]
ErrorCallback = Callable[[BaseException], None]
CompletionCallback = Callable[[BaseException | None], None]

_SIGNAL = object()
_STOP = object()


class RecordsSubscription:
    """
    A live subscription to the records of one directory.

    Created by `RecordsStream.subscribe`. Delivers one scan result right away
    and another after each directory change until cancelled or until a scan
    fails.
    """

    def __init__(
        self,
        *,
        store: DirectoryStore,
        worker: SerialWorker,
        notifier: ChangeNotifier,
        delivery: DeliveryContext,
        on_next: RecordsCallback,
        on_error: ErrorCallback | None,
        on_finished: Callable[[RecordsSubscription], None] | None = None,
    ) -> None:
        self._store = store
        self._worker = worker
        self._notifier = notifier
        self._delivery = delivery
        self._on_next = on_next
        self._on_error = on_error
        self._on_finished = on_finished

        self._signals: queue.SimpleQueue[object] = queue.SimpleQueue()
        self._cancelled = threading.Event()
        self._finished = threading.Event()
        self._watch_lock = threading.Lock()
        self._watch: WatchHandle | None = None
        self._thread = threading.Thread(target=self._run, name="rxshelf-records", daemon=True)

    @property
    def cancelled(self) -> bool:
        """Return True once the subscription stopped delivering."""
        return self._cancelled.is_set()

    def start(self) -> None:
        """
        Start the dispatch loop and attach to the notifier.

        If the notifier cannot attach, the failure is reported to `on_error`
        as a `DirectoryListError` and the subscription ends.
        """
        self._thread.start()
        try:
            watch = self._notifier.watch(self._signal)
        except Exception as exc:
            error = exc if isinstance(exc, DirectoryListError) else DirectoryListError(self._store.directory, exc)
            self._fail(error)
            self._signals.put(_STOP)
            return
        with self._watch_lock:
            if not self._cancelled.is_set():
                self._watch = watch
                return
        watch.cancel()

    def cancel(self) -> None:
        """
        Stop delivering results.

        A scan already running on the worker completes, but its result is
        discarded.
        """
        self._cancelled.set()
        self._signals.put(_STOP)
        self._release_watch()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the dispatch loop exits. Returns False on timeout."""
        return self._finished.wait(timeout)

    def _release_watch(self) -> None:
        with self._watch_lock:
            watch, self._watch = self._watch, None
        if watch is not None:
            watch.cancel()

    def _signal(self) -> None:
        if not self._cancelled.is_set():
            self._signals.put(_SIGNAL)

    def _next_batch(self) -> bool:
        """Wait for a signal and coalesce everything queued behind it."""
        item = self._signals.get()
        while item is not _STOP:
            try:
                item = self._signals.get_nowait()
            except queue.Empty:
                return not self._cancelled.is_set()
        return False

    def _run(self) -> None:
        try:
            while self._next_batch():
                try:
                    future = self._worker.submit(self._store.list_records)
                except RuntimeError:
                    logger.debug("worker shut down; ending records subscription")
                    return
                try:
                    records = future.result()
                except Exception as exc:
                    self._fail(exc)
                    return
                if self._cancelled.is_set():
                    return
                self._delivery.post(partial(self._deliver, records))
        finally:
            if self._on_finished is not None:
                self._on_finished(self)
            self._finished.set()

    def _fail(self, exc: Exception) -> None:
        logger.error("records scan failed for %s: %s", self._store.directory, exc)
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        self._release_watch()
        if self._on_error is not None:
            self._delivery.post(partial(self._on_error, exc))

    def _deliver(self, records: list[Medication]) -> None:
        if not self._cancelled.is_set():
            self._on_next(records)


class RecordsStream:
    """
    Restartable stream of directory scans.

    Every `subscribe` call starts an independent subscription with its own
    initial scan.
    """

    def __init__(self, controller: MedicationsController) -> None:
        self._controller = controller

    def subscribe(self, on_next: RecordsCallback, on_error: ErrorCallback | None = None) -> RecordsSubscription:
        """
        Start receiving scan results.

        Parameters
        ----------
        on_next:
            Called on the delivery context with each list of medications.
        on_error:
            Called on the delivery context with the terminal error
            (a `DirectoryListError`) if a scan fails. The subscription ends
            afterwards and is not restarted.

        Returns
        -------
        RecordsSubscription
            Handle used to cancel the subscription.
        """
        return self._controller._subscribe(on_next, on_error)


class MedicationsController:
    """
    Directory-backed medication collection with live change notification.

    Parameters
    ----------
    config:
        Store directory and extension. Defaults to the documents directory,
        resolved once here.
    serializer:
        Record codec. Defaults to `MedicationJsonSerializer`.
    notifier:
        Change notifier for `config.directory`. Defaults to a
        `PollingDirectoryWatcher`.
    delivery:
        Where callbacks run. Defaults to a `ThreadDelivery` owned by this
        controller, which runs them on one dedicated thread; GUI callers pass
        a main-thread context.
    """

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        serializer: Serializer[Medication] | None = None,
        notifier: ChangeNotifier | None = None,
        delivery: DeliveryContext | None = None,
    ) -> None:
        self._config = config or StoreConfig.default()
        self._store = DirectoryStore(self._config, serializer or MedicationJsonSerializer())
        self._notifier = notifier or PollingDirectoryWatcher(self._config.directory)
        self._owned_delivery: ThreadDelivery | None = None
        if delivery is None:
            delivery = self._owned_delivery = ThreadDelivery()
        self._delivery = delivery
        self._worker = SerialWorker()
        self._lock = threading.Lock()
        self._subscriptions: set[RecordsSubscription] = set()

    def __enter__(self) -> MedicationsController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def config(self) -> StoreConfig:
        """Return the store configuration."""
        return self._config

    @property
    def store(self) -> DirectoryStore:
        """Return the underlying directory store."""
        return self._store

    def records(self) -> RecordsStream:
        """Return the live stream of medications stored in the directory."""
        return RecordsStream(self)

    def _subscribe(self, on_next: RecordsCallback, on_error: ErrorCallback | None) -> RecordsSubscription:
        subscription = RecordsSubscription(
            store=self._store,
            worker=self._worker,
            notifier=self._notifier,
            delivery=self._delivery,
            on_next=on_next,
            on_error=on_error,
            on_finished=self._forget,
        )
        with self._lock:
            self._subscriptions.add(subscription)
        subscription.start()
        return subscription

    def _forget(self, subscription: RecordsSubscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)

    def list_once(self) -> Future[list[Medication]]:
        """Run a single scan on the worker; raises `DirectoryListError` on failure."""
        return self._worker.submit(self._store.list_records)

    def load(self, record_id: UUID) -> Future[Medication]:
        """Load one medication on the worker (see `DirectoryStore.load`)."""
        return self._worker.submit(self._store.load, record_id)

    def save(self, medication: Medication, on_complete: CompletionCallback | None = None) -> Future[None]:
        """
        Save a medication on the worker.

        Sets `medication.is_persisted` to True once the file is written.

        Parameters
        ----------
        medication:
            Medication to save.
        on_complete:
            Called on the delivery context with None on success or the
            `CannotSaveError` on failure.

        Returns
        -------
        Future
            Completes when the write finished; raises `CannotSaveError` on failure.

        Raises
        ------
        UndefinedNameError
            Immediately, if the medication has no name.
        """
        name = require_name(medication, "save")
        return self._enqueue(self._store.save, medication, name, CannotSaveError, on_complete)

    def delete(self, medication: Medication, on_complete: CompletionCallback | None = None) -> Future[None]:
        """
        Delete a medication on the worker.

        Sets `medication.is_persisted` to False once the file is removed.

        Returns
        -------
        Future
            Completes when the file was removed; raises `CannotDeleteError` on failure.

        Raises
        ------
        UndefinedNameError
            Immediately, if the medication has no name.
        """
        name = require_name(medication, "delete")
        return self._enqueue(self._store.delete, medication, name, CannotDeleteError, on_complete)

    def _enqueue(
        self,
        operation: Callable[[Medication], None],
        medication: Medication,
        name: str,
        error_type: type[MedicationsControllerError],
        on_complete: CompletionCallback | None,
    ) -> Future[None]:
        def run() -> None:
            try:
                operation(medication)
            except MedicationsControllerError:
                raise
            except Exception as exc:
                logger.exception("unexpected failure for medication %r", name)
                raise error_type(name, exc) from exc

        future = self._worker.submit(run)
        if on_complete is not None:
            future.add_done_callback(lambda f: self._delivery.post(partial(on_complete, f.exception())))
        return future

    def close(self) -> None:
        """Cancel live subscriptions and stop the worker after queued operations finish."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.cancel()
        self._worker.shutdown(wait=True)
        if self._owned_delivery is not None:
            self._owned_delivery.shutdown(wait=True)
