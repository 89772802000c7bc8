"""Qt adapter for the engine MedicationsController.

The engine owns persistence. The GUI talks to this adapter via signals/slots so
directory scans and writes never block the UI thread.

Threading model
--------------
- The controller's serial worker performs every filesystem operation.
- A QtDelivery created on the GUI thread marshals results back to it.
- A QtDirectoryWatcher (also on the GUI thread) triggers rescans.
"""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import QObject, Signal, Slot

from gui.adapters.qt_delivery import QtDelivery
from gui.adapters.qt_watcher import QtDirectoryWatcher
from medication_engine.controller import MedicationsController, RecordsSubscription
from medication_engine.data_models import Medication
from medication_engine.errors import MedicationsControllerError
from medication_engine.paths import StoreConfig


class MedicationsAdapter(QObject):
    """Qt adapter that exposes live medications and save/delete as signals."""

    medications_loaded = Signal(object)  # list[Medication]
    medication_saved = Signal(str)  # uuid
    medication_deleted = Signal(str)  # uuid
    error = Signal(str, str)  # uuid, message
    load_failed = Signal(str)  # message

    def __init__(self, config: StoreConfig | None = None, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._config = config or StoreConfig.default()
        self._delivery = QtDelivery(self)
        self._watcher = QtDirectoryWatcher(self._config.directory, self)
        self._controller = MedicationsController(
            self._config,
            notifier=self._watcher,
            delivery=self._delivery,
        )
        self._subscription: RecordsSubscription | None = None

    @property
    def directory(self) -> Path:
        """Return the directory shown by this adapter."""
        return self._config.directory

    @Slot()
    def start(self) -> None:
        """Start (or restart) the live medications subscription."""
        if self._subscription is not None and not self._subscription.cancelled:
            return
        self._subscription = self._controller.records().subscribe(
            self.medications_loaded.emit,
            lambda exc: self.load_failed.emit(str(exc)),
        )

    @Slot(object)
    def save_medication(self, medication: Medication) -> None:
        """Save a medication and emit completion."""
        record_id = str(medication.uuid)

        def done(exc: BaseException | None) -> None:
            if exc is None:
                self.medication_saved.emit(record_id)
            else:
                self.error.emit(record_id, _message(exc))

        self._controller.save(medication, done)

    @Slot(object)
    def delete_medication(self, medication: Medication) -> None:
        """Delete a medication and emit completion."""
        record_id = str(medication.uuid)

        def done(exc: BaseException | None) -> None:
            if exc is None:
                self.medication_deleted.emit(record_id)
            else:
                self.error.emit(record_id, _message(exc))

        self._controller.delete(medication, done)

    def shutdown(self) -> None:
        """Cancel the subscription and stop the worker cleanly."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._controller.close()


def _message(exc: BaseException) -> str:
    if isinstance(exc, MedicationsControllerError):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"
