"""Qt delivery context.

Create it on the Qt thread that should receive callbacks (normally the GUI
main thread).
"""

from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QObject, Qt, Signal, Slot


class QtDelivery(QObject):
    """Delivery context that runs callbacks on the thread owning this object."""

    _posted = Signal(object)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._posted.connect(self._run, type=Qt.ConnectionType.QueuedConnection)

    def post(self, callback: Callable[[], None]) -> None:
        """Queue `callback` onto this object's thread. Safe from any thread."""
        self._posted.emit(callback)

    @Slot(object)
    def _run(self, callback: Callable[[], None]) -> None:
        callback()
