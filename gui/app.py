"""
rxshelf GUI app.

Single window listing the medications stored in a directory, refreshed live as
files change. Persistence runs through the engine controller via
MedicationsAdapter.
"""

from __future__ import annotations

import sys
from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from gui.adapters.medications_adapter import MedicationsAdapter
from medication_engine.data_models import Medication
from medication_engine.paths import StoreConfig


class AppWindow(QWidget):
    """
    Main window for the rxshelf GUI.

    Responsibilities
    ----------------
    - Show the live medication list for one directory
    - Add and remove medications through the adapter
    - Shut the adapter down when the window closes
    """

    def __init__(self, config: StoreConfig | None = None) -> None:
        super().__init__()
        self.setWindowTitle("rxshelf")
        self.resize(520, 480)

        self._adapter = MedicationsAdapter(config, parent=self)
        self._medications: list[Medication] = []

        root = QVBoxLayout(self)
        root.setContentsMargins(8, 8, 8, 8)

        title = QLabel("Medications")
        f = title.font()
        f.setPointSize(16)
        f.setBold(True)
        title.setFont(f)
        root.addWidget(title)

        location = QLabel(str(self._adapter.directory))
        location.setStyleSheet("color: #666;")
        location.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        root.addWidget(location)

        self.list_widget = QListWidget()
        root.addWidget(self.list_widget, 1)

        form = QHBoxLayout()
        self.name_edit = QLineEdit()
        self.name_edit.setPlaceholderText("Name")
        self.strength_edit = QLineEdit()
        self.strength_edit.setPlaceholderText("Strength")
        btn_add = QPushButton("Add")
        btn_add.clicked.connect(self._add)
        btn_remove = QPushButton("Remove selected")
        btn_remove.clicked.connect(self._remove_selected)
        form.addWidget(self.name_edit, 2)
        form.addWidget(self.strength_edit, 1)
        form.addWidget(btn_add)
        form.addWidget(btn_remove)
        root.addLayout(form)

        self._adapter.medications_loaded.connect(self._on_loaded)
        self._adapter.load_failed.connect(self._on_load_failed)
        self._adapter.error.connect(self._on_error)
        self._adapter.start()

    def _on_loaded(self, medications: list[Medication]) -> None:
        self._medications = medications
        self.list_widget.clear()
        for medication in medications:
            label = medication.name or "(unnamed)"
            if medication.strength:
                label = f"{label}  {medication.strength}"
            item = QListWidgetItem(label)
            item.setData(Qt.ItemDataRole.UserRole, str(medication.uuid))
            self.list_widget.addItem(item)

    def _on_load_failed(self, message: str) -> None:
        QMessageBox.critical(self, "Cannot load medications", message)

    def _on_error(self, _record_id: str, message: str) -> None:
        QMessageBox.warning(self, "rxshelf", message)

    def _add(self) -> None:
        name = self.name_edit.text().strip()
        if not name:
            QMessageBox.information(self, "rxshelf", "Enter a name first.")
            return
        strength = self.strength_edit.text().strip() or None
        self._adapter.save_medication(Medication(name=name, strength=strength))
        self.name_edit.clear()
        self.strength_edit.clear()

    def _remove_selected(self) -> None:
        row = self.list_widget.currentRow()
        if row < 0 or row >= len(self._medications):
            return
        self._adapter.delete_medication(self._medications[row])

    def closeEvent(self, event) -> None:  # type: ignore[override]
        """
        Handle window close by shutting down the adapter.

        Parameters
        ----------
        event:
            Qt close event.
        """
        try:
            self._adapter.shutdown()
        finally:
            super().closeEvent(event)


def main(directory: Path | None = None, file_extension: str = "rx") -> int:
    """
    Run the rxshelf GUI application.

    Returns
    -------
    int
        Qt application exit code.
    """
    app = QApplication.instance() or QApplication(sys.argv)
    if directory is None:
        config = StoreConfig.default(file_extension=file_extension)
    else:
        config = StoreConfig(directory=directory, file_extension=file_extension)
    w = AppWindow(config)
    w.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
