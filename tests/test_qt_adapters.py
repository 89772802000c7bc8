from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Callable

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from gui.adapters.medications_adapter import MedicationsAdapter  # noqa: E402
from gui.adapters.qt_delivery import QtDelivery  # noqa: E402
from gui.adapters.qt_watcher import QtDirectoryWatcher  # noqa: E402
from medication_engine.data_models import Medication  # noqa: E402
from medication_engine.paths import StoreConfig  # noqa: E402


@pytest.fixture(scope="module")
def qapp() -> Any:
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])


def _process_until(done: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not done():
        if time.monotonic() > deadline:
            raise AssertionError("timed out waiting for Qt event")
        QtCore.QCoreApplication.processEvents()
        time.sleep(0.01)


def test_qt_delivery_runs_callbacks_on_owner_thread(qapp: Any) -> None:
    delivery = QtDelivery()
    ran_on: list[int] = []

    poster = threading.Thread(target=lambda: delivery.post(lambda: ran_on.append(threading.get_ident())))
    poster.start()
    poster.join()

    _process_until(lambda: bool(ran_on))
    assert ran_on == [threading.get_ident()]


def test_qt_watcher_signals_immediately_and_on_change(qapp: Any, tmp_path: Path) -> None:
    watcher = QtDirectoryWatcher(tmp_path)
    calls: list[int] = []

    handle = watcher.watch(lambda: calls.append(1))
    assert calls == [1]

    (tmp_path / "new.rx").write_text("x", encoding="utf-8")
    _process_until(lambda: len(calls) > 1)

    handle.cancel()
    count = len(calls)
    (tmp_path / "other.rx").write_text("x", encoding="utf-8")
    for _ in range(20):
        QtCore.QCoreApplication.processEvents()
        time.sleep(0.01)
    assert len(calls) == count


def test_qt_watcher_waits_for_missing_directory(qapp: Any, tmp_path: Path) -> None:
    directory = tmp_path / "meds"
    watcher = QtDirectoryWatcher(directory)
    calls: list[int] = []

    handle = watcher.watch(lambda: calls.append(1))
    assert calls == [1]
    assert not directory.exists()

    directory.mkdir()
    _process_until(lambda: len(calls) > 1)
    count = len(calls)

    (directory / "new.rx").write_text("x", encoding="utf-8")
    _process_until(lambda: len(calls) > count)
    handle.cancel()


def test_medications_adapter_loads_and_saves(qapp: Any, tmp_path: Path) -> None:
    adapter = MedicationsAdapter(StoreConfig(directory=tmp_path))
    loaded: list[list[Medication]] = []
    saved: list[str] = []
    errors: list[tuple[str, str]] = []
    adapter.medications_loaded.connect(loaded.append)
    adapter.medication_saved.connect(saved.append)
    adapter.error.connect(lambda record_id, message: errors.append((record_id, message)))

    try:
        adapter.start()
        _process_until(lambda: len(loaded) == 1)
        assert loaded[0] == []

        aspirin = Medication(name="Aspirin")
        adapter.save_medication(aspirin)
        _process_until(lambda: saved == [str(aspirin.uuid)])
        _process_until(lambda: any(m.uuid == aspirin.uuid for m in loaded[-1]))

        adapter.delete_medication(Medication(name="Missing"))
        _process_until(lambda: len(errors) == 1)
        assert "Missing" in errors[0][1]
    finally:
        adapter.shutdown()
