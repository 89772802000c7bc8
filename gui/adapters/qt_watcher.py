"""QFileSystemWatcher-backed change notifier.

Create it on the Qt thread that should run the change callbacks (normally the
GUI main thread). Cancelling a watch is safe from any thread.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

from PySide6.QtCore import QFileSystemWatcher, QObject, Slot

logger = logging.getLogger("rxshelf.gui")


class _QtWatch:
    def __init__(self, owner: QtDirectoryWatcher, callback: Callable[[], None]) -> None:
        self._owner = owner
        self.callback = callback

    def cancel(self) -> None:
        self._owner._detach(self)


class QtDirectoryWatcher(QObject):
    """Change notifier backed by QFileSystemWatcher."""

    def __init__(self, directory: Path, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._directory = directory
        self._lock = threading.Lock()
        self._watches: list[_QtWatch] = []
        self._watcher = QFileSystemWatcher(self)
        self._watcher.directoryChanged.connect(self._on_directory_changed)

    @property
    def directory(self) -> Path:
        """Return the watched directory."""
        return self._directory

    def watch(self, callback: Callable[[], None]) -> _QtWatch:
        """Attach `callback`; it is called immediately, then on each change."""
        self._ensure_watched()
        handle = _QtWatch(self, callback)
        with self._lock:
            self._watches.append(handle)
        callback()
        return handle

    def _detach(self, handle: _QtWatch) -> None:
        with self._lock:
            if handle in self._watches:
                self._watches.remove(handle)

    def _ensure_watched(self) -> None:
        target = str(self._directory)
        watched = self._watcher.directories()
        if target in watched:
            return
        if self._directory.is_dir():
            if not self._watcher.addPath(target):
                logger.warning("QFileSystemWatcher refused to watch %s", target)
                return
            stale = [path for path in watched if path != target]
            if stale:
                self._watcher.removePaths(stale)
            return
        # The first scan creates the directory; watch the nearest existing
        # ancestor until it shows up.
        ancestor = self._directory.parent
        while not ancestor.is_dir() and ancestor != ancestor.parent:
            ancestor = ancestor.parent
        if str(ancestor) not in watched and not self._watcher.addPath(str(ancestor)):
            logger.warning("QFileSystemWatcher refused to watch %s", ancestor)

    @Slot(str)
    def _on_directory_changed(self, path: str) -> None:
        # Some platforms drop the watch after the directory is replaced.
        self._ensure_watched()
        target = str(self._directory)
        if path != target and target not in self._watcher.directories():
            return
        with self._lock:
            watches = list(self._watches)
        for handle in watches:
            handle.callback()
