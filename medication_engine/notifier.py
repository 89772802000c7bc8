"""
Directory change notification.

A `ChangeNotifier` calls its watchers once immediately on attach and then once
per detected change of the watched directory. Rapid changes may be coalesced
into one call, but a change is never lost: a mutation after the last call always
produces at least one further call.

`PollingDirectoryWatcher` is the Qt-free implementation used by the CLI and the
tests. The GUI uses `gui.adapters.qt_watcher.QtDirectoryWatcher`.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Protocol

logger = logging.getLogger("rxshelf.notifier")

DirectorySnapshot = dict[str, tuple[int, int]]


class WatchHandle(Protocol):
    """Handle returned by `ChangeNotifier.watch`."""

    def cancel(self) -> None:
        """Detach the watcher. Safe to call more than once."""
        ...


class ChangeNotifier(Protocol):
    """Produces change signals for a single directory."""

    def watch(self, callback: Callable[[], None]) -> WatchHandle:
        """
        Attach `callback`.

        The callback runs once before `watch` returns, then once per change.
        It may be invoked from a background thread and must be thread-safe.
        """
        ...


def snapshot_directory(directory: Path) -> DirectorySnapshot | None:
    """
    Capture name, mtime and size of the directory's direct, non-hidden entries.

    Returns
    -------
    DirectorySnapshot | None
        Mapping of entry name to (mtime_ns, size), or None when the directory
        cannot be enumerated.
    """
    try:
        with os.scandir(directory) as iterator:
            snapshot: DirectorySnapshot = {}
            for entry in iterator:
                if entry.name.startswith("."):
                    continue
                try:
                    st = entry.stat(follow_symlinks=False)
                except OSError:
                    continue
                snapshot[entry.name] = (st.st_mtime_ns, st.st_size)
            return snapshot
    except OSError:
        return None


class _PollingWatch:
    def __init__(self, owner: PollingDirectoryWatcher, callback: Callable[[], None]) -> None:
        self._owner = owner
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self._owner._detach(self)


class PollingDirectoryWatcher:
    """
    Change notifier that polls a directory listing.

    Parameters
    ----------
    directory:
        Directory to watch. It does not need to exist yet.
    interval:
        Seconds between polls.

    Notes
    -----
    One polling thread serves all watches of this instance. It starts with the
    first watch and stops when the last watch is cancelled.
    """

    def __init__(self, directory: Path, interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._directory = directory
        self._interval = interval
        self._lock = threading.Lock()
        self._watches: list[_PollingWatch] = []
        self._stop: threading.Event | None = None

    @property
    def directory(self) -> Path:
        """Return the watched directory."""
        return self._directory

    def watch(self, callback: Callable[[], None]) -> WatchHandle:
        """Attach `callback`; it is called immediately, then on each change."""
        handle = _PollingWatch(self, callback)
        with self._lock:
            self._watches.append(handle)
            if self._stop is None:
                self._start_locked()
        callback()
        return handle

    def _start_locked(self) -> None:
        stop = threading.Event()
        baseline = snapshot_directory(self._directory)
        thread = threading.Thread(
            target=self._poll,
            args=(stop, baseline),
            name="rxshelf-poll",
            daemon=True,
        )
        self._stop = stop
        thread.start()
        logger.debug("polling %s every %.2fs", self._directory, self._interval)

    def _detach(self, handle: _PollingWatch) -> None:
        with self._lock:
            if handle.cancelled:
                return
            handle.cancelled = True
            self._watches.remove(handle)
            if not self._watches and self._stop is not None:
                self._stop.set()
                self._stop = None

    def _poll(self, stop: threading.Event, baseline: DirectorySnapshot | None) -> None:
        last = baseline
        while not stop.wait(self._interval):
            current = snapshot_directory(self._directory)
            if current == last:
                continue
            last = current
            with self._lock:
                watches = list(self._watches)
            for handle in watches:
                if handle.cancelled:
                    continue
                try:
                    handle.callback()
                except Exception:
                    logger.exception("change callback failed for %s", self._directory)
