"""
Directory-backed record store.

Each record lives in its own file, `<uuid>.<extension>`, directly inside the
store directory. This module translates record-level operations into file-level
operations and is the only code that touches those files.

Design constraints
------------------
- Writes are atomic (temp file + replace); a partially written file is never
  visible at the final path.
- Listing is best effort per file: an unreadable or undecodable file is logged
  and skipped, never surfaced as a listing failure.
- Files whose names are not `<uuid>.<extension>` are out of scope and skipped
  silently. Hidden entries are never considered.
- `is_persisted` is updated only after the filesystem operation succeeded.

Notes
-----
This class performs blocking I/O and is not synchronized. Callers that share a
store between threads must serialize access (see `scheduler.SerialWorker`).
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Any, Protocol
from uuid import UUID

from .errors import (
    CannotDeleteError,
    CannotSaveError,
    DecodeError,
    DirectoryListError,
    EncodeError,
    RecordNotFoundError,
    RecordReadError,
    UndefinedNameError,
)
from .paths import StoreConfig, parse_record_filename, record_file_path
from .serializer import Serializer

logger = logging.getLogger("rxshelf.directory_store")

_TEMP_SUFFIX = ".tmp"


class MedicationRecord(Protocol):
    """The minimal record interface the store relies on."""

    uuid: UUID
    name: str | None
    is_persisted: bool


def require_name(record: MedicationRecord, action: str) -> str:
    """
    Return the record's display name or fail the precondition.

    Parameters
    ----------
    record:
        Record about to be saved or deleted.
    action:
        Verb used in the failure message ("save" or "delete").

    Returns
    -------
    str
        The non-empty display name.

    Raises
    ------
    UndefinedNameError
        If the name is missing or blank. This is a caller bug, not a
        recoverable store failure.
    """
    name = record.name
    if name is None or not name.strip():
        raise UndefinedNameError(f"Cannot {action} Medication without name")
    return name


def write_bytes_atomic(path: Path, data: bytes) -> None:
    """
    Write bytes atomically to disk, creating the parent directory if needed.

    Parameters
    ----------
    path:
        Final destination path.
    data:
        Bytes to write.

    Raises
    ------
    OSError
        If the parent directory cannot be created, or the temp file cannot be
        written or moved into place. The temp file is removed on failure.
    """
    temp_path = path.with_name(path.name + _TEMP_SUFFIX)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with temp_path.open("wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except OSError:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def _is_hidden(entry: os.DirEntry[str]) -> bool:
    if entry.name.startswith("."):
        return True
    attributes = getattr(entry.stat(follow_symlinks=False), "st_file_attributes", 0)
    return bool(attributes & getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0))


class DirectoryStore:
    """
    One-file-per-record store rooted at a single directory.

    Parameters
    ----------
    config:
        Store directory and record file extension.
    serializer:
        Codec used for record file contents.
    """

    def __init__(self, config: StoreConfig, serializer: Serializer[Any]) -> None:
        self._config = config
        self._serializer = serializer

    @property
    def config(self) -> StoreConfig:
        """Return the store configuration."""
        return self._config

    @property
    def directory(self) -> Path:
        """Return the store directory."""
        return self._config.directory

    def file_path(self, record_id: UUID) -> Path:
        """Return the file path for a record identity."""
        return record_file_path(self._config, record_id)

    def _scan_entries(self) -> list[tuple[UUID, Path]]:
        directory = self._config.directory
        try:
            with os.scandir(directory) as iterator:
                raw_entries = list(iterator)
        except FileNotFoundError:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise DirectoryListError(directory, exc) from exc
            logger.debug("created missing store directory %s", directory)
            return []
        except OSError as exc:
            raise DirectoryListError(directory, exc) from exc

        matched: list[tuple[UUID, Path]] = []
        for entry in sorted(raw_entries, key=lambda e: e.name):
            try:
                if _is_hidden(entry) or not entry.is_file():
                    continue
            except OSError:
                # Entry vanished between enumeration and stat.
                continue
            record_id = parse_record_filename(entry.name, self._config.file_extension)
            if record_id is None:
                continue
            matched.append((record_id, Path(entry.path)))
        return matched

    def list_records(self) -> list[Any]:
        """
        Load every record stored in the directory.

        Returns
        -------
        list
            Decoded records, ordered by file name. Files that cannot be read or
            decoded are omitted.

        Raises
        ------
        DirectoryListError
            If the directory cannot be enumerated (and cannot be created when
            missing).
        """
        records: list[Any] = []
        for record_id, path in self._scan_entries():
            try:
                data = path.read_bytes()
            except OSError as exc:
                logger.warning("Failed to read medication at %s: %s", path, exc)
                continue
            try:
                records.append(self._serializer.decode(data, uuid=record_id))
            except DecodeError as exc:
                logger.warning("Failed to unpack medication at %s: %s", path, exc)
                continue

        logger.debug("listed %d medication(s) in %s", len(records), self._config.directory)
        return records

    def load(self, record_id: UUID) -> Any:
        """
        Load a single record by identity.

        Raises
        ------
        RecordNotFoundError
            If no file exists for `record_id`.
        RecordReadError
            If the file exists but cannot be read.
        DecodeError
            If the file contents are not a valid record.
        """
        path = self.file_path(record_id)
        try:
            data = path.read_bytes()
        except FileNotFoundError as exc:
            raise RecordNotFoundError(f"No medication {record_id} in {self._config.directory}") from exc
        except OSError as exc:
            raise RecordReadError(f"Failed to read medication at {path} ({exc!s})") from exc
        return self._serializer.decode(data, uuid=record_id)

    def save(self, record: MedicationRecord) -> None:
        """
        Atomically write a record's file and mark it persisted.

        Parameters
        ----------
        record:
            Record to save. A record with the same identity is overwritten.

        Raises
        ------
        UndefinedNameError
            If the record has no name. Checked before any I/O.
        CannotSaveError
            If encoding or writing fails. `is_persisted` is left unchanged.
        """
        name = require_name(record, "save")
        path = self.file_path(record.uuid)

        try:
            data = self._serializer.encode(record)
        except EncodeError as exc:
            raise CannotSaveError(name, exc) from exc

        try:
            write_bytes_atomic(path, data)
        except OSError as exc:
            raise CannotSaveError(name, exc) from exc

        record.is_persisted = True
        logger.debug("saved medication %s to %s", record.uuid, path)

    def delete(self, record: MedicationRecord) -> None:
        """
        Remove a record's file and mark it not persisted.

        Raises
        ------
        UndefinedNameError
            If the record has no name. Checked before any I/O.
        CannotDeleteError
            If the file cannot be removed, including when it does not exist.
            `is_persisted` is left unchanged.
        """
        name = require_name(record, "delete")
        path = self.file_path(record.uuid)

        try:
            path.unlink()
        except OSError as exc:
            raise CannotDeleteError(name, exc) from exc

        record.is_persisted = False
        logger.debug("deleted medication %s at %s", record.uuid, path)
