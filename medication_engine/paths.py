"""
Store location policy and file naming.

This module is the single place that decides where medication files live and
how their names map to record identities:

- The store directory defaults to the user's documents folder, overridable via
  the RXSHELF_DIRECTORY environment variable.
- Each record is stored as `<uuid>.<extension>` directly inside the directory.
- Names that do not parse back to a canonical UUID are not records.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from .errors import StoreConfigError

DEFAULT_FILE_EXTENSION = "rx"
DIRECTORY_ENV_VAR = "RXSHELF_DIRECTORY"


def default_documents_dir() -> Path:
    """
    Resolve the default store directory.

    Preference order:
    1) %RXSHELF_DIRECTORY% if set
    2) %USERPROFILE%\\Documents (Windows)
    3) ~/Documents
    """
    override = os.environ.get(DIRECTORY_ENV_VAR)
    if override:
        return Path(override).expanduser()

    profile = os.environ.get("USERPROFILE")
    if os.name == "nt" and profile:
        return Path(profile) / "Documents"

    return Path.home() / "Documents"


@dataclass(frozen=True, slots=True)
class StoreConfig:
    """
    Resolved configuration for a directory store.

    Attributes
    ----------
    directory:
        Directory holding one file per record.
    file_extension:
        Extension (without the dot) of record files in `directory`.
    """

    directory: Path
    file_extension: str = DEFAULT_FILE_EXTENSION

    def __post_init__(self) -> None:
        ext = self.file_extension
        if not ext or not ext.strip():
            raise StoreConfigError("File extension must not be empty.")
        if any(ch in ext for ch in "./\\"):
            raise StoreConfigError(f"File extension contains invalid characters: {ext!r}")

    @classmethod
    def default(cls, *, file_extension: str = DEFAULT_FILE_EXTENSION) -> StoreConfig:
        """Build a config for the default documents directory, resolved now."""
        return cls(directory=default_documents_dir(), file_extension=file_extension)


def record_file_name(record_id: UUID, extension: str) -> str:
    """Return the file name for a record identity."""
    return f"{record_id}.{extension}"


def record_file_path(config: StoreConfig, record_id: UUID) -> Path:
    """Return the absolute file path for a record identity."""
    return config.directory / record_file_name(record_id, config.file_extension)


def parse_record_filename(file_name: str, extension: str) -> UUID | None:
    """
    Parse a record identity from a file name.

    Parameters
    ----------
    file_name:
        Bare file name (no directory component).
    extension:
        Expected extension, without the dot.

    Returns
    -------
    UUID | None
        The identity, or None if the name is not `<canonical-uuid>.<extension>`.
    """
    stem, dot, suffix = file_name.rpartition(".")
    if not dot or not stem or suffix != extension:
        return None
    try:
        record_id = UUID(stem)
    except ValueError:
        return None
    # Reject braces, urn: prefixes and unhyphenated forms.
    if str(record_id) != stem.lower():
        return None
    return record_id
