"""
Domain exceptions for rxshelf.

Notes
-----
Core engine logic avoids raising generic exceptions. Every expected failure mode
maps to a domain exception carrying the record name and the underlying cause.

The one exception to the hierarchy is `UndefinedNameError`, which signals a
caller bug (saving or deleting a record without a name) rather than an
environmental failure. It derives from `AssertionError` so that handlers for the
recoverable taxonomy never catch it.
"""

from __future__ import annotations

from pathlib import Path


class RxShelfError(RuntimeError):
    """Base exception for all rxshelf domain failures."""


class StoreConfigError(RxShelfError):
    """Raised when a store configuration is invalid."""


class SerializationError(RxShelfError):
    """Base exception for serializer failures."""


class EncodeError(SerializationError):
    """Raised when a record cannot be encoded to bytes."""


class DecodeError(SerializationError):
    """Raised when bytes cannot be decoded to a record."""


class RecordNotFoundError(RxShelfError):
    """Raised when a record file does not exist in the store directory."""


class RecordReadError(RxShelfError):
    """Raised when a single record file exists but cannot be read."""


class DirectoryListError(RxShelfError):
    """
    Raised when the store directory cannot be enumerated.

    Attributes
    ----------
    directory:
        Directory that failed to enumerate.
    underlying:
        The originating OS error.
    """

    def __init__(self, directory: Path, underlying: BaseException | None) -> None:
        self.directory = directory
        self.underlying = underlying
        detail = f" ({underlying!s})" if underlying is not None else ""
        super().__init__(f"Cannot list medications in {directory}{detail}")


class MedicationsControllerError(RxShelfError):
    """
    Base for the public save/delete error taxonomy.

    Attributes
    ----------
    name:
        Display name of the record the operation was applied to.
    underlying:
        The originating exception, if any.
    """

    verb = "process"

    def __init__(self, name: str, underlying: BaseException | None = None) -> None:
        self.name = name
        self.underlying = underlying
        detail = f": {underlying!s}" if underlying is not None else ""
        super().__init__(f"Cannot {self.verb} medication {name!r}{detail}")


class CannotSaveError(MedicationsControllerError):
    """Raised when a medication cannot be encoded or written."""

    verb = "save"


class CannotDeleteError(MedicationsControllerError):
    """Raised when a medication file cannot be removed."""

    verb = "delete"


class UndefinedNameError(AssertionError):
    """Raised when a record without a name is passed to save or delete."""
