"""
Record serialization.

The directory store treats the on-disk format as opaque and delegates to a
`Serializer`. The default implementation writes UTF-8 JSON with a schema tag.

Design constraints
------------------
- The record identity is not part of the payload; it comes from the file name.
- Serialization is deterministic for a given in-memory record (sorted keys).
"""

from __future__ import annotations

import json
from typing import Any, ClassVar, Protocol, TypeVar
from uuid import UUID

from .data_models import Medication
from .errors import DecodeError, EncodeError

RecordT = TypeVar("RecordT")


class Serializer(Protocol[RecordT]):
    """Protocol for converting records to and from bytes."""

    def encode(self, record: RecordT) -> bytes:
        """
        Encode a record.

        Raises
        ------
        EncodeError
            If the record cannot be encoded.
        """
        ...

    def decode(self, data: bytes, *, uuid: UUID) -> RecordT:
        """
        Decode bytes into a record with the given identity.

        Raises
        ------
        DecodeError
            If the bytes do not hold a valid record.
        """
        ...


class MedicationJsonSerializer:
    """JSON serializer for `Medication` records."""

    SCHEMA_VERSION: ClassVar[str] = "rxshelf_medication_v1"

    def encode(self, record: Medication) -> bytes:
        """
        Encode a medication as UTF-8 JSON.

        Parameters
        ----------
        record:
            Medication to encode.

        Returns
        -------
        bytes
            Encoded payload.

        Raises
        ------
        EncodeError
            If the medication fails validation or holds non-serializable values.
        """
        try:
            payload: dict[str, Any] = {"schema_version": self.SCHEMA_VERSION, **record.to_dict()}
            text = json.dumps(payload, sort_keys=True, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise EncodeError(f"Failed to encode medication {record.uuid}: {exc!s}") from exc
        return (text + "\n").encode("utf-8")

    def decode(self, data: bytes, *, uuid: UUID) -> Medication:
        """
        Decode a medication from UTF-8 JSON.

        Parameters
        ----------
        data:
            Raw file contents.
        uuid:
            Identity taken from the file name.

        Returns
        -------
        Medication
            Decoded medication, marked as persisted.

        Raises
        ------
        DecodeError
            If the payload is not valid JSON, has an unknown schema, or fails validation.
        """
        try:
            payload = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Medication {uuid} is not UTF-8") from exc
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON for medication {uuid}") from exc
        except RecursionError as exc:
            raise DecodeError(f"JSON for medication {uuid} is nested too deeply") from exc

        if not isinstance(payload, dict):
            raise DecodeError(f"Medication {uuid} payload must be an object")

        schema_version = payload.get("schema_version")
        if schema_version != self.SCHEMA_VERSION:
            raise DecodeError(f"Unsupported schema_version for medication {uuid}: {schema_version!r}")

        try:
            return Medication.from_dict(payload, uuid=uuid, is_persisted=True)
        except ValueError as exc:
            raise DecodeError(f"Medication {uuid} failed validation: {exc!s}") from exc
