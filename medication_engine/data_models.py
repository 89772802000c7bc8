"""
Medication record model.

Notes
-----
The store core only relies on three facts about a record: `uuid`, `name` and the
mutable `is_persisted` flag. The remaining fields are business data carried
through the serializer unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping
from uuid import UUID, uuid4

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string or null")
    return value


@dataclass(slots=True)
class Medication:
    """
    A medication entry persisted as a single file.

    Attributes
    ----------
    uuid:
        Stable identity. Determines the file name on disk.
    name:
        Display name. Required (non-empty) to save or delete the record.
    strength:
        Free-form strength, e.g. "81 mg".
    dosage:
        Free-form dosage instructions, e.g. "1 tablet".
    times:
        Reminder times as "HH:MM" strings.
    note:
        Optional free-form note.
    is_persisted:
        True after this process saved the record, False after it deleted it.
        Not part of the stored payload.
    """

    name: str | None = None
    strength: str | None = None
    dosage: str | None = None
    times: list[str] = field(default_factory=list)
    note: str | None = None
    uuid: UUID = field(default_factory=uuid4)
    is_persisted: bool = False

    def validate(self) -> None:
        """
        Validate business-field invariants.

        Raises
        ------
        ValueError
            If a reminder time is not a valid "HH:MM" string.
        """
        for value in self.times:
            if not isinstance(value, str) or not _TIME_PATTERN.match(value):
                raise ValueError(f"Invalid reminder time: {value!r}")

    def to_dict(self) -> dict[str, Any]:
        """Convert the business fields to a JSON-serializable payload."""
        self.validate()
        return {
            "name": self.name,
            "strength": self.strength,
            "dosage": self.dosage,
            "times": list(self.times),
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, uuid: UUID, is_persisted: bool = False) -> Medication:
        """
        Build a medication from a JSON payload and an externally supplied identity.

        Parameters
        ----------
        payload:
            Mapping produced by `to_dict`.
        uuid:
            Identity of the record (the payload does not carry one).
        is_persisted:
            Initial value of the persisted flag.

        Returns
        -------
        Medication
            Parsed and validated medication.

        Raises
        ------
        ValueError
            If a field has the wrong type or fails validation.
        """
        times = payload.get("times", [])
        if not isinstance(times, list):
            raise ValueError("times must be a list")

        medication = cls(
            name=_optional_str(payload, "name"),
            strength=_optional_str(payload, "strength"),
            dosage=_optional_str(payload, "dosage"),
            times=list(times),
            note=_optional_str(payload, "note"),
            uuid=uuid,
            is_persisted=is_persisted,
        )
        medication.validate()
        return medication
