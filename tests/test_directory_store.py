from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from medication_engine.data_models import Medication
from medication_engine.directory_store import DirectoryStore
from medication_engine.errors import (
    CannotDeleteError,
    CannotSaveError,
    DirectoryListError,
    EncodeError,
    RecordNotFoundError,
    UndefinedNameError,
)
from medication_engine.paths import StoreConfig
from medication_engine.serializer import MedicationJsonSerializer

ASPIRIN_ID = UUID("11111111-1111-1111-1111-111111111111")


def _store(directory: Path, extension: str = "rx") -> DirectoryStore:
    return DirectoryStore(StoreConfig(directory=directory, file_extension=extension), MedicationJsonSerializer())


def _write_valid(directory: Path, record_id: UUID, name: str) -> Path:
    path = directory / f"{record_id}.rx"
    path.write_bytes(MedicationJsonSerializer().encode(Medication(name=name, uuid=record_id)))
    return path


class _FailingSerializer(MedicationJsonSerializer):
    def encode(self, record: Medication) -> bytes:
        raise EncodeError("boom")


def test_save_then_list_returns_persisted_record(tmp_path: Path) -> None:
    store = _store(tmp_path)
    medication = Medication(name="Aspirin", strength="81 mg", times=["08:00"])
    assert medication.is_persisted is False

    store.save(medication)

    assert medication.is_persisted is True
    listed = store.list_records()
    matching = [m for m in listed if m.uuid == medication.uuid]
    assert len(matching) == 1
    assert matching[0].is_persisted is True
    assert matching[0].name == "Aspirin"
    assert matching[0].strength == "81 mg"
    assert matching[0].times == ["08:00"]


def test_aspirin_scenario_file_name_and_delete(tmp_path: Path) -> None:
    store = _store(tmp_path)
    other = Medication(name="Ibuprofen")
    store.save(other)

    aspirin = Medication(name="Aspirin", uuid=ASPIRIN_ID)
    store.save(aspirin)

    path = tmp_path / "11111111-1111-1111-1111-111111111111.rx"
    assert path.is_file()
    decoded = MedicationJsonSerializer().decode(path.read_bytes(), uuid=ASPIRIN_ID)
    assert decoded.uuid == ASPIRIN_ID
    assert decoded.name == "Aspirin"

    store.delete(aspirin)

    assert aspirin.is_persisted is False
    assert not path.exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == [f"{other.uuid}.rx"]
    assert [m.uuid for m in store.list_records()] == [other.uuid]


def test_save_leaves_no_temp_files(tmp_path: Path) -> None:
    store = _store(tmp_path)
    medication = Medication(name="Aspirin")
    store.save(medication)
    medication.dosage = "2 tablets"
    store.save(medication)

    assert [p.name for p in tmp_path.iterdir()] == [f"{medication.uuid}.rx"]
    payload = json.loads((tmp_path / f"{medication.uuid}.rx").read_text(encoding="utf-8"))
    assert payload["dosage"] == "2 tablets"
    assert "uuid" not in payload


def test_same_uuid_save_overwrites(tmp_path: Path) -> None:
    store = _store(tmp_path)
    record_id = uuid4()
    store.save(Medication(name="First", uuid=record_id))
    store.save(Medication(name="Second", uuid=record_id))

    listed = store.list_records()
    assert [(m.uuid, m.name) for m in listed] == [(record_id, "Second")]


def test_list_ignores_foreign_names_and_hidden_entries(tmp_path: Path) -> None:
    store = _store(tmp_path)
    kept = Medication(name="Kept")
    store.save(kept)

    valid_bytes = MedicationJsonSerializer().encode(Medication(name="Ignored"))
    (tmp_path / f"{uuid4()}.txt").write_bytes(valid_bytes)
    (tmp_path / "not-a-uuid.rx").write_bytes(valid_bytes)
    (tmp_path / f"{uuid4().hex}.rx").write_bytes(valid_bytes)
    (tmp_path / f".{uuid4()}.rx").write_bytes(valid_bytes)
    (tmp_path / f"{uuid4()}.rx.tmp").write_bytes(valid_bytes)
    (tmp_path / f"{uuid4()}.rx").mkdir()

    assert [m.uuid for m in store.list_records()] == [kept.uuid]


def test_list_honours_configured_extension(tmp_path: Path) -> None:
    rx_store = _store(tmp_path, "rx")
    med_store = _store(tmp_path, "med")
    rx_store.save(Medication(name="In rx"))
    med_store.save(Medication(name="In med"))

    assert [m.name for m in rx_store.list_records()] == ["In rx"]
    assert [m.name for m in med_store.list_records()] == ["In med"]


def test_list_skips_corrupt_file_and_logs(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    good_id = uuid4()
    _write_valid(tmp_path, good_id, "Good")
    corrupt = tmp_path / f"{uuid4()}.rx"
    corrupt.write_bytes(b"\x00\x01 not json")

    with caplog.at_level(logging.WARNING, logger="rxshelf.directory_store"):
        listed = _store(tmp_path).list_records()

    assert [m.uuid for m in listed] == [good_id]
    assert any(corrupt.name in record.getMessage() for record in caplog.records)


def test_list_skips_deeply_nested_file(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    good_id = uuid4()
    _write_valid(tmp_path, good_id, "Good")
    nested = tmp_path / f"{uuid4()}.rx"
    nested.write_bytes(b"[" * 200000)

    with caplog.at_level(logging.WARNING, logger="rxshelf.directory_store"):
        listed = _store(tmp_path).list_records()

    assert [m.uuid for m in listed] == [good_id]
    assert any(nested.name in record.getMessage() for record in caplog.records)


def test_list_empty_directory(tmp_path: Path) -> None:
    assert _store(tmp_path).list_records() == []


def test_list_missing_directory_is_created_and_empty(tmp_path: Path) -> None:
    directory = tmp_path / "nested" / "meds"
    assert _store(directory).list_records() == []
    assert directory.is_dir()


def test_list_fails_when_directory_is_a_file(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "meds"
    not_a_dir.write_text("x", encoding="utf-8")

    with pytest.raises(DirectoryListError) as excinfo:
        _store(not_a_dir).list_records()

    assert excinfo.value.directory == not_a_dir
    assert isinstance(excinfo.value.underlying, OSError)


def test_list_is_sorted_by_file_name(tmp_path: Path) -> None:
    ids = [UUID(f"{d}" * 8 + "-0000-0000-0000-000000000000") for d in (3, 1, 2)]
    for i, record_id in enumerate(ids):
        _write_valid(tmp_path, record_id, f"M{i}")

    listed = _store(tmp_path).list_records()
    assert [m.uuid for m in listed] == sorted(ids, key=str)


def test_save_creates_missing_directory(tmp_path: Path) -> None:
    directory = tmp_path / "fresh"
    medication = Medication(name="Aspirin")

    _store(directory).save(medication)

    assert medication.is_persisted is True
    assert [p.name for p in directory.iterdir()] == [f"{medication.uuid}.rx"]


def test_save_without_name_is_precondition_violation(tmp_path: Path) -> None:
    store = _store(tmp_path)
    for name in (None, "", "   "):
        medication = Medication(name=name)
        with pytest.raises(UndefinedNameError):
            store.save(medication)
        assert medication.is_persisted is False

    assert list(tmp_path.iterdir()) == []


def test_precondition_error_is_not_a_save_error() -> None:
    assert not issubclass(UndefinedNameError, CannotSaveError)
    assert issubclass(UndefinedNameError, AssertionError)


def test_save_encode_failure_reports_name_and_keeps_flag(tmp_path: Path) -> None:
    store = DirectoryStore(StoreConfig(directory=tmp_path), _FailingSerializer())
    medication = Medication(name="Aspirin")

    with pytest.raises(CannotSaveError) as excinfo:
        store.save(medication)

    assert excinfo.value.name == "Aspirin"
    assert isinstance(excinfo.value.underlying, EncodeError)
    assert medication.is_persisted is False
    assert list(tmp_path.iterdir()) == []


def test_save_invalid_business_field_is_cannot_save(tmp_path: Path) -> None:
    medication = Medication(name="Aspirin", times=["25:99"])

    with pytest.raises(CannotSaveError):
        _store(tmp_path).save(medication)

    assert medication.is_persisted is False


def test_save_write_failure_reports_name_and_keeps_flag(tmp_path: Path) -> None:
    blocker = tmp_path / "meds"
    blocker.write_text("x", encoding="utf-8")
    medication = Medication(name="Aspirin")

    with pytest.raises(CannotSaveError) as excinfo:
        _store(blocker).save(medication)

    assert excinfo.value.name == "Aspirin"
    assert isinstance(excinfo.value.underlying, OSError)
    assert "Aspirin" in str(excinfo.value)
    assert medication.is_persisted is False


def test_delete_missing_file_is_cannot_delete(tmp_path: Path) -> None:
    medication = Medication(name="Aspirin", is_persisted=True)

    with pytest.raises(CannotDeleteError) as excinfo:
        _store(tmp_path).delete(medication)

    assert excinfo.value.name == "Aspirin"
    assert isinstance(excinfo.value.underlying, FileNotFoundError)
    assert medication.is_persisted is True


def test_delete_without_name_touches_nothing(tmp_path: Path) -> None:
    record_id = uuid4()
    path = _write_valid(tmp_path, record_id, "On disk")

    with pytest.raises(UndefinedNameError):
        _store(tmp_path).delete(Medication(name=None, uuid=record_id))

    assert path.exists()


def test_load_single_record(tmp_path: Path) -> None:
    store = _store(tmp_path)
    medication = Medication(name="Aspirin", note="with food")
    store.save(medication)

    loaded = store.load(medication.uuid)
    assert loaded.note == "with food"
    assert loaded.is_persisted is True

    with pytest.raises(RecordNotFoundError):
        store.load(uuid4())


@pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="POSIX permissions, non-root only")
def test_list_unreadable_directory_is_error(tmp_path: Path) -> None:
    directory = tmp_path / "locked"
    directory.mkdir()
    directory.chmod(0)
    try:
        with pytest.raises(DirectoryListError):
            _store(directory).list_records()
    finally:
        directory.chmod(0o755)
