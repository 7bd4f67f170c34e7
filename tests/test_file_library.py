"""Tests for the FileLibrary record store."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from romkeeper.data.file_library import FileLibrary
from romkeeper.models.file_record import FileRecord


@pytest.fixture
def library(tmp_path: Path) -> FileLibrary:
    lib = FileLibrary(tmp_path)
    lib.load()
    return lib


@pytest.fixture
def sample_record() -> FileRecord:
    return FileRecord(id=0, current_path="/roms/psx/Game (Track 1).bin", system="psx", crc32="AABBCCDD")


class TestFileLibrary:
    def test_add_assigns_ids(self, library: FileLibrary, sample_record: FileRecord) -> None:
        first = library.add(sample_record)
        second = library.add(FileRecord(id=0, current_path="/roms/other.bin"))
        assert (first, second) == (1, 2)
        assert library.get_file_by_id(1) is sample_record
        assert sample_record.original_path == "/roms/psx/Game (Track 1).bin"

    def test_find_by_path(self, library: FileLibrary, sample_record: FileRecord) -> None:
        library.add(sample_record)
        assert library.find_by_path("/roms/psx/Game (Track 1).bin") is sample_record
        assert library.find_by_path("/nowhere") is None

    def test_children_and_primaries(self, library: FileLibrary) -> None:
        cue = library.add(FileRecord(id=0, current_path="/roms/game.cue"))
        library.add(FileRecord(id=0, current_path="/roms/game (Track 1).bin", parent_id=cue))
        library.add(FileRecord(id=0, current_path="/roms/game (Track 2).bin", parent_id=cue))
        assert len(library.get_files_by_parent(cue)) == 2
        assert [r.id for r in library.primary_records()] == [cue]

    def test_update_file_path(self, library: FileLibrary, sample_record: FileRecord) -> None:
        file_id = library.add(sample_record)
        assert library.update_file_path(file_id, "/sorted/game.bin")
        assert library.get_file_by_id(file_id).current_path == "/sorted/game.bin"
        assert not library.update_file_path(999, "/x")

    def test_remove(self, library: FileLibrary, sample_record: FileRecord) -> None:
        file_id = library.add(sample_record)
        library.remove(file_id)
        assert library.get_file_by_id(file_id) is None
        assert library.count == 0

    def test_persistence(self, tmp_path: Path, sample_record: FileRecord) -> None:
        lib1 = FileLibrary(tmp_path)
        file_id = lib1.add(sample_record)
        lib1.update_file_path(file_id, "/sorted/game.bin")

        # Reload
        lib2 = FileLibrary(tmp_path)
        lib2.load()
        record = lib2.get_file_by_id(file_id)
        assert record is not None
        assert record.current_path == "/sorted/game.bin"
        assert record.crc32 == "AABBCCDD"
        assert lib2.add(FileRecord(id=0, current_path="/new")) == file_id + 1

    def test_batch_update_defers_write(self, tmp_path: Path) -> None:
        lib = FileLibrary(tmp_path)
        with lib.batch_update():
            lib.add(FileRecord(id=0, current_path="/a"))
            assert not (tmp_path / "file_library.json").exists()
        assert (tmp_path / "file_library.json").exists()

    def test_corrupt_file_loads_empty(self, tmp_path: Path) -> None:
        (tmp_path / "file_library.json").write_text("{not json", encoding="utf-8")
        lib = FileLibrary(tmp_path)
        lib.load()
        assert lib.count == 0

    def test_owner_thread_enforced(self, tmp_path: Path) -> None:
        lib = FileLibrary(tmp_path, owner_thread=threading.get_ident())
        file_id = lib.add(FileRecord(id=0, current_path="/a"))
        errors: list[Exception] = []

        def mutate() -> None:
            try:
                lib.update_file_path(file_id, "/b")
            except RuntimeError as e:
                errors.append(e)

        worker = threading.Thread(target=mutate)
        worker.start()
        worker.join()
        assert len(errors) == 1
        assert lib.get_file_by_id(file_id).current_path == "/a"
