"""File library: JSON-based record store of cataloged files."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterator, Protocol

from loguru import logger

from romkeeper.models.file_record import FileRecord


class RecordStore(Protocol):
    """What the organizer needs from a record store."""

    def get_file_by_id(self, file_id: int) -> FileRecord | None: ...

    def get_files_by_parent(self, parent_id: int) -> list[FileRecord]: ...

    def update_file_path(self, file_id: int, new_path: str) -> bool: ...

    def find_by_path(self, path: str) -> FileRecord | None: ...


class FileLibrary:
    """
    File record store: reads/writes file_library.json.

    Every mutation is written through immediately unless it happens inside
    ``batch_update()``. When ``owner_thread`` is given, mutations from any
    other thread raise RuntimeError; workers must hand them off instead.
    """

    def __init__(self, data_dir: Path, owner_thread: int | None = None) -> None:
        self._data_dir = data_dir
        self._path = data_dir / "file_library.json"
        self._records: dict[int, FileRecord] = {}
        self._next_id = 1
        self._version = 1
        self._owner_thread = owner_thread
        self._defer_save = False

    def load(self) -> None:
        """Load records from disk."""
        self._records.clear()
        self._next_id = 1
        if not self._path.exists():
            return
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
            self._version = data.get("version", 1)
            for raw in data.get("files", []):
                try:
                    record = FileRecord(**raw)
                except TypeError as e:
                    logger.warning(f"Skipping malformed file record {raw!r}: {e}")
                    continue
                self._records[record.id] = record
            self._next_id = max(self._records, default=0) + 1
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load file library: {e}")

    def save(self) -> None:
        """Persist records to disk."""
        if self._defer_save:
            return
        self._data_dir.mkdir(parents=True, exist_ok=True)
        data: dict[str, Any] = {
            "version": self._version,
            "files": [asdict(record) for record in self._records.values()],
        }
        tmp = self._path.with_suffix(".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            tmp.replace(self._path)
        except OSError as e:
            logger.error(f"Failed to save file library: {e}")
            tmp.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Group several mutations into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self.save()

    def _check_owner(self) -> None:
        if self._owner_thread is not None and threading.get_ident() != self._owner_thread:
            raise RuntimeError("FileLibrary mutated off its owning thread")

    # ── Mutations ──

    def add(self, record: FileRecord) -> int:
        """Add a record. A record with id 0 gets the next free id."""
        self._check_owner()
        if record.id <= 0:
            record.id = self._next_id
        if not record.original_path:
            record.original_path = record.current_path
        self._records[record.id] = record
        self._next_id = max(self._next_id, record.id + 1)
        self.save()
        return record.id

    def remove(self, file_id: int) -> None:
        self._check_owner()
        if self._records.pop(file_id, None) is not None:
            self.save()

    def update_file_path(self, file_id: int, new_path: str) -> bool:
        """Point a record at its new location."""
        self._check_owner()
        record = self._records.get(file_id)
        if record is None:
            logger.warning(f"Cannot update path of unknown file id {file_id}")
            return False
        record.current_path = new_path
        self.save()
        return True

    # ── Queries ──

    def get_file_by_id(self, file_id: int) -> FileRecord | None:
        return self._records.get(file_id)

    def get_files_by_parent(self, parent_id: int) -> list[FileRecord]:
        return [r for r in self._records.values() if r.parent_id == parent_id]

    def find_by_path(self, path: str) -> FileRecord | None:
        for record in self._records.values():
            if record.current_path == path:
                return record
        return None

    def all_records(self) -> list[FileRecord]:
        return list(self._records.values())

    def primary_records(self) -> list[FileRecord]:
        """Records that are not linked children of another file."""
        return [r for r in self._records.values() if r.parent_id is None]

    @property
    def count(self) -> int:
        return len(self._records)
