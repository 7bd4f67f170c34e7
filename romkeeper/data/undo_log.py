"""Undo log: append-only JSON history of filesystem operations."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from romkeeper.models.file_record import FileOperation, UndoRecord


def _record_from_dict(data: dict) -> UndoRecord:
    data = dict(data)
    data["operation"] = FileOperation(data["operation"])
    return UndoRecord(**data)


class UndoLog:
    """
    Append-only operation log stored in undo_log.json.

    Records are never deleted; the only mutation is the one-way
    ``undone`` flag. Safe to use from worker threads.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._path = data_dir / "undo_log.json"
        self._records: dict[int, UndoRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def load(self) -> None:
        with self._lock:
            self._records.clear()
            if not self._path.exists():
                return
            try:
                with open(self._path, encoding="utf-8") as f:
                    data = json.load(f)
                for raw in data.get("operations", []):
                    try:
                        record = _record_from_dict(raw)
                    except (TypeError, KeyError, ValueError) as e:
                        logger.warning(f"Skipping malformed undo record {raw!r}: {e}")
                        continue
                    self._records[record.id] = record
                self._next_id = max(self._records, default=0) + 1
            except (json.JSONDecodeError, OSError) as e:
                logger.error(f"Failed to load undo log: {e}")

    def _save(self) -> None:
        """Write the log. Caller holds the lock."""
        self._data_dir.mkdir(parents=True, exist_ok=True)
        data = {"version": 1, "operations": [asdict(r) for r in self._records.values()]}
        tmp = self._path.with_suffix(".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            tmp.replace(self._path)
        except OSError as e:
            logger.error(f"Failed to save undo log: {e}")
            tmp.unlink(missing_ok=True)

    def append(
        self,
        operation: FileOperation,
        old_path: str,
        new_path: str,
        file_id: int | None = None,
    ) -> UndoRecord:
        """Record a completed operation and return the stored record."""
        with self._lock:
            record = UndoRecord(
                id=self._next_id,
                operation=operation,
                old_path=old_path,
                new_path=new_path,
                file_id=file_id,
                executed_at=datetime.now(tz=timezone.utc).isoformat(),
            )
            self._records[record.id] = record
            self._next_id += 1
            self._save()
        logger.debug(f"Undo #{record.id}: {operation} {old_path} → {new_path}")
        return record

    def get(self, undo_id: int) -> UndoRecord | None:
        with self._lock:
            record = self._records.get(undo_id)
            return UndoRecord(**asdict(record)) if record else None

    def mark_undone(self, undo_id: int) -> bool:
        """Flip the undone flag. False if unknown or already undone."""
        with self._lock:
            record = self._records.get(undo_id)
            if record is None or record.undone:
                return False
            record.undone = True
            record.undone_at = datetime.now(tz=timezone.utc).isoformat()
            self._save()
            return True

    def pending(self, limit: int = 0) -> list[UndoRecord]:
        """Records not yet undone, newest first. ``limit`` 0 means all."""
        with self._lock:
            records = [UndoRecord(**asdict(r)) for r in self._records.values() if not r.undone]
        records.sort(key=lambda r: (r.executed_at, r.id), reverse=True)
        return records[:limit] if limit > 0 else records

    def all_records(self) -> list[UndoRecord]:
        with self._lock:
            return [UndoRecord(**asdict(r)) for r in self._records.values()]

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._records)
