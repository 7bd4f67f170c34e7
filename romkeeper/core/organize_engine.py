"""Organize engine: renames and relocates identified files, with an undo history."""

from __future__ import annotations

import errno
import os
import shutil
from pathlib import Path
from typing import Sequence

from loguru import logger

from romkeeper.core.events import OrganizeListener
from romkeeper.core.tasks import CancelToken, Dispatch, run_inline
from romkeeper.core.template_engine import NO_INTRO_TEMPLATE, InvalidTemplateError, TemplateEngine
from romkeeper.data.file_library import RecordStore
from romkeeper.data.undo_log import UndoLog
from romkeeper.models.file_record import (
    CollisionStrategy,
    FileOperation,
    FileRecord,
    OrganizeResult,
    OrganizeStatus,
    UndoFailure,
    UndoResult,
)
from romkeeper.models.game_metadata import GameMetadata
from romkeeper.utils import split_extension

_SKIP_MESSAGES = {
    CollisionStrategy.SKIP: "File exists at destination, skipping",
    CollisionStrategy.ASK: "File exists at destination, collision requires a decision",
}


def move_file(src: Path, dest: Path) -> None:
    """Rename ``src`` to ``dest``, replacing ``dest``; copy + delete across devices."""
    try:
        os.replace(src, dest)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.copy2(src, dest)
        src.unlink()


class OrganizeEngine:
    """
    Moves, copies, renames or deletes cataloged files into a template-driven layout.

    Filesystem work happens on the calling thread (usually a worker).
    Record-store path updates go through ``dispatch`` so they can run on
    the store's owning thread; the undo log is thread-safe and written
    directly. A crash between the two phases leaves the store pointing at
    the old path until the next rescan.
    """

    def __init__(
        self,
        store: RecordStore,
        undo_log: UndoLog,
        template_engine: TemplateEngine | None = None,
        listener: OrganizeListener | None = None,
        dispatch: Dispatch = run_inline,
    ) -> None:
        self._store = store
        self._undo_log = undo_log
        self._templates = template_engine or TemplateEngine()
        self._listener = listener or OrganizeListener()
        self._dispatch = dispatch
        self._template = NO_INTRO_TEMPLATE
        self.collision_strategy = CollisionStrategy.RENAME
        self.dry_run = False
        # Destinations reserved by earlier items of a dry-run batch
        self._claimed: set[str] | None = None

    # ── Settings ──

    @property
    def template(self) -> str:
        return self._template

    def set_template(self, template: str) -> bool:
        """Switch the active template. An invalid template is rejected and the old one kept."""
        if not self._templates.validate(template):
            logger.warning(f"Rejected invalid template: {template!r}")
            return False
        self._template = template
        return True

    # ── Paths ──

    def generate_destination(self, record: FileRecord, metadata: GameMetadata, destination_root: Path) -> Path:
        """Destination for a file before collision handling."""
        filename = record.filename
        _, ext = split_extension(filename)
        hints = {"ext": ext}
        disc = self._templates.extract_disc_number(filename)
        if disc:
            hints["disc"] = str(disc)
        name = self._templates.apply(self._template, metadata, hints)
        # Empty variables leave blank segments ("/Tetris.gb"); joining those would escape the root
        segments = [part for part in name.split("/") if part.strip() and part != "."]
        if not segments:
            raise InvalidTemplateError("Template produced an empty filename")
        if ".." in segments:
            raise InvalidTemplateError(f"Template produced a path outside the destination: {name!r}")
        root = Path(destination_root)
        path = root.joinpath(*segments)
        if not path.is_relative_to(root):
            raise InvalidTemplateError(f"Template produced a path outside the destination: {name!r}")
        return path

    def preview(self, file_id: int, metadata: GameMetadata, destination_root: Path) -> str | None:
        """Where a file would go, collisions included. Touches nothing."""
        record = self._store.get_file_by_id(file_id)
        if record is None:
            return None
        try:
            dest = self.generate_destination(record, metadata, destination_root)
        except InvalidTemplateError:
            return None
        if self._occupied(dest) and self.collision_strategy is CollisionStrategy.RENAME:
            dest = self.resolve_collision(dest)
        return str(dest)

    def resolve_collision(self, path: Path, strategy: CollisionStrategy | None = None) -> Path:
        """Apply a collision strategy to an occupied path.

        Rename appends ``_1``, ``_2``, … before the extension until the name is
        free. Every other strategy returns the path unchanged.
        """
        strategy = strategy or self.collision_strategy
        if strategy is not CollisionStrategy.RENAME or not self._occupied(path):
            return path
        stem, ext = split_extension(path.name)
        counter = 1
        while True:
            candidate = path.with_name(f"{stem}_{counter}{ext}")
            if not self._occupied(candidate):
                return candidate
            counter += 1

    def _occupied(self, path: Path) -> bool:
        return path.exists() or (self._claimed is not None and str(path) in self._claimed)

    def _claim(self, path: Path) -> None:
        if self._claimed is not None:
            self._claimed.add(str(path))

    # ── Organize ──

    def organize_file(
        self,
        file_id: int,
        metadata: GameMetadata,
        destination_root: Path,
        operation: FileOperation = FileOperation.MOVE,
    ) -> OrganizeResult:
        """Organize one file (and its linked files) according to the active settings."""
        record = self._store.get_file_by_id(file_id)
        if record is None:
            logger.warning(f"Cannot organize file {file_id}: not in library")
            result = OrganizeResult(file_id, OrganizeStatus.NOT_FOUND, operation)
            return self._finish(result, OrganizeStatus.NOT_FOUND, "File not found in database")

        old_path = Path(record.current_path)
        if operation is FileOperation.DELETE:
            return self._delete(record, old_path)

        result = OrganizeResult(file_id, OrganizeStatus.FAILED, operation, old_path=str(old_path))
        try:
            new_path = self.generate_destination(record, metadata, destination_root)
        except InvalidTemplateError as e:
            logger.warning(f"Cannot organize {old_path.name}: {e}")
            return self._finish(result, OrganizeStatus.FAILED, str(e))

        if new_path == old_path:
            result.new_path = str(new_path)
            return self._finish(result, OrganizeStatus.SKIPPED, "File is already at its destination")

        if self._occupied(new_path):
            result.collided = True
            new_path = self.resolve_collision(new_path)
        result.new_path = str(new_path)

        self._listener.operation_started(file_id, str(old_path), str(new_path))

        if result.collided and self.collision_strategy in _SKIP_MESSAGES:
            return self._finish(result, OrganizeStatus.SKIPPED, _SKIP_MESSAGES[self.collision_strategy])

        if self.dry_run:
            self._claim(new_path)
            logger.info(f"[dry run] {operation} {old_path} → {new_path}")
            self._listener.dry_run_preview(str(old_path), str(new_path), operation)
            self._organize_linked(record, new_path.parent, operation, result)
            return self._finish(result, OrganizeStatus.PREVIEW)

        try:
            self._execute(operation, old_path, new_path)
        except OSError as e:
            logger.error(f"{operation} {old_path} → {new_path} failed: {e}")
            return self._finish(result, OrganizeStatus.FAILED, f"File operation failed: {e}")

        result.undo_id = self._record_success(operation, old_path, new_path, file_id)
        logger.info(f"{operation.capitalize()} {old_path} → {new_path}")

        self._organize_linked(record, new_path.parent, operation, result)
        return self._finish(result, OrganizeStatus.DONE)

    def organize_files(
        self,
        file_ids: Sequence[int],
        metadata_map: dict[int, GameMetadata],
        destination_root: Path,
        operation: FileOperation = FileOperation.MOVE,
        cancel_token: CancelToken | None = None,
    ) -> list[OrganizeResult]:
        """Organize a batch. One result per input id, in input order.

        Cancellation is honoured between files; files not yet started get a
        CANCELLED result and are left untouched.
        """
        file_ids = list(file_ids)
        total = len(file_ids)
        results: list[OrganizeResult] = []
        self._claimed = set() if self.dry_run else None
        try:
            for i, file_id in enumerate(file_ids, start=1):
                if cancel_token is not None and cancel_token.is_cancelled():
                    logger.info(f"Organize cancelled after {i - 1}/{total} files")
                    results.extend(
                        OrganizeResult(fid, OrganizeStatus.CANCELLED, operation, error="Cancelled")
                        for fid in file_ids[i - 1 :]
                    )
                    break

                metadata = metadata_map.get(file_id)
                if metadata is None:
                    result = self._finish(
                        OrganizeResult(file_id, OrganizeStatus.NO_METADATA, operation),
                        OrganizeStatus.NO_METADATA,
                        "No metadata available",
                    )
                else:
                    result = self.organize_file(file_id, metadata, destination_root, operation)
                results.append(result)
                self._listener.progress(i, total)
        finally:
            self._claimed = None

        done = sum(1 for r in results if r.success)
        logger.info(f"Organized {done}/{total} files")
        return results

    # ── Internals ──

    def _finish(self, result: OrganizeResult, status: OrganizeStatus, error: str = "") -> OrganizeResult:
        result.status = status
        result.error = error
        self._listener.operation_completed(result.file_id, result.success, error)
        return result

    def _delete(self, record: FileRecord, old_path: Path) -> OrganizeResult:
        result = OrganizeResult(record.id, OrganizeStatus.FAILED, FileOperation.DELETE, old_path=str(old_path))
        self._listener.operation_started(record.id, str(old_path), "")

        if self.dry_run:
            logger.info(f"[dry run] delete {old_path}")
            self._listener.dry_run_preview(str(old_path), "", FileOperation.DELETE)
            self._organize_linked(record, None, FileOperation.DELETE, result)
            return self._finish(result, OrganizeStatus.PREVIEW)

        try:
            old_path.unlink()
        except OSError as e:
            logger.error(f"Delete {old_path} failed: {e}")
            return self._finish(result, OrganizeStatus.FAILED, f"File operation failed: {e}")

        result.undo_id = self._undo_log.append(FileOperation.DELETE, str(old_path), "", record.id).id
        logger.info(f"Deleted {old_path}")
        self._organize_linked(record, None, FileOperation.DELETE, result)
        return self._finish(result, OrganizeStatus.DONE)

    def _organize_linked(
        self,
        parent: FileRecord,
        dest_dir: Path | None,
        operation: FileOperation,
        result: OrganizeResult,
    ) -> None:
        """Carry linked files (e.g. the tracks of a cue sheet) along with their parent."""
        for child in self._store.get_files_by_parent(parent.id):
            error = self._organize_child(child, dest_dir, operation)
            if error:
                logger.warning(f"Linked file {child.filename}: {error}")
                result.linked_errors.append(f"Linked file {child.filename}: {error}")

    def _organize_child(self, child: FileRecord, dest_dir: Path | None, operation: FileOperation) -> str:
        src = Path(child.current_path)
        if operation is FileOperation.DELETE or dest_dir is None:
            if self.dry_run:
                self._listener.dry_run_preview(str(src), "", operation)
                return ""
            try:
                src.unlink()
            except OSError as e:
                return f"File operation failed: {e}"
            self._undo_log.append(FileOperation.DELETE, str(src), "", child.id)
            return ""

        dest = dest_dir / src.name
        if dest == src:
            return ""
        if self._occupied(dest):
            if self.collision_strategy in _SKIP_MESSAGES:
                return _SKIP_MESSAGES[self.collision_strategy]
            dest = self.resolve_collision(dest)

        if self.dry_run:
            self._claim(dest)
            self._listener.dry_run_preview(str(src), str(dest), operation)
            return ""

        try:
            self._execute(operation, src, dest)
        except OSError as e:
            return f"File operation failed: {e}"
        self._record_success(operation, src, dest, child.id)
        return ""

    @staticmethod
    def _execute(operation: FileOperation, src: Path, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        if operation is FileOperation.COPY:
            shutil.copy2(src, dest)
        else:
            move_file(src, dest)

    def _record_success(self, operation: FileOperation, old_path: Path, new_path: Path, file_id: int | None) -> int:
        """Append the undo record and hand the path update to the store's thread."""
        if file_id is None:
            found = self._store.find_by_path(str(old_path))
            file_id = found.id if found else None
        record = self._undo_log.append(operation, str(old_path), str(new_path), file_id)
        if file_id is not None:
            self._dispatch(lambda: self._store.update_file_path(file_id, str(new_path)))
        return record.id

    # ── Undo ──

    def undo_operation(self, undo_id: int) -> UndoResult:
        """Reverse one recorded operation. Each record can be undone once."""
        record = self._undo_log.get(undo_id)
        if record is None:
            logger.warning(f"Undo #{undo_id}: no such operation")
            return UndoResult(undo_id, False, UndoFailure.NOT_FOUND, "Undo record not found")
        if record.undone:
            return UndoResult(undo_id, False, UndoFailure.ALREADY_UNDONE, "Operation already undone")

        old_path = Path(record.old_path)
        new_path = Path(record.new_path)

        if record.operation in (FileOperation.MOVE, FileOperation.RENAME):
            if not new_path.exists():
                return UndoResult(undo_id, False, UndoFailure.DESTINATION_MISSING, f"{new_path} no longer exists")
            if old_path.exists():
                return UndoResult(undo_id, False, UndoFailure.ORIGINAL_OCCUPIED, f"{old_path} is occupied")
            try:
                old_path.parent.mkdir(parents=True, exist_ok=True)
                move_file(new_path, old_path)
            except OSError as e:
                logger.error(f"Undo #{undo_id} failed: {e}")
                return UndoResult(undo_id, False, UndoFailure.FILESYSTEM_ERROR, str(e))
        elif record.operation is FileOperation.COPY:
            if not new_path.exists():
                return UndoResult(undo_id, False, UndoFailure.DESTINATION_MISSING, f"{new_path} no longer exists")
            try:
                new_path.unlink()
            except OSError as e:
                logger.error(f"Undo #{undo_id} failed: {e}")
                return UndoResult(undo_id, False, UndoFailure.FILESYSTEM_ERROR, str(e))
        else:
            return UndoResult(
                undo_id, False, UndoFailure.UNSUPPORTED_OPERATION, f"Cannot undo a {record.operation} operation"
            )

        if not self._undo_log.mark_undone(undo_id):
            return UndoResult(undo_id, False, UndoFailure.ALREADY_UNDONE, "Operation already undone")

        file_id = record.file_id
        if file_id is not None:
            self._dispatch(lambda: self._store.update_file_path(file_id, str(old_path)))
        logger.info(f"Undid #{undo_id}: {record.operation} {new_path} → {old_path}")
        return UndoResult(undo_id, True)

    def undo_all(self, limit: int = 0) -> int:
        """Undo pending operations newest first. Returns how many succeeded."""
        undone = 0
        for record in self._undo_log.pending(limit):
            if self.undo_operation(record.id).success:
                undone += 1
        logger.info(f"Undid {undone} operation(s)")
        return undone
