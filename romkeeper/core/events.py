"""Observer interfaces for index and organize notifications.

Subclass and override the hooks you care about; every default is a no-op.
"""

from __future__ import annotations

from romkeeper.models.file_record import FileOperation


class IndexListener:
    """Receives reference-data loading events from HashIndex."""

    def source_loaded(self, name: str, entry_count: int) -> None:
        pass

    def update_available(self, name: str, current_version: str, new_version: str) -> None:
        pass

    def loading_progress(self, current: int, total: int) -> None:
        pass


class OrganizeListener:
    """Receives per-file events from OrganizeEngine, in order: started, (preview), completed, progress."""

    def operation_started(self, file_id: int, old_path: str, new_path: str) -> None:
        pass

    def operation_completed(self, file_id: int, success: bool, error: str) -> None:
        pass

    def progress(self, current: int, total: int) -> None:
        pass

    def dry_run_preview(self, old_path: str, new_path: str, operation: FileOperation) -> None:
        pass
