"""File records, organize results and undo log models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class FileOperation(StrEnum):
    """Filesystem mutation performed by the organizer."""

    MOVE = "move"
    COPY = "copy"
    RENAME = "rename"
    DELETE = "delete"


class CollisionStrategy(StrEnum):
    """What to do when the destination path already exists."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"
    ASK = "ask"  # reserved for interactive front ends


class OrganizeStatus(StrEnum):
    DONE = "done"
    PREVIEW = "preview"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    NO_METADATA = "no_metadata"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UndoFailure(StrEnum):
    """Distinct reasons an undo can be refused."""

    NOT_FOUND = "not_found"
    ALREADY_UNDONE = "already_undone"
    UNSUPPORTED_OPERATION = "unsupported_operation"
    DESTINATION_MISSING = "destination_missing"
    ORIGINAL_OCCUPIED = "original_occupied"
    FILESYSTEM_ERROR = "filesystem_error"


@dataclass
class FileRecord:
    """A cataloged file on disk, stored in file_library.json."""

    id: int
    current_path: str
    original_path: str = ""
    parent_id: int | None = None  # set on the tracks of a multi-part image
    system: str = ""
    size: int = 0
    crc32: str = ""
    md5: str = ""
    sha1: str = ""
    serial: str = ""

    @property
    def filename(self) -> str:
        return self.current_path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass
class UndoRecord:
    """One reversible filesystem mutation. Terminal once undone."""

    id: int
    operation: FileOperation
    old_path: str
    new_path: str
    file_id: int | None = None
    executed_at: str = ""
    undone: bool = False
    undone_at: str = ""


@dataclass
class OrganizeResult:
    """Outcome of organizing one file."""

    file_id: int
    status: OrganizeStatus
    operation: FileOperation = FileOperation.MOVE
    old_path: str = ""
    new_path: str = ""
    error: str = ""
    undo_id: int | None = None
    collided: bool = False
    linked_errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status in (OrganizeStatus.DONE, OrganizeStatus.PREVIEW)

    @property
    def partial(self) -> bool:
        """Primary file succeeded but at least one linked file did not."""
        return self.success and bool(self.linked_errors)


@dataclass
class UndoResult:
    """Outcome of reversing one undo record."""

    undo_id: int
    success: bool
    reason: UndoFailure | None = None
    error: str = ""
