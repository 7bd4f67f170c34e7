"""Application context: service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from romkeeper.config import Config
    from romkeeper.core.hash_index import HashIndex
    from romkeeper.core.matcher import Matcher
    from romkeeper.core.organize_engine import OrganizeEngine
    from romkeeper.core.tasks import MainThreadDispatcher
    from romkeeper.core.template_engine import TemplateEngine
    from romkeeper.data.file_library import FileLibrary
    from romkeeper.data.undo_log import UndoLog
    from romkeeper.providers.local_database import LocalDatabaseProvider


@dataclass
class AppContext:
    """
    Central service container.

    Front ends receive this once and pull the services they need.
    """

    config: Config

    # Reference data
    hash_index: HashIndex
    matcher: Matcher
    provider: LocalDatabaseProvider

    # Library and organizing
    file_library: FileLibrary
    undo_log: UndoLog
    template_engine: TemplateEngine
    organize_engine: OrganizeEngine
    dispatcher: MainThreadDispatcher
