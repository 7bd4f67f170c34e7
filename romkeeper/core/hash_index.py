"""Reference-data hash index: three checksum tables plus per-source metadata."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path

from loguru import logger

from romkeeper.core.dat_parser import DatParser, detect_source
from romkeeper.core.events import IndexListener
from romkeeper.core.tasks import BackgroundTask, CancelToken
from romkeeper.models.game_entry import (
    HASH_LENGTHS,
    GameEntry,
    HashAlgorithm,
    SourceMetadata,
    normalize_hash,
)
from romkeeper.models.match import ObservedSignals


class ReloadStatus(StrEnum):
    LOADED = "loaded"
    NOT_NEWER = "not_newer"
    FAILED = "failed"


@dataclass
class ReloadResult:
    status: ReloadStatus
    count: int = 0


class HashIndex:
    """
    In-memory index of reference entries, keyed by normalized uppercase checksum.

    All tables and the source metadata map sit behind one lock. Parsing
    happens before the lock is taken, so loading a file never blocks
    queries against data that is already loaded. Everything handed out is
    a value (frozen entries, copied metadata, fresh lists).
    """

    def __init__(
        self,
        parser: DatParser | None = None,
        listener: IndexListener | None = None,
        dat_extension: str = ".dat",
    ) -> None:
        self._parser = parser or DatParser()
        self._listener = listener or IndexListener()
        self._dat_extension = dat_extension.lower()
        self._lock = threading.RLock()
        self._tables: dict[HashAlgorithm, dict[str, list[GameEntry]]] = {
            algo: {} for algo in HashAlgorithm
        }
        self._sources: dict[str, SourceMetadata] = {}

    @staticmethod
    def source_id(path: Path) -> str:
        """Identifier of the source a DAT file contributes to."""
        return Path(path).stem

    # ── Loading ──

    def load_source(self, path: Path) -> int:
        """Load one DAT file. Replaces whatever that source contributed before."""
        path = Path(path)
        if not path.is_file():
            logger.warning(f"DAT file not found: {path}")
            return 0
        parsed = self._parser.parse_with_header(path)
        if parsed is None:
            return 0
        header, entries = parsed
        return self._install(path, header, entries)

    def load_sources(self, directory: Path, cancel_token: CancelToken | None = None) -> int:
        """Load every DAT file in a directory. Returns the total entry count."""
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning(f"Database directory not found: {directory}")
            return 0

        files = sorted(
            p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == self._dat_extension
        )
        total = 0
        for i, path in enumerate(files, start=1):
            if cancel_token is not None and cancel_token.is_cancelled():
                logger.info(f"Database loading cancelled after {i - 1}/{len(files)} files")
                break
            total += self.load_source(path)
            self._listener.loading_progress(i, len(files))

        logger.info(f"Loaded {total} entries from {len(files)} DAT files in {directory}")
        return total

    def load_in_background(self, directory: Path) -> BackgroundTask:
        """Start ``load_sources`` on a worker thread; queries stay available meanwhile."""
        return BackgroundTask(
            lambda token: self.load_sources(directory, token), name="romkeeper-dat-loader"
        ).start()

    def is_newer(self, path: Path) -> bool:
        """Whether a DAT file's version is lexically newer than the loaded one.

        A source that is not loaded yet is always newer.
        """
        path = Path(path)
        name = self.source_id(path)
        new_version = self._parser.parse_header(path).get("version", "")

        with self._lock:
            current = self._sources.get(name)
            current_version = current.version if current else ""
        if current is None:
            return True
        if not new_version:
            return False
        if new_version > current_version:
            logger.info(f"Update available for {name}: {current_version} → {new_version}")
            self._listener.update_available(name, current_version, new_version)
            return True
        return False

    def reload(self, path: Path) -> ReloadResult:
        """Reload a source only if the file carries a newer version."""
        path = Path(path)
        if not path.is_file():
            logger.warning(f"Cannot reload, DAT file not found: {path}")
            return ReloadResult(ReloadStatus.FAILED)
        if not self.is_newer(path):
            logger.info(f"Skipping reload of {self.source_id(path)}: not newer")
            return ReloadResult(ReloadStatus.NOT_NEWER)

        parsed = self._parser.parse_with_header(path)
        if parsed is None:
            return ReloadResult(ReloadStatus.FAILED)
        header, entries = parsed
        count = self._install(path, header, entries)
        return ReloadResult(ReloadStatus.LOADED, count)

    def clear(self) -> None:
        with self._lock:
            for table in self._tables.values():
                table.clear()
            self._sources.clear()

    def _install(self, path: Path, header: dict[str, str], entries: list[GameEntry]) -> int:
        name = self.source_id(path)
        tagged = [dataclasses.replace(entry, source=name) for entry in entries]

        with self._lock:
            if name in self._sources:
                removed = self._purge(name)
                logger.debug(f"Purged {removed} stale index slots of {name}")

            for entry in tagged:
                for algo, value in entry.checksums().items():
                    self._tables[algo].setdefault(value, []).append(entry)

            self._sources[name] = SourceMetadata(
                name=header.get("name") or name,
                version=header.get("version", ""),
                description=header.get("description", ""),
                path=str(path),
                loaded_at=datetime.now(tz=timezone.utc).isoformat(),
                entry_count=len(tagged),
                kind=detect_source(header),
            )
            sizes = ", ".join(f"{algo.value}={len(table)}" for algo, table in self._tables.items())
            logger.debug(f"Index tables: {sizes}")

        logger.info(f"Loaded {len(tagged)} entries from {path.name}")
        self._listener.source_loaded(name, len(tagged))
        return len(tagged)

    def _purge(self, name: str) -> int:
        """Drop every entry contributed by a source. Caller holds the lock."""
        removed = 0
        for table in self._tables.values():
            for key in list(table):
                kept = [e for e in table[key] if e.source != name]
                removed += len(table[key]) - len(kept)
                if kept:
                    table[key] = kept
                else:
                    del table[key]
        del self._sources[name]
        return removed

    # ── Queries ──

    def lookup(self, algorithm: HashAlgorithm, value: str) -> list[GameEntry]:
        """Entries whose checksum for ``algorithm`` equals ``value``."""
        key = normalize_hash(value)
        with self._lock:
            return list(self._tables[algorithm].get(key, []))

    def lookup_hash(self, value: str) -> list[GameEntry]:
        """Lookup with the algorithm inferred from the digest length."""
        key = normalize_hash(value)
        algorithm = HASH_LENGTHS.get(len(key))
        if algorithm is None:
            return []
        return self.lookup(algorithm, key)

    def find_by_hash(self, signals: ObservedSignals) -> tuple[HashAlgorithm, list[GameEntry]] | None:
        """First checksum of ``signals`` (CRC32, MD5, SHA1 order) that hits any entry."""
        with self._lock:
            for algo in HashAlgorithm:
                value = normalize_hash(signals.checksum(algo))
                if not value:
                    continue
                hits = self._tables[algo].get(value)
                if hits:
                    return algo, list(hits)
        return None

    def unique_entries(self) -> list[GameEntry]:
        """Every entry once, de-duplicated across the three tables."""
        seen: set[str] = set()
        result: list[GameEntry] = []
        with self._lock:
            for table in self._tables.values():
                for bucket in table.values():
                    for entry in bucket:
                        if entry.identity not in seen:
                            seen.add(entry.identity)
                            result.append(entry)
        return result

    def get_stats(self) -> dict[str, int]:
        """Entry count per loaded source."""
        with self._lock:
            return {name: meta.entry_count for name, meta in self._sources.items()}

    def loaded_sources(self) -> list[SourceMetadata]:
        with self._lock:
            return [dataclasses.replace(meta) for meta in self._sources.values()]

    def source_metadata(self, name: str) -> SourceMetadata | None:
        with self._lock:
            meta = self._sources.get(name)
            return dataclasses.replace(meta) if meta else None

    @property
    def total_entries(self) -> int:
        with self._lock:
            return sum(meta.entry_count for meta in self._sources.values())
