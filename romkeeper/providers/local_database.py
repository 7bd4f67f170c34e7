"""Local DAT database provider: offline metadata from loaded reference files."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from loguru import logger

from romkeeper.core.dat_parser import extract_region
from romkeeper.core.hash_index import HashIndex
from romkeeper.core.matcher import Matcher
from romkeeper.models.game_entry import GameEntry
from romkeeper.models.game_metadata import GameMetadata, SearchResult
from romkeeper.models.match import MatchCandidate, ObservedSignals
from romkeeper.providers.base import MetadataProvider

SEARCH_LIMIT = 10

_PAREN_CLAUSE = re.compile(r"\s*\([^)]*\)")


def clean_title(game_name: str) -> str:
    """Strip parenthesized tags from a catalog name.

    "Sonic the Hedgehog (USA, Europe) (Rev 1)" → "Sonic the Hedgehog"
    """
    return _PAREN_CLAUSE.sub("", game_name).strip() or game_name


class LocalDatabaseProvider(MetadataProvider):
    """
    MetadataProvider backed by the in-memory HashIndex.

    Game ids are checksums, so ``get_by_id`` is a hash lookup. No artwork
    is available offline.
    """

    def __init__(self, index: HashIndex, matcher: Matcher | None = None) -> None:
        self._index = index
        self._matcher = matcher or Matcher(index)

    @property
    def name(self) -> str:
        return "local"

    # ── MetadataProvider ──

    def search_by_name(self, title: str, system: str = "", region: str = "") -> list[SearchResult]:
        query = title.strip().casefold()
        if not query:
            return []

        results: dict[str, SearchResult] = {}
        for entry in self._index.unique_entries():
            if region and entry.region.casefold() != region.casefold():
                continue
            if system and not self._in_system(entry, system):
                continue
            score = self._name_score(query, entry)
            if not score:
                continue
            known = results.get(entry.game_name)
            if known is None or known.match_score < score:
                results[entry.game_name] = SearchResult(
                    id=self._entry_id(entry),
                    title=entry.game_name,
                    system=self._system_name(entry),
                    region=entry.region,
                    match_score=score,
                    provider=self.name,
                )

        ranked = sorted(results.values(), key=lambda r: r.match_score, reverse=True)
        logger.debug(f"Local search '{title}': {len(ranked)} hit(s)")
        return ranked[:SEARCH_LIMIT]

    def get_by_hash(self, hash_value: str, system: str = "") -> GameMetadata | None:
        for entry in self._index.lookup_hash(hash_value):
            if system and not self._in_system(entry, system):
                continue
            return self.entry_to_metadata(entry)
        return None

    def get_by_id(self, game_id: str) -> GameMetadata | None:
        return self.get_by_hash(game_id)

    # ── Matching ──

    def match(self, signals: ObservedSignals) -> list[MatchCandidate]:
        return self._matcher.match(signals)

    def metadata_for(self, candidate: MatchCandidate) -> GameMetadata:
        """Metadata for a match, carrying how it was matched."""
        metadata = self.entry_to_metadata(candidate.entry)
        metadata.match_score = candidate.confidence_percent / 100
        metadata.match_method = "hash" if candidate.hash_match else "fuzzy"
        return metadata

    def entry_to_metadata(self, entry: GameEntry) -> GameMetadata:
        external_ids = {
            key: value
            for key, value in (
                ("crc32", entry.crc32),
                ("md5", entry.md5),
                ("sha1", entry.sha1),
                ("serial", entry.serial),
            )
            if value
        }
        return GameMetadata(
            id=self._entry_id(entry),
            title=clean_title(entry.game_name),
            system=self._system_name(entry),
            region=entry.region or extract_region(entry.game_name),
            description=entry.description if entry.description != entry.game_name else clean_title(entry.game_name),
            external_ids=external_ids,
            provider=self.name,
            fetched_at=datetime.now(tz=timezone.utc).isoformat(),
            match_score=1.0,
            match_method="hash",
        )

    # ── Helpers ──

    @staticmethod
    def _entry_id(entry: GameEntry) -> str:
        return entry.crc32 or entry.md5 or entry.sha1

    @staticmethod
    def _name_score(query: str, entry: GameEntry) -> float:
        name = entry.game_name.casefold()
        if name == query or clean_title(entry.game_name).casefold() == query:
            return 1.0
        if name.startswith(query):
            return 0.9
        if query in name:
            return 0.7
        return 0.0

    def _system_name(self, entry: GameEntry) -> str:
        meta = self._index.source_metadata(entry.source)
        return meta.name if meta else entry.source

    def _in_system(self, entry: GameEntry, system: str) -> bool:
        wanted = system.casefold()
        return wanted in (entry.source.casefold(), self._system_name(entry).casefold())
