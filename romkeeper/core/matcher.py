"""Multi-signal matcher: scores reference entries against one observed file.

Points: hash 100, filename 50, size 30, serial 20 (maximum 200).
"""

from __future__ import annotations

from loguru import logger

from romkeeper.core.hash_index import HashIndex
from romkeeper.models.game_entry import GameEntry, normalize_hash
from romkeeper.models.match import MatchCandidate, ObservedSignals

HASH_POINTS = 100
FILENAME_POINTS = 50
SIZE_POINTS = 30
SERIAL_POINTS = 20

# Header-byte variants (e.g. iNES headers) differ in size by a few bytes
SIZE_TOLERANCE = 1024


def strip_extension(filename: str) -> str:
    """Lowercased file name without directory and last extension."""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, _ = base.rpartition(".")
    return (stem if dot and stem else base).lower()


def filename_matches(observed: str, entry: GameEntry) -> bool:
    return bool(entry.rom_name) and strip_extension(observed) == strip_extension(entry.rom_name)


def size_matches(observed: int, entry: GameEntry) -> bool:
    return abs(observed - entry.size) <= SIZE_TOLERANCE


def serial_matches(observed: str, entry: GameEntry) -> bool:
    return bool(observed) and bool(entry.serial) and observed.casefold() == entry.serial.casefold()


class Matcher:
    """
    Two-pass matcher over a HashIndex. Read-only; safe to call from any thread.

    Pass 1 anchors on the first checksum algorithm (CRC32, MD5, SHA1) with a
    hit and scores every entry under that hash. Pass 2 runs only when pass 1
    finds nothing: the first entry matching both filename and size wins.
    """

    def __init__(self, index: HashIndex) -> None:
        self._index = index

    def match(self, signals: ObservedSignals) -> list[MatchCandidate]:
        """Ranked candidates for one file, highest score first."""
        candidates = self._match_by_hash(signals) or self._match_by_signals(signals)
        candidates.sort(key=lambda c: c.score, reverse=True)
        if candidates:
            top = candidates[0]
            logger.debug(
                f"{signals.filename}: {len(candidates)} candidate(s), "
                f"best '{top.entry.game_name}' score={top.score} ({top.confidence_percent}%)"
            )
        else:
            logger.debug(f"{signals.filename}: no match")
        return candidates

    def best_match(self, signals: ObservedSignals) -> MatchCandidate | None:
        candidates = self.match(signals)
        return candidates[0] if candidates else None

    # ── Passes ──

    def _match_by_hash(self, signals: ObservedSignals) -> list[MatchCandidate]:
        hit = self._index.find_by_hash(signals)
        if hit is None:
            return []
        algorithm, entries = hit
        matched_hash = normalize_hash(signals.checksum(algorithm))

        candidates: list[MatchCandidate] = []
        for entry in entries:
            candidate = MatchCandidate(
                entry=entry,
                score=HASH_POINTS,
                hash_match=True,
                matched_algorithm=algorithm,
                matched_hash=matched_hash,
            )
            if filename_matches(signals.filename, entry):
                candidate.filename_match = True
                candidate.score += FILENAME_POINTS
            if size_matches(signals.size, entry):
                candidate.size_match = True
                candidate.score += SIZE_POINTS
            if serial_matches(signals.serial, entry):
                candidate.serial_match = True
                candidate.score += SERIAL_POINTS
            candidates.append(candidate)
        return candidates

    def _match_by_signals(self, signals: ObservedSignals) -> list[MatchCandidate]:
        for entry in self._index.unique_entries():
            if not (filename_matches(signals.filename, entry) and size_matches(signals.size, entry)):
                continue
            candidate = MatchCandidate(
                entry=entry,
                score=FILENAME_POINTS + SIZE_POINTS,
                filename_match=True,
                size_match=True,
            )
            if serial_matches(signals.serial, entry):
                candidate.serial_match = True
                candidate.score += SERIAL_POINTS
            return [candidate]
        return []
