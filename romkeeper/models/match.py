"""Matching models: observed signals in, ranked candidates out."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from romkeeper.models.game_entry import GameEntry, HashAlgorithm

# Theoretical maximum score: hash + filename + size + serial
MAX_SCORE = 200


class ConfidenceCategory(StrEnum):
    """Coarse bucket for a confidence percentage."""

    PERFECT = "perfect"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNMATCHED = "unmatched"

    @classmethod
    def from_percent(cls, percent: int) -> ConfidenceCategory:
        if percent >= 100:
            return cls.PERFECT
        if percent >= 90:
            return cls.HIGH
        if percent >= 60:
            return cls.MEDIUM
        if percent > 0:
            return cls.LOW
        return cls.UNMATCHED


@dataclass
class ObservedSignals:
    """Everything known about one file at query time."""

    filename: str
    size: int
    crc32: str = ""
    md5: str = ""
    sha1: str = ""
    serial: str = ""

    def checksum(self, algorithm: HashAlgorithm) -> str:
        return getattr(self, algorithm.value)


@dataclass
class MatchCandidate:
    """One reference entry scored against observed signals."""

    entry: GameEntry
    score: int = 0
    hash_match: bool = False
    filename_match: bool = False
    size_match: bool = False
    serial_match: bool = False
    matched_algorithm: HashAlgorithm | None = None
    matched_hash: str = ""

    @property
    def signal_count(self) -> int:
        return sum((self.hash_match, self.filename_match, self.size_match, self.serial_match))

    @property
    def confidence_percent(self) -> int:
        return min(100, self.score * 100 // MAX_SCORE)

    @property
    def category(self) -> ConfidenceCategory:
        return ConfidenceCategory.from_percent(self.confidence_percent)
