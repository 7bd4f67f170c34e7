"""Reference catalog models: entries parsed from description files."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class HashAlgorithm(StrEnum):
    """Checksum algorithms understood by the index, in lookup priority order."""

    CRC32 = "crc32"
    MD5 = "md5"
    SHA1 = "sha1"


# Hex digest length → algorithm
HASH_LENGTHS: dict[int, HashAlgorithm] = {
    8: HashAlgorithm.CRC32,
    32: HashAlgorithm.MD5,
    40: HashAlgorithm.SHA1,
}


def normalize_hash(value: str) -> str:
    """Canonical form of a checksum string: trimmed, no spaces, uppercase."""
    return value.strip().replace(" ", "").upper()


@dataclass(frozen=True)
class GameEntry:
    """One cataloged reference ROM. Immutable once parsed."""

    game_name: str
    rom_name: str
    description: str = ""
    region: str = ""
    size: int = 0
    crc32: str = ""
    md5: str = ""
    sha1: str = ""
    serial: str = ""
    source: str = ""  # source identifier (origin file stem), set by the index

    @property
    def identity(self) -> str:
        """Key used to de-duplicate an entry reachable from several hash tables."""
        return f"{self.game_name}|{self.rom_name}"

    def checksum(self, algorithm: HashAlgorithm) -> str:
        return getattr(self, algorithm.value)

    def checksums(self) -> dict[HashAlgorithm, str]:
        """All present checksums keyed by algorithm."""
        return {algo: self.checksum(algo) for algo in HashAlgorithm if self.checksum(algo)}


@dataclass
class SourceMetadata:
    """Per loaded description file. Replaced as a whole on reload."""

    name: str
    version: str = ""
    description: str = ""
    path: str = ""
    loaded_at: str = ""
    entry_count: int = 0
    kind: str = "unknown"  # no-intro / redump / tosec / gametdb / unknown
