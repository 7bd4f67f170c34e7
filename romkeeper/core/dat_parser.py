"""ClrMamePro DAT parser: reads text description files into GameEntry lists.

Format overview::

    clrmamepro (
        name "Nintendo - Game Boy"
        version 20240101-000000
    )

    game (
        name "Tetris (World) (Rev 1)"
        description "Tetris (World) (Rev 1)"
        rom ( name "Tetris (World) (Rev 1).gb" size 32768 crc 46df91ad md5 ... sha1 ... )
    )

Block bodies are ``key value`` lines; the ``rom`` line is a single-line
block of inline ``key value`` attributes whose values may be quoted.
"""

from __future__ import annotations

import re
from pathlib import Path

from loguru import logger

from romkeeper.models.game_entry import GameEntry, normalize_hash

_HEADER_PATTERN = re.compile(r"^\s*clrmamepro\s*\((.*?)\n\s*\)", re.DOTALL | re.MULTILINE)
# A game block ends at the first line consisting of a lone ")"
_GAME_PATTERN = re.compile(r"^\s*(?:game|machine)\s*\((.*?)\n\s*\)", re.DOTALL | re.MULTILINE)
_ROM_START_PATTERN = re.compile(r"^\s*rom\s*\(", re.MULTILINE)
_FIELD_PATTERN = re.compile(r"^\s*(\w+)\s+(.+?)\s*$")
_REGION_PATTERN = re.compile(r"\(([^)]+)\)")

# Header keyword → source family
_SOURCE_MARKERS: list[tuple[str, str]] = [
    ("no-intro", "no-intro"),
    ("nointro", "no-intro"),
    ("redump", "redump"),
    ("tosec", "tosec"),
    ("gametdb", "gametdb"),
]


def extract_region(game_name: str) -> str:
    """First token of the first parenthesized clause in a game name.

    "Sonic (USA, Europe) (Rev 1)" → "USA"
    """
    m = _REGION_PATTERN.search(game_name)
    if not m:
        return ""
    return m.group(1).split(",")[0].strip()


def detect_source(header: dict[str, str]) -> str:
    """Guess which catalog family produced a DAT from its header."""
    text = f"{header.get('name', '')} {header.get('description', '')} {header.get('homepage', '')}".lower()
    for marker, family in _SOURCE_MARKERS:
        if marker in text:
            return family
    return "unknown"


def _unquote(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1].replace('\\"', '"')
    return value


def parse_block_fields(body: str) -> dict[str, str]:
    """Parse a multi-line block body of ``key value`` lines.

    Nested single-line blocks (``rom ( ... )``) are not fields and are skipped.
    The first occurrence of a key wins.
    """
    fields: dict[str, str] = {}
    for line in body.splitlines():
        m = _FIELD_PATTERN.match(line)
        if not m:
            continue
        key, value = m.groups()
        if value.startswith("("):
            continue
        fields.setdefault(key.lower(), _unquote(value))
    return fields


def find_rom_block(body: str) -> str | None:
    """Return the text between ``rom (`` and its matching ``)``.

    Parentheses inside double-quoted values do not count towards depth.
    """
    m = _ROM_START_PATTERN.search(body)
    if not m:
        return None

    depth = 1
    in_quotes = False
    escaped = False
    for i in range(m.end(), len(body)):
        ch = body[i]
        if escaped:
            escaped = False
        elif in_quotes and ch == "\\":
            escaped = True
        elif ch == '"':
            in_quotes = not in_quotes
        elif in_quotes:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return body[m.end() : i]
    return None


def parse_inline_attributes(text: str) -> dict[str, str]:
    """Tokenize ``key value key "quoted value" ...`` into a dict."""
    attrs: dict[str, str] = {}
    i = 0
    n = len(text)
    while i < n:
        # Whitespace between tokens
        while i < n and text[i].isspace():
            i += 1

        # Key
        start = i
        while i < n and (text[i].isalnum() or text[i] == "_"):
            i += 1
        key = text[start:i]
        if not key:
            i += 1
            continue

        while i < n and text[i].isspace():
            i += 1

        # Value: quoted (spaces kept) or bare token
        if i < n and text[i] == '"':
            i += 1
            chars: list[str] = []
            while i < n and text[i] != '"':
                if text[i] == "\\" and i + 1 < n and text[i + 1] == '"':
                    chars.append('"')
                    i += 2
                    continue
                chars.append(text[i])
                i += 1
            i += 1  # closing quote
            value = "".join(chars)
        else:
            start = i
            while i < n and not text[i].isspace():
                i += 1
            value = text[start:i]

        attrs.setdefault(key.lower(), value)
    return attrs


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


class DatParser:
    """
    Parser for ClrMamePro-format DAT files (No-Intro, Redump, TOSEC text exports).

    Never raises on unreadable files or malformed content: problems are logged
    and an empty result is returned.
    """

    def parse(self, path: Path) -> list[GameEntry]:
        """Parse every game block of a DAT file."""
        text = self._read(path)
        if text is None:
            return []
        entries = self.parse_content(text)
        logger.debug(f"Parsed {len(entries)} entries from {path.name}")
        return entries

    def parse_header(self, path: Path) -> dict[str, str]:
        """Parse only the ``clrmamepro ( ... )`` header block."""
        text = self._read(path)
        if text is None:
            return {}
        return self.parse_header_content(text)

    def parse_with_header(self, path: Path) -> tuple[dict[str, str], list[GameEntry]] | None:
        """Header and entries from a single read. None if the file is unreadable."""
        text = self._read(path)
        if text is None:
            return None
        return self.parse_header_content(text), self.parse_content(text)

    def parse_header_content(self, text: str) -> dict[str, str]:
        m = _HEADER_PATTERN.search(text)
        if not m:
            return {}
        return parse_block_fields(m.group(1))

    def parse_content(self, text: str) -> list[GameEntry]:
        entries: list[GameEntry] = []
        dropped = 0
        for m in _GAME_PATTERN.finditer(text):
            entry = self._build_entry(m.group(1))
            if entry is None:
                dropped += 1
                continue
            entries.append(entry)
        if dropped:
            logger.debug(f"Dropped {dropped} game blocks without a name or checksum")
        return entries

    # ── Internals ──

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Cannot read DAT file {path}: {e}")
            return None

    @staticmethod
    def _build_entry(body: str) -> GameEntry | None:
        fields = parse_block_fields(body)
        game_name = fields.get("name", "")

        rom_text = find_rom_block(body)
        rom = parse_inline_attributes(rom_text) if rom_text is not None else {}

        crc32 = normalize_hash(rom.get("crc", ""))
        md5 = normalize_hash(rom.get("md5", ""))
        sha1 = normalize_hash(rom.get("sha1", ""))
        if not game_name or not (crc32 or md5 or sha1):
            return None

        return GameEntry(
            game_name=game_name,
            rom_name=rom.get("name", ""),
            description=fields.get("description") or game_name,
            region=fields.get("region") or extract_region(game_name),
            size=_to_int(rom.get("size", "0")),
            crc32=crc32,
            md5=md5,
            sha1=sha1,
            serial=fields.get("serial") or rom.get("serial", ""),
        )
