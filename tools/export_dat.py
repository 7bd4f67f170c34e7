"""Export a ClrMamePro DAT file as a compact JSON lookup table.

Usage:
    python -m tools.export_dat <dat_file> [<output.json>]

Examples:
    python -m tools.export_dat "databases/Nintendo - Game Boy.dat"
    python -m tools.export_dat "databases/Sega - Mega Drive - Genesis.dat" genesis.json

When most ROMs carry a serial, keys are serial codes::

    {"AXVE": {"name": "Pokemon - Ruby Version", "region": "USA", "crc32": ["F0815EE7"]}}

Otherwise keys are CRC32 hashes::

    {"3577AB04": {"name": "'89 Dennou Kyuusei Uranai", "region": "Japan", "size": 131088}}

The output defaults to ``<dat_file stem>.json`` next to the DAT.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

from romkeeper.core.dat_parser import DatParser, detect_source
from romkeeper.models.game_entry import GameEntry
from romkeeper.providers.local_database import clean_title


def _valid_serial(serial: str) -> bool:
    return bool(serial) and not serial.startswith("!") and serial.lower() != "n/a"


def build_table(entries: list[GameEntry]) -> dict[str, dict]:
    """Key entries by serial when more than half have one, else by CRC32."""
    use_serial = sum(1 for e in entries if _valid_serial(e.serial)) > len(entries) * 0.5

    table: dict[str, dict] = {}
    for entry in entries:
        if use_serial and _valid_serial(entry.serial):
            key = entry.serial.upper()
            if key not in table:
                table[key] = {"name": clean_title(entry.game_name), "region": entry.region, "crc32": []}
            if entry.crc32 and entry.crc32 not in table[key]["crc32"]:
                table[key]["crc32"].append(entry.crc32)
        elif not use_serial and entry.crc32 and entry.crc32 not in table:
            table[entry.crc32] = {
                "name": clean_title(entry.game_name),
                "region": entry.region,
                "size": entry.size,
            }
    return table


def main() -> int:
    if len(sys.argv) not in (2, 3):
        print(__doc__)
        return 1

    dat_path = Path(sys.argv[1])
    if not dat_path.exists():
        print(f"Error: DAT file not found: {dat_path}")
        return 1
    out_path = Path(sys.argv[2]) if len(sys.argv) == 3 else dat_path.with_suffix(".json")

    parser = DatParser()
    header = parser.parse_header(dat_path)
    print(f"Parsing {dat_path.name} ({detect_source(header)}, version {header.get('version', '?')}) ...")
    entries = parser.parse(dat_path)
    table = build_table(entries)
    print(f"  Found {len(entries)} ROMs, {len(table)} keys")

    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(table, f, ensure_ascii=False, indent=2)
    print(f"  Written to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
