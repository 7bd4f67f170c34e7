"""Tests for the offline LocalDatabaseProvider."""

from __future__ import annotations

from pathlib import Path

import pytest

from romkeeper.core.hash_index import HashIndex
from romkeeper.models.match import ObservedSignals
from romkeeper.providers.base import MetadataProvider
from romkeeper.providers.local_database import LocalDatabaseProvider, clean_title

DAT = """\
clrmamepro (
\tname "Sega - Mega Drive - Genesis"
\tversion 20240315-101010
)

game (
\tname "Sonic the Hedgehog (USA, Europe)"
\tdescription "Sonic the Hedgehog (USA, Europe)"
\trom ( name "Sonic the Hedgehog (USA, Europe).md" size 524288 crc F9394E97 md5 1BC674BE034E43C96B86487AC69D9293 serial "MK-1009 -00" )
)

game (
\tname "Sonic the Hedgehog 2 (World)"
\trom ( name "Sonic the Hedgehog 2 (World).md" size 1048576 crc 24AB4C3A )
)

game (
\tname "Sonic (Japan)"
\trom ( name "Sonic (Japan).md" size 524288 crc AFE05EEE )
)

game (
\tname "Streets of Rage (World)"
\trom ( name "Streets of Rage (World).md" size 524288 crc 4AB3C7B3 )
)
"""


@pytest.fixture
def provider(tmp_path: Path) -> LocalDatabaseProvider:
    path = tmp_path / "megadrive.dat"
    path.write_text(DAT, encoding="utf-8")
    index = HashIndex()
    index.load_source(path)
    return LocalDatabaseProvider(index)


class TestLookup:
    def test_is_a_metadata_provider(self, provider: LocalDatabaseProvider) -> None:
        assert isinstance(provider, MetadataProvider)
        assert provider.name == "local"
        assert not provider.requires_auth

    def test_get_by_hash_crc(self, provider: LocalDatabaseProvider) -> None:
        meta = provider.get_by_hash("f9394e97")
        assert meta is not None
        assert meta.title == "Sonic the Hedgehog"
        assert meta.region == "USA"
        assert meta.system == "Sega - Mega Drive - Genesis"
        assert meta.external_ids["serial"] == "MK-1009 -00"
        assert meta.match_method == "hash"
        assert meta.provider == "local"

    def test_get_by_hash_md5(self, provider: LocalDatabaseProvider) -> None:
        meta = provider.get_by_hash("1BC674BE034E43C96B86487AC69D9293")
        assert meta is not None
        assert meta.id == "F9394E97"

    def test_get_by_hash_system_filter(self, provider: LocalDatabaseProvider) -> None:
        assert provider.get_by_hash("F9394E97", system="megadrive") is not None
        assert provider.get_by_hash("F9394E97", system="snes") is None

    def test_get_by_id_and_unknown(self, provider: LocalDatabaseProvider) -> None:
        assert provider.get_by_id("24AB4C3A").title == "Sonic the Hedgehog 2"
        assert provider.get_by_id("00000000") is None
        assert provider.get_by_id("not-a-hash") is None

    def test_artwork_empty(self, provider: LocalDatabaseProvider) -> None:
        assert provider.get_artwork("F9394E97").is_empty


class TestSearch:
    def test_scores_and_order(self, provider: LocalDatabaseProvider) -> None:
        results = provider.search_by_name("sonic")
        scores = {r.title: r.match_score for r in results}
        assert scores == {
            "Sonic (Japan)": 1.0,
            "Sonic the Hedgehog (USA, Europe)": 0.9,
            "Sonic the Hedgehog 2 (World)": 0.9,
        }
        assert results[0].title == "Sonic (Japan)"

    def test_contains(self, provider: LocalDatabaseProvider) -> None:
        results = provider.search_by_name("of rage")
        assert [(r.title, r.match_score) for r in results] == [("Streets of Rage (World)", 0.7)]

    def test_region_filter(self, provider: LocalDatabaseProvider) -> None:
        results = provider.search_by_name("sonic", region="japan")
        assert [r.title for r in results] == ["Sonic (Japan)"]

    def test_empty_query(self, provider: LocalDatabaseProvider) -> None:
        assert provider.search_by_name("  ") == []


class TestMatching:
    def test_metadata_for_candidate(self, provider: LocalDatabaseProvider) -> None:
        candidates = provider.match(ObservedSignals("Sonic the Hedgehog (USA, Europe).md", 524288, crc32="F9394E97"))
        meta = provider.metadata_for(candidates[0])
        assert meta.title == "Sonic the Hedgehog"
        assert meta.match_score == 0.9
        assert meta.match_method == "hash"

    def test_fuzzy_candidate(self, provider: LocalDatabaseProvider) -> None:
        candidates = provider.match(ObservedSignals("Streets of Rage (World).bin", 524288))
        meta = provider.metadata_for(candidates[0])
        assert meta.match_method == "fuzzy"
        assert meta.match_score == 0.4


@pytest.mark.parametrize(
    "name, title",
    [
        ("Sonic the Hedgehog (USA, Europe) (Rev 1)", "Sonic the Hedgehog"),
        ("Tetris", "Tetris"),
        ("(Prototype)", "(Prototype)"),
    ],
)
def test_clean_title(name: str, title: str) -> None:
    assert clean_title(name) == title
