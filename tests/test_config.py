"""Tests for the Config system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from romkeeper.config import Config, get_config, reset_config
from romkeeper.core.template_engine import NO_INTRO_TEMPLATE
from romkeeper.models.file_record import CollisionStrategy, FileOperation


@pytest.fixture(autouse=True)
def _clean_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(config_dir=tmp_path)


class TestConfig:
    def test_default_values(self, config: Config, tmp_path: Path) -> None:
        assert config.databases_dir == tmp_path / "databases"
        assert config.dat_extension == ".dat"
        assert config.organize_template == NO_INTRO_TEMPLATE
        assert config.collision_strategy is CollisionStrategy.RENAME
        assert config.operation is FileOperation.MOVE
        assert config.dry_run is False
        assert config.min_confidence == 50
        assert config.log_dir == tmp_path / "logs"

    def test_set_and_get(self, config: Config) -> None:
        config.set("organize.dry_run", True)
        assert config.get("organize.dry_run") is True
        assert config.get("organize.missing", "fallback") == "fallback"

    def test_batch_update_single_write(self, config: Config, tmp_path: Path) -> None:
        with config.batch_update():
            config.collision_strategy = CollisionStrategy.SKIP
            config.databases_dir = Path("/dats")
            assert not (tmp_path / "config.json").exists()
        saved = json.loads((tmp_path / "config.json").read_text(encoding="utf-8"))
        assert saved["organize"]["collision_strategy"] == "skip"
        assert saved["databases_dir"] == str(Path("/dats"))

    def test_user_values_merged_over_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "config.json").write_text(
            json.dumps({"organize": {"template": "{title}{ext}"}}), encoding="utf-8"
        )
        config = Config(config_dir=tmp_path)
        assert config.organize_template == "{title}{ext}"
        assert config.get("organize.collision_strategy") == "rename"

    def test_corrupt_file_uses_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "config.json").write_text("{broken", encoding="utf-8")
        assert Config(config_dir=tmp_path).min_confidence == 50

    def test_unknown_enum_values_fall_back(self, config: Config) -> None:
        config.set("organize.collision_strategy", "explode")
        config.set("organize.operation", "teleport")
        assert config.collision_strategy is CollisionStrategy.RENAME
        assert config.operation is FileOperation.MOVE

    def test_file_logging_disabled(self, config: Config) -> None:
        config.set("log_to_file", False)
        assert config.log_dir is None

    def test_singleton(self) -> None:
        assert get_config() is get_config()
