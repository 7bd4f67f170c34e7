"""Application configuration: JSON file merged over defaults, with batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from romkeeper.core.template_engine import NO_INTRO_TEMPLATE
from romkeeper.models.file_record import CollisionStrategy, FileOperation

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / "Documents" / "RomKeeper"


def get_config() -> Config:
    """Module-level factory: single global Config instance."""
    global _instance
    if _instance is None:
        _instance = Config()
    return _instance


def reset_config() -> None:
    """Reset the global config instance (for testing)."""
    global _instance
    _instance = None


class Config:
    """JSON-based application configuration."""

    _DEFAULTS: dict[str, Any] = {
        "databases_dir": "",
        "dat_extension": ".dat",
        "log_to_file": True,
        # Organize
        "organize": {
            "template": NO_INTRO_TEMPLATE,
            "collision_strategy": "rename",
            "operation": "move",
            "dry_run": False,
            "destination": "",
        },
        # Matching
        "match": {
            "min_confidence": 50,
        },
    }

    def __init__(self, config_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = config_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))  # deep copy defaults
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        """Recursively merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        """Persist config to disk."""
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Context manager for batching multiple config changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def databases_dir(self) -> Path:
        raw = self._data.get("databases_dir", "")
        return Path(raw) if raw else self._dir / "databases"

    @databases_dir.setter
    def databases_dir(self, value: Path | None) -> None:
        self.set("databases_dir", str(value) if value else "")

    @property
    def dat_extension(self) -> str:
        return self._data.get("dat_extension", ".dat")

    @property
    def log_dir(self) -> Path | None:
        return self._dir / "logs" if self._data.get("log_to_file", True) else None

    @property
    def organize_template(self) -> str:
        return self.get("organize.template", NO_INTRO_TEMPLATE)

    @organize_template.setter
    def organize_template(self, value: str) -> None:
        self.set("organize.template", value)

    @property
    def collision_strategy(self) -> CollisionStrategy:
        raw = self.get("organize.collision_strategy", "rename")
        try:
            return CollisionStrategy(raw)
        except ValueError:
            logger.warning(f"Unknown collision strategy '{raw}', using rename")
            return CollisionStrategy.RENAME

    @collision_strategy.setter
    def collision_strategy(self, value: CollisionStrategy) -> None:
        self.set("organize.collision_strategy", str(value))

    @property
    def operation(self) -> FileOperation:
        raw = self.get("organize.operation", "move")
        try:
            return FileOperation(raw)
        except ValueError:
            logger.warning(f"Unknown organize operation '{raw}', using move")
            return FileOperation.MOVE

    @property
    def dry_run(self) -> bool:
        return bool(self.get("organize.dry_run", False))

    @dry_run.setter
    def dry_run(self, value: bool) -> None:
        self.set("organize.dry_run", value)

    @property
    def destination(self) -> Path | None:
        raw = self.get("organize.destination", "")
        return Path(raw) if raw else None

    @property
    def min_confidence(self) -> int:
        return int(self.get("match.min_confidence", 50))
