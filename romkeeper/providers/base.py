"""Abstract base class for game metadata providers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from romkeeper.models.game_metadata import ArtworkUrls, GameMetadata, SearchResult


class MetadataProvider(ABC):
    """Abstract interface for a game metadata source (local DATs or online services)."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider (e.g. 'local')."""
        ...

    @property
    def requires_auth(self) -> bool:
        return False

    @abstractmethod
    def search_by_name(self, title: str, system: str = "", region: str = "") -> list[SearchResult]:
        """Search games by title, best matches first."""
        ...

    @abstractmethod
    def get_by_hash(self, hash_value: str, system: str = "") -> GameMetadata | None:
        """Look up a game by one of its checksums."""
        ...

    @abstractmethod
    def get_by_id(self, game_id: str) -> GameMetadata | None:
        """Fetch a game by its provider-specific ID."""
        ...

    def get_artwork(self, game_id: str) -> ArtworkUrls:
        """Artwork locations for a game. Optional."""
        return ArtworkUrls()
