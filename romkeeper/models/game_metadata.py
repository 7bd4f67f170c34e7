"""Provider-neutral game metadata models."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GameMetadata:
    """Metadata for one game, as supplied by any MetadataProvider."""

    id: str = ""
    title: str = ""
    system: str = ""
    region: str = ""
    publisher: str = ""
    developer: str = ""
    release_date: str = ""  # ISO-8601
    description: str = ""
    genres: list[str] = field(default_factory=list)
    players: int = 0
    rating: float = 0.0
    external_ids: dict[str, str] = field(default_factory=dict)
    provider: str = ""
    fetched_at: str = ""
    match_score: float = 0.0
    match_method: str = ""  # hash / serial / name / fuzzy


@dataclass
class SearchResult:
    """One hit of a name search."""

    id: str
    title: str
    system: str = ""
    region: str = ""
    release_year: int = 0
    match_score: float = 0.0
    provider: str = ""


@dataclass
class ArtworkUrls:
    """Artwork locations for a game. Empty strings when unknown."""

    box_front: str = ""
    box_back: str = ""
    screenshot: str = ""
    title_screen: str = ""
    banner: str = ""
    logo: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(vars(self).values())
