"""Tests for the filename TemplateEngine."""

from __future__ import annotations

import pytest

from romkeeper.core.template_engine import (
    NO_INTRO_TEMPLATE,
    PRESET_TEMPLATES,
    REDUMP_TEMPLATE,
    SIMPLE_TEMPLATE,
    InvalidTemplateError,
    TemplateEngine,
)
from romkeeper.models.game_metadata import GameMetadata


@pytest.fixture
def engine() -> TemplateEngine:
    return TemplateEngine()


@pytest.fixture
def zelda() -> GameMetadata:
    return GameMetadata(
        id="3FE272FB",
        title="The Legend of Zelda",
        region="USA",
        publisher="Nintendo",
        system="Nintendo - NES",
        release_date="1987-08-22",
    )


class TestApply:
    def test_title_region_ext(self, engine: TemplateEngine, zelda: GameMetadata) -> None:
        result = engine.apply("{title} ({region}){ext}", zelda, {"ext": ".nes"})
        assert result == "Legend of Zelda, The (USA).nes"

    def test_ext_gets_leading_dot(self, engine: TemplateEngine, zelda: GameMetadata) -> None:
        assert engine.apply("{title}{ext}", zelda, {"ext": "nes"}) == "Legend of Zelda, The.nes"

    def test_year_publisher_system_id(self, engine: TemplateEngine, zelda: GameMetadata) -> None:
        result = engine.apply("{system}/{publisher}/{title} [{year}] {id}", zelda)
        assert result == "Nintendo - NES/Nintendo/Legend of Zelda, The [1987] 3FE272FB"

    def test_invalid_date_gives_empty_year(self, engine: TemplateEngine) -> None:
        meta = GameMetadata(title="Game", release_date="sometime")
        assert engine.apply("{title} ({year})", meta) == "Game"

    def test_reserved_variables_empty(self, engine: TemplateEngine, zelda: GameMetadata) -> None:
        result = engine.apply(NO_INTRO_TEMPLATE, zelda, {"ext": ".nes"})
        assert result == "Legend of Zelda, The (USA).nes"

    def test_redump_disc(self, engine: TemplateEngine) -> None:
        meta = GameMetadata(title="Final Fantasy VII", region="Europe")
        result = engine.apply(REDUMP_TEMPLATE, meta, {"ext": ".cue", "disc": "2"})
        assert result == "Final Fantasy VII (Europe) (Disc 2).cue"

    def test_simple_without_region(self, engine: TemplateEngine) -> None:
        assert engine.apply(SIMPLE_TEMPLATE, GameMetadata(title="Tetris")) == "Tetris"

    def test_cleanup(self, engine: TemplateEngine) -> None:
        meta = GameMetadata(title="Pong")
        assert engine.apply("  {title}   ( ) [ ] ({region})  .bin", meta) == "Pong.bin"

    def test_separators_in_values_are_neutralized(self, engine: TemplateEngine) -> None:
        meta = GameMetadata(title="AC/DC Live", region="USA\\Canada")
        assert engine.apply("{title} ({region})", meta) == "AC-DC Live (USA-Canada)"

    def test_invalid_template_raises(self, engine: TemplateEngine, zelda: GameMetadata) -> None:
        with pytest.raises(InvalidTemplateError):
            engine.apply("{title} {bogus}", zelda)


class TestValidate:
    @pytest.mark.parametrize("template", [SIMPLE_TEMPLATE, NO_INTRO_TEMPLATE, REDUMP_TEMPLATE, "{system}/{title}{ext}"])
    def test_valid(self, engine: TemplateEngine, template: str) -> None:
        assert engine.validate(template)

    @pytest.mark.parametrize(
        "template",
        [
            "{title} {unknown}",
            "{title",
            "title}",
            "{{title}}",
            "{}",
            "{ title }",
            "",
        ],
    )
    def test_invalid(self, engine: TemplateEngine, template: str) -> None:
        assert not engine.validate(template)

    def test_presets_registered(self) -> None:
        assert set(PRESET_TEMPLATES) == {"simple", "no-intro", "redump"}


class TestNormalizeTitle:
    @pytest.mark.parametrize(
        "title, expected",
        [
            ("The Legend", "Legend, The"),
            ("THE LEGEND", "LEGEND, The"),
            ("A Boy and His Blob", "Boy and His Blob, A"),
            ("An American Tail", "American Tail, An"),
            ("Legend of The Dragons", "Legend of The Dragons"),
            ("Theme Park", "Theme Park"),
            ("  Tetris  ", "Tetris"),
            ("Pokémon™ Red®", "Pokémon Red"),
            ("Assassin’s “Creed”©", "Assassin's \"Creed\""),
        ],
    )
    def test_normalize(self, title: str, expected: str) -> None:
        assert TemplateEngine.normalize_title(title) == expected


class TestDiscNumber:
    @pytest.mark.parametrize(
        "filename, disc",
        [
            ("Final Fantasy VII (Europe) (Disc 2).cue", 2),
            ("game disc 05.bin", 5),
            ("Game (DISC 3).chd", 3),
            ("Game Disc (4).iso", 4),
            ("Discworld (Europe).cue", 0),
            ("Tetris.gb", 0),
        ],
    )
    def test_extract(self, filename: str, disc: int) -> None:
        assert TemplateEngine.extract_disc_number(filename) == disc
