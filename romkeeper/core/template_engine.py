"""Filename template engine: substitutes game metadata into naming templates."""

from __future__ import annotations

import re
from datetime import date

from romkeeper.models.game_metadata import GameMetadata
from romkeeper.utils import sanitize_component

# All template variables, with what they resolve to
TEMPLATE_VARIABLES: dict[str, str] = {
    "title": "Normalized title (leading article moved to the end)",
    "region": "Region",
    "languages": "Languages (reserved)",
    "version": "Revision (reserved)",
    "status": "Dump status (reserved)",
    "additional": "Additional flags (reserved)",
    "tags": "Bracket tags (reserved)",
    "disc": "Disc number, from the current filename",
    "year": "Release year",
    "publisher": "Publisher",
    "system": "System name",
    "ext": "Original extension, with leading dot",
    "id": "Provider-specific game id",
}

SIMPLE_TEMPLATE = "{title} ({region})"
NO_INTRO_TEMPLATE = "{title} ({region}) ({languages}) ({version}) ({status}) ({additional}) [{tags}]{ext}"
REDUMP_TEMPLATE = "{title} ({region}) ({version}) ({additional}) (Disc {disc}){ext}"

PRESET_TEMPLATES: dict[str, str] = {
    "simple": SIMPLE_TEMPLATE,
    "no-intro": NO_INTRO_TEMPLATE,
    "redump": REDUMP_TEMPLATE,
}

ARTICLES = ("The", "A", "An")

# Regex patterns for template parsing
_VAR_PATTERN = re.compile(r"\{([^{}]*)\}")
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ARTICLE_PATTERNS = [(article, re.compile(rf"^{article}\s+(.+)$", re.IGNORECASE)) for article in ARTICLES]
_DISC_PATTERN = re.compile(r"\bdisc(?:\s+|\s*\(\s*)(\d+)", re.IGNORECASE)

# Cleanup passes applied after substitution, in order
_EMPTY_PARENS = re.compile(r"\(\s*\)")
_EMPTY_BRACKETS = re.compile(r"\[\s*\]")
_MULTI_SPACE = re.compile(r" {2,}")
_SPACE_BEFORE_DOT = re.compile(r" +\.")

_SYMBOLS = str.maketrans({"™": None, "®": None, "©": None, "’": "'", "‘": "'", "“": '"', "”": '"'})


class InvalidTemplateError(ValueError):
    """Raised when a template fails validation."""


class TemplateEngine:
    """
    Turns metadata into normalized filenames.

    Template syntax is plain ``{variable}`` substitution over a closed set
    of variables (see TEMPLATE_VARIABLES). Literal ``/`` in a template
    creates sub-directories; separators inside values never do.

    Example:
      "{title} ({region}){ext}" with title "The Legend of Zelda", region "USA"
        → "Legend of Zelda, The (USA).nes"
    """

    def validate(self, template: str) -> bool:
        """Balanced braces and only known variables."""
        if not template.strip():
            return False
        if template.count("{") != template.count("}"):
            return False
        for name in _VAR_PATTERN.findall(template):
            if not _IDENTIFIER_PATTERN.match(name) or name not in TEMPLATE_VARIABLES:
                return False
        # Braces left after removing every {name} are stray or nested
        leftover = _VAR_PATTERN.sub("", template)
        return "{" not in leftover and "}" not in leftover

    def apply(self, template: str, metadata: GameMetadata, file_hints: dict[str, str] | None = None) -> str:
        """Render a template. Raises InvalidTemplateError for an invalid template."""
        if not self.validate(template):
            raise InvalidTemplateError(f"Invalid template: {template!r}")

        variables = self.build_variables(metadata, file_hints or {})

        def replace_match(match: re.Match[str]) -> str:
            return sanitize_component(variables.get(match.group(1), ""))

        return self.cleanup(_VAR_PATTERN.sub(replace_match, template))

    def build_variables(self, metadata: GameMetadata, file_hints: dict[str, str]) -> dict[str, str]:
        ext = file_hints.get("ext", "")
        if ext and not ext.startswith("."):
            ext = f".{ext}"
        return {
            "title": self.normalize_title(metadata.title),
            "region": metadata.region,
            "languages": "",
            "version": "",
            "status": "",
            "additional": "",
            "tags": "",
            "disc": file_hints.get("disc", ""),
            "year": _release_year(metadata.release_date),
            "publisher": metadata.publisher,
            "system": metadata.system,
            "ext": ext,
            "id": metadata.id,
        }

    @staticmethod
    def cleanup(name: str) -> str:
        """Drop empty () and [] groups and tidy whitespace."""
        name = _EMPTY_PARENS.sub("", name)
        name = _EMPTY_BRACKETS.sub("", name)
        name = _MULTI_SPACE.sub(" ", name)
        name = _SPACE_BEFORE_DOT.sub(".", name)
        return name.strip()

    # ── Static helpers ──

    @staticmethod
    def move_article_to_end(title: str) -> str:
        """'The Legend' → 'Legend, The'. Only a leading article moves."""
        for article, pattern in _ARTICLE_PATTERNS:
            m = pattern.match(title)
            if m:
                return f"{m.group(1)}, {article}"
        return title

    @staticmethod
    def normalize_title(title: str) -> str:
        title = TemplateEngine.move_article_to_end(title.strip())
        return title.translate(_SYMBOLS).strip()

    @staticmethod
    def extract_disc_number(filename: str) -> int:
        """'Game (Disc 2).cue' → 2. Returns 0 when the name carries no disc number."""
        m = _DISC_PATTERN.search(filename)
        return int(m.group(1)) if m else 0


def _release_year(release_date: str) -> str:
    if not release_date:
        return ""
    try:
        return str(date.fromisoformat(release_date[:10]).year)
    except ValueError:
        return ""
