"""Theme presets and the palette precedence rule.

A render request may name a theme, give an explicit color list, or both.
The outcome is one of three tagged decisions:

- ``ThemePalette``: theme only; colors and layout come from the theme.
- ``CustomPalette``: colors only; layout comes from the default theme.
- ``MixedPalette``: both; colors come from the list, layout from the theme.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from markmap_store.errors import ValidationError

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


@dataclass(frozen=True)
class Theme:
    """A named palette plus layout-density preset."""

    name: str
    palette: tuple[str, ...]
    color_freeze_level: int
    spacing_horizontal: int
    spacing_vertical: int
    background: str
    text_color: str


THEMES: dict[str, Theme] = {
    "default": Theme(
        name="default",
        palette=(
            "#1f77b4",
            "#ff7f0e",
            "#2ca02c",
            "#d62728",
            "#9467bd",
            "#8c564b",
            "#e377c2",
            "#7f7f7f",
            "#bcbd22",
            "#17becf",
        ),
        color_freeze_level=6,
        spacing_horizontal=80,
        spacing_vertical=5,
        background="#ffffff",
        text_color="#333333",
    ),
    "dark": Theme(
        name="dark",
        palette=(
            "#8dd3c7",
            "#ffffb3",
            "#bebada",
            "#fb8072",
            "#80b1d3",
            "#fdb462",
            "#b3de69",
            "#fccde5",
        ),
        color_freeze_level=6,
        spacing_horizontal=80,
        spacing_vertical=5,
        background="#1e1e1e",
        text_color="#e0e0e0",
    ),
    "colorful": Theme(
        name="colorful",
        palette=(
            "#e41a1c",
            "#377eb8",
            "#4daf4a",
            "#984ea3",
            "#ff7f00",
            "#ffd92f",
            "#a65628",
            "#f781bf",
            "#00bcd4",
        ),
        color_freeze_level=3,
        spacing_horizontal=100,
        spacing_vertical=8,
        background="#ffffff",
        text_color="#222222",
    ),
    "minimal": Theme(
        name="minimal",
        palette=("#555555", "#888888", "#bbbbbb"),
        color_freeze_level=2,
        spacing_horizontal=60,
        spacing_vertical=4,
        background="#ffffff",
        text_color="#444444",
    ),
}

DEFAULT_THEME = THEMES["default"]


@dataclass(frozen=True)
class ThemePalette:
    theme: Theme
    source: Literal["theme"] = "theme"

    @property
    def colors(self) -> tuple[str, ...]:
        return self.theme.palette


@dataclass(frozen=True)
class CustomPalette:
    colors: tuple[str, ...]
    theme: Theme = DEFAULT_THEME
    source: Literal["custom"] = "custom"


@dataclass(frozen=True)
class MixedPalette:
    theme: Theme
    colors: tuple[str, ...]
    source: Literal["mixed"] = "mixed"


PaletteDecision = ThemePalette | CustomPalette | MixedPalette


def get_theme(name: str) -> Theme:
    """Look up a theme by name.

    Raises:
        ValidationError: If the name is not a known theme.
    """
    theme = THEMES.get(name) if isinstance(name, str) else None
    if theme is None:
        msg = f"Invalid theme {name!r}. Valid themes: {', '.join(THEMES)}"
        raise ValidationError(msg)
    return theme


def validate_colors(colors: Sequence[str]) -> tuple[str, ...]:
    """Check every entry is a ``#RRGGBB`` string.

    Raises:
        ValidationError: On an empty list or the first malformed entry.
    """
    if isinstance(colors, str) or not colors:
        msg = "color_scheme must be a non-empty list of #RRGGBB colors"
        raise ValidationError(msg)
    for i, color in enumerate(colors):
        if not isinstance(color, str) or not HEX_COLOR.fullmatch(color):
            msg = f"Invalid hex color at index {i}: {color!r}. Use format #RRGGBB"
            raise ValidationError(msg)
    return tuple(colors)


def decide_palette(
    theme: str | None = None, colors: Sequence[str] | None = None
) -> PaletteDecision:
    """Validate the request and pick the palette decision."""
    chosen = get_theme(theme) if theme is not None else None
    custom = validate_colors(colors) if colors is not None else None

    if custom is None:
        return ThemePalette(theme=chosen or DEFAULT_THEME)
    if chosen is None:
        return CustomPalette(colors=custom)
    return MixedPalette(theme=chosen, colors=custom)


@dataclass(frozen=True)
class RenderParams:
    """Engine parameters after validation and translation."""

    palette: tuple[str, ...]
    color_freeze_level: int
    spacing_horizontal: int
    spacing_vertical: int
    background: str
    text_color: str
    max_width: int = 0
    duration: int = 500
    initial_expand_level: int = -1
    zoom: bool = True
    pan: bool = True

    def to_engine_options(self) -> dict[str, Any]:
        """Return the options in the engine's own (camelCase) naming."""
        return {
            "color": list(self.palette),
            "colorFreezeLevel": self.color_freeze_level,
            "duration": self.duration,
            "maxWidth": self.max_width,
            "initialExpandLevel": self.initial_expand_level,
            "spacingHorizontal": self.spacing_horizontal,
            "spacingVertical": self.spacing_vertical,
            "zoom": self.zoom,
            "pan": self.pan,
        }
