"""Validate render requests and delegate them to the render engine."""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger

from markmap_store.config import DEFAULT_RENDER_TIMEOUT
from markmap_store.core.render.themes import PaletteDecision, RenderParams, decide_palette
from markmap_store.errors import MarkmapError, RenderError, ValidationError
from markmap_store.protocols import RendererProtocol

# name -> (expected type, minimum value or None)
_OPTION_SPECS: dict[str, tuple[type, int | None]] = {
    "color_freeze_level": (int, 0),
    "duration": (int, 0),
    "max_width": (int, 0),
    "initial_expand_level": (int, -1),
    "spacing_horizontal": (int, 1),
    "spacing_vertical": (int, 1),
    "zoom": (bool, None),
    "pan": (bool, None),
}


@dataclass(frozen=True)
class RenderResult:
    """Graphic markup plus the parameters it was drawn with."""

    svg: str
    params: RenderParams
    decision: PaletteDecision


def validate_options(options: Mapping[str, Any] | None) -> dict[str, Any]:
    """Check render options against the supported names and ranges.

    Raises:
        ValidationError: On an unknown name or a value of the wrong type/range.
    """
    if not options:
        return {}
    if not isinstance(options, Mapping):
        msg = "options must be an object"
        raise ValidationError(msg)

    checked: dict[str, Any] = {}
    for name, value in options.items():
        spec = _OPTION_SPECS.get(name)
        if spec is None:
            msg = f"Unknown render option {name!r}. Supported: {', '.join(sorted(_OPTION_SPECS))}"
            raise ValidationError(msg)
        expected, minimum = spec
        # bool is an int subclass; keep the two apart.
        if expected is int and (isinstance(value, bool) or not isinstance(value, int)):
            msg = f"Render option {name!r} must be an integer, got {value!r}"
            raise ValidationError(msg)
        if expected is bool and not isinstance(value, bool):
            msg = f"Render option {name!r} must be true or false, got {value!r}"
            raise ValidationError(msg)
        if minimum is not None and value < minimum:
            msg = f"Render option {name!r} must be >= {minimum}, got {value!r}"
            raise ValidationError(msg)
        checked[name] = value
    return checked


def build_render_params(
    decision: PaletteDecision, options: Mapping[str, Any] | None = None
) -> RenderParams:
    """Translate a palette decision and options into engine parameters."""
    theme = decision.theme
    params = RenderParams(
        palette=decision.colors,
        color_freeze_level=theme.color_freeze_level,
        spacing_horizontal=theme.spacing_horizontal,
        spacing_vertical=theme.spacing_vertical,
        background=theme.background,
        text_color=theme.text_color,
    )
    checked = validate_options(options)
    return replace(params, **checked) if checked else params


async def render_markdown(
    markdown: str,
    renderer: RendererProtocol,
    *,
    theme: str | None = None,
    colors: Sequence[str] | None = None,
    options: Mapping[str, Any] | None = None,
    timeout: float = DEFAULT_RENDER_TIMEOUT,
) -> RenderResult:
    """Validate parameters, then render under a deadline.

    Validation failures raise before the engine is called. The engine runs
    in a worker thread; exceeding ``timeout`` seconds or any engine fault is
    reported as RenderError.
    """
    decision = decide_palette(theme, colors)
    params = build_render_params(decision, options)

    logger.debug(
        "Rendering {} chars (palette source {}, theme {})",
        len(markdown),
        decision.source,
        decision.theme.name,
    )
    try:
        svg = await asyncio.wait_for(
            asyncio.to_thread(renderer.transform, markdown, params), timeout=timeout
        )
    except TimeoutError as e:
        msg = f"Render engine did not finish within {timeout:g}s"
        raise RenderError(msg) from e
    except MarkmapError:
        raise
    except Exception as e:
        msg = f"Render engine failed: {e}"
        raise RenderError(msg) from e
    return RenderResult(svg=svg, params=params, decision=decision)
