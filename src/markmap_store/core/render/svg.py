"""Built-in render engine: a static, left-to-right SVG mindmap.

This is the engine used when no other ``RendererProtocol`` implementation is
injected. It has no layout engine of its own beyond a simple tidy-tree pass:
leaves get consecutive rows, parents are centered on their children, and
columns are as wide as their widest label.
"""

import html
import re
from dataclasses import dataclass, field

from markmap_store.core.render.themes import RenderParams
from markmap_store.core.tree.extractor import parse_markdown
from markmap_store.models.node import Node

CHAR_WIDTH = 7
FONT_SIZE = 14
ROW_HEIGHT = 20
PADDING = 16
DEFAULT_LABEL_WIDTH = 320

_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_MARKUP = re.compile(r"\*\*|__|~~|`|(?<!\w)[*_](?=\S)|(?<=\S)[*_](?!\w)")


@dataclass
class _Box:
    node: Node
    depth: int
    color: str
    label: str
    width: int
    x: float = 0.0
    y: float = 0.0
    children: list["_Box"] = field(default_factory=list)


def plain_label(text: str) -> str:
    """Strip inline Markdown markup from a node label."""
    return _MARKUP.sub("", _LINK.sub(r"\1", text)).strip()


class SvgRenderer:
    """Render Markdown to a standalone SVG document."""

    def transform(self, markdown: str, params: RenderParams) -> str:
        root, _stats = parse_markdown(markdown)
        boxes = self._build(root, params)
        rows = self._place_rows(boxes, params)
        columns = self._place_columns(boxes, params)

        width = int(columns + 2 * PADDING)
        height = int(rows * (ROW_HEIGHT + params.spacing_vertical) + 2 * PADDING)
        out = [
            f'<svg xmlns="http://www.w3.org/2000/svg" class="markmap" '
            f'width="{width}" height="{height}" viewBox="0 0 {width} {height}">',
            f'<rect width="100%" height="100%" fill="{params.background}"/>',
            f'<g font-family="sans-serif" font-size="{FONT_SIZE}" fill="{params.text_color}" '
            f'transform="translate({PADDING},{PADDING})">',
        ]
        for box in boxes:
            self._draw(box, out)
        out.append("</g>")
        out.append("</svg>")
        return "\n".join(out)

    def _label_width(self, label: str, params: RenderParams) -> int:
        width = len(label) * CHAR_WIDTH + 8
        limit = params.max_width or DEFAULT_LABEL_WIDTH
        return min(width, limit)

    def _build(self, root: Node, params: RenderParams) -> list[_Box]:
        palette = params.palette or ("#333333",)
        counter = 0

        def visit(node: Node, depth: int, inherited: str | None) -> _Box:
            nonlocal counter
            if inherited is None or depth <= params.color_freeze_level:
                color = palette[counter % len(palette)]
                counter += 1
            else:
                color = inherited
            label = plain_label(node.text)
            box = _Box(node, depth, color, label, self._label_width(label, params))
            expand = params.initial_expand_level
            if expand < 0 or depth < expand:
                box.children = [visit(c, depth + 1, color) for c in node.children]
            return box

        return [visit(n, 1, None) for n in root.children]

    def _place_rows(self, boxes: list[_Box], params: RenderParams) -> int:
        """Assign y coordinates; return the number of rows used."""
        step = ROW_HEIGHT + params.spacing_vertical
        row = 0

        def place(box: _Box) -> None:
            nonlocal row
            for child in box.children:
                place(child)
            if box.children:
                box.y = (box.children[0].y + box.children[-1].y) / 2
            else:
                box.y = row * step + ROW_HEIGHT / 2
                row += 1

        for box in boxes:
            place(box)
        return row

    def _place_columns(self, boxes: list[_Box], params: RenderParams) -> float:
        """Assign x coordinates by depth; return the total width."""
        widths: dict[int, int] = {}
        stack = list(boxes)
        while stack:
            box = stack.pop()
            widths[box.depth] = max(widths.get(box.depth, 0), box.width)
            stack.extend(box.children)

        offsets: dict[int, float] = {}
        x = 0.0
        for depth in sorted(widths):
            offsets[depth] = x
            x += widths[depth] + params.spacing_horizontal

        stack = list(boxes)
        while stack:
            box = stack.pop()
            box.x = offsets[box.depth]
            stack.extend(box.children)
        return x - params.spacing_horizontal if widths else 0.0

    def _draw(self, box: _Box, out: list[str]) -> None:
        right = box.x + box.width
        underline = box.y + ROW_HEIGHT / 2 - 2
        for child in box.children:
            cx = child.x
            cy = child.y + ROW_HEIGHT / 2 - 2
            mid = (right + cx) / 2
            out.append(
                f'<path d="M{right:.1f},{underline:.1f} C{mid:.1f},{underline:.1f} '
                f'{mid:.1f},{cy:.1f} {cx:.1f},{cy:.1f}" fill="none" '
                f'stroke="{child.color}" stroke-width="1.5"/>'
            )
        out.append(
            f'<g class="markmap-node" data-depth="{box.depth}">'
            f'<line x1="{box.x:.1f}" y1="{underline:.1f}" x2="{right:.1f}" y2="{underline:.1f}" '
            f'stroke="{box.color}" stroke-width="2"/>'
            f'<text x="{box.x + 4:.1f}" y="{box.y + 4:.1f}">{html.escape(box.label)}</text>'
        )
        if box.node.children:
            fill = box.color if not box.children else "#ffffff"
            out.append(
                f'<circle cx="{right:.1f}" cy="{underline:.1f}" r="4" '
                f'stroke="{box.color}" stroke-width="1.5" fill="{fill}"/>'
            )
        out.append("</g>")
        for child in box.children:
            self._draw(child, out)
