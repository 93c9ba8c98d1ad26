"""Standalone HTML pages that render a mindmap in the browser."""

import html
import json
from typing import Any

MARKMAP_VERSION = "0.17.0"

_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    * {{ margin: 0; padding: 0; box-sizing: border-box; }}
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      background: #f5f5f5;
      display: flex;
      flex-direction: column;
      min-height: 100vh;
    }}
    header {{
      padding: 12px 24px;
      background: #fff;
      width: 100%;
      border-bottom: 1px solid #e0e0e0;
      text-align: center;
    }}
    header h1 {{ font-size: 1.1rem; color: #333; }}
    #markmap {{
      flex: 1;
      width: 100%;
      min-height: calc(100vh - 52px);
      background: {background};
    }}
  </style>
</head>
<body>
  <header>
    <h1>{title}</h1>
  </header>
  <svg id="markmap"></svg>

  <script src="https://cdn.jsdelivr.net/npm/d3@7"></script>
  <script src="https://cdn.jsdelivr.net/npm/markmap-lib@{version}/dist/browser/index.js"></script>
  <script src="https://cdn.jsdelivr.net/npm/markmap-view@{version}/dist/browser/index.js"></script>
  <script>
    const md = {markdown};
    const jsonOptions = {options};
    const {{ Transformer, Markmap, deriveOptions }} = markmap;
    const transformer = new Transformer();
    const {{ root }} = transformer.transform(md);
    const svg = document.getElementById('markmap');
    Markmap.create(svg, Object.assign(deriveOptions(jsonOptions), {{ autoFit: true }}), root);
  </script>
</body>
</html>
"""


def _script_literal(value: Any) -> str:
    """Encode a value as a JavaScript literal that is safe inside <script>."""
    return (
        json.dumps(value, ensure_ascii=False)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def generate_html(
    markdown: str,
    title: str,
    *,
    options: dict[str, Any] | None = None,
    background: str = "#ffffff",
) -> str:
    """Build an HTML page that lays out ``markdown`` client-side.

    The Markdown is embedded as a JSON string literal and rendered by
    markmap-lib/markmap-view loaded from a CDN; ``options`` are the engine's
    JSON options (e.g. ``color``, ``colorFreezeLevel``).
    """
    return _TEMPLATE.format(
        title=html.escape(title),
        version=MARKMAP_VERSION,
        markdown=_script_literal(markdown),
        options=_script_literal(options or {}),
        background=html.escape(background),
    )
