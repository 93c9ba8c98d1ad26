"""Extract a node tree and statistics from Markdown."""

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from markmap_store.config import MAX_DEPTH, MAX_NODE_COUNT
from markmap_store.errors import ResourceLimitError
from markmap_store.models.node import Node, StructureStats

_HEADING = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$")
_CLOSING_HASHES = re.compile(r"(?:^|[ \t]+)#+$")
_ESCAPED_PUNCT = re.compile(r"\\([!-/:-@\[-`{-~])")
_LIST_ITEM = re.compile(r"^( *)([-*+]|\d{1,9}[.)])[ \t]+(.*)$")
_TASK_BOX = re.compile(r"^\[[ xX]\][ \t]+")
_FENCE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_THEMATIC_BREAK = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_SETEXT_UNDERLINE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
_BLOCKQUOTE = re.compile(r"^ {0,3}>")
_TABLE_DELIMITER = re.compile(r"^ *\|? *:?-+:? *(?:\| *:?-+:? *)+\|? *$")

_INLINE_FEATURES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("images", re.compile(r"!\[[^\]]*\]\([^)]+\)")),
    ("links", re.compile(r"(?<!!)\[[^\]]+\]\([^)]+\)|<https?://[^>\s]+>")),
    ("code_spans", re.compile(r"`[^`]+`")),
    ("strong", re.compile(r"\*\*(?!\s)[^*]+(?<!\s)\*\*|__(?!\s)[^_]+(?<!\s)__")),
    (
        "emphasis",
        re.compile(
            r"(?<![*\w])\*(?![\s*])[^*]+(?<![\s*])\*(?!\*)"
            r"|(?<![_\w])_(?![\s_])[^_]+(?<![\s_])_(?![_\w])"
        ),
    ),
    ("strikethrough", re.compile(r"~~(?!\s)[^~]+(?<!\s)~~")),
    ("math", re.compile(r"\$\$|\$[^\s$](?:[^$\n]*[^\s$])?\$")),
)


@dataclass(frozen=True)
class Structure:
    """A parsed tree together with its statistics."""

    root: Node
    stats: StructureStats

    def to_dict(self) -> dict[str, object]:
        return self.root.to_dict()


@dataclass
class _TreeBuilder:
    """Attach nodes to the nearest preceding node with a smaller level."""

    root: Node = field(default_factory=lambda: Node(text="", level=0))
    node_count: int = 0
    max_depth: int = 0
    _path: list[Node] = field(default_factory=list)
    _content: dict[int, list[str]] = field(default_factory=dict)
    _nodes: list[Node] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._path.append(self.root)

    @property
    def current(self) -> Node | None:
        return self._path[-1] if len(self._path) > 1 else None

    def add(self, text: str, level: int) -> None:
        while len(self._path) > 1 and self._path[-1].level >= level:
            self._path.pop()
        node = Node(text=text, level=level)
        self._path[-1].children.append(node)
        self._path.append(node)
        self._nodes.append(node)
        self.node_count += 1
        self.max_depth = max(self.max_depth, level)

    def add_content(self, line: str) -> None:
        node = self.current
        if node is None:
            return
        self._content.setdefault(id(node), []).append(line)

    def finish(self) -> Node:
        for node in self._nodes:
            lines = self._content.get(id(node))
            if lines:
                text = "\n".join(lines).strip()
                node.content = text or None
        return self.root


def _heading_text(raw: str | None) -> str:
    if not raw:
        return ""
    return _ESCAPED_PUNCT.sub(r"\1", _CLOSING_HASHES.sub("", raw).strip())


def _skip_frontmatter(lines: list[str]) -> int:
    """Return the index of the first line after a leading front matter block."""
    if not lines or lines[0].strip() != "---":
        return 0
    for i in range(1, len(lines)):
        if lines[i].strip() in ("---", "..."):
            return i + 1
    return 0


def _list_nesting(indent_stack: list[int], indent: int) -> int:
    while indent_stack and indent_stack[-1] > indent:
        indent_stack.pop()
    if not indent_stack or indent > indent_stack[-1]:
        indent_stack.append(indent)
    return len(indent_stack) - 1


def _scan_inline(text: str, features: set[str]) -> None:
    for tag, pattern in _INLINE_FEATURES:
        if tag not in features and pattern.search(text):
            features.add(tag)


def parse_markdown(markdown: str) -> tuple[Node, StructureStats]:
    """Parse Markdown into a tree rooted at a synthetic level-0 node.

    ATX headings become nodes at their marker level; a single paragraph line
    underlined with ``===`` or ``---`` is a level 1 or level 2 heading. List
    items become nodes one level below the enclosing heading plus their
    nesting depth. Fenced code, paragraphs, quotes and tables attach to the
    preceding node's content.
    No ceilings are applied here; see ``extract_structure``.
    """
    lines = markdown.expandtabs(4).splitlines()
    features: set[str] = set()
    builder = _TreeBuilder()

    start = _skip_frontmatter(lines)
    if start:
        features.add("frontmatter")

    heading_level = 0
    indent_stack: list[int] = []
    fence: str | None = None
    previous = ""

    body = lines[start:]
    in_paragraph = False
    skip_underline = False

    for i, line in enumerate(body):
        if skip_underline:
            skip_underline = False
            continue

        if fence is not None:
            builder.add_content(line)
            if line.strip().startswith(fence) and not line.strip().strip(fence[0]):
                fence = None
            continue

        fence_match = _FENCE.match(line)
        if fence_match:
            fence = fence_match.group(1)
            in_paragraph = False
            features.add("code_blocks")
            builder.add_content(line)
            continue

        if not line.strip():
            builder.add_content("")
            in_paragraph = False
            previous = line
            continue

        if _THEMATIC_BREAK.match(line):
            in_paragraph = False
            previous = line
            continue

        heading = _HEADING.match(line)
        if heading:
            heading_level = len(heading.group(1))
            indent_stack.clear()
            text = _heading_text(heading.group(2))
            features.add("headings")
            _scan_inline(text, features)
            builder.add(text, heading_level)
            in_paragraph = False
            previous = line
            continue

        item = _LIST_ITEM.match(line)
        if item:
            indent, marker, text = item.groups()
            features.add("lists")
            if marker[-1] in ".)":
                features.add("ordered_lists")
            if _TASK_BOX.match(text):
                features.add("task_lists")
                text = _TASK_BOX.sub("", text, count=1)
            nesting = _list_nesting(indent_stack, len(indent))
            text = text.strip()
            _scan_inline(text, features)
            builder.add(text, heading_level + 1 + nesting)
            in_paragraph = True
            previous = line
            continue

        underline = _SETEXT_UNDERLINE.match(body[i + 1]) if i + 1 < len(body) else None
        if underline and not in_paragraph and not _BLOCKQUOTE.match(line):
            heading_level = 1 if underline.group(1)[0] == "=" else 2
            indent_stack.clear()
            text = _ESCAPED_PUNCT.sub(r"\1", line.strip())
            features.add("headings")
            _scan_inline(text, features)
            builder.add(text, heading_level)
            skip_underline = True
            previous = body[i + 1]
            continue

        if _BLOCKQUOTE.match(line):
            features.add("blockquotes")
        if _TABLE_DELIMITER.match(line) and "|" in previous:
            features.add("tables")
        _scan_inline(line, features)
        builder.add_content(line.strip())
        previous = line
        in_paragraph = True

    root = builder.finish()
    stats = StructureStats(
        node_count=builder.node_count,
        max_depth=builder.max_depth,
        features_used=tuple(sorted(features)),
    )
    return root, stats


def extract_structure(
    markdown: str,
    *,
    max_nodes: int = MAX_NODE_COUNT,
    max_depth: int = MAX_DEPTH,
) -> Structure:
    """Parse Markdown and enforce the structural ceilings.

    Raises:
        ResourceLimitError: If the tree has more than ``max_nodes`` nodes or
            reaches a level deeper than ``max_depth``.
    """
    root, stats = parse_markdown(markdown)
    if stats.node_count > max_nodes:
        msg = (
            f"Markdown has {stats.node_count} nodes, maximum is {max_nodes}. "
            "Split the document and resubmit."
        )
        raise ResourceLimitError(msg)
    if stats.max_depth > max_depth:
        msg = f"Markdown nests {stats.max_depth} levels deep, maximum is {max_depth}."
        raise ResourceLimitError(msg)
    return Structure(root=root, stats=stats)


def iter_nodes(root: Node) -> Iterator[Node]:
    """Yield every node below root in document order."""
    stack = list(reversed(root.children))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def count_nodes(root: Node) -> int:
    """Count nodes below root (the root itself is excluded)."""
    return sum(1 for _ in iter_nodes(root))


def calculate_depth(root: Node) -> int:
    """Return the greatest level reached below root, 0 for an empty tree."""
    return max((n.level for n in iter_nodes(root)), default=0)
