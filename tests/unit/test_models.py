"""Tests for tree and artifact models."""

from markmap_store.models.node import Node, SavedFiles, SavedStructureFiles


def test_node_to_dict_nests_children_and_omits_empty_content() -> None:
    root = Node(text="", level=0)
    a = Node(text="A", level=1, content="body")
    a.children.append(Node(text="B", level=2))
    root.children.append(a)

    assert root.to_dict() == {
        "text": "",
        "level": 0,
        "children": [
            {
                "text": "A",
                "level": 1,
                "content": "body",
                "children": [{"text": "B", "level": 2, "children": []}],
            }
        ],
    }


def test_saved_files_to_dict() -> None:
    assert SavedFiles(svg="a.svg", html="a.html", md="a.md").to_dict() == {
        "svg": "a.svg",
        "html": "a.html",
        "md": "a.md",
    }
    assert SavedStructureFiles(md="a.md", json="a.json").to_dict() == {
        "md": "a.md",
        "json": "a.json",
    }
