"""Tests for agent identifier sanitization."""

import pytest

from markmap_store.core.storage.identifiers import sanitize_agent_id
from markmap_store.errors import ValidationError


@pytest.mark.parametrize("agent_id", ["agent-1", "Agent_2.prod", "abc", "0", "a.b_c-D9"])
def test_allowed_characters_pass_through_unchanged(agent_id: str) -> None:
    assert sanitize_agent_id(agent_id) == agent_id


@pytest.mark.parametrize(
    ("agent_id", "expected"),
    [
        ("agent/../1 x", "agent..1x"),
        ("my agent!", "myagent"),
        ("a@b#c$d", "abcd"),
        ("ünïcode-ok", "ncode-ok"),
        ("tab\tand\nnewline", "tabandnewline"),
    ],
)
def test_disallowed_characters_are_stripped_in_order(agent_id: str, expected: str) -> None:
    assert sanitize_agent_id(agent_id) == expected


@pytest.mark.parametrize("agent_id", ["", "   ", "\t\n"])
def test_empty_identifier_is_rejected(agent_id: str) -> None:
    with pytest.raises(ValidationError, match="cannot be empty"):
        sanitize_agent_id(agent_id)


@pytest.mark.parametrize("agent_id", ["@#$%", "///", "ü ö"])
def test_identifier_without_valid_characters_is_rejected(agent_id: str) -> None:
    with pytest.raises(ValidationError, match="no valid characters"):
        sanitize_agent_id(agent_id)


def test_validation_error_carries_kind_tag() -> None:
    with pytest.raises(ValidationError) as exc_info:
        sanitize_agent_id("@@")
    assert exc_info.value.error_type == "ValidationError"
