"""Unit tests for sections module."""

import pytest

from prompt_preview.engine.errors import MalformedSections
from prompt_preview.engine.sections import ROLES, RenderedMessage, split_sections


def pairs(text: str) -> list[tuple[str, str]]:
    return [(message.role, message.content) for message in split_sections(text)]


class TestSplitSections:
    """Tests for carving rendered text into messages."""

    def test_single_section_with_outside_text(self) -> None:
        text = "Hello Lydia!\n[ system ]\nYou are Lydia.\n[ end system ]"
        assert pairs(text) == [("system", "You are Lydia.")]

    def test_multiple_sections_in_order(self) -> None:
        text = "[ system ]\nrules\n[ end system ]\n[ user ]\nhi\n[ end user ]\n[ assistant ]\nhello\n[ end assistant ]"
        assert pairs(text) == [("system", "rules"), ("user", "hi"), ("assistant", "hello")]

    def test_all_roles_recognised(self) -> None:
        assert ROLES == ("system", "user", "assistant", "cache")
        for role in ROLES:
            assert pairs(f"[ {role} ]\nx\n[ end {role} ]") == [(role, "x")]

    def test_no_markers_no_messages(self) -> None:
        assert split_sections("just text\nmore text") == []
        assert split_sections("") == []

    def test_multiline_content_kept(self) -> None:
        text = "[ user ]\nline 1\n\nline 3\n[ end user ]"
        assert pairs(text) == [("user", "line 1\n\nline 3")]

    def test_empty_section(self) -> None:
        assert pairs("[ user ]\n[ end user ]") == [("user", "")]

    def test_trims_at_most_one_blank_line_per_edge(self) -> None:
        text = "[ user ]\n\n\nhello\n\n\n[ end user ]"
        assert pairs(text) == [("user", "\nhello\n")]

    def test_whitespace_only_edge_lines_trimmed(self) -> None:
        assert pairs("[ user ]\n   \nhello\n\t\n[ end user ]") == [("user", "hello")]

    def test_inner_indentation_preserved(self) -> None:
        assert pairs("[ user ]\n  indented\n[ end user ]") == [("user", "  indented")]

    def test_marker_with_surrounding_whitespace(self) -> None:
        assert pairs("   [ system ]  \nx\n\t[ end system ]") == [("system", "x")]

    def test_markers_are_case_sensitive(self) -> None:
        assert pairs("[ user ]\n[ System ]\n[ end user ]") == [("user", "[ System ]")]

    def test_marker_must_fill_the_line(self) -> None:
        assert pairs("[ user ]\nsay [ user ] now\n[ end user ]") == [("user", "say [ user ] now")]

    def test_marker_spacing_is_exact(self) -> None:
        assert pairs("[ user ]\n[user]\n[ end user ]") == [("user", "[user]")]

    def test_unknown_role_is_content(self) -> None:
        assert pairs("[ user ]\n[ tool ]\n[ end user ]") == [("user", "[ tool ]")]

    def test_crlf_line_endings(self) -> None:
        assert pairs("[ user ]\r\nhi\r\nthere\r\n[ end user ]\r\n") == [("user", "hi\nthere")]

    def test_nested_roles(self) -> None:
        text = "[ system ]\na\n[ cache ]\nb\n[ end cache ]\nc\n[ end system ]"
        assert pairs(text) == [("system", "a\nb\nc"), ("cache", "b")]

    def test_overlapping_roles(self) -> None:
        text = "[ system ]\na\n[ user ]\nb\n[ end system ]\nc\n[ end user ]"
        assert pairs(text) == [("system", "a\nb"), ("user", "b\nc")]

    def test_role_reopened_after_close(self) -> None:
        text = "[ user ]\none\n[ end user ]\n[ user ]\ntwo\n[ end user ]"
        assert pairs(text) == [("user", "one"), ("user", "two")]

    def test_returns_rendered_messages(self) -> None:
        messages = split_sections("[ user ]\nhi\n[ end user ]")
        assert messages == [RenderedMessage(role="user", content="hi")]


class TestMalformedSections:
    """Tests for unbalanced markers."""

    def test_reopen_while_open(self) -> None:
        with pytest.raises(MalformedSections) as exc_info:
            split_sections("[ user ]\na\n[ user ]\nb\n[ end user ]")
        assert "line 3" in exc_info.value.detail
        assert "since line 1" in exc_info.value.detail

    def test_close_without_open(self) -> None:
        with pytest.raises(MalformedSections) as exc_info:
            split_sections("text\n[ end system ]")
        assert exc_info.value.detail == "'[ end system ]' at line 2 without an open '[ system ]'"

    def test_close_wrong_role(self) -> None:
        with pytest.raises(MalformedSections):
            split_sections("[ user ]\nx\n[ end system ]\n[ end user ]")

    def test_unclosed_at_end(self) -> None:
        with pytest.raises(MalformedSections) as exc_info:
            split_sections("[ system ]\nx\n[ user ]\ny\n[ end user ]")
        assert exc_info.value.detail == "Unclosed section(s) at end of text: 'system' (line 1)"

    def test_error_message_prefix(self) -> None:
        with pytest.raises(MalformedSections, match="^Malformed sections: "):
            split_sections("[ user ]")
