"""Tests for quote header parsing and quote boxes."""

import pytest

from matcha.rendering.quotes import (
    QuoteRecord,
    match_on_wrote,
    parse_date_for_display,
    quote_placeholder,
    render_quote_box,
    resolve_quote_placeholders,
    style_quoted_replies,
)
from matcha.rendering.styles import BodyStyles


class TestOnWrote:
    def test_date_with_comma(self):
        assert match_on_wrote("On Jan 2, 2006 at 3:04 PM, alice@x.com wrote:") == (
            "alice@x.com",
            "02:01:06 15:04",
        )

    def test_found_inside_longer_text(self):
        header = match_on_wrote("Thanks!\nOn Mon, 2 Jan 2006 at 15:04, Bob Smith wrote:")
        assert header == ("Bob Smith", "02:01:06 15:04")

    def test_no_match(self):
        assert match_on_wrote("Nobody wrote anything") is None


@pytest.mark.parametrize(
    "date_str, expected",
    [
        ("Jan 2, 2006 at 3:04 PM", "02:01:06 15:04"),
        ("January 2, 2006 at 3:04 PM", "02:01:06 15:04"),
        ("Jan 2, 2006 3:04 PM", "02:01:06 15:04"),
        ("2006-01-02 15:04:05", "02:01:06 15:04"),
        ("Mon, 02 Jan 2006 15:04:05 -0700", "02:01:06 15:04"),
        ("2 Jan 2006 15:04:05", "02:01:06 15:04"),
        ("02:01:06 15:04", "02:01:06 15:04"),
    ],
)
def test_parse_date_for_display(date_str, expected):
    assert parse_date_for_display(date_str) == expected


def test_unparsable_date_is_kept():
    assert parse_date_for_display("  last Tuesday ") == "last Tuesday"


class TestQuoteBox:
    def test_box_contents(self, plain_styles):
        box = render_quote_box("alice@x.com", "02:01:06 15:04", ["line one", "line two"], plain_styles)

        lines = box.split("\n")
        assert lines[0].startswith("╭") and lines[0].endswith("╮")
        assert lines[-1].startswith("╰") and lines[-1].endswith("╯")
        assert "alice@x.com  02:01:06 15:04" in lines[1]
        assert "line one" in box
        assert "line two" in box

    def test_box_fits_longest_line(self, plain_styles):
        box = render_quote_box("", "", ["short", "a much longer quoted line"], plain_styles)

        lines = box.split("\n")
        assert lines[1] == "│ short                     │"
        assert lines[2] == "│ a much longer quoted line │"
        assert len({len(line) for line in lines}) == 1

    def test_box_without_header(self, plain_styles):
        box = render_quote_box("", "", ["only text"], plain_styles)

        assert box.split("\n")[1] == "│ only text │"

    def test_styled_box_uses_escape_codes(self):
        box = render_quote_box("alice", "", ["hi"], BodyStyles())

        assert "\x1b[" in box
        assert "alice" in box


class TestPlaceholders:
    def test_resolved(self, plain_styles):
        quotes = [QuoteRecord(sender="bob", lines=["quoted"])]

        text = resolve_quote_placeholders(f"before\n{quote_placeholder(0)}\nafter", quotes, plain_styles)

        assert "[[MATCHA_QUOTE" not in text
        assert "│ quoted │" in text
        assert text.startswith("before\n")
        assert text.endswith("\nafter")

    def test_out_of_range_left_alone(self, plain_styles):
        text = resolve_quote_placeholders("x [[MATCHA_QUOTE:3]] y", [], plain_styles)

        assert text == "x [[MATCHA_QUOTE:3]] y"

    def test_placeholder_text(self):
        assert QuoteRecord(lines=["a", "b"]).placeholder_text == "a\nb"


class TestPlainTextReplies:
    def test_header_and_quoted_lines(self, plain_styles):
        text = (
            "Sounds good.\n"
            "\n"
            "On Jan 2, 2006 at 3:04 PM, alice@x.com wrote:\n"
            "> line one\n"
            "> line two"
        )

        result = style_quoted_replies(text, plain_styles)

        assert result.startswith("Sounds good.\n\n╭")
        assert "alice@x.com  02:01:06 15:04" in result
        assert "│ line one" in result
        assert "│ line two" in result
        assert "> line" not in result
        assert "wrote:" not in result

    def test_blank_line_after_header_is_skipped(self, plain_styles):
        text = "On Jan 2, 2006 at 3:04 PM, alice@x.com wrote:\n\n> quoted"

        result = style_quoted_replies(text, plain_styles)

        assert result.count("╭") == 1
        assert "│ quoted" in result

    def test_blank_line_inside_quote_is_kept(self, plain_styles):
        result = style_quoted_replies("> first\n>\n> \n\n> second\nafter", plain_styles)

        assert result.count("╭") == 1
        assert "first" in result and "second" in result
        assert result.endswith("\nafter")

    def test_quote_without_header(self, plain_styles):
        result = style_quoted_replies("> just quoted\nreply", plain_styles)

        assert result.split("\n")[1] == "│ just quoted │"
        assert result.endswith("reply")

    def test_header_without_quote_is_kept_as_text(self, plain_styles):
        text = "On Jan 2, 2006 at 3:04 PM, alice@x.com wrote:\nnothing quoted"

        assert style_quoted_replies(text, plain_styles) == text

    def test_unquoted_text_untouched(self, plain_styles):
        text = "Hello\n\nWorld"

        assert style_quoted_replies(text, plain_styles) == text

    def test_nested_markers_keep_inner_marker(self, plain_styles):
        result = style_quoted_replies("> > deeper", plain_styles)

        assert "│ > deeper │" in result
