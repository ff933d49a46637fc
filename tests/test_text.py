"""Tests for text finalization."""

from bs4 import BeautifulSoup

from matcha.rendering.images import image_row_placeholder
from matcha.rendering.quotes import QuoteRecord, quote_placeholder
from matcha.rendering.styles import BodyStyles
from matcha.rendering.text import TextFinalizer, collapse_blank_lines


def finalize(html: str, quotes=None, styles=None) -> str:
    soup = BeautifulSoup(html, "lxml")
    return TextFinalizer(styles or BodyStyles.plain()).finalize(soup, quotes or [])


def test_collapse_blank_lines():
    assert collapse_blank_lines("a\n\n\n\nb\n\n\nc\n\nd") == "a\n\nb\n\nc\n\nd"


def test_image_rows_survive_collapsing():
    text = finalize(f"<p>above\n\n\n{image_row_placeholder(5)}\nbelow</p>")

    assert text == "above" + "\n" * 8 + "below"


def test_quote_placeholders_become_boxes():
    quotes = [QuoteRecord(sender="alice", date="02:01:06 15:04", lines=["hi"])]

    text = finalize(f"<p>reply\n{quote_placeholder(0)}\n</p>", quotes)

    assert text.startswith("reply\n╭")
    assert "alice  02:01:06 15:04" in text
    assert "│ hi" in text


def test_plain_text_quotes_are_boxed():
    text = finalize("<pre>top\n> quoted\nbottom</pre>")

    assert "│ quoted │" in text
    assert text.startswith("top\n")
    assert text.endswith("\nbottom")


def test_literal_markers_restored():
    text = finalize("<p>[\u2060[MATCHA_QUOTE:0]]</p>")

    assert text == "[[MATCHA_QUOTE:0]]"


def test_body_style_applied():
    styles = BodyStyles.plain()
    styles.body = BodyStyles.from_strings(body="bold").body

    assert finalize("<p>hello</p>", styles=styles) == "\x1b[1mhello\x1b[0m"
