# =============================================================================
# Body Normalization
# =============================================================================
# Turns whatever the server handed us into a document tree:
#
#   1. Undo quoted-printable transport encoding (if it isn't QP, nothing
#      changes)
#   2. Run it through Markdown, with raw HTML passed through, so plain
#      text and Markdown mail get structure and HTML mail stays HTML
#   3. Parse the result with BeautifulSoup (lxml parser)
#   4. Throw away <style> and <script> elements
#   5. Defuse any placeholder syntax the email itself contains
#
# Only step 3 can fail the render. Everything else falls back to the input.
# =============================================================================

import binascii
import logging
import quopri

import markdown
from bs4 import BeautifulSoup

from matcha.rendering.errors import BodyParseError

logger = logging.getLogger(__name__)

# Elements that are never displayed
STRIPPED_ELEMENTS = ("style", "script")

# Every internal placeholder starts with this
MARKER_OPEN = "[[MATCHA_"

# What a literal marker in the email itself is turned into while rendering.
# The word joiner keeps it from ever matching a real placeholder.
NEUTRALIZED_MARKER_OPEN = "[\u2060[MATCHA_"


def decode_quoted_printable(text: str) -> str:
    """
    Decode quoted-printable text.

    Soft line breaks (=\\r\\n) are joined and =XX escapes decoded. Text that
    isn't QP passes through unchanged.

    Returns:
        The decoded text, or the input itself if decoding fails.
    """
    try:
        decoded = quopri.decodestring(text.encode("utf-8"))
    except (ValueError, binascii.Error) as e:
        logger.debug(f"quoted-printable decode failed, using raw body: {e}")
        return text
    return decoded.decode("utf-8", errors="replace")


def neutralize_markers(text: str) -> str:
    """Defuse placeholder syntax that appears in the email itself."""
    return text.replace(MARKER_OPEN, NEUTRALIZED_MARKER_OPEN)


def restore_markers(text: str) -> str:
    """Undo neutralize_markers once all placeholders have been expanded."""
    return text.replace(NEUTRALIZED_MARKER_OPEN, MARKER_OPEN)


def neutralize_document(soup: BeautifulSoup) -> None:
    """
    Defuse placeholder syntax everywhere in a parsed document.

    Runs on the tree rather than the raw body, so markers spelled with
    Markdown escapes (\\[\\[MATCHA_) or entities (&#91;&#91;MATCHA_) are
    caught after they've been decoded. Attribute values are covered too,
    since alt text, link targets and cite attributes end up as text.
    """
    for string in soup.find_all(string=True):
        if MARKER_OPEN in string:
            string.replace_with(type(string)(neutralize_markers(string)))

    for tag in soup.find_all(True):
        for name, value in tag.attrs.items():
            if isinstance(value, str) and MARKER_OPEN in value:
                tag[name] = neutralize_markers(value)


def markdown_to_html(text: str) -> str:
    """
    Convert Markdown to HTML.

    Raw HTML in the input is kept as-is, so HTML email survives the trip.
    If conversion fails, the original text is returned.
    """
    try:
        return markdown.markdown(text)
    except Exception as e:
        logger.warning(f"markdown conversion failed, using original text: {e}")
        return text


def parse_document(html: str) -> BeautifulSoup:
    """
    Parse HTML into a mutable document tree.

    Raises:
        BodyParseError: If the document can't be built.
    """
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as e:
        logger.error(f"could not parse email body: {e}")
        raise BodyParseError(f"could not parse email body: {e}") from e


def strip_hidden_elements(soup: BeautifulSoup) -> None:
    """Remove <style> and <script> elements in place."""
    for element in soup.find_all(STRIPPED_ELEMENTS):
        element.decompose()


def normalize(raw_body: str) -> BeautifulSoup:
    """
    Run the full normalization pipeline.

    Args:
        raw_body: The email body as received.

    Returns:
        Parsed document with hidden elements removed and literal
        placeholder syntax neutralized.

    Raises:
        BodyParseError: If the body can't be parsed.
    """
    text = decode_quoted_printable(raw_body)
    html = markdown_to_html(text)
    soup = parse_document(html)
    strip_hidden_elements(soup)
    neutralize_document(soup)
    return soup
