# =============================================================================
# Text Finalization
# =============================================================================
# Takes the transformed document and produces the string the terminal
# will show:
#
#   1. Extract the document's text
#   2. Collapse runs of 3+ newlines to a single blank line
#   3. Expand image-row placeholders into the newlines images need
#   4. Swap quote placeholders for rendered quote boxes
#   5. Box up plain-text ">" replies that never had a <blockquote>
#   6. Apply the body style
#
# Steps 2 and 3 must stay in that order: images reserve their vertical
# space through placeholders precisely so that step 2 can't squash it.
# =============================================================================

import re

from bs4 import BeautifulSoup

from matcha.rendering.images import expand_image_rows
from matcha.rendering.normalize import restore_markers
from matcha.rendering.quotes import (
    QuoteRecord,
    resolve_quote_placeholders,
    style_quoted_replies,
)
from matcha.rendering.styles import BodyStyles, apply_style

_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")


def collapse_blank_lines(text: str) -> str:
    """Normalize multiple blank lines to at most one."""
    return _EXCESS_NEWLINES_RE.sub("\n\n", text)


class TextFinalizer:
    """
    Turns a transformed document into styled terminal text.

    Usage:
        >>> finalizer = TextFinalizer(styles)
        >>> text = finalizer.finalize(soup, quotes)
    """

    def __init__(self, styles: BodyStyles) -> None:
        self.styles = styles

    def finalize(self, soup: BeautifulSoup, quotes: list[QuoteRecord]) -> str:
        """
        Produce the final body text.

        Args:
            soup: Document after DocumentTransformer has run.
            quotes: Quote records the transformer extracted.

        Returns:
            Styled text ready to write to the terminal.
        """
        text = soup.get_text()
        text = collapse_blank_lines(text)
        text = expand_image_rows(text)
        text = resolve_quote_placeholders(text, quotes, self.styles)
        text = style_quoted_replies(text, self.styles)

        # Placeholder-looking text from the email itself is safe to show now
        text = restore_markers(text)

        return apply_style(self.styles.body, text)
