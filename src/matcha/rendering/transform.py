# =============================================================================
# Document Transformation
# =============================================================================
# Rewrites the parsed email in place so that its plain text, once
# extracted, reads well in a terminal.
#
# The passes run in a fixed order, and later passes rely on earlier ones:
#   1. Style <h1>/<h2> text (tags kept, step 2 still needs them)
#   2. Blank line after every p/div/h1/h2
#   3. <br> -> newline
#   4. <blockquote> -> QuoteRecord + placeholder (text already spaced out
#      by steps 2-3, links and images inside dropped with the quote)
#   5. <a> -> OSC 8 hyperlink, or "text <url>"
#   6. <img> -> inline image escape sequence, or a text placeholder
#
# Replacements are inserted as plain strings, never re-parsed as HTML,
# so escape sequences and "<url>" text come out exactly as written.
# =============================================================================

import logging

from bs4 import BeautifulSoup, Tag

from matcha.rendering.images import ImageEncoder
from matcha.rendering.quotes import QuoteRecord, match_on_wrote, quote_placeholder
from matcha.rendering.sources import PayloadResolver, classify_source
from matcha.rendering.styles import BodyStyles, apply_style
from matcha.rendering.terminal import TerminalCapabilities

logger = logging.getLogger(__name__)

# Elements followed by a paragraph gap
BLOCK_ELEMENTS = ("p", "div", "h1", "h2")

# Alt text used when an image has none
MISSING_ALT_TEXT = "Does not contain alt text"


def hyperlink(url: str, text: str, supported: bool) -> str:
    """
    Format a link for the terminal.

    Args:
        url: Link target.
        text: Link text. Empty text shows the URL.
        supported: Whether the terminal understands OSC 8 hyperlinks.

    Returns:
        An OSC 8 hyperlink wrapping text, or "text <url>" ("<url>" alone
        when the text is the URL).
    """
    if not text:
        text = url

    if supported:
        return f"\033]8;;{url}\033\\{text}\033]8;;\033\\"

    if text == url:
        return f"<{url}>"
    return f"{text} <{url}>"


def _previous_element(node: Tag) -> Tag | None:
    """The nearest preceding sibling that is an element (not text)."""
    for sibling in node.previous_siblings:
        if isinstance(sibling, Tag):
            return sibling
    return None


class DocumentTransformer:
    """
    Rewrites a parsed email document for terminal display.

    Usage:
        >>> transformer = DocumentTransformer(styles, capabilities, resolver)
        >>> quotes = transformer.transform(soup)
    """

    def __init__(
        self,
        styles: BodyStyles,
        capabilities: TerminalCapabilities,
        resolver: PayloadResolver,
        encoder: ImageEncoder | None = None,
        *,
        disable_images: bool = False,
    ) -> None:
        """
        Initialize the transformer.

        Args:
            styles: Heading styles come from here.
            capabilities: Decides hyperlinks and image protocol.
            resolver: Finds image payloads.
            encoder: Builds image escape sequences.
            disable_images: Never draw images inline, always use text.
        """
        self.styles = styles
        self.capabilities = capabilities
        self.resolver = resolver
        self.encoder = encoder or ImageEncoder()
        self.disable_images = disable_images

    def transform(self, soup: BeautifulSoup) -> list[QuoteRecord]:
        """
        Run every pass over the document.

        Returns:
            Quote records, indexed by the placeholders left in the document.
        """
        self.style_headings(soup)
        self.space_blocks(soup)
        self.replace_line_breaks(soup)
        quotes = self.extract_blockquotes(soup)
        self.rewrite_links(soup)
        self.rewrite_images(soup)
        return quotes

    # =========================================================================
    # Passes
    # =========================================================================

    def style_headings(self, soup: BeautifulSoup) -> None:
        """Replace h1/h2 contents with their styled text."""
        for name, style in (("h1", self.styles.h1), ("h2", self.styles.h2)):
            for heading in soup.find_all(name):
                heading.string = apply_style(style, heading.get_text())

    def space_blocks(self, soup: BeautifulSoup) -> None:
        """Put a blank line after block elements."""
        for element in soup.find_all(BLOCK_ELEMENTS):
            if element.parent is not None:
                element.insert_after("\n\n")

    def replace_line_breaks(self, soup: BeautifulSoup) -> None:
        for br in soup.find_all("br"):
            br.replace_with("\n")

    def extract_blockquotes(self, soup: BeautifulSoup) -> list[QuoteRecord]:
        """
        Swap each blockquote for a placeholder and record its contents.

        An "On <date>, <sender> wrote:" line in the element just before the
        quote (or in its cite attribute) becomes the quote's header. The
        preceding element is removed so the line isn't shown twice.
        Nested blockquotes stay part of the outermost quote's text.
        """
        quotes: list[QuoteRecord] = []

        # Outermost first; replacing it takes any nested quotes with it
        while (quote := soup.find("blockquote")) is not None:
            text = quote.get_text().strip()
            sender = date = ""

            previous = _previous_element(quote)
            previous_text = previous.get_text().strip() if previous else ""

            header = match_on_wrote(previous_text)
            if header:
                sender, date = header
                previous.decompose()
            else:
                cite = quote.get("cite", "")
                header = match_on_wrote(cite) if isinstance(cite, str) else None
                if header:
                    sender, date = header

            quotes.append(QuoteRecord(sender=sender, date=date, lines=text.split("\n")))
            quote.replace_with(f"\n{quote_placeholder(len(quotes) - 1)}\n")
            logger.debug(f"extracted quote index={len(quotes) - 1} sender={sender!r}")

        return quotes

    def rewrite_links(self, soup: BeautifulSoup) -> None:
        """Turn anchors into terminal hyperlinks or "text <url>"."""
        for anchor in soup.find_all("a"):
            href = anchor.get("href")
            if href is None:
                continue
            anchor.replace_with(
                hyperlink(href, anchor.get_text(), self.capabilities.hyperlinks)
            )

    def rewrite_images(self, soup: BeautifulSoup) -> None:
        """Draw images inline where possible, otherwise describe them."""
        for image in soup.find_all("img"):
            src = image.get("src")
            if src is None:
                continue
            alt = image.get("alt") or MISSING_ALT_TEXT
            image.replace_with(self.render_image(src, alt))

    # =========================================================================
    # Images
    # =========================================================================

    def render_image(self, src: str, alt: str) -> str:
        """
        Produce the replacement text for one image.

        Returns:
            The protocol escape sequence wrapped in newlines, or the text
            fallback if images are off, unsupported, or unavailable.
        """
        kind = classify_source(src)

        if self.disable_images:
            logger.debug(f"images disabled, using text for src={src}")
        elif not self.capabilities.image_protocol_supported:
            logger.debug(
                f"image protocol not supported for src={src} "
                f"({self.capabilities.describe()})"
            )
        else:
            payload = self.resolver.resolve(src)
            if payload:
                protocol = self.capabilities.image_protocol
                rendered = self.encoder.encode(payload, protocol)
                if rendered:
                    logger.debug(
                        f"rendered inline image src={src[:80]} len={len(payload)} "
                        f"kind={kind.name} protocol={protocol.name}"
                    )
                    return f"\n{rendered}\n"
                logger.debug(f"payload present but encoder returned nothing src={src[:80]}")
            else:
                logger.debug(f"no payload for src={src[:80]} kind={kind.name}")

        return self.image_fallback(src, alt)

    def image_fallback(self, src: str, alt: str) -> str:
        """Text shown in place of an image that can't be drawn."""
        if self.capabilities.hyperlinks:
            return hyperlink(src, f"\n [Click here to view image: {alt}] \n", True)
        return f"\n [Image: {alt}, {src}] \n"
