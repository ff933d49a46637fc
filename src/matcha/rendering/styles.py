# =============================================================================
# Body Styles
# =============================================================================
# The styles a render call applies: headings, the body as a whole, and the
# quoted-reply boxes. They're passed in explicitly on every call rather
# than living in module globals, so two views can render with different
# looks side by side.
#
# Styles are Rich Style objects. Rich's style strings ("bold magenta",
# "#7d56f4 on black", "color(240)") are what users write in config.toml.
# =============================================================================

from dataclasses import dataclass, field

from rich.color import ColorSystem
from rich.style import Style

# Defaults roughly matching the colour scheme the client ships with
DEFAULT_H1 = "bold #fafafa on #7d56f4"
DEFAULT_H2 = "bold #7d56f4"
DEFAULT_BODY = ""
DEFAULT_QUOTE_BORDER = "color(240)"
DEFAULT_QUOTE_HEADER = "color(240)"


def apply_style(style: Style, text: str) -> str:
    """
    Wrap text in the ANSI codes for a style.

    Unlike printing through a Console this never re-wraps or pads the
    text, so escape sequences already inside it (images, hyperlinks) are
    passed through untouched.

    Args:
        style: Rich style to apply. A null style returns text unchanged.
        text: Text to style.

    Returns:
        Styled text.
    """
    if not style or not text:
        return text
    return style.render(text, color_system=ColorSystem.TRUECOLOR)


@dataclass
class BodyStyles:
    """
    Styles used when rendering an email body.

    Attributes:
        h1: Style for top-level headings.
        h2: Style for second-level headings.
        body: Style applied to the finished body as a whole.
        quote_border: Style for quote box borders and quoted text.
        quote_header: Style for the "sender  date" line in quote boxes.
    """
    h1: Style = field(default_factory=lambda: Style.parse(DEFAULT_H1))
    h2: Style = field(default_factory=lambda: Style.parse(DEFAULT_H2))
    body: Style = field(default_factory=Style.null)
    quote_border: Style = field(default_factory=lambda: Style.parse(DEFAULT_QUOTE_BORDER))
    quote_header: Style = field(default_factory=lambda: Style.parse(DEFAULT_QUOTE_HEADER))

    @classmethod
    def from_strings(
        cls,
        h1: str = DEFAULT_H1,
        h2: str = DEFAULT_H2,
        body: str = DEFAULT_BODY,
        quote_border: str = DEFAULT_QUOTE_BORDER,
        quote_header: str = DEFAULT_QUOTE_HEADER,
    ) -> "BodyStyles":
        """
        Build styles from Rich style strings.

        Raises:
            rich.errors.StyleSyntaxError: If a style string is invalid.
        """
        return cls(
            h1=_parse(h1),
            h2=_parse(h2),
            body=_parse(body),
            quote_border=_parse(quote_border),
            quote_header=_parse(quote_header),
        )

    @classmethod
    def plain(cls) -> "BodyStyles":
        """Styles that add no ANSI codes at all (handy for tests and pipes)."""
        return cls(
            h1=Style.null(),
            h2=Style.null(),
            body=Style.null(),
            quote_border=Style.null(),
            quote_header=Style.null(),
        )


def _parse(definition: str) -> Style:
    definition = definition.strip()
    if not definition:
        return Style.null()
    return Style.parse(definition)
