# =============================================================================
# Quoted Replies
# =============================================================================
# Reply chains show up in two shapes:
#
#   - HTML: <p>On Jan 2, 2006 at 3:04 PM, alice@x.com wrote:</p>
#           <blockquote>...</blockquote>
#   - Plain text:
#           On Jan 2, 2006 at 3:04 PM, alice@x.com wrote:
#           > line one
#           > line two
#
# Either way we draw the quoted part in a rounded box with a "sender  date"
# header, so the new message stands out from the history below it.
#
# The HTML shape is picked up while transforming the document (see
# transform.py) and stored as QuoteRecords; the plain-text shape is found
# by a line scanner that runs over the final text.
# =============================================================================

import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime

from rich import box
from rich.cells import cell_len
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from matcha.rendering.styles import BodyStyles

logger = logging.getLogger(__name__)

# "On <date>, <sender> wrote:" - the date runs up to the last comma, since
# dates like "Jan 2, 2006 at 3:04 PM" contain commas of their own
ON_WROTE_PATTERN = r"On\s+(.+),\s+(.+?)\s+wrote:"
ON_WROTE_RE = re.compile(ON_WROTE_PATTERN)
ON_WROTE_LINE_RE = re.compile(rf"^{ON_WROTE_PATTERN}$")

QUOTE_PLACEHOLDER = "[[MATCHA_QUOTE:{index}]]"
QUOTE_PLACEHOLDER_RE = re.compile(r"\[\[MATCHA_QUOTE:(\d+)\]\]")

# How dates are shown in quote headers
DISPLAY_DATE_FORMAT = "%d:%m:%y %H:%M"

# Date formats mail clients put in their "On ... wrote:" lines
DATE_FORMATS = (
    "%b %d, %Y at %I:%M %p",        # Jan 2, 2006 at 3:04 PM (Apple Mail)
    DISPLAY_DATE_FORMAT,            # 02:01:06 15:04 (our own)
    "%Y-%m-%d %H:%M:%S",            # 2006-01-02 15:04:05
    "%a, %d %b %Y %H:%M:%S %z",     # Mon, 02 Jan 2006 15:04:05 -0700
    "%d %b %Y %H:%M:%S",            # 2 Jan 2006 15:04:05
    "%B %d, %Y at %I:%M %p",        # January 2, 2006 at 3:04 PM
    "%b %d, %Y %I:%M %p",           # Jan 2, 2006 3:04 PM
    "%a, %d %b %Y at %H:%M",        # Mon, 2 Jan 2006 at 15:04 (Gmail)
)


@dataclass
class QuoteRecord:
    """
    A quoted section pulled out of the message.

    Attributes:
        sender: Who wrote the quoted text ("" if unknown).
        date: When, formatted for display ("" if unknown).
        lines: The quoted text, one entry per line, without "> " markers.
    """
    sender: str = ""
    date: str = ""
    lines: list[str] = field(default_factory=list)

    @property
    def placeholder_text(self) -> str:
        """Text form of the quote, as it would read without the box."""
        return "\n".join(self.lines)


def quote_placeholder(index: int) -> str:
    """Placeholder standing in for the quote at `index`."""
    return QUOTE_PLACEHOLDER.format(index=index)


def match_on_wrote(text: str) -> tuple[str, str] | None:
    """
    Look for "On <date>, <sender> wrote:" anywhere in text.

    Returns:
        (sender, display date) or None.
    """
    match = ON_WROTE_RE.search(text)
    if not match:
        return None
    return match.group(2), parse_date_for_display(match.group(1))


def parse_date_for_display(date_str: str) -> str:
    """
    Reformat a quote-header date as DD:MM:YY HH:MM.

    Tries the common mail client formats, then RFC 2822. Anything that
    doesn't parse is returned as it was.
    """
    date_str = date_str.strip()

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt).strftime(DISPLAY_DATE_FORMAT)
        except ValueError:
            continue

    try:
        return parsedate_to_datetime(date_str).strftime(DISPLAY_DATE_FORMAT)
    except (TypeError, ValueError, IndexError):
        pass

    return date_str


def render_quote_box(
    sender: str,
    date: str,
    lines: list[str],
    styles: BodyStyles,
) -> str:
    """
    Draw a quoted section in a rounded box.

    Layout:
        ╭──────────────────────────────╮
        │ alice@x.com  02:01:06 15:04  │
        │                              │
        │ line one                     │
        │ line two                     │
        ╰──────────────────────────────╯

    The box is sized to its longest line, so nothing gets re-wrapped.

    Args:
        sender: Sender shown in the header ("" to omit).
        date: Date shown in the header ("" to omit).
        lines: Quoted lines.
        styles: Styles for the border and header.

    Returns:
        The box as a string of styled lines.
    """
    header = "  ".join(part for part in (sender, date) if part)

    content = Text()
    if header:
        content.append(header, style=styles.quote_header)
        content.append("\n\n")
    content.append_text(Text.from_ansi("\n".join(lines).expandtabs(8)))

    panel = Panel(
        content,
        box=box.ROUNDED,
        padding=(0, 1),
        style=styles.quote_border,
        border_style=styles.quote_border,
        expand=False,
    )

    # Border plus one column of padding on each side
    width = max((cell_len(line) for line in content.plain.split("\n")), default=0) + 4
    console = Console(
        file=io.StringIO(),
        width=width,
        force_terminal=True,
        color_system="truecolor",
        highlight=False,
        emoji=False,
        legacy_windows=False,
    )
    with console.capture() as capture:
        console.print(panel)
    return capture.get().rstrip("\n")


def resolve_quote_placeholders(
    text: str,
    quotes: list[QuoteRecord],
    styles: BodyStyles,
) -> str:
    """
    Replace quote placeholders with rendered quote boxes.

    A placeholder whose index has no record is left exactly as it is.
    """
    def resolve(match: re.Match) -> str:
        index = int(match.group(1))
        if 0 <= index < len(quotes):
            quote = quotes[index]
            return render_quote_box(quote.sender, quote.date, quote.lines, styles)
        logger.debug(f"unresolved quote placeholder index={index}")
        return match.group(0)

    return QUOTE_PLACEHOLDER_RE.sub(resolve, text)


def style_quoted_replies(text: str, styles: BodyStyles) -> str:
    """
    Box up plain-text quoted replies.

    Scans line by line. An "On <date>, <sender> wrote:" line or a line
    starting with ">" begins a quote. The run of ">" lines (with blank
    lines between them) is collected, markers stripped, and drawn as a
    quote box once a non-quoted line, or a blank line not followed by
    another ">" line, ends it.

    Args:
        text: Rendered body text.
        styles: Styles for the quote boxes.

    Returns:
        Text with quoted runs replaced by boxes.
    """
    lines = text.split("\n")
    result: list[str] = []
    block: list[str] = []
    sender = date = ""
    header_line: str | None = None
    in_quote = False

    def flush() -> None:
        nonlocal block, header_line
        if block:
            result.append(render_quote_box(sender, date, block, styles))
        elif header_line is not None:
            # A header with nothing quoted under it is just text
            result.append(header_line)
        block = []
        header_line = None

    for i, line in enumerate(lines):
        stripped = line.strip()

        header = ON_WROTE_LINE_RE.match(stripped)
        if header:
            if in_quote:
                flush()
            sender = header.group(2)
            date = parse_date_for_display(header.group(1))
            header_line = line
            in_quote = True
            continue

        if stripped.startswith(">"):
            if not in_quote:
                in_quote = True
                sender = date = ""
            quoted = stripped[1:]
            block.append(quoted[1:] if quoted.startswith(" ") else quoted)
            continue

        if not in_quote:
            result.append(line)
            continue

        next_is_quoted = i + 1 < len(lines) and lines[i + 1].strip().startswith(">")
        if not stripped and not block and header_line is not None:
            # Blank line between the header and the first quoted line
            continue
        elif not stripped and next_is_quoted:
            # Blank line inside a quote block
            block.append("")
        else:
            flush()
            in_quote = False
            sender = date = ""
            result.append(line)

    if in_quote:
        flush()

    return "\n".join(result)
