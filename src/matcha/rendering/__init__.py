# =============================================================================
# Rendering Module
# =============================================================================
# Turns email bodies into terminal output: styled text, clickable links,
# inline images and boxed quoted replies.
#
# Terminal graphics support:
#   - Kitty protocol: Kitty, Ghostty, WezTerm, Wayst, Konsole
#   - iTerm2 protocol: iTerm2, Warp
#   - Anything else gets text placeholders
#
# The rendering pipeline:
#   1. normalize.py  - decode transport encoding, Markdown -> HTML, parse
#   2. transform.py  - rewrite headings, spacing, quotes, links, images
#   3. images.py     - encode image payloads (sources.py finds them)
#   4. text.py       - extract text, expand placeholders, draw quotes
#
# terminal.py decides what the terminal can do along the way.
# =============================================================================

from matcha.rendering.engine import (
    RenderEngine,
    RenderResult,
    render_body,
    render_body_with_inline,
)
from matcha.rendering.errors import BodyParseError, RenderError
from matcha.rendering.sources import InlineImage
from matcha.rendering.styles import BodyStyles
from matcha.rendering.terminal import (
    ImageProtocol,
    TerminalCapabilities,
    detect_terminal_capabilities,
)

__all__ = [
    "render_body",
    "render_body_with_inline",
    "RenderEngine",
    "RenderResult",
    "BodyStyles",
    "InlineImage",
    "BodyParseError",
    "RenderError",
    "ImageProtocol",
    "TerminalCapabilities",
    "detect_terminal_capabilities",
]
