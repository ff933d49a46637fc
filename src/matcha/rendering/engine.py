# =============================================================================
# Rendering Engine
# =============================================================================
# The entry points the rest of the client uses to turn an email body into
# terminal output.
#
#   render_body()              - body only; cid: images fall back to text
#   render_body_with_inline()  - body plus the message's inline images
#   RenderEngine               - applies the user's [rendering] config and
#                                renders a whole Message
#
# Each call is independent: terminal capabilities are detected afresh,
# nothing is cached, and no state is shared between calls. The only
# blocking step is fetching remote images (5 second timeout each).
# =============================================================================

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from matcha.rendering.debug import configure_protocol_debug
from matcha.rendering.errors import BodyParseError
from matcha.rendering.images import ImageEncoder
from matcha.rendering.normalize import normalize
from matcha.rendering.sources import (
    REMOTE_FETCH_TIMEOUT,
    InlineImage,
    PayloadResolver,
    build_inline_map,
)
from matcha.rendering.styles import BodyStyles
from matcha.rendering.terminal import (
    CellSizeProbe,
    ImageProtocol,
    TerminalCapabilities,
    detect_terminal_capabilities,
    fixed_cell_height,
)
from matcha.rendering.text import TextFinalizer
from matcha.rendering.transform import DocumentTransformer

if TYPE_CHECKING:
    from matcha.config import RenderingConfig
    from matcha.core import Message

logger = logging.getLogger(__name__)

# Config values for RenderingConfig.image_protocol
PROTOCOL_OVERRIDES = {
    "auto": None,
    "kitty": ImageProtocol.KITTY,
    "iterm2": ImageProtocol.ITERM2,
    "none": ImageProtocol.NONE,
}


def render_body(
    raw_body: str,
    styles: BodyStyles | None = None,
    *,
    disable_images: bool = False,
    capabilities: TerminalCapabilities | None = None,
    cell_probe: CellSizeProbe | None = None,
    fetch_remote: bool = True,
    timeout: float = REMOTE_FETCH_TIMEOUT,
) -> str:
    """
    Render an email body for the terminal.

    cid: images can't be resolved without the message's parts, so they
    always show as text; use render_body_with_inline() for those.

    Args:
        raw_body: Body as received (HTML, Markdown or plain text, possibly
                  quoted-printable encoded).
        styles: Heading/body/quote styles. Defaults to BodyStyles().
        disable_images: Show every image as text.
        capabilities: Terminal capabilities. Detected from the environment
                      if not given.
        cell_probe: Terminal cell height probe, for image row counts.
        fetch_remote: Whether http(s) images may be downloaded.
        timeout: Remote image fetch timeout in seconds.

    Returns:
        Styled text with escape sequences for links and images.

    Raises:
        BodyParseError: If the body can't be parsed.
    """
    return _render(
        raw_body,
        None,
        styles,
        disable_images=disable_images,
        capabilities=capabilities,
        cell_probe=cell_probe,
        fetch_remote=fetch_remote,
        timeout=timeout,
    )


def render_body_with_inline(
    raw_body: str,
    inline_images: Iterable[InlineImage],
    styles: BodyStyles | None = None,
    *,
    disable_images: bool = False,
    capabilities: TerminalCapabilities | None = None,
    cell_probe: CellSizeProbe | None = None,
    fetch_remote: bool = True,
    timeout: float = REMOTE_FETCH_TIMEOUT,
) -> str:
    """
    Render an email body, resolving cid: images against inline_images.

    Takes the same options as render_body().

    Raises:
        BodyParseError: If the body can't be parsed.
    """
    return _render(
        raw_body,
        build_inline_map(inline_images),
        styles,
        disable_images=disable_images,
        capabilities=capabilities,
        cell_probe=cell_probe,
        fetch_remote=fetch_remote,
        timeout=timeout,
    )


def _render(
    raw_body: str,
    inline: Mapping[str, str] | None,
    styles: BodyStyles | None,
    *,
    disable_images: bool,
    capabilities: TerminalCapabilities | None,
    cell_probe: CellSizeProbe | None,
    fetch_remote: bool,
    timeout: float,
) -> str:
    configure_protocol_debug()

    styles = styles or BodyStyles()
    if capabilities is None:
        capabilities = detect_terminal_capabilities()

    soup = normalize(raw_body)

    transformer = DocumentTransformer(
        styles,
        capabilities,
        PayloadResolver(inline, fetch_remote=fetch_remote, timeout=timeout),
        ImageEncoder(cell_probe),
        disable_images=disable_images,
    )
    quotes = transformer.transform(soup)

    return TextFinalizer(styles).finalize(soup, quotes)


# =============================================================================
# Message Rendering
# =============================================================================

@dataclass
class RenderResult:
    """
    Result of rendering an email.

    Attributes:
        text: The rendered text, ready to write to the terminal.
        error: Error message if rendering failed and text is a fallback.
    """
    text: str
    error: str | None = None

    @property
    def success(self) -> bool:
        """Returns True if rendering succeeded."""
        return self.error is None


class RenderEngine:
    """
    Renders messages according to the user's rendering configuration.

    Usage:
        >>> engine = RenderEngine(config.rendering, config.styles.to_body_styles())
        >>> result = engine.render_message(message)
        >>> if result.success:
        ...     print(result.text)

    Attributes:
        config: Rendering configuration.
        styles: Styles applied to every message.
    """

    def __init__(
        self,
        config: "RenderingConfig",
        styles: BodyStyles | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """
        Initialize the rendering engine.

        Args:
            config: Rendering configuration.
            styles: Body styles. Defaults to BodyStyles().
            environ: Environment to detect the terminal from. Defaults to
                     os.environ, read on every render.
        """
        self.config = config
        self.styles = styles or BodyStyles()
        self.environ = environ

    def capabilities(self) -> TerminalCapabilities:
        """
        Detect terminal capabilities, honouring the configured protocol.

        "auto" uses detection; "kitty"/"iterm2" force that protocol;
        "none" turns inline images off.
        """
        detected = detect_terminal_capabilities(self.environ)
        override = PROTOCOL_OVERRIDES.get(self.config.image_protocol)
        if override is not None:
            logger.debug(f"image protocol forced by config: {override.name}")
            return detected.with_protocol(override)
        return detected

    def cell_probe(self) -> CellSizeProbe | None:
        """Fixed cell height if configured, otherwise ask the terminal."""
        if self.config.cell_height > 0:
            return fixed_cell_height(self.config.cell_height)
        return None

    def render_body(
        self,
        raw_body: str,
        inline_images: Iterable[InlineImage] | None = None,
    ) -> str:
        """
        Render a raw body with this engine's settings.

        Raises:
            BodyParseError: If the body can't be parsed.
        """
        return _render(
            raw_body,
            build_inline_map(inline_images) if inline_images is not None else None,
            self.styles,
            disable_images=self.config.disable_images,
            capabilities=self.capabilities(),
            cell_probe=self.cell_probe(),
            fetch_remote=self.config.fetch_remote_images,
            timeout=self.config.remote_timeout,
        )

    def render_message(self, message: "Message") -> RenderResult:
        """
        Render a message for terminal display.

        Prefers the HTML body, then the plain-text body. If the body can't
        be parsed, the plain text is shown as-is and the error reported.

        Args:
            message: Message to render.

        Returns:
            RenderResult with rendered content.
        """
        body = message.body
        if not body.strip():
            return RenderResult(text="[No content]")

        try:
            text = self.render_body(body, message.inline_image_payloads())
        except BodyParseError as e:
            logger.warning(f"Falling back to plain text: {e}")
            if message.body_text:
                return RenderResult(text=message.body_text, error=str(e))
            return RenderResult(text=f"[Rendering error: {e}]", error=str(e))

        return RenderResult(text=text)

    async def render(self, message: "Message") -> RenderResult:
        """
        Render a message without blocking the event loop.

        Remote image fetches block, so the work runs in a thread.
        """
        return await asyncio.to_thread(self.render_message, message)
