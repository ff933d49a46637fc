# =============================================================================
# Terminal Image Encoding
# =============================================================================
# Turns a base64 PNG payload into the escape sequences that make a terminal
# draw it inline.
#
# Supported protocols:
#   - Kitty: Chunked APC sequences, used by Kitty, Ghostty, WezTerm,
#     Wayst and Konsole
#   - iTerm2: A single OSC 1337 sequence, used by iTerm2 and Warp
#
# Both protocols paint the image over the character grid without moving
# the cursor, so the text that follows would be drawn on top of it. To
# avoid that we work out how many rows the image covers and leave a
# placeholder that the text finalizer later turns into that many newlines.
# The placeholder (rather than literal newlines) is what lets the image's
# vertical space survive the blank-line collapsing pass.
# =============================================================================

import base64
import binascii
import logging
import math
import re
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from matcha.rendering.terminal import (
    DEFAULT_CELL_HEIGHT,
    CellSizeProbe,
    ImageProtocol,
    probe_cell_height,
)

logger = logging.getLogger(__name__)

# Kitty recommends chunks of at most 4096 bytes of base64
KITTY_CHUNK_SIZE = 4096

# Upper bound on the rows one image may reserve
MAX_IMAGE_ROWS = 10000

IMAGE_ROW_PLACEHOLDER_PREFIX = "[[MATCHA_IMG_ROWS:"
IMAGE_ROW_PLACEHOLDER_SUFFIX = "]]"

# Matches any placeholder, including malformed counts, so they all expand
_IMAGE_ROW_RE = re.compile(
    re.escape(IMAGE_ROW_PLACEHOLDER_PREFIX)
    + r"([^\]]*)"
    + re.escape(IMAGE_ROW_PLACEHOLDER_SUFFIX)
)


def image_row_placeholder(rows: int) -> str:
    """Placeholder marking `rows` rows of vertical space for an image."""
    return f"{IMAGE_ROW_PLACEHOLDER_PREFIX}{rows}{IMAGE_ROW_PLACEHOLDER_SUFFIX}"


def expand_image_rows(text: str) -> str:
    """
    Replace every image-row placeholder with that many newlines.

    A count that is missing, not a number, or below 1 counts as 1. Counts
    above MAX_IMAGE_ROWS are clamped to it.
    """
    def expand(match: re.Match) -> str:
        try:
            rows = int(match.group(1))
        except ValueError:
            rows = 1
        return "\n" * min(max(rows, 1), MAX_IMAGE_ROWS)

    return _IMAGE_ROW_RE.sub(expand, text)


def image_rows(payload: str, cell_probe: CellSizeProbe | None = None) -> int:
    """
    Work out how many terminal rows an image will cover.

    Args:
        payload: Base64-encoded image data.
        cell_probe: Returns the cell height in pixels. Defaults to asking
                    the terminal; falls back to 18 pixels.

    Returns:
        ceil(image height / cell height), between 1 and MAX_IMAGE_ROWS. Any
        failure to decode the image (including decompression bombs) gives
        1, since a bad height estimate shouldn't stop the email from
        rendering.
    """
    try:
        data = base64.b64decode(payload, validate=False)
        with Image.open(BytesIO(data)) as image:
            pixel_height = image.height
    except (
        binascii.Error,
        ValueError,
        UnidentifiedImageError,
        OSError,
        Image.DecompressionBombError,
    ) as e:
        logger.debug(f"could not read image height, using 1 row: {e}")
        return 1

    probe = cell_probe or probe_cell_height
    cell_height = probe() or 0
    if cell_height <= 0:
        cell_height = DEFAULT_CELL_HEIGHT
        logger.debug(f"using default cell height: {cell_height} pixels")

    rows = min(max(math.ceil(pixel_height / cell_height), 1), MAX_IMAGE_ROWS)
    logger.debug(
        f"image height: {pixel_height} pixels, cell height: {cell_height} pixels, "
        f"rows needed: {rows}"
    )
    return rows


class ImageEncoder:
    """
    Encodes base64 image payloads for terminal graphics protocols.

    Encoders are plain string builders; the only outside question they
    ask is the cell height, through the injected probe.

    Usage:
        >>> encoder = ImageEncoder()
        >>> sequence = encoder.encode(payload, ImageProtocol.KITTY)
    """

    def __init__(self, cell_probe: CellSizeProbe | None = None) -> None:
        """
        Initialize the encoder.

        Args:
            cell_probe: Cell height probe. Defaults to querying the terminal.
        """
        self.cell_probe = cell_probe or probe_cell_height

    def encode(self, payload: str, protocol: ImageProtocol) -> str:
        """
        Encode a payload for the given protocol.

        Returns:
            Escape sequence followed by an image-row placeholder, or "" if
            there is nothing to draw or no protocol to draw it with.
        """
        if not payload:
            return ""
        if protocol is ImageProtocol.KITTY:
            return self.encode_kitty(payload)
        if protocol is ImageProtocol.ITERM2:
            return self.encode_iterm2(payload)
        return ""

    def encode_kitty(self, payload: str) -> str:
        """
        Encode using the Kitty graphics protocol.

        Format: ESC _G <key>=<value>,... ; <base64 chunk> ESC \\
        The first chunk carries the display keys:
            f=100  PNG data
            a=T    transmit and display
            q=2    suppress the terminal's OK/error replies
            C=1    don't move the cursor after drawing
        m=1 marks "more chunks follow", m=0 the last chunk.
        """
        if not payload:
            return ""

        rows = image_rows(payload, self.cell_probe)

        chunks = [
            payload[i:i + KITTY_CHUNK_SIZE]
            for i in range(0, len(payload), KITTY_CHUNK_SIZE)
        ]

        result = []
        for i, chunk in enumerate(chunks):
            more = 0 if i == len(chunks) - 1 else 1
            if i == 0:
                result.append(f"\033_Gf=100,a=T,q=2,C=1,m={more};{chunk}\033\\")
            else:
                result.append(f"\033_Gm={more};{chunk}\033\\")

        # C=1 leaves the cursor at the image's top-left, so push text below it
        result.append(f"\n{image_row_placeholder(rows)}\n")
        return "".join(result)

    def encode_iterm2(self, payload: str) -> str:
        """
        Encode using the iTerm2 inline image protocol.

        Format: ESC ]1337;File=inline=1:<base64> BEL
        """
        if not payload:
            return ""

        rows = image_rows(payload, self.cell_probe)
        return f"\033]1337;File=inline=1:{payload}\a\n{image_row_placeholder(rows)}\n"
