# =============================================================================
# Image Payload Resolution
# =============================================================================
# Finds the bytes behind an <img src="...">. Email images come from three
# places:
#
#   - data URIs:   data:image/png;base64,iVBOR...   (payload is inline)
#   - Content-IDs: cid:logo123                      (a MIME part of the
#                  same message, handed to us by the caller)
#   - Remote URLs: https://example.com/logo.png     (fetched over HTTP)
#
# Whatever the source, the result is a base64 string. Remote images are
# re-encoded as PNG since that's the one format both terminal protocols
# agree on. Any failure (missing CID, 404, timeout, garbage bytes) yields
# an empty payload and the caller shows a text placeholder instead.
# =============================================================================

import base64
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from io import BytesIO
from time import monotonic

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Remote fetches give up after this many seconds
REMOTE_FETCH_TIMEOUT = 5.0

# Remote images larger than this are not drawn
MAX_REMOTE_IMAGE_BYTES = 20 * 1024 * 1024

FETCH_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class InlineImage:
    """
    An inline image supplied by the caller.

    Attributes:
        content_id: The MIME Content-ID, with or without <> and "cid:".
        base64: The image bytes, base64 encoded.
    """
    content_id: str
    base64: str


class ImageSourceKind(Enum):
    """Where an <img> src points."""
    DATA_URI = auto()
    CID = auto()
    REMOTE = auto()
    UNKNOWN = auto()


def classify_source(src: str) -> ImageSourceKind:
    """Work out what kind of reference an image src is."""
    if src.startswith("data:image/"):
        return ImageSourceKind.DATA_URI
    if src.startswith("cid:"):
        return ImageSourceKind.CID
    if src.startswith(("http://", "https://")):
        return ImageSourceKind.REMOTE
    return ImageSourceKind.UNKNOWN


def data_uri_payload(uri: str) -> str:
    """Return the base64 part of a data URI, or "" if there isn't one."""
    if not uri.startswith("data:"):
        return ""
    _, comma, payload = uri.partition(",")
    if not comma:
        return ""
    return payload


def normalize_content_id(content_id: str) -> str:
    """
    Reduce a Content-ID to its bare form.

    Examples:
        - "<logo@example.com>" -> "logo@example.com"
        - "cid:logo" -> "logo"
    """
    cid = content_id.strip()
    cid = cid.removeprefix("<").removesuffix(">")
    cid = cid.removeprefix("cid:")
    return cid.strip("<>")


def build_inline_map(images: Iterable[InlineImage] | None) -> dict[str, str]:
    """Index inline images by bare Content-ID, skipping incomplete ones."""
    inline: dict[str, str] = {}
    for image in images or ():
        cid = normalize_content_id(image.content_id)
        if not cid or not image.base64:
            continue
        inline[cid] = image.base64
    return inline


def fetch_remote_payload(url: str, timeout: float = REMOTE_FETCH_TIMEOUT) -> str:
    """
    Download a remote image and return it as base64 PNG.

    The body is streamed, and `timeout` bounds the whole download, not
    just the connect and the gap between reads. A server that trickles
    bytes is given up on once the deadline passes.

    Args:
        url: http(s) URL of the image.
        timeout: Seconds to wait before giving up.

    Returns:
        Base64 PNG data, or "" on any network, HTTP or decoding failure.
    """
    if not url.startswith(("http://", "https://")):
        return ""

    deadline = monotonic() + timeout
    try:
        response = requests.get(url, timeout=timeout, stream=True)
    except requests.RequestException as e:
        logger.warning(f"remote fetch failed url={url} err={e}")
        return ""

    try:
        if not 200 <= response.status_code < 300:
            logger.warning(f"remote fetch non-200 url={url} status={response.status_code}")
            return ""
        content = _read_body(response, url, deadline)
    except requests.RequestException as e:
        logger.warning(f"remote fetch failed url={url} err={e}")
        return ""
    finally:
        response.close()

    if not content:
        return ""

    try:
        with Image.open(BytesIO(content)) as image:
            # PNG can't hold CMYK and friends
            if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                image = image.convert("RGBA")
            output = BytesIO()
            image.save(output, format="PNG")
    except (
        UnidentifiedImageError,
        OSError,
        ValueError,
        Image.DecompressionBombError,
    ) as e:
        logger.warning(f"remote decode failed url={url} err={e}")
        return ""

    encoded = base64.standard_b64encode(output.getvalue()).decode("ascii")
    logger.debug(f"remote fetch ok url={url} len={len(encoded)}")
    return encoded


def _read_body(response: requests.Response, url: str, deadline: float) -> bytes:
    """Read a streamed body, giving up past the deadline or the size cap."""
    body = BytesIO()
    for chunk in response.iter_content(chunk_size=FETCH_CHUNK_SIZE):
        body.write(chunk)
        if monotonic() > deadline:
            logger.warning(f"remote fetch timed out url={url} read={body.tell()}")
            return b""
        if body.tell() > MAX_REMOTE_IMAGE_BYTES:
            logger.warning(f"remote fetch too large url={url} read={body.tell()}")
            return b""
    return body.getvalue()


class PayloadResolver:
    """
    Resolves <img> sources to base64 payloads.

    Usage:
        >>> resolver = PayloadResolver({"logo": "iVBOR..."})
        >>> resolver.resolve("cid:logo")
        'iVBOR...'
    """

    def __init__(
        self,
        inline: Mapping[str, str] | None = None,
        *,
        fetch_remote: bool = True,
        timeout: float = REMOTE_FETCH_TIMEOUT,
    ) -> None:
        """
        Initialize the resolver.

        Args:
            inline: Bare Content-ID -> base64 payload. None means the caller
                    supplied no inline images at all.
            fetch_remote: Whether http(s) images may be downloaded.
            timeout: Remote fetch timeout in seconds.
        """
        self.inline = inline
        self.fetch_remote = fetch_remote
        self.timeout = timeout

    def resolve(self, src: str) -> str:
        """Return the base64 payload for src, or "" if unavailable."""
        kind = classify_source(src)

        if kind is ImageSourceKind.DATA_URI:
            return data_uri_payload(src)

        if kind is ImageSourceKind.CID:
            cid = normalize_content_id(src)
            if self.inline is None:
                logger.debug(f"cid lookup skipped, no inline images for {cid}")
                return ""
            payload = self.inline.get(cid, "")
            logger.debug(f"cid lookup for {cid} found={bool(payload)} len={len(payload)}")
            return payload

        if kind is ImageSourceKind.REMOTE:
            if not self.fetch_remote:
                logger.debug(f"remote fetch disabled for {src}")
                return ""
            return fetch_remote_payload(src, self.timeout)

        return ""
