# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the Matcha test suite.
# =============================================================================

import base64
import logging
import struct
import textwrap
import zlib
from io import BytesIO

import pytest
from PIL import Image

from matcha.core import Attachment, Message
from matcha.rendering.debug import RENDERING_LOGGER
from matcha.rendering.styles import BodyStyles
from matcha.rendering.terminal import fixed_cell_height

# Every variable terminal detection or protocol debugging looks at
TERMINAL_ENV_VARS = (
    "TERM",
    "TERM_PROGRAM",
    "KITTY_WINDOW_ID",
    "GHOSTTY_RESOURCES_DIR",
    "ITERM_SESSION_ID",
    "ITERM_PROFILE",
    "WEZTERM_EXECUTABLE",
    "WEZTERM_CONFIG_FILE",
    "WARP_IS_LOCAL_SHELL_SESSION",
    "WARP_COMBINED_PROMPT_COMMAND_FINISHED",
    "KONSOLE_DBUS_SESSION",
    "KONSOLE_VERSION",
    "VTE_VERSION",
    "DEBUG_IMAGE_PROTOCOL",
    "DEBUG_KITTY_IMAGES",
    "DEBUG_IMAGE_PROTOCOL_LOG",
    "DEBUG_KITTY_LOG",
)

# A 1x1 RGBA PNG
TINY_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/PchI7wAAAABJRU5ErkJggg=="
)


@pytest.fixture(autouse=True)
def plain_terminal(monkeypatch):
    """
    Run every test in a terminal with no image or hyperlink support.

    Tests that want a particular terminal set the variables they need.
    """
    for name in TERMINAL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TERM", "xterm-256color")


@pytest.fixture(autouse=True)
def isolated_xdg(monkeypatch, tmp_path):
    """Point XDG directories at a temporary location."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))


@pytest.fixture
def rendering_logger():
    """The rendering logger, with any handlers added by a test removed after."""
    logger = logging.getLogger(RENDERING_LOGGER)
    before = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers[:]:
        if handler not in before:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


@pytest.fixture
def plain_styles():
    """Styles that add no escape codes, so output can be compared as text."""
    return BodyStyles.plain()


@pytest.fixture
def cell_probe():
    """Cell height probe that never touches the real terminal."""
    return fixed_cell_height(18)


@pytest.fixture
def tiny_png():
    return TINY_PNG_BASE64


@pytest.fixture
def make_png():
    """Factory for base64 PNGs of a given size."""
    def make(width: int, height: int) -> str:
        output = BytesIO()
        Image.new("RGB", (width, height), "white").save(output, format="PNG")
        return base64.standard_b64encode(output.getvalue()).decode("ascii")
    return make


@pytest.fixture
def oversized_png():
    """
    A PNG whose header claims 30000x30000 pixels but carries no pixel data.

    Pillow refuses to open it as a decompression bomb.
    """
    def chunk(kind: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(kind + data)
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)

    header = struct.pack(">IIBBBBB", 30000, 30000, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", b"")
        + chunk(b"IEND", b"")
    )


class FakeResponse:
    """Stands in for a streamed requests.Response."""

    def __init__(self, status_code: int = 200, content: bytes = b"", chunks=None):
        self.status_code = status_code
        self.chunks = [content] if chunks is None else list(chunks)
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        yield from self.chunks

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_http(monkeypatch):
    """
    Replace requests.get for image fetching.

    Set the reply with respond() or fail(). Each request is recorded as
    (url, keyword arguments) in `requests`. Unless told otherwise every
    fetch gets a 404.
    """
    class Server:
        def __init__(self):
            self.requests = []
            self.reply = FakeResponse(404)
            self.error = None

        def respond(self, status_code: int = 200, content: bytes = b"", chunks=None):
            self.reply = FakeResponse(status_code, content, chunks)
            return self.reply

        def fail(self, error: Exception) -> None:
            self.error = error

        def get(self, url, **kwargs):
            self.requests.append((url, kwargs))
            if self.error is not None:
                raise self.error
            return self.reply

    server = Server()
    monkeypatch.setattr("matcha.rendering.sources.requests.get", server.get)
    return server


@pytest.fixture
def sample_html_email():
    """Sample HTML email content for rendering tests."""
    return textwrap.dedent("""\
        <html>
        <head>
        <style>
        body { font-family: Arial, sans-serif; }
        </style>
        <script>alert("hi")</script>
        </head>
        <body>
        <h1>Welcome to Our Newsletter!</h1>
        <div>
        <p>Hello <strong>User</strong>,</p>
        <p>Links: <a href="https://example.com">Click here</a></p>
        <p>Here's an image:</p>
        <img src="cid:logo123" alt="Company Logo">
        </div>
        <p>You received this email because you signed up at example.com</p>
        </body>
        </html>
        """)


@pytest.fixture
def sample_message(sample_html_email, tiny_png):
    """A Message with an HTML body and one inline image."""
    return Message(
        subject="Newsletter",
        sender="news@example.com",
        sender_name="Example News",
        recipients=["user@example.com"],
        body_text="Welcome to Our Newsletter!",
        body_html=sample_html_email,
        attachments=[
            Attachment(
                filename="logo.png",
                content_type="image/png",
                size=len(base64.b64decode(tiny_png)),
                content_id="<logo123>",
                is_inline=True,
                data=base64.b64decode(tiny_png),
            ),
        ],
    )
