# =============================================================================
# Terminal Capability Detection
# =============================================================================
# Works out what the current terminal can do, purely from environment
# variables. There's no reliable way to ask a terminal "do you speak the
# Kitty graphics protocol?" without blocking on a reply, so we look for the
# marker variables each emulator sets instead.
#
# Two independent questions:
#   - Can it draw inline images? (Kitty protocol or iTerm2 protocol)
#   - Can it show clickable OSC 8 hyperlinks?
#
# A terminal may answer yes to one and no to the other. Several identities
# can be true at once (e.g. tmux running inside Kitty), in which case the
# Kitty family wins over the iTerm2 family when picking a protocol.
#
# Also home to the cell-size probe, which asks the kernel for the window's
# pixel size so we know how many rows an image will cover.
# =============================================================================

import logging
import os
import struct
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from enum import Enum, auto

logger = logging.getLogger(__name__)

# Pixel height assumed for a terminal cell when the terminal won't say
DEFAULT_CELL_HEIGHT = 18


class ImageProtocol(Enum):
    """Terminal graphics protocols."""
    KITTY = auto()      # Kitty graphics protocol (chunked APC sequences)
    ITERM2 = auto()     # iTerm2 inline images (single OSC 1337 sequence)
    NONE = auto()       # No image support (text only)


# Terminals speaking each protocol. Checked in this order: the Kitty family
# first, so a multiplexer inside Kitty that also looks like iTerm2 gets Kitty.
KITTY_FAMILY = ("kitty", "ghostty", "wezterm", "wayst", "konsole")
ITERM2_FAMILY = ("iterm2", "warp")


@dataclass(frozen=True)
class TerminalCapabilities:
    """
    What the current terminal supports.

    Attributes:
        kitty, ghostty, iterm2, wezterm, wayst, warp, konsole: Whether that
            terminal emulator was detected.
        hyperlinks: Whether OSC 8 hyperlinks are supported.
        forced_protocol: Protocol chosen by configuration, overriding the
            detected terminals. None means "use detection".
    """
    kitty: bool = False
    ghostty: bool = False
    iterm2: bool = False
    wezterm: bool = False
    wayst: bool = False
    warp: bool = False
    konsole: bool = False
    hyperlinks: bool = False
    forced_protocol: ImageProtocol | None = None

    @property
    def image_protocol(self) -> ImageProtocol:
        """The protocol to use for inline images."""
        if self.forced_protocol is not None:
            return self.forced_protocol
        if any(getattr(self, name) for name in KITTY_FAMILY):
            return ImageProtocol.KITTY
        if any(getattr(self, name) for name in ITERM2_FAMILY):
            return ImageProtocol.ITERM2
        return ImageProtocol.NONE

    @property
    def image_protocol_supported(self) -> bool:
        """Returns True if inline images can be drawn at all."""
        return self.image_protocol is not ImageProtocol.NONE

    def with_protocol(self, protocol: ImageProtocol | None) -> "TerminalCapabilities":
        """Return a copy with the image protocol forced (or unforced)."""
        return replace(self, forced_protocol=protocol)

    def describe(self) -> str:
        """Short flag summary for debug logs."""
        flags = [
            f"{f.name}={getattr(self, f.name)}"
            for f in fields(self)
            if f.name != "forced_protocol"
        ]
        return " ".join(flags)


# =============================================================================
# Detection Predicates
# =============================================================================

Environ = Mapping[str, str]


def _term(env: Environ) -> str:
    return env.get("TERM", "").lower()


def _term_program(env: Environ) -> str:
    return env.get("TERM_PROGRAM", "").lower()


def _any_set(env: Environ, *names: str) -> bool:
    return any(env.get(name) for name in names)


def _is_kitty(env: Environ) -> bool:
    return "kitty" in _term(env) or _any_set(env, "KITTY_WINDOW_ID")


def _is_ghostty(env: Environ) -> bool:
    return (
        "ghostty" in _term(env)
        or _term_program(env) == "ghostty"
        or _any_set(env, "GHOSTTY_RESOURCES_DIR")
    )


def _is_iterm2(env: Environ) -> bool:
    return (
        _term_program(env) == "iterm.app"
        or _any_set(env, "ITERM_SESSION_ID", "ITERM_PROFILE")
    )


def _is_wezterm(env: Environ) -> bool:
    return (
        _any_set(env, "WEZTERM_EXECUTABLE", "WEZTERM_CONFIG_FILE")
        or _term_program(env) == "wezterm"
        or "wezterm" in _term(env)
    )


def _is_wayst(env: Environ) -> bool:
    return "wayst" in _term(env) or _term_program(env) == "wayst"


def _is_warp(env: Environ) -> bool:
    return (
        _term_program(env) == "warp"
        or _any_set(
            env,
            "WARP_IS_LOCAL_SHELL_SESSION",
            "WARP_COMBINED_PROMPT_COMMAND_FINISHED",
        )
    )


def _is_konsole(env: Environ) -> bool:
    return (
        _any_set(env, "KONSOLE_DBUS_SESSION", "KONSOLE_VERSION")
        or _term_program(env) == "konsole"
    )


# TERM substrings and TERM_PROGRAM substrings known to handle OSC 8
HYPERLINK_TERMS = ("kitty", "ghostty", "wezterm", "alacritty", "foot", "tmux", "screen")
HYPERLINK_PROGRAMS = ("iterm.app", "hyper", "vscode", "ghostty", "wezterm")
HYPERLINK_MARKERS = (
    "VTE_VERSION",              # GNOME Terminal and other VTE terminals
    "KITTY_WINDOW_ID",
    "GHOSTTY_RESOURCES_DIR",
    "WEZTERM_EXECUTABLE",
)


def _has_hyperlinks(env: Environ) -> bool:
    term = _term(env)
    if any(name in term for name in HYPERLINK_TERMS):
        return True
    program = _term_program(env)
    if any(name in program for name in HYPERLINK_PROGRAMS):
        return True
    return _any_set(env, *HYPERLINK_MARKERS)


# (capability flag, predicate) - every predicate is evaluated independently
CAPABILITY_CHECKS: tuple[tuple[str, Callable[[Environ], bool]], ...] = (
    ("kitty", _is_kitty),
    ("ghostty", _is_ghostty),
    ("iterm2", _is_iterm2),
    ("wezterm", _is_wezterm),
    ("wayst", _is_wayst),
    ("warp", _is_warp),
    ("konsole", _is_konsole),
    ("hyperlinks", _has_hyperlinks),
)


def detect_terminal_capabilities(environ: Environ | None = None) -> TerminalCapabilities:
    """
    Detect terminal graphics and hyperlink capabilities.

    Args:
        environ: Environment mapping to inspect. Defaults to os.environ.

    Returns:
        TerminalCapabilities. If nothing matches, every flag is False and
        callers should fall back to plain text.
    """
    env = os.environ if environ is None else environ
    flags = {name: check(env) for name, check in CAPABILITY_CHECKS}
    return TerminalCapabilities(**flags)


# =============================================================================
# Cell Size Probing
# =============================================================================

# A probe returns the pixel height of one terminal cell, or None if unknown
CellSizeProbe = Callable[[], int | None]


def _cell_height_from_fd(fd: int) -> int | None:
    """Ask the terminal behind fd for its size via TIOCGWINSZ."""
    import fcntl
    import termios

    try:
        packed = fcntl.ioctl(fd, termios.TIOCGWINSZ, b"\0" * 8)
    except OSError:
        return None

    rows, _cols, _xpixel, ypixel = struct.unpack("HHHH", packed)

    # Many terminals report rows but leave the pixel fields at zero
    if rows > 0 and ypixel > 0:
        cell_height = ypixel // rows
        if cell_height > 0:
            logger.debug(
                f"terminal cell height: {cell_height} pixels "
                f"(rows={rows}, ypixel={ypixel}, fd={fd})"
            )
            return cell_height

    if rows > 0 and ypixel == 0:
        logger.debug(f"terminal fd={fd} has rows={rows} but no pixel info (ypixel=0)")

    return None


def probe_cell_height() -> int | None:
    """
    Query the terminal's cell height in pixels.

    Tries stdout, stdin and stderr, then opens /dev/tty directly, which
    still works when the standard streams are redirected. First answer wins.

    Returns:
        Cell height in pixels, or None if no terminal reports pixel sizes.
    """
    try:
        import fcntl  # noqa: F401
        import termios  # noqa: F401
    except ImportError:
        # Not a POSIX terminal (Windows)
        return None

    for stream in (sys.stdout, sys.stdin, sys.stderr):
        try:
            fd = stream.fileno()
        except (AttributeError, OSError, ValueError):
            continue
        cell_height = _cell_height_from_fd(fd)
        if cell_height:
            return cell_height

    try:
        with open("/dev/tty", "rb") as tty:
            return _cell_height_from_fd(tty.fileno())
    except OSError:
        return None


def fixed_cell_height(pixels: int) -> CellSizeProbe:
    """Return a probe that always reports the given cell height."""
    def probe() -> int | None:
        return pixels
    return probe
