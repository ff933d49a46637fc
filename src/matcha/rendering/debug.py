# =============================================================================
# Image Protocol Debug Logging
# =============================================================================
# Deciding which graphics protocol to speak is guesswork driven by
# environment variables, so it helps to see the decisions being made.
#
# Environment variables:
#   - DEBUG_IMAGE_PROTOCOL / DEBUG_KITTY_IMAGES: log decisions to stdout
#   - DEBUG_IMAGE_PROTOCOL_LOG / DEBUG_KITTY_LOG: also append to this file
#
# All rendering modules log through the standard logging module; this just
# attaches handlers to the "matcha.rendering" logger when asked to.
# =============================================================================

import logging
import os
import sys
from collections.abc import Mapping

# Logger that every rendering module's __name__ logger propagates to
RENDERING_LOGGER = "matcha.rendering"

DEBUG_FLAGS = ("DEBUG_IMAGE_PROTOCOL", "DEBUG_KITTY_IMAGES")
DEBUG_LOG_PATHS = ("DEBUG_IMAGE_PROTOCOL_LOG", "DEBUG_KITTY_LOG")

_FORMAT = "[img-protocol] %(message)s"


def protocol_debug_enabled(environ: Mapping[str, str] | None = None) -> bool:
    """Returns True if either debug flag is set to a non-empty value."""
    env = os.environ if environ is None else environ
    return any(env.get(name) for name in DEBUG_FLAGS)


def protocol_debug_log_path(environ: Mapping[str, str] | None = None) -> str | None:
    """Returns the first configured debug log path, if any."""
    env = os.environ if environ is None else environ
    for name in DEBUG_LOG_PATHS:
        if env.get(name):
            return env[name]
    return None


def configure_protocol_debug(environ: Mapping[str, str] | None = None) -> None:
    """
    Attach stdout/file handlers to the rendering logger if debugging is on.

    Safe to call on every render: handlers are only added once per
    destination, so repeated calls don't duplicate output.

    Args:
        environ: Environment mapping to read. Defaults to os.environ.
    """
    if not protocol_debug_enabled(environ):
        return

    logger = logging.getLogger(RENDERING_LOGGER)
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(_FORMAT)

    existing = {getattr(h, "_matcha_target", None) for h in logger.handlers}

    if "stdout" not in existing:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        handler._matcha_target = "stdout"
        logger.addHandler(handler)

    path = protocol_debug_log_path(environ)
    if path and path not in existing:
        try:
            file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not open debug log {path}: {e}")
            return
        file_handler.setFormatter(formatter)
        file_handler._matcha_target = path
        logger.addHandler(file_handler)
