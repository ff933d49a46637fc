# =============================================================================
# Matcha Command Line
# =============================================================================
# Renders an email body to stdout the way a terminal mail reader would show
# it. Useful for previewing messages and for checking what a terminal
# supports.
#
# Commands:
#   matcha render FILE   Render a saved message (.eml) or a bare body
#   matcha paths         Print configuration paths
#
# The command:
#   - Loads configuration (XDG config.toml)
#   - Parses the message and collects its inline images
#   - Renders through RenderEngine and prints the result, followed by a
#     list of regular attachments
# =============================================================================

import argparse
import logging
import sys
from pathlib import Path

from matcha import __app_name__, __version__
from matcha.config import Config, ConfigError, print_paths
from matcha.core import Message, looks_like_message, parse_message
from matcha.rendering import BodyParseError, RenderEngine

logger = logging.getLogger(__name__)


# =============================================================================
# Commands
# =============================================================================

def format_headers(message: Message) -> str:
    """Summary header block shown above the body with --headers."""
    lines = [f"From:    {message.display_sender}"]
    if message.sender_name and message.sender:
        lines[0] += f" <{message.sender}>"
    lines.append(f"Subject: {message.subject or '(no subject)'}")
    if message.date_sent is not None:
        lines.append(f"Date:    {message.date_sent.strftime('%d:%m:%y %H:%M')}")
    return "\n".join(lines) + "\n"


def format_attachments(message: Message) -> str:
    """One line per regular attachment, or "" if there are none."""
    return "\n".join(
        f"[Attachment: {a.filename}, {a.human_size}]"
        for a in message.regular_attachments
    )


def render_file(
    path: Path,
    config: Config,
    *,
    raw: bool = False,
    headers: bool = False,
) -> int:
    """
    Render a file to stdout.

    Args:
        path: Saved message or bare body.
        config: Loaded configuration.
        raw: Treat the whole file as a body even if it has headers.
        headers: Print From/Subject/Date above the body.

    Returns:
        Exit code (0 for success, 1 if the body couldn't be rendered).
    """
    data = path.read_bytes()
    engine = RenderEngine(config.rendering, config.styles.to_body_styles())

    if raw or not looks_like_message(data):
        logger.debug(f"Rendering {path} as a bare body")
        print(engine.render_body(data.decode("utf-8", errors="replace")))
        return 0

    message = parse_message(data)
    logger.debug(f"Parsed {message!r}")

    result = engine.render_message(message)
    if headers:
        print(format_headers(message))
    print(result.text)
    attachments = format_attachments(message)
    if attachments:
        print()
        print(attachments)
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    return 0


# =============================================================================
# CLI Entry Point
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="Matcha: render email bodies in the terminal",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # render
    render = subparsers.add_parser(
        "render",
        help="Render a message or body to stdout",
    )
    render.add_argument(
        "file",
        type=Path,
        help="Saved message (.eml) or raw body (HTML, Markdown or text)",
    )
    render.add_argument(
        "--no-images",
        action="store_true",
        help="Show image placeholders instead of drawing images",
    )
    render.add_argument(
        "--raw",
        action="store_true",
        help="Treat the file as a body even if it has headers",
    )
    render.add_argument(
        "--headers",
        action="store_true",
        help="Show sender, subject and date above the body",
    )
    render.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )
    render.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging)",
    )

    # paths
    subparsers.add_parser(
        "paths",
        help="Print configuration paths and exit",
    )

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        parser.exit(2)
    return args


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for Matcha.

    This function:
        1. Parses command-line arguments
        2. Handles special commands (paths, --version)
        3. Loads configuration
        4. Renders the requested file

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_args(argv)

    if args.command == "paths":
        print_paths()
        return 0

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )

    try:
        config = Config.load(args.config)
        if args.no_images:
            config.rendering.disable_images = True
        return render_file(args.file, config, raw=args.raw, headers=args.headers)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
    except BodyParseError as e:
        print(f"Error: {e}", file=sys.stderr)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)

    return 1


if __name__ == "__main__":
    sys.exit(main())
