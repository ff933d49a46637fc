# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and validating Matcha configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/matcha/  (default: ~/.config/matcha/)
#   - Cache:   $XDG_CACHE_HOME/matcha/   (default: ~/.cache/matcha/)
#
# Files:
#   - config.toml: User configuration (rendering options, styles)
# =============================================================================

import os
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # For writing TOML (tomllib is read-only)
from rich.errors import StyleSyntaxError

from matcha.rendering.sources import REMOTE_FETCH_TIMEOUT
from matcha.rendering.styles import (
    DEFAULT_BODY,
    DEFAULT_H1,
    DEFAULT_H2,
    DEFAULT_QUOTE_BORDER,
    DEFAULT_QUOTE_HEADER,
    BodyStyles,
)


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "matcha"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for Matcha.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/matcha/
    This is where user configuration files live (config.toml).
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


def get_xdg_cache_home() -> Path:
    """
    Returns the XDG cache directory for Matcha.

    Respects $XDG_CACHE_HOME if set, otherwise uses ~/.cache/matcha/
    Cache can be safely deleted without data loss.
    """
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        base = Path(xdg_cache)
    else:
        base = Path.home() / ".cache"
    return base / APP_NAME


def ensure_directories() -> dict[str, Path]:
    """
    Creates all required XDG directories if they don't exist.

    Returns:
        Dictionary mapping directory type to path.
    """
    dirs = {
        "config": get_xdg_config_home(),
        "cache": get_xdg_cache_home(),
    }

    for dir_path in dirs.values():
        dir_path.mkdir(parents=True, exist_ok=True)

    return dirs


# =============================================================================
# Configuration Data Structures
# =============================================================================

IMAGE_PROTOCOLS = ("auto", "kitty", "iterm2", "none")


@dataclass
class RenderingConfig:
    """
    Configuration for the body renderer.

    Attributes:
        image_protocol: Terminal graphics protocol to use.
                        - "auto": Detect from the environment
                        - "kitty": Kitty graphics protocol
                        - "iterm2": iTerm2 inline images
                        - "none": Never draw images inline
        disable_images: Show every image as a text placeholder.
        fetch_remote_images: Download http(s) images referenced by the body.
        remote_timeout: Seconds to wait for a remote image.
        cell_height: Pixel height of a terminal cell. 0 asks the terminal.
    """
    image_protocol: str = "auto"        # "auto", "kitty", "iterm2", "none"
    disable_images: bool = False
    fetch_remote_images: bool = True
    remote_timeout: float = REMOTE_FETCH_TIMEOUT
    cell_height: int = 0                # 0 = probe the terminal


@dataclass
class StylesConfig:
    """
    Rich style strings for rendered bodies (e.g. "bold #7d56f4").

    Attributes:
        h1: Top-level headings.
        h2: Second-level headings.
        body: The whole body ("" for no styling).
        quote_border: Quote box border and text.
        quote_header: Quote box "sender  date" line.
    """
    h1: str = DEFAULT_H1
    h2: str = DEFAULT_H2
    body: str = DEFAULT_BODY
    quote_border: str = DEFAULT_QUOTE_BORDER
    quote_header: str = DEFAULT_QUOTE_HEADER

    def to_body_styles(self) -> BodyStyles:
        """
        Build the renderer's styles.

        Raises:
            ConfigError: If a style string isn't valid Rich style syntax.
        """
        try:
            return BodyStyles.from_strings(
                h1=self.h1,
                h2=self.h2,
                body=self.body,
                quote_border=self.quote_border,
                quote_header=self.quote_header,
            )
        except StyleSyntaxError as e:
            raise ConfigError(f"Invalid style: {e}") from e


@dataclass
class Config:
    """
    Main configuration container for Matcha.

    Attributes:
        rendering: Body rendering configuration.
        styles: Body styling configuration.

    Usage:
        >>> config = Config.load()
        >>> config.rendering.image_protocol
        'auto'
    """
    rendering: RenderingConfig = field(default_factory=RenderingConfig)
    styles: StylesConfig = field(default_factory=StylesConfig)

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from the config file.

        If the config file doesn't exist, returns default configuration.

        Args:
            path: Config file to read. Defaults to the XDG location.

        Returns:
            Loaded Config object.

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or cls.config_file_path()

        if not config_path.exists():
            # No config file yet - return defaults
            return cls()

        # Load and parse the TOML file
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file: {e}") from e

        return cls._from_dict(data)

    def save(self, path: Path | None = None) -> None:
        """
        Save configuration to the config file.

        Creates the config directory if it doesn't exist.
        """
        if path is None:
            ensure_directories()
            path = self.config_file_path()
        else:
            path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).

        Raises:
            ConfigError: If a value is of the wrong kind.
        """
        config = cls()

        # Rendering settings
        rendering = data.get("rendering", {})
        image_protocol = str(rendering.get("image_protocol", "auto")).lower()
        if image_protocol not in IMAGE_PROTOCOLS:
            raise ConfigError(
                f"Invalid image_protocol {image_protocol!r} "
                f"(expected one of: {', '.join(IMAGE_PROTOCOLS)})"
            )
        try:
            config.rendering = RenderingConfig(
                image_protocol=image_protocol,
                disable_images=bool(rendering.get("disable_images", False)),
                fetch_remote_images=bool(rendering.get("fetch_remote_images", True)),
                remote_timeout=float(rendering.get("remote_timeout", REMOTE_FETCH_TIMEOUT)),
                cell_height=int(rendering.get("cell_height", 0)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid [rendering] value: {e}") from e

        # Style settings
        styles = data.get("styles", {})
        config.styles = StylesConfig(
            h1=str(styles.get("h1", DEFAULT_H1)),
            h2=str(styles.get("h2", DEFAULT_H2)),
            body=str(styles.get("body", DEFAULT_BODY)),
            quote_border=str(styles.get("quote_border", DEFAULT_QUOTE_BORDER)),
            quote_header=str(styles.get("quote_header", DEFAULT_QUOTE_HEADER)),
        )
        # Fail at load time rather than on the first render
        config.styles.to_body_styles()

        return config

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert Config to a dictionary for TOML serialization.
        """
        data: dict[str, Any] = {}

        data["rendering"] = {
            "image_protocol": self.rendering.image_protocol,
            "disable_images": self.rendering.disable_images,
            "fetch_remote_images": self.rendering.fetch_remote_images,
            "remote_timeout": self.rendering.remote_timeout,
            "cell_height": self.rendering.cell_height,
        }

        data["styles"] = {
            "h1": self.styles.h1,
            "h2": self.styles.h2,
            "body": self.styles.body,
            "quote_border": self.styles.quote_border,
            "quote_header": self.styles.quote_header,
        }

        return data


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print all XDG paths for debugging.
    Useful for users wondering where their config is stored.
    """
    print(f"Config:  {get_xdg_config_home()}")
    print(f"Cache:   {get_xdg_cache_home()}")
    print()
    print(f"Config file:  {Config.config_file_path()}")
