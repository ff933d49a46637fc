# =============================================================================
# Matcha: Email Body Rendering for the Terminal
# =============================================================================
#
# Matcha turns raw email bodies (HTML, Markdown or plain text, possibly
# quoted-printable encoded) into text a terminal can show directly:
#
#   - Styled headings and paragraph spacing
#   - Clickable links (OSC 8) where the terminal supports them
#   - Inline images via the Kitty or iTerm2 graphics protocols
#   - Quoted replies drawn as bordered boxes
#   - XDG Base Directory compliant configuration
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "matcha"

# Main entry point - this is what gets called by the 'matcha' command
from matcha.app import main

__all__ = ["main", "__version__", "__app_name__"]
