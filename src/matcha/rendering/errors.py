# =============================================================================
# Rendering Exceptions
# =============================================================================
# Only one failure is allowed to abort a render: the body could not be
# turned into a document tree. Everything else (bad transport encoding,
# broken images, unreachable URLs) degrades locally and is logged instead.
# =============================================================================


class RenderError(Exception):
    """Base class for rendering errors."""
    pass


class BodyParseError(RenderError):
    """Raised when the normalized email body cannot be parsed as HTML."""
    pass
