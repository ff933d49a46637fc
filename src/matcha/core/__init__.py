# =============================================================================
# Matcha Core Module
# =============================================================================
# Domain models for the messages being rendered, plus the MIME parser that
# builds them from raw bytes:
#   - Message: An individual email message
#   - Attachment: A file attached to a message (or an inline image)
# =============================================================================

from matcha.core.message import Attachment, Message
from matcha.core.parser import looks_like_message, parse_message

__all__ = [
    "Message",
    "Attachment",
    "parse_message",
    "looks_like_message",
]
