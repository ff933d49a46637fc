# =============================================================================
# Message Model
# =============================================================================
# Represents an email message as the renderer sees it:
#   - Envelope (from, to, subject, date)
#   - Body in plain text, HTML, or both
#   - Attachments, some of which are inline images referenced from the
#     HTML by Content-ID (<img src="cid:logo123">)
#
# A single email can contain many MIME parts; parser.py flattens them into
# this simplified view.
# =============================================================================

import base64
from dataclasses import dataclass, field
from datetime import datetime

from matcha.rendering.sources import InlineImage, normalize_content_id


@dataclass
class Attachment:
    """
    Represents a file attached to an email message.

    Attachments can be:
        - Regular attachments: Files the user explicitly attached
        - Inline attachments: Images embedded in HTML (referenced by Content-ID)

    Attributes:
        filename: Original filename of the attachment.
        content_type: MIME type (e.g., "application/pdf", "image/png").
        size: Size in bytes.
        content_id: For inline images, the Content-ID used in HTML <img> tags.
                    HTML references these as: <img src="cid:content_id">
        is_inline: True if embedded in the HTML body.
        data: The attachment bytes.

    Example:
        >>> attachment = Attachment(
        ...     filename="logo.png",
        ...     content_type="image/png",
        ...     size=2048,
        ...     content_id="logo123",
        ...     is_inline=True,
        ... )
    """
    filename: str
    content_type: str
    size: int

    # For inline images (embedded in HTML)
    content_id: str | None = None       # Content-ID for <img src="cid:...">
    is_inline: bool = False             # True if embedded in HTML body

    data: bytes | None = None

    @property
    def is_image(self) -> bool:
        """Returns True if this attachment is an image."""
        return self.content_type.startswith("image/")

    @property
    def human_size(self) -> str:
        """
        Returns a human-readable file size.

        Examples:
            - 500 -> "500 B"
            - 1500 -> "1.5 KB"
            - 1500000 -> "1.4 MB"
        """
        size = self.size
        for unit in ("B", "KB", "MB", "GB"):
            if size < 1024:
                return f"{size:.1f} {unit}" if size != int(size) else f"{int(size)} {unit}"
            size /= 1024
        return f"{size:.1f} TB"

    def to_inline_image(self) -> InlineImage | None:
        """
        Convert to the renderer's InlineImage.

        Returns:
            InlineImage, or None if this isn't an image with a Content-ID
            and data.
        """
        if not self.is_image or not self.content_id or not self.data:
            return None
        return InlineImage(
            content_id=normalize_content_id(self.content_id),
            base64=base64.standard_b64encode(self.data).decode("ascii"),
        )


@dataclass
class Message:
    """
    Represents an email message.

    Attributes:
        subject: Email subject line.
        sender: The "From" address (single address).
        sender_name: Display name of the sender (e.g., "John Doe").
        recipients: List of "To" addresses.
        date_sent: When the message was sent (from Date header).
        body_text: Plain text version of the body.
        body_html: HTML version of the body.
        attachments: Attachments, including inline images.

    Example:
        >>> message = Message(
        ...     subject="Hello World",
        ...     sender="alice@example.com",
        ...     body_text="Hello!",
        ... )
    """

    # Envelope information
    subject: str = ""
    sender: str = ""                    # From email address
    sender_name: str = ""               # From display name
    recipients: list[str] = field(default_factory=list)   # To addresses
    date_sent: datetime | None = None

    # Message body - may have text, HTML, or both
    body_text: str = ""
    body_html: str = ""

    attachments: list[Attachment] = field(default_factory=list)

    @property
    def has_html(self) -> bool:
        """Returns True if the message has an HTML body."""
        return bool(self.body_html.strip())

    @property
    def body(self) -> str:
        """The body to render: HTML if there is one, else plain text."""
        return self.body_html if self.has_html else self.body_text

    @property
    def inline_images(self) -> list[Attachment]:
        """Returns list of inline images (embedded in HTML)."""
        return [a for a in self.attachments if a.is_inline and a.is_image]

    @property
    def regular_attachments(self) -> list[Attachment]:
        """Returns list of non-inline attachments."""
        return [a for a in self.attachments if not a.is_inline]

    def inline_image_payloads(self) -> list[InlineImage]:
        """
        Inline images in the form the renderer takes.

        Every image attachment with a Content-ID counts, inline or not;
        some mailers mark referenced images as plain attachments.
        """
        images = []
        for attachment in self.attachments:
            image = attachment.to_inline_image()
            if image is not None:
                images.append(image)
        return images

    @property
    def display_sender(self) -> str:
        """
        Returns the best display string for the sender.
        Prefers sender_name if available, falls back to email address.
        """
        if self.sender_name:
            return self.sender_name
        return self.sender

    def __repr__(self) -> str:
        """Developer-friendly representation."""
        return (
            f"Message(subject={self.subject!r}, from={self.sender!r}, "
            f"attachments={len(self.attachments)})"
        )
