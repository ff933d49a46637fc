# =============================================================================
# MIME Message Parsing
# =============================================================================
# Flattens an RFC 822 message into a Message: the first text/plain part,
# the first text/html part, and every other part as an attachment. Image
# parts carrying a Content-ID are the inline images HTML bodies point at
# with <img src="cid:...">.
#
# Real-world mail is frequently malformed, so the compat32 policy is used
# and every decode falls back to UTF-8 with replacement characters.
# =============================================================================

import email
import email.errors
import email.header
import email.utils
import logging
from datetime import datetime
from email import policy
from email.message import Message as EmailMessage

from matcha.core.message import Attachment, Message

logger = logging.getLogger(__name__)


def parse_message(raw: bytes) -> Message:
    """
    Parse raw message bytes into a Message.

    Args:
        raw: Complete RFC 822 message (headers and body).

    Returns:
        Parsed Message.
    """
    msg = email.message_from_bytes(raw, policy=policy.compat32)

    sender_name, sender = email.utils.parseaddr(_decode_header(msg.get("From", "")))
    recipients = [
        address
        for _, address in email.utils.getaddresses(msg.get_all("To", []))
        if address
    ]

    body_text, body_html, attachments = _parse_body(msg)

    return Message(
        subject=_decode_header(msg.get("Subject", "")),
        sender=sender,
        sender_name=sender_name,
        recipients=recipients,
        date_sent=_parse_date(msg.get("Date", "")),
        body_text=body_text,
        body_html=body_html,
        attachments=attachments,
    )


def looks_like_message(raw: bytes) -> bool:
    """
    Returns True if raw starts with RFC 822 headers.

    Used to tell a saved .eml file apart from a bare body.
    """
    msg = email.message_from_bytes(raw, policy=policy.compat32)
    return bool(msg.keys()) and any(
        msg.get(name) for name in ("From", "Subject", "Content-Type", "MIME-Version")
    )


def _parse_body(msg: EmailMessage) -> tuple[str, str, list[Attachment]]:
    """
    Parse the message body into text, HTML, and attachments.

    Returns:
        Tuple of (body_text, body_html, attachments).
    """
    body_text = ""
    body_html = ""
    attachments: list[Attachment] = []

    if not msg.is_multipart():
        content_type = msg.get_content_type()
        if content_type == "text/html":
            body_html = _decode_part(msg)
        else:
            body_text = _decode_part(msg)
        return body_text, body_html, attachments

    for part in msg.walk():
        # Skip multipart containers
        if part.is_multipart():
            continue

        content_type = part.get_content_type()
        disposition = str(part.get("Content-Disposition", ""))
        content_id = part.get("Content-ID")

        if content_type.startswith("image/") and content_id:
            attachment = _extract_attachment(part)
            if attachment:
                attachment.content_id = content_id.strip().strip("<>")
                attachment.is_inline = "attachment" not in disposition
                attachments.append(attachment)
        elif "attachment" in disposition:
            attachment = _extract_attachment(part)
            if attachment:
                attachments.append(attachment)
        elif content_type == "text/plain" and not body_text:
            body_text = _decode_part(part)
        elif content_type == "text/html" and not body_html:
            body_html = _decode_part(part)

    return body_text, body_html, attachments


def _decode_part(part: EmailMessage) -> str:
    """Decode a message part to string."""
    payload = part.get_payload(decode=True)
    if isinstance(payload, bytes):
        charset = part.get_content_charset() or "utf-8"
        try:
            return payload.decode(charset, errors="replace")
        except (LookupError, UnicodeDecodeError):
            return payload.decode("utf-8", errors="replace")
    return str(payload) if payload else ""


def _extract_attachment(part: EmailMessage) -> Attachment | None:
    """Extract attachment from message part."""
    filename = part.get_filename()
    if not filename:
        # Generate filename from content type
        content_type = part.get_content_type()
        ext = content_type.split("/")[-1] if "/" in content_type else "bin"
        filename = f"attachment.{ext}"

    payload = part.get_payload(decode=True)
    if not isinstance(payload, bytes):
        return None

    return Attachment(
        filename=_decode_header(filename),
        content_type=part.get_content_type(),
        size=len(payload),
        data=payload,
    )


def _decode_header(value: str) -> str:
    """Decode an RFC 2047 encoded header value."""
    if not value:
        return ""
    try:
        parts = email.header.decode_header(value)
    except email.errors.HeaderParseError as e:
        logger.debug(f"Could not decode header {value!r}: {e}")
        return value

    decoded = []
    for text, charset in parts:
        if isinstance(text, bytes):
            try:
                decoded.append(text.decode(charset or "utf-8", errors="replace"))
            except LookupError:
                decoded.append(text.decode("utf-8", errors="replace"))
        else:
            decoded.append(text)
    return "".join(decoded)


def _parse_date(value: str) -> datetime | None:
    """Parse a Date header, or None if missing or malformed."""
    if not value:
        return None
    try:
        return email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
