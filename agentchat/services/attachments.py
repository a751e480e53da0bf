"""Inline attachment decoding.

Images and files arrive as base64 data URIs. They are decoded before the
stream starts so that a malformed attachment produces a 400 response
instead of an in-band error.
"""

import base64
import binascii
import re
from dataclasses import dataclass

from agentchat.models.chat import ChatTurnRequest, FileAttachment
from agentchat.services.errors import AttachmentValidationError, TurnValidationError

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)(?P<params>(;[\w-]+=[^;,]*)*);base64,(?P<data>.*)$", re.DOTALL)

ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}
MAX_ATTACHMENTS = 10
MAX_ATTACHMENT_BYTES = 20 * 1024 * 1024


@dataclass(frozen=True)
class DecodedAttachment:
    """Binary attachment content ready for the agent backend."""

    data: bytes
    media_type: str
    file_name: str | None = None


def decode_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into (media_type, bytes).

    Raises:
        AttachmentValidationError: if the URI is not a valid base64 data URI
    """
    match = _DATA_URI_RE.match(data_uri.strip())
    if not match:
        raise AttachmentValidationError("Invalid attachment: expected a base64 data URI")
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AttachmentValidationError(f"Invalid attachment encoding: {e}") from e
    if len(data) > MAX_ATTACHMENT_BYTES:
        raise AttachmentValidationError("Invalid attachment: exceeds 20 MB limit")
    return match.group("mime").lower(), data


def decode_image(data_uri: str) -> DecodedAttachment:
    media_type, data = decode_data_uri(data_uri)
    if media_type not in ALLOWED_IMAGE_TYPES:
        raise AttachmentValidationError(f"Invalid image type: {media_type}")
    return DecodedAttachment(data=data, media_type=media_type)


def decode_file(attachment: FileAttachment) -> DecodedAttachment:
    media_type, data = decode_data_uri(attachment.data_uri)
    if not attachment.file_name.strip():
        raise AttachmentValidationError("Invalid file attachment: file name is required")
    # The declared type wins; the URI type is only a fallback.
    return DecodedAttachment(
        data=data,
        media_type=attachment.mime_type or media_type,
        file_name=attachment.file_name,
    )


def decode_attachments(request: ChatTurnRequest) -> list[DecodedAttachment]:
    """Decode every image and file on a turn, images first, in order."""
    if len(request.images) + len(request.files) > MAX_ATTACHMENTS:
        raise AttachmentValidationError(
            f"Invalid attachments: at most {MAX_ATTACHMENTS} attachments per message"
        )
    decoded = [decode_image(uri) for uri in request.images]
    decoded.extend(decode_file(f) for f in request.files)
    return decoded


def validate_turn_request(request: ChatTurnRequest) -> None:
    """Pre-stream validation of a chat turn.

    Raises:
        TurnValidationError: on an empty message outside the approval flow
        AttachmentValidationError: on any malformed attachment
    """
    if not request.message.strip() and not request.is_approval_resume:
        raise TurnValidationError("Message is required.")
    decode_attachments(request)
