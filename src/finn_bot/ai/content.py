"""Convert stored messages and attachments into provider content blocks."""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Any

from finn_bot.core.types import AttachmentKind, Role
from finn_bot.storage.models import Attachment, Message

MAX_TEXT_CHARS = 50_000
TRUNCATION_MARKER = "\n... [truncated]"
EMPTY_PROMPT = "Please analyze the attached content."

# Image types Claude and most vision models accept
SUPPORTED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
DEFAULT_IMAGE_TYPE = "image/jpeg"

_TEXT_TYPES = frozenset({
    "text/plain", "text/markdown", "text/csv", "text/html", "text/xml",
    "application/json", "application/xml", "text/x-python",
    "text/x-javascript", "text/x-typescript", "application/javascript",
    "application/typescript",
})


def classify_attachment(mime_type: str) -> AttachmentKind:
    """Map a MIME type onto the attachment kinds the providers understand."""
    if mime_type in SUPPORTED_IMAGE_TYPES:
        return AttachmentKind.IMAGE
    if mime_type in _TEXT_TYPES or mime_type.startswith("text/"):
        return AttachmentKind.TEXT
    if mime_type == "application/pdf":
        return AttachmentKind.DOCUMENT
    return AttachmentKind.OTHER


def truncate_text(text: str, limit: int = MAX_TEXT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def prepare_attachment(file_id: str, mime_type: str, filename: str, data: bytes) -> Attachment:
    """Build an Attachment from a downloaded file.

    Images are base64-encoded, text files are decoded and truncated to
    MAX_TEXT_CHARS, anything else is recorded without content.
    """
    kind = classify_attachment(mime_type)
    if kind == AttachmentKind.IMAGE:
        return Attachment(
            id=file_id,
            kind=kind,
            mime_type=mime_type,
            filename=filename or "image",
            data=base64.b64encode(data).decode(),
        )
    if kind == AttachmentKind.TEXT:
        text = data.decode("utf-8", errors="replace")
        return Attachment(
            id=file_id,
            kind=kind,
            mime_type=mime_type,
            filename=filename or "file.txt",
            data=truncate_text(text),
        )
    return Attachment(id=file_id, kind=kind, mime_type=mime_type, filename=filename or "file")


def load_attachment(path: str | Path) -> Attachment:
    """Read a local file into an Attachment, guessing its MIME type from the name."""
    file_path = Path(path).expanduser()
    mime_type, _ = mimetypes.guess_type(str(file_path))
    return prepare_attachment(
        file_id=file_path.name,
        mime_type=mime_type or "application/octet-stream",
        filename=file_path.name,
        data=file_path.read_bytes(),
    )


def image_media_type(mime_type: str) -> str:
    return mime_type if mime_type in SUPPORTED_IMAGE_TYPES else DEFAULT_IMAGE_TYPE


def _split_attachments(attachments: tuple[Attachment, ...]) -> tuple[list[Attachment], list[Attachment]]:
    images = [a for a in attachments if a.kind == AttachmentKind.IMAGE and a.data]
    texts = [
        a for a in attachments
        if a.kind in (AttachmentKind.TEXT, AttachmentKind.DOCUMENT) and a.data
    ]
    return images, texts


def _file_text(attachment: Attachment) -> str:
    return f"[File: {attachment.filename}]\n{attachment.data}"


def _primary_text(message: Message, has_blocks: bool) -> str | None:
    if message.content:
        return message.content
    if has_blocks:
        return EMPTY_PROMPT
    return None


def to_claude_content(message: Message) -> str | list[dict[str, Any]]:
    """Encode a message for the native messages API.

    Order is fixed: image blocks, then file text blocks, then the message text.
    """
    if not message.attachments:
        return message.content

    images, texts = _split_attachments(message.attachments)
    blocks: list[dict[str, Any]] = []
    for att in images:
        blocks.append(
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image_media_type(att.mime_type),
                    "data": att.data,
                },
            }
        )
    for att in texts:
        blocks.append({"type": "text", "text": _file_text(att)})

    text = _primary_text(message, bool(blocks))
    if text is None:
        return message.content
    blocks.append({"type": "text", "text": text})
    return blocks


def to_openai_content(message: Message) -> str | list[dict[str, Any]]:
    """Encode a message for chat completions, with images as data URIs."""
    if not message.attachments:
        return message.content

    images, texts = _split_attachments(message.attachments)
    parts: list[dict[str, Any]] = []
    for att in images:
        url = f"data:{image_media_type(att.mime_type)};base64,{att.data}"
        parts.append({"type": "image_url", "image_url": {"url": url}})
    for att in texts:
        parts.append({"type": "text", "text": _file_text(att)})

    text = _primary_text(message, bool(parts))
    if text is None:
        return message.content
    parts.append({"type": "text", "text": text})
    return parts


def build_claude_messages(history: list[Message]) -> list[dict[str, Any]]:
    """Convert history to native messages. System turns go in the system prompt instead."""
    return [
        {"role": str(m.role), "content": to_claude_content(m)}
        for m in history
        if m.role != Role.SYSTEM
    ]


def build_openai_messages(history: list[Message]) -> list[dict[str, Any]]:
    """Convert history to chat completions messages. The client prepends the system prompt."""
    return [{"role": str(m.role), "content": to_openai_content(m)} for m in history]
