"""Data models for storage layer."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from finn_bot.core.types import AttachmentKind, Provider, Role


def _now() -> int:
    return int(time.time())


@dataclass(frozen=True, slots=True)
class Attachment:
    """A file attached to a message.

    ``data`` holds base64 for images, decoded (possibly truncated) text for
    text files and ``None`` for kinds the providers cannot read.
    """

    id: str
    kind: AttachmentKind
    mime_type: str
    filename: str
    data: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attachment:
        return cls(
            id=data.get("id", ""),
            kind=AttachmentKind(data.get("kind", AttachmentKind.OTHER)),
            mime_type=data.get("mime_type", ""),
            filename=data.get("filename", "file"),
            data=data.get("data"),
        )


@dataclass(frozen=True, slots=True)
class Message:
    conversation_id: str
    role: Role
    content: str
    attachments: tuple[Attachment, ...] = ()
    model: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    latency_ms: Optional[int] = None
    created_at: int = field(default_factory=_now)
    id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.role == Role.SYSTEM and self.attachments:
            raise ValueError("system messages cannot carry attachments")


@dataclass
class User:
    id: str
    preferred_model: str
    role: str = "user"  # "user" | "admin" | "super_admin"
    display_name: Optional[str] = None
    email: Optional[str] = None
    created_at: int = field(default_factory=_now)
    updated_at: int = field(default_factory=_now)


@dataclass
class Conversation:
    id: str
    user_id: str
    model: str
    channel_id: Optional[str] = None
    thread_ts: Optional[str] = None
    status: str = "active"  # "active" | "archived"
    created_at: int = field(default_factory=_now)
    updated_at: int = field(default_factory=_now)


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """A logical model alias bound to a provider-side model id."""

    id: str
    provider: Provider
    model_id: str
    display_name: str
    enabled: bool = True
