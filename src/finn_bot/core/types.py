"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Provider(StrEnum):
    """Provider families. Each one speaks a different wire format."""

    CLAUDE = "claude"  # native messages
    OPENROUTER = "openrouter"  # chat completions


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class AttachmentKind(StrEnum):
    IMAGE = "image"
    TEXT = "text"
    DOCUMENT = "document"
    OTHER = "other"
