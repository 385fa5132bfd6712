"""Data models for forum threads and their messages."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class Thread:
    """A forum thread on the thread platform."""

    thread_id: str
    name: str
    created_at: datetime
    creator_id: str | None
    creator_name: str


@dataclass(frozen=True)
class MessageAttachment:
    """A file uploaded with a message."""

    url: str
    name: str
    content_type: str | None = None


@dataclass(frozen=True)
class MessageEmbed:
    """An embed attached to a message (link preview, GIF, or rich notification)."""

    type: str
    url: str | None = None
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    footer_text: str | None = None


@dataclass(frozen=True)
class ThreadMessage:
    """A single message inside a thread."""

    message_id: str
    author_id: str
    author_name: str
    from_self: bool  # Authored by this bridge; never aggregated
    content: str
    created_at: datetime
    attachments: tuple[MessageAttachment, ...] = ()
    embeds: tuple[MessageEmbed, ...] = ()


class ThreadEventKind(Enum):
    """Thread platform events that trigger a card sync."""

    THREAD_CREATED = "thread_created"
    MESSAGE_CREATED = "message_created"
    MESSAGE_EDITED = "message_edited"


@dataclass(frozen=True)
class ThreadEvent:
    """An event from the thread platform."""

    kind: ThreadEventKind
    thread: Thread
    message: ThreadMessage | None = None
