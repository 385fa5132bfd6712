"""Thread history aggregation into a single card description.

This module implements the ContentAggregator, which reads the complete
history of a thread and renders it into one deterministic markdown document:

1. Header with thread name and details (id, creation time, counts, authors)
2. The original post, framed so it stands out from the discussion
3. Replies grouped under one heading per calendar date

Rendering is a pure function of the thread and its messages, so running it
twice on an unchanged thread yields byte-identical output.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

import structlog

from discord_trello_sync.config.schema import SyncConfig
from discord_trello_sync.models.thread import (
    MessageAttachment,
    MessageEmbed,
    Thread,
    ThreadMessage,
)

if TYPE_CHECKING:
    from discord_trello_sync.interfaces.thread import ThreadProvider

log = structlog.get_logger()

# Trello rejects descriptions longer than this
MAX_DESCRIPTION_LENGTH = 16384

RULE = "**" + "═" * 39 + "**"

MEDIA_EXTENSION_PATTERN = re.compile(
    r"\.(gif|png|jpg|jpeg|webp|mp4|mov|avi|webm|mkv|mp3|wav|ogg|flac|m4a)(\?|$)",
    re.IGNORECASE,
)
MEDIA_HOST_PATTERN = re.compile(
    r"^https?://(cdn\.discordapp\.com|media\.discordapp\.net|media\.giphy\.com)/",
    re.IGNORECASE,
)
SHORT_LINK_PATTERN = re.compile(r"^https?://(www\.)?tenor\.com/view/\S+$", re.IGNORECASE)
BARE_URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)

IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "webp", "bmp"})
VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "avi", "webm", "mkv"})
AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg", "flac", "m4a"})

SPOILER_PATTERN = re.compile(r"\|\|(.*?)\|\|")


@dataclass(frozen=True)
class AggregatedContent:
    """A rendered card description and the messages it was built from."""

    description: str
    messages: tuple[ThreadMessage, ...]


def is_just_media_url(content: str) -> bool:
    """Return True if the message body is nothing but a link to media.

    Such messages (reaction GIFs, pasted screenshots) are summarized in one
    line instead of being copied into the description verbatim.
    """
    trimmed = content.strip()
    if not trimmed or not BARE_URL_PATTERN.match(trimmed):
        return False

    return bool(
        MEDIA_EXTENSION_PATTERN.search(trimmed)
        or MEDIA_HOST_PATTERN.match(trimmed)
        or SHORT_LINK_PATTERN.match(trimmed)
    )


def media_type_from_url(url: str) -> str:
    """Describe what a media URL points at, e.g. "a GIF"."""
    lower_url = url.lower()
    if "gif" in lower_url or "tenor.com/view/" in lower_url:
        return "a GIF"
    if re.search(r"\.(png|jpg|jpeg|webp)(\?|$)", lower_url):
        return "an Image"
    if re.search(r"\.(mp4|mov|avi|webm|mkv)(\?|$)", lower_url):
        return "a Video"
    if re.search(r"\.(mp3|wav|ogg|flac|m4a)(\?|$)", lower_url):
        return "an Audio File"
    return "a File"


def _count_phrase(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else f"{count} {plural}"


def categorize_attachments(attachments: Sequence[MessageAttachment]) -> str:
    """Summarize a set of attachments, e.g. "a GIF and 2 Images"."""
    counts = {"gifs": 0, "images": 0, "videos": 0, "audio": 0, "files": 0}

    for attachment in attachments:
        ext = attachment.name.rsplit(".", 1)[-1].lower() if "." in attachment.name else ""
        content_type = (attachment.content_type or "").lower()

        if ext == "gif" or "gif" in content_type:
            counts["gifs"] += 1
        elif ext in IMAGE_EXTENSIONS or content_type.startswith("image/"):
            counts["images"] += 1
        elif ext in VIDEO_EXTENSIONS or content_type.startswith("video/"):
            counts["videos"] += 1
        elif ext in AUDIO_EXTENSIONS or content_type.startswith("audio/"):
            counts["audio"] += 1
        else:
            counts["files"] += 1

    parts: list[str] = []
    if counts["gifs"]:
        parts.append(_count_phrase(counts["gifs"], "a GIF", "GIFs"))
    if counts["images"]:
        parts.append(_count_phrase(counts["images"], "an Image", "Images"))
    if counts["videos"]:
        parts.append(_count_phrase(counts["videos"], "a Video", "Videos"))
    if counts["audio"]:
        parts.append(_count_phrase(counts["audio"], "an Audio File", "Audio Files"))
    if counts["files"]:
        parts.append(_count_phrase(counts["files"], "a File", "Files"))

    if not parts:
        return "an Attachment"
    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2:
        return f"{parts[0]} and {parts[1]}"
    return f"{', '.join(parts[:-1])}, and {parts[-1]}"


def embed_type(embed: MessageEmbed) -> str:
    """Describe an embed, e.g. "a Video"."""
    if embed.type == "image":
        return "an Image"
    if embed.type == "gifv":
        return "a GIF"
    if embed.type == "video":
        return "a Video"
    if embed.type == "rich" and embed.image_url:
        return "an Image"
    if embed.type == "rich" and embed.video_url:
        return "a Video"
    if embed.url:
        return "a Link"
    return "an Embed"


def format_discord_markdown(content: str) -> str:
    """Pass message markdown through, rewriting spoilers Trello cannot show."""
    return SPOILER_PATTERN.sub(r"[SPOILER: \1]", content)


class ContentAggregator:
    """Renders a thread's full history into a card description.

    Example:
        aggregator = ContentAggregator(threads, config.sync)
        content = await aggregator.aggregate(thread)
        await board.update_card(card_id, {"desc": content.description})
    """

    def __init__(self, threads: ThreadProvider, config: SyncConfig) -> None:
        """Initialize the ContentAggregator.

        Args:
            threads: Thread provider used to read message history
            config: Sync configuration (page size, display timezone)
        """
        self._threads = threads
        self._config = config
        self._tz = ZoneInfo(config.display_timezone)

    async def fetch_history(self, thread_id: str) -> list[ThreadMessage]:
        """Fetch every message of a thread, oldest first, excluding our own.

        Args:
            thread_id: Thread to read

        Returns:
            Messages not authored by the bridge, in chronological order
        """
        page_size = self._config.history_page_size
        collected: list[ThreadMessage] = []
        before: str | None = None

        while True:
            page = await self._threads.fetch_messages(thread_id, before=before, limit=page_size)
            if not page:
                break

            collected.extend(m for m in page if not m.from_self)

            next_cursor = page[-1].message_id
            if len(page) < page_size or next_cursor == before:
                break
            before = next_cursor

        collected.reverse()
        log.debug("thread_history_fetched", thread_id=thread_id, messages=len(collected))
        return collected

    async def aggregate(self, thread: Thread) -> AggregatedContent:
        """Fetch a thread's history and render it.

        Args:
            thread: Thread to aggregate

        Returns:
            The description and the messages it was built from
        """
        messages = await self.fetch_history(thread.thread_id)
        return AggregatedContent(
            description=self.render(thread, messages),
            messages=tuple(messages),
        )

    def render(self, thread: Thread, messages: Sequence[ThreadMessage]) -> str:
        """Render the card description for a thread.

        Args:
            thread: The thread
            messages: Its non-bridge messages, oldest first

        Returns:
            Markdown description
        """
        participants = list(dict.fromkeys(m.author_name for m in messages))

        parts = [
            f"# 💬 {thread.name}\n\n",
            "**📝 Thread Details**\n",
            f"• **ID:** `{thread.thread_id}`\n",
            f"• **Created:** {self._format_long(thread.created_at)}\n",
            f"• **Messages:** {len(messages)}\n",
            f"• **Participants:** {len(participants)}\n\n",
            f"**👥 Participants:** {', '.join(participants)}\n\n",
            "## 📋 Original Thread Post\n",
            f"{RULE}\n\n",
        ]

        if messages:
            parts.append(self.format_message(messages[0], is_original_post=True))

        parts.extend(
            [
                f"\n{RULE}\n",
                "**⬆️ END OF ORIGINAL POST ⬆️**\n",
                f"{RULE}\n\n",
            ]
        )

        replies = messages[1:]
        if replies:
            parts.append("## 💬 Thread Replies & Discussion\n")
            parts.append("**🔽 NEW CONTENT STARTS HERE 🔽**\n\n")
            for date_label, day_messages in self._group_by_date(replies).items():
                parts.append(f"### 📅 {date_label}\n")
                parts.extend(self.format_message(m, is_original_post=False) for m in day_messages)
        else:
            parts.append("## 💬 Thread Replies\n")
            parts.append("*No replies yet - this thread only contains the original post.*\n")

        return self._truncate("".join(parts))

    def render_placeholder(self, thread: Thread) -> str:
        """Render the description a card gets before its first full sync."""
        return (
            f"# 💬 {thread.name}\n\n"
            "**📝 Thread Details**\n"
            f"• **ID:** `{thread.thread_id}`\n"
            f"• **Creator:** {thread.creator_name}\n"
            f"• **Created:** {self._format_long(thread.created_at)}\n\n"
            "*Loading thread content...*"
        )

    def format_message(self, message: ThreadMessage, is_original_post: bool = False) -> str:
        """Render one message block.

        A message whose body is empty or only a media link becomes a one-line
        summary. Otherwise the body is copied, followed by one link line per
        embed and attachment.
        """
        author = message.author_name
        content = message.content.strip()
        prefix = "👑 **THREAD CREATOR**" if is_original_post else "💭"

        parts = [f"\n{prefix} **{author}** • *{self._format_short(message.created_at)}*\n"]

        just_url = is_just_media_url(content)
        has_text = bool(content) and not just_url

        if just_url:
            parts.append(f"*{author} only attached {media_type_from_url(content)}*\n")
            parts.append(f"🔗 {content}\n")
        elif not has_text and message.attachments:
            parts.append(f"*{author} only attached {categorize_attachments(message.attachments)}*\n")
            parts.append(f"🔗 {message.attachments[0].url}\n")
        elif not has_text and message.embeds:
            first = message.embeds[0]
            parts.append(f"*{author} only attached {embed_type(first)}*\n")
            if first.url:
                parts.append(f"🔗 {first.url}\n")
        elif has_text:
            if is_original_post:
                parts.append("**📝 ORIGINAL THREAD CONTENT:**\n")
            parts.append(f"{format_discord_markdown(message.content)}\n")
            parts.extend(f"🔗 {embed.url}\n" for embed in message.embeds if embed.url)
            parts.extend(f"🔗 {attachment.url}\n" for attachment in message.attachments)

        parts.append("\n---\n")
        return "".join(parts)

    def _group_by_date(self, messages: Sequence[ThreadMessage]) -> dict[str, list[ThreadMessage]]:
        grouped: dict[str, list[ThreadMessage]] = {}
        for message in messages:
            label = self._localize(message.created_at).strftime("%B %d, %Y")
            grouped.setdefault(label, []).append(message)
        return grouped

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(self._tz)

    def _format_long(self, value: datetime) -> str:
        return self._localize(value).strftime("%B %d, %Y at %I:%M %p %Z")

    def _format_short(self, value: datetime) -> str:
        return self._localize(value).strftime("%b %d, %Y, %I:%M %p %Z")

    def _truncate(self, description: str) -> str:
        if len(description) <= MAX_DESCRIPTION_LENGTH:
            return description

        notice = "\n\n*Description truncated, see the thread for the full discussion.*"
        log.warning("description_truncated", length=len(description))
        return description[: MAX_DESCRIPTION_LENGTH - len(notice)] + notice
