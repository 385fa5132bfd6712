"""Card change notifications and their duplicate suppression.

This module provides:
- NotificationRenderer: turns a board action into a thread notification,
  gated by the per-category notification flags
- content_hash: the fingerprint used to recognize a notification
- NotificationDeduplicator: processed-action ids and per-card content
  hashes, both bounded with insertion-order eviction
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import structlog
from cachetools import FIFOCache

from discord_trello_sync.config.schema import NotificationConfig
from discord_trello_sync.models.action import (
    BoardAction,
    CardMoved,
    CardRenamed,
    CheckItemStateChanged,
    ChecklistAdded,
    CommentAdded,
    DueDateChanged,
    LabelAction,
    MemberAction,
)
from discord_trello_sync.models.notification import Notification
from discord_trello_sync.models.thread import ThreadMessage

log = structlog.get_logger()

GREEN = 0x61BD4F
RED = 0xEB5A46
BLUE = 0x0079BF
YELLOW = 0xF2D600
PURPLE = 0x9F19CC
LIGHT_PURPLE = 0xC377E0

COMMENT_EXCERPT_LENGTH = 300


def content_hash(title: str, description: str) -> str:
    """Fingerprint a notification by its title and description."""
    digest = hashlib.sha256()
    digest.update(title.encode("utf-8"))
    digest.update(b"\x00")
    digest.update(description.encode("utf-8"))
    return digest.hexdigest()


def _excerpt(text: str, limit: int = COMMENT_EXCERPT_LENGTH) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


class NotificationRenderer:
    """Renders board actions into thread notifications.

    Renames and moves are always relayed. Every other category is relayed
    only when its flag is enabled. Unrecognized actions are never relayed.
    """

    def __init__(self, config: NotificationConfig, display_timezone: str = "UTC") -> None:
        self._config = config
        self._tz = ZoneInfo(display_timezone)

    def render(self, action: BoardAction) -> Notification | None:
        """Render an action, or return None if it is not relayed."""
        rendered = self._render_body(action)
        if rendered is None:
            return None

        title, description, color = rendered
        return Notification(
            title=title,
            description=description,
            color=color,
            footer=self._config.footer_marker,
            timestamp=action.date,
            footer_icon_url=self._config.footer_icon_url,
        )

    def _render_body(self, action: BoardAction) -> tuple[str, str, int] | None:
        config = self._config

        if isinstance(action, LabelAction):
            if not config.label_changes:
                return None
            if action.added:
                return "🏷️ Label Added", f"Label **{action.label_name}** was added to the card", GREEN
            return (
                "🏷️ Label Removed",
                f"Label **{action.label_name}** was removed from the card",
                RED,
            )

        if isinstance(action, ChecklistAdded):
            if not config.checklist_changes:
                return None
            return (
                "📋 Checklist Added",
                f"Checklist **{action.checklist_name}** was added to the card",
                BLUE,
            )

        if isinstance(action, CheckItemStateChanged):
            if not config.checklist_changes:
                return None
            if action.complete:
                return (
                    "✅ Checklist Item Completed",
                    f"Checklist item **{action.item_name}** was completed",
                    GREEN,
                )
            return (
                "⬜ Checklist Item Updated",
                f"Checklist item **{action.item_name}** was marked incomplete",
                YELLOW,
            )

        if isinstance(action, MemberAction):
            if not config.member_changes:
                return None
            if action.added:
                who = f"**{action.member_name}** was" if action.member_name else "A team member was"
                return "👤 Member Assigned", f"{who} assigned to this card", PURPLE
            who = f"**{action.member_name}** was" if action.member_name else "A team member was"
            return "👤 Member Unassigned", f"{who} unassigned from this card", LIGHT_PURPLE

        if isinstance(action, DueDateChanged):
            if not config.due_date_changes:
                return None
            return self._render_due_date(action)

        if isinstance(action, CardRenamed):
            return (
                "✏️ Card Renamed",
                f"Card was renamed from **{action.old_name}** to **{action.card_name}**",
                BLUE,
            )

        if isinstance(action, CommentAdded):
            if not config.comment_changes:
                return None
            author = action.actor_name or "Someone"
            text = _excerpt(action.text)
            if not text:
                return "💬 New Comment", "A new comment was added to the card", BLUE
            quoted = "\n".join(f"> {line}" for line in text.splitlines())
            return "💬 New Comment", f"**{author}** commented:\n{quoted}", BLUE

        if isinstance(action, CardMoved):
            return "🔄 Card Moved", f"Card was moved to **{action.list_name}**", PURPLE

        return None

    def _render_due_date(self, action: DueDateChanged) -> tuple[str, str, int] | None:
        if action.old_due is None and action.new_due is not None:
            return (
                "📅 Due Date Set",
                f"Due date was set to **{self._format_date(action.new_due)}**",
                YELLOW,
            )
        if action.old_due is not None and action.new_due is None:
            return "📅 Due Date Removed", "Due date was removed from the card", RED
        if action.old_due is not None and action.new_due is not None:
            if action.old_due == action.new_due:
                return None
            return (
                "📅 Due Date Changed",
                f"Due date was updated to **{self._format_date(action.new_due)}**",
                BLUE,
            )
        return None

    def _format_date(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(self._tz).strftime("%B %d, %Y")


class NotificationDeduplicator:
    """Remembers which actions were handled and which notifications exist.

    Both caches evict their oldest entries once full, so memory stays bounded
    for long-running processes.
    """

    def __init__(self, processed_cap: int = 2000, hash_cap: int = 2000) -> None:
        self._processed: FIFOCache[str, bool] = FIFOCache(maxsize=processed_cap)
        self._hashes: FIFOCache[tuple[str, str], bool] = FIFOCache(maxsize=hash_cap)

    def is_processed(self, action_id: str) -> bool:
        return action_id in self._processed

    def mark_processed(self, action_id: str) -> None:
        if action_id not in self._processed:
            self._processed[action_id] = True

    def is_duplicate(self, card_id: str, digest: str) -> bool:
        return (card_id, digest) in self._hashes

    def record(self, card_id: str, digest: str) -> None:
        key = (card_id, digest)
        if key not in self._hashes:
            self._hashes[key] = True

    def seed_from_messages(
        self,
        card_id: str,
        messages: Iterable[ThreadMessage],
        footer_marker: str,
    ) -> int:
        """Record notifications already visible in a thread.

        Only messages authored by the bridge whose first embed carries the
        footer marker count as notifications.

        Args:
            card_id: Card bound to the thread
            messages: Recent thread messages
            footer_marker: Footer text that marks bridge notifications

        Returns:
            Number of hashes recorded
        """
        seeded = 0
        for message in messages:
            if not message.from_self or not message.embeds:
                continue

            embed = message.embeds[0]
            if embed.footer_text != footer_marker:
                continue

            self.record(card_id, content_hash(embed.title or "", embed.description or ""))
            seeded += 1

        return seeded

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    @property
    def hash_count(self) -> int:
        return len(self._hashes)
