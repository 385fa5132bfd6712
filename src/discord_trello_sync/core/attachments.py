"""Attachment reconciliation between thread messages and a card.

Links found in thread messages are attached to the card exactly once. The
card's current attachment list is fetched fresh on every pass and is the
authority on what already exists; attachments are never removed.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
import structlog

from discord_trello_sync.models.thread import ThreadMessage
from discord_trello_sync.utils.async_helpers import SyncError

if TYPE_CHECKING:
    from discord_trello_sync.interfaces.board import BoardProvider

log = structlog.get_logger()

URL_PATTERN = re.compile(r"https?://[^\s]+")

SHARED_LINK_NAME = "Shared Link"


def normalize_url(url: str) -> str:
    """Strip the query string from a URL."""
    return url.split("?", 1)[0]


@dataclass(frozen=True)
class AttachmentCandidate:
    """A link found in a thread message that may be attached to the card."""

    url: str
    name: str
    # Bare body URLs all share one name, so only their URL identifies them
    match_by_name: bool = True

    @property
    def base_url(self) -> str:
        return normalize_url(self.url)


def extract_candidates(messages: Iterable[ThreadMessage]) -> list[AttachmentCandidate]:
    """Collect attachment candidates from messages, in message order.

    Per message: uploaded files first, then one link per embed (image, then
    video, then the embed's own URL), then bare URLs in the body text.
    """
    candidates: list[AttachmentCandidate] = []

    for message in messages:
        for attachment in message.attachments:
            candidates.append(AttachmentCandidate(url=attachment.url, name=attachment.name))

        for embed in message.embeds:
            if embed.image_url:
                candidates.append(
                    AttachmentCandidate(url=embed.image_url, name=embed.title or "Embedded Image")
                )
            elif embed.video_url:
                candidates.append(
                    AttachmentCandidate(url=embed.video_url, name=embed.title or "Embedded Video")
                )
            elif embed.url and embed.type not in ("image", "gifv"):
                candidates.append(
                    AttachmentCandidate(url=embed.url, name=embed.title or "Embedded Link")
                )

        for url in URL_PATTERN.findall(message.content):
            candidates.append(AttachmentCandidate(url=url, name=SHARED_LINK_NAME, match_by_name=False))

    return candidates


class AttachmentReconciler:
    """Adds unseen message links to a card as attachments.

    Two links are the same attachment when their query-stripped URLs match
    or when they share a display name (bare body URLs are matched by URL
    only). A name match alone is enough to skip a link, which can hide a
    distinct file that happens to be named like an existing one.
    """

    def __init__(self, board: BoardProvider) -> None:
        self._board = board

    async def reconcile(self, card_id: str, messages: Sequence[ThreadMessage]) -> int:
        """Attach every unseen link from the messages to the card.

        Failures to add a single attachment are logged and skipped.

        Args:
            card_id: Card to update
            messages: Messages the card description was built from

        Returns:
            Number of attachments added
        """
        try:
            existing = await self._board.list_attachments(card_id)
        except (SyncError, httpx.HTTPError) as e:
            log.error("attachment_list_failed", card_id=card_id, error=str(e))
            return 0

        seen_urls = {normalize_url(a.url) for a in existing if a.url}
        seen_names = {a.name for a in existing if a.name}
        added = 0

        for candidate in extract_candidates(messages):
            if candidate.base_url in seen_urls:
                continue
            if candidate.match_by_name and candidate.name in seen_names:
                continue

            # Mark before awaiting so a repeated link later in this pass is skipped
            seen_urls.add(candidate.base_url)
            if candidate.match_by_name:
                seen_names.add(candidate.name)

            try:
                await self._board.add_attachment(card_id, candidate.url, candidate.name)
            except (SyncError, httpx.HTTPError) as e:
                log.warning(
                    "attachment_add_failed",
                    card_id=card_id,
                    url=candidate.base_url,
                    error=str(e),
                )
                continue

            added += 1
            log.info("attachment_added", card_id=card_id, name=candidate.name)

        return added
