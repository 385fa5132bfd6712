"""Per-thread card synchronization.

The CardSyncOrchestrator makes sure a thread has exactly one card and then
brings that card up to date:

1. Reuse the card already bound to the thread, if any
2. Otherwise wait for a creation already in flight for the same thread
3. Otherwise find a card by its conventional name, or create one
4. Rewrite the card description and add unseen attachments
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from discord_trello_sync.config.schema import SyncConfig, TrelloConfig
from discord_trello_sync.core.aggregator import ContentAggregator
from discord_trello_sync.core.attachments import AttachmentReconciler
from discord_trello_sync.core.registry import IdentityRegistry
from discord_trello_sync.models.card import CardCreate, SyncResult
from discord_trello_sync.models.thread import Thread
from discord_trello_sync.utils.async_helpers import CardSyncError

if TYPE_CHECKING:
    from discord_trello_sync.interfaces.board import BoardProvider

log = structlog.get_logger()


def card_name_for(thread: Thread) -> str:
    """Return the conventional card name for a thread."""
    return f"[Discord] {thread.name} - by {thread.creator_name}"


class CardSyncOrchestrator:
    """Keeps one card per thread in sync with the thread's content.

    Concurrent triggers for the same thread never create two cards: the
    first trigger owns the creation and the others wait on its completion
    signal. Triggers for different threads run independently.
    """

    def __init__(
        self,
        board: BoardProvider,
        registry: IdentityRegistry,
        aggregator: ContentAggregator,
        reconciler: AttachmentReconciler,
        trello_config: TrelloConfig,
        sync_config: SyncConfig,
    ) -> None:
        """Initialize the CardSyncOrchestrator.

        Args:
            board: Board provider for card search, creation and updates
            registry: Thread/card identity mapping
            aggregator: Renders thread history into a description
            reconciler: Adds unseen links as card attachments
            trello_config: Board and list cards live on
            sync_config: Sync configuration (creation wait timeout)
        """
        self._board = board
        self._registry = registry
        self._aggregator = aggregator
        self._reconciler = reconciler
        self._board_id = trello_config.board_id
        self._list_id = trello_config.list_id
        self._creation_wait_timeout = sync_config.creation_wait_timeout

        self._in_flight: dict[str, asyncio.Event] = {}

    async def sync_thread(self, thread: Thread) -> SyncResult:
        """Ensure the thread has a card and bring it up to date.

        Args:
            thread: Thread to sync

        Returns:
            Whether the card was created, linked by name, or updated

        Raises:
            CardSyncError: If waiting on another trigger's creation timed out
            BoardAPIError: If card search, creation or update was rejected
        """
        card_id, result = await self._ensure_card(thread)
        await self._refresh(thread, card_id)
        return result

    async def _ensure_card(self, thread: Thread) -> tuple[str, SyncResult]:
        thread_id = thread.thread_id

        while True:
            card_id = self._registry.resolve(thread_id)
            if card_id is not None:
                return card_id, SyncResult.CARD_UPDATED

            pending = self._in_flight.get(thread_id)
            if pending is None:
                break

            log.debug("card_creation_in_flight", thread_id=thread_id)
            try:
                await asyncio.wait_for(pending.wait(), timeout=self._creation_wait_timeout)
            except TimeoutError as e:
                raise CardSyncError(
                    f"Timed out waiting for card creation for thread {thread_id}"
                ) from e

        done = asyncio.Event()
        self._in_flight[thread_id] = done
        try:
            card_id, result = await self._find_or_create(thread)
            self._registry.bind(thread_id, card_id)
        finally:
            del self._in_flight[thread_id]
            done.set()

        return card_id, result

    async def _find_or_create(self, thread: Thread) -> tuple[str, SyncResult]:
        name = card_name_for(thread)

        for card in await self._board.search_cards(self._board_id):
            if card.name != name:
                continue

            bound_thread = self._registry.resolve_reverse(card.card_id)
            if bound_thread is None:
                log.info("card_linked", thread_id=thread.thread_id, card_id=card.card_id)
                return card.card_id, SyncResult.CARD_LINKED

            log.warning(
                "card_name_taken",
                thread_id=thread.thread_id,
                card_id=card.card_id,
                bound_thread_id=bound_thread,
            )

        card = await self._board.create_card(
            CardCreate(
                list_id=self._list_id,
                name=name,
                description=self._aggregator.render_placeholder(thread),
                position="top",
            )
        )
        log.info("card_created", thread_id=thread.thread_id, card_id=card.card_id, name=name)
        return card.card_id, SyncResult.CARD_CREATED

    async def _refresh(self, thread: Thread, card_id: str) -> None:
        content = await self._aggregator.aggregate(thread)
        await self._board.update_card(card_id, {"desc": content.description})

        added = await self._reconciler.reconcile(card_id, content.messages)
        log.info(
            "card_synced",
            thread_id=thread.thread_id,
            card_id=card_id,
            messages=len(content.messages),
            attachments_added=added,
        )
