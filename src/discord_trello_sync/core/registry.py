"""Bidirectional thread <-> card identity mapping."""

from __future__ import annotations

from collections.abc import Iterator

import structlog

from discord_trello_sync.utils.async_helpers import MappingConflictError

log = structlog.get_logger()


class IdentityRegistry:
    """Single source of truth for which card mirrors which thread.

    The mapping is append-only for the life of the process and one-to-one:
    a thread resolves to at most one card and a card to at most one thread.
    Both directions are written in the same synchronous call, so no task can
    observe one side without the other.
    """

    def __init__(self) -> None:
        self._card_by_thread: dict[str, str] = {}
        self._thread_by_card: dict[str, str] = {}

    def resolve(self, thread_id: str) -> str | None:
        """Return the card bound to a thread, if any."""
        return self._card_by_thread.get(thread_id)

    def resolve_reverse(self, card_id: str) -> str | None:
        """Return the thread bound to a card, if any."""
        return self._thread_by_card.get(card_id)

    def bind(self, thread_id: str, card_id: str) -> None:
        """Bind a thread to a card.

        Rebinding the same pair is a no-op.

        Raises:
            MappingConflictError: If either side is already bound elsewhere.
        """
        bound_card = self._card_by_thread.get(thread_id)
        bound_thread = self._thread_by_card.get(card_id)

        if bound_card == card_id and bound_thread == thread_id:
            return
        if bound_card is not None:
            raise MappingConflictError(f"Thread {thread_id} is already bound to card {bound_card}")
        if bound_thread is not None:
            raise MappingConflictError(f"Card {card_id} is already bound to thread {bound_thread}")

        self._card_by_thread[thread_id] = card_id
        self._thread_by_card[card_id] = thread_id
        log.info("thread_card_bound", thread_id=thread_id, card_id=card_id)

    def items(self) -> Iterator[tuple[str, str]]:
        """Iterate over (thread_id, card_id) pairs in binding order."""
        return iter(list(self._card_by_thread.items()))

    def __contains__(self, thread_id: object) -> bool:
        return thread_id in self._card_by_thread

    def __len__(self) -> int:
        return len(self._card_by_thread)
