"""Board change polling and notification delivery.

This module implements the ChangePoller. Trello offers no push channel the
bridge can rely on, so card changes are discovered by asking the board for
actions since a checkpoint on a fixed cadence:

1. Fetch actions since the checkpoint
2. Drop actions that were already handled
3. Sort the rest chronologically (ties broken by action id)
4. Render, dedupe and deliver each one to the thread bound to its card
5. Advance the checkpoint, unless the tick failed outright
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import httpx
import structlog

from discord_trello_sync.config.schema import PollingConfig
from discord_trello_sync.core.backoff import BackoffController
from discord_trello_sync.core.notifications import (
    NotificationDeduplicator,
    NotificationRenderer,
    content_hash,
)
from discord_trello_sync.core.registry import IdentityRegistry
from discord_trello_sync.models.action import BoardAction
from discord_trello_sync.utils.async_helpers import NotificationDeliveryError, SyncError

if TYPE_CHECKING:
    from discord_trello_sync.interfaces.board import BoardProvider
    from discord_trello_sync.interfaces.thread import ThreadProvider

log = structlog.get_logger()


def utc_now() -> datetime:
    return datetime.now(UTC)


class ChangePoller:
    """Relays board actions into the threads bound to their cards.

    Example:
        poller = ChangePoller(board, threads, registry, renderer, dedup,
                              board_id=config.trello.board_id,
                              config=config.polling,
                              footer_marker=config.notifications.footer_marker)
        await poller.seed()
        task = asyncio.create_task(poller.run())
        ...
        poller.stop()
        await task
    """

    def __init__(
        self,
        board: BoardProvider,
        threads: ThreadProvider,
        registry: IdentityRegistry,
        renderer: NotificationRenderer,
        deduplicator: NotificationDeduplicator,
        board_id: str,
        config: PollingConfig,
        footer_marker: str,
        backoff: BackoffController | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the ChangePoller.

        Args:
            board: Board provider to read actions from
            threads: Thread provider to deliver notifications to
            registry: Thread/card identity mapping
            renderer: Turns actions into notifications
            deduplicator: Processed-action and content-hash caches
            board_id: Board to poll
            config: Polling configuration
            footer_marker: Footer text identifying bridge notifications
            backoff: Failure counter and cadence (built from config if omitted)
            clock: Source of the current time
        """
        self._board = board
        self._threads = threads
        self._registry = registry
        self._renderer = renderer
        self._dedup = deduplicator
        self._board_id = board_id
        self._config = config
        self._footer_marker = footer_marker
        self._backoff = backoff or BackoffController(
            config.interval_seconds, config.failure_threshold
        )
        self._clock = clock

        self._checkpoint: datetime | None = None
        self._stop_event = asyncio.Event()

    @property
    def checkpoint(self) -> datetime | None:
        """Timestamp the next tick asks for actions since."""
        return self._checkpoint

    @property
    def backoff(self) -> BackoffController:
        return self._backoff

    async def seed(self) -> int:
        """Prepare for the first tick after a (re)start.

        Scans the recent history of every bound thread for notifications
        already posted, so they are not delivered again, and sets the
        checkpoint to a short lookback window before now.

        Returns:
            Number of existing notifications recorded
        """
        self._checkpoint = self._clock() - timedelta(minutes=self._config.lookback_minutes)
        seeded = 0

        for thread_id, card_id in self._registry.items():
            try:
                messages = await self._threads.fetch_recent_messages(
                    thread_id, limit=self._config.startup_scan_limit
                )
            except Exception as e:
                log.warning("notification_scan_failed", thread_id=thread_id, error=str(e))
                continue

            seeded += self._dedup.seed_from_messages(card_id, messages, self._footer_marker)

        log.info(
            "poller_seeded",
            existing_notifications=seeded,
            checkpoint=self._checkpoint.isoformat(),
        )
        return seeded

    async def tick(self) -> int:
        """Run one poll cycle.

        Returns:
            Number of notifications delivered
        """
        if self._checkpoint is None:
            self._checkpoint = self._clock() - timedelta(minutes=self._config.lookback_minutes)

        tick_started = self._clock()

        try:
            actions = await self._board.list_board_actions(
                self._board_id,
                since=self._checkpoint,
                limit=self._config.action_page_limit,
            )
        except (SyncError, httpx.HTTPError) as e:
            log.error("poll_tick_failed", error=str(e), checkpoint=self._checkpoint.isoformat())
            self._backoff.record_failure()
            return 0

        pending = [a for a in actions if not self._dedup.is_processed(a.action_id)]
        pending.sort(key=lambda a: a.sort_key)

        delivered = 0
        for action in pending:
            try:
                if await self._handle_action(action):
                    delivered += 1
            except NotificationDeliveryError as e:
                log.error("notification_delivery_failed", action_id=action.action_id, error=str(e))
            except Exception as e:
                log.exception("action_handling_error", action_id=action.action_id, error=str(e))

        self._checkpoint = tick_started
        self._backoff.record_success()

        if pending:
            log.info("poll_tick_completed", actions=len(pending), delivered=delivered)
        return delivered

    async def _handle_action(self, action: BoardAction) -> bool:
        """Deliver one action's notification if it is new.

        Returns:
            True if a notification was posted
        """
        notification = self._renderer.render(action)
        if notification is None:
            # Never relayed, whichever card it belongs to
            self._dedup.mark_processed(action.action_id)
            log.debug("action_not_relayed", action_id=action.action_id, type=action.action_type)
            return False

        thread_id = self._registry.resolve_reverse(action.card_id) if action.card_id else None
        if thread_id is None or action.card_id is None:
            log.debug("action_card_unbound", action_id=action.action_id, card_id=action.card_id)
            return False

        digest = content_hash(notification.title, notification.description)
        if self._dedup.is_duplicate(action.card_id, digest):
            self._dedup.mark_processed(action.action_id)
            log.info(
                "notification_duplicate_suppressed",
                action_id=action.action_id,
                card_id=action.card_id,
            )
            return False

        await self._threads.post_notification(thread_id, notification)

        self._dedup.mark_processed(action.action_id)
        self._dedup.record(action.card_id, digest)
        log.info(
            "notification_delivered",
            action_id=action.action_id,
            type=action.action_type,
            thread_id=thread_id,
            card_id=action.card_id,
        )

        if self._config.delivery_delay > 0:
            await asyncio.sleep(self._config.delivery_delay)
        return True

    async def run(self) -> None:
        """Poll until stop() is called, even if it was called before the loop began."""
        log.info("poller_started", interval_seconds=self._backoff.interval)

        while not self._stop_event.is_set():
            try:
                await self.tick()
            except Exception as e:
                log.exception("poll_tick_failed", error=str(e))
                self._backoff.record_failure()

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._backoff.interval)
            except TimeoutError:
                continue

        log.info("poller_stopped")

    def stop(self) -> None:
        """Ask the run loop to exit after the current tick."""
        self._stop_event.set()
