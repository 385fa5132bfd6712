"""Main SyncBridge service that coordinates all components.

This module implements the SyncBridge class, the long-running service that
keeps Discord forum threads and Trello cards in step. It:
- Manages adapter lifecycle (connect, disconnect, close)
- Reconciles active forum threads with their cards at startup
- Routes thread events to the card sync orchestrator, one task per event
- Runs the change poller alongside event processing
- Handles graceful shutdown on signals (SIGTERM, SIGINT)
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import TYPE_CHECKING

import structlog

from discord_trello_sync.config.schema import BridgeConfig
from discord_trello_sync.core.aggregator import ContentAggregator
from discord_trello_sync.core.attachments import AttachmentReconciler
from discord_trello_sync.core.notifications import NotificationDeduplicator, NotificationRenderer
from discord_trello_sync.core.orchestrator import CardSyncOrchestrator
from discord_trello_sync.core.poller import ChangePoller
from discord_trello_sync.core.registry import IdentityRegistry
from discord_trello_sync.models.card import SyncResult
from discord_trello_sync.models.thread import Thread, ThreadEvent
from discord_trello_sync.utils.logging import bind_context, clear_context

if TYPE_CHECKING:
    from discord_trello_sync.interfaces.board import BoardProvider
    from discord_trello_sync.interfaces.thread import ThreadProvider

log = structlog.get_logger()


class BridgeError(Exception):
    """Base exception for bridge errors."""


class StartupError(BridgeError):
    """Failed to start the bridge."""


class SyncBridge:
    """Long-running service that owns the sync engine and both adapters.

    All shared state (identity registry, deduplication caches) is owned
    here and handed to the components that need it.

    Example:
        bridge = SyncBridge(config, threads, board)
        await bridge.start()  # Blocks until shutdown signal
    """

    DEFAULT_SHUTDOWN_TIMEOUT = 30

    def __init__(
        self,
        config: BridgeConfig,
        threads: ThreadProvider,
        board: BoardProvider,
    ) -> None:
        """Initialize the SyncBridge.

        Args:
            config: Application configuration
            threads: Thread provider adapter (Discord)
            board: Board provider adapter (Trello)
        """
        self._config = config
        self._threads = threads
        self._board = board

        self._registry = IdentityRegistry()
        self._aggregator = ContentAggregator(threads, config.sync)
        self._reconciler = AttachmentReconciler(board)
        self._orchestrator = CardSyncOrchestrator(
            board,
            self._registry,
            self._aggregator,
            self._reconciler,
            config.trello,
            config.sync,
        )
        self._deduplicator = NotificationDeduplicator(
            processed_cap=config.polling.processed_action_cap,
            hash_cap=config.polling.content_hash_cap,
        )
        self._poller = ChangePoller(
            board,
            threads,
            self._registry,
            NotificationRenderer(config.notifications, config.sync.display_timezone),
            self._deduplicator,
            board_id=config.trello.board_id,
            config=config.polling,
            footer_marker=config.notifications.footer_marker,
        )

        self._active_tasks: set[asyncio.Task[SyncResult]] = set()
        self._poller_task: asyncio.Task[None] | None = None

        self._running = False
        self._shutdown_event: asyncio.Event | None = None

        self._events_processed = 0
        self._errors_count = 0

    @property
    def is_running(self) -> bool:
        """Return True if the bridge is currently running."""
        return self._running

    @property
    def registry(self) -> IdentityRegistry:
        return self._registry

    @property
    def poller(self) -> ChangePoller:
        return self._poller

    @property
    def stats(self) -> dict[str, int]:
        """Return processing statistics."""
        return {
            "events_processed": self._events_processed,
            "errors_count": self._errors_count,
            "active_tasks": len(self._active_tasks),
            "bound_threads": len(self._registry),
        }

    async def start(self) -> None:
        """Start the bridge and process events until shutdown.

        Raises:
            StartupError: If startup fails
        """
        if self._running:
            log.warning("bridge_already_running")
            return

        log.info("bridge_starting", board_id=self._config.trello.board_id)

        try:
            self._shutdown_event = asyncio.Event()

            await self._threads.connect()
            log.info("thread_provider_connected")

            self._setup_signal_handlers()
            self._running = True

            if self._config.sync.reconcile_on_startup:
                await self.reconcile_active_threads()

            if self._config.polling.enabled:
                await self._poller.seed()
                self._poller_task = asyncio.create_task(self._poller.run(), name="change_poller")

            log.info("bridge_started", bound_threads=len(self._registry))

            await self._listen_for_events()

        except Exception as e:
            log.exception("bridge_startup_failed", error=str(e))
            await self._cleanup()
            self._running = False
            raise StartupError(f"Failed to start bridge: {e}") from e

    async def stop(self) -> None:
        """Gracefully stop the bridge.

        Stops the poller, waits for in-flight syncs (with timeout), then
        disconnects and closes both adapters.
        """
        if not self._running:
            log.warning("bridge_not_running")
            return

        log.info("bridge_stopping", active_tasks=len(self._active_tasks))

        if self._shutdown_event:
            self._shutdown_event.set()
        self._poller.stop()

        await self._wait_for_tasks()
        await self._cleanup()

        self._running = False
        log.info(
            "bridge_stopped",
            events_processed=self._events_processed,
            errors=self._errors_count,
        )

    async def reconcile_active_threads(self) -> int:
        """Sync every active forum thread once.

        Rebinds threads to the cards they already have (by name) after a
        restart, and catches up on messages posted while the bridge was down.

        Returns:
            Number of threads synced successfully
        """
        try:
            threads = await self._threads.list_active_threads()
        except Exception as e:
            log.error("startup_reconciliation_failed", error=str(e))
            return 0

        log.info("startup_reconciliation_started", threads=len(threads))
        synced = 0
        for thread in threads:
            if await self.sync_thread(thread) != SyncResult.ERROR:
                synced += 1

        log.info("startup_reconciliation_completed", synced=synced, total=len(threads))
        return synced

    async def sync_thread(self, thread: Thread) -> SyncResult:
        """Sync one thread, logging instead of raising on failure.

        Args:
            thread: Thread to sync

        Returns:
            SyncResult, ERROR if the sync failed
        """
        bind_context(thread_id=thread.thread_id)
        try:
            result = await self._orchestrator.sync_thread(thread)
            self._events_processed += 1
            return result
        except Exception as e:
            log.exception("thread_sync_error", thread_name=thread.name, error=str(e))
            self._errors_count += 1
            return SyncResult.ERROR
        finally:
            clear_context()

    async def handle_event(self, event: ThreadEvent) -> SyncResult:
        """Handle one thread event.

        Args:
            event: Thread created, message created or message edited

        Returns:
            SyncResult of the triggered sync
        """
        log.debug(
            "thread_event_received",
            kind=event.kind.value,
            thread_id=event.thread.thread_id,
            message_id=event.message.message_id if event.message else None,
        )
        return await self.sync_thread(event.thread)

    async def _listen_for_events(self) -> None:
        """Consume thread events until shutdown is triggered."""
        log.info("starting_event_listener")

        try:
            async for event in self._threads.listen():
                if self._shutdown_event and self._shutdown_event.is_set():
                    log.info("shutdown_signal_received_stopping_listener")
                    break

                task = asyncio.create_task(
                    self.handle_event(event),
                    name=f"sync_{event.thread.thread_id}",
                )
                self._active_tasks.add(task)
                task.add_done_callback(self._active_tasks.discard)

        except asyncio.CancelledError:
            log.info("event_listener_cancelled")

    async def _wait_for_tasks(self) -> None:
        """Wait for active sync tasks to complete with timeout."""
        if not self._active_tasks:
            return

        log.info("waiting_for_active_tasks", count=len(self._active_tasks))

        done, pending = await asyncio.wait(
            set(self._active_tasks),
            timeout=self.DEFAULT_SHUTDOWN_TIMEOUT,
        )

        if pending:
            log.warning("cancelling_pending_tasks", count=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        log.info("tasks_completed", completed=len(done), cancelled=len(pending))

    async def _cleanup(self) -> None:
        """Stop the poller and release both adapters."""
        log.debug("cleaning_up_resources")

        self._poller.stop()
        if self._poller_task and not self._poller_task.done():
            try:
                await asyncio.wait_for(self._poller_task, timeout=self.DEFAULT_SHUTDOWN_TIMEOUT)
            except TimeoutError:
                self._poller_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._poller_task

        try:
            await self._threads.disconnect()
            log.info("thread_provider_disconnected")
        except Exception as e:
            log.warning("thread_disconnect_error", error=str(e))

        try:
            await self._board.close()
        except Exception as e:
            log.warning("board_close_error", error=str(e))

        self._active_tasks.clear()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s: asyncio.create_task(self._handle_signal(s)),
                sig,
            )
            log.debug("signal_handler_registered", signal=sig.name)

    async def _handle_signal(self, sig: signal.Signals) -> None:
        log.info("received_signal", signal=sig.name)
        await self.stop()


def create_bridge(config: BridgeConfig) -> SyncBridge:
    """Factory function to create a SyncBridge with its adapters.

    Args:
        config: Application configuration

    Returns:
        Configured SyncBridge instance
    """
    # Import here so config-only commands never load the adapter stacks
    from discord_trello_sync.adapters.board.trello import TrelloAdapter
    from discord_trello_sync.adapters.thread.discord import DiscordAdapter

    threads = DiscordAdapter(config.discord, config.retry)
    board = TrelloAdapter(config.trello, config.retry)
    return SyncBridge(config, threads, board)
