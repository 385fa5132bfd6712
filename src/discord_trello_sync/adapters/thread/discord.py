"""Discord thread adapter using discord.py.

This module implements the ThreadProvider protocol for Discord forum
channels using the discord.py gateway client.

Features:
- Gateway connection for real-time thread and message events
- Filtering to threads of the configured forum channel
- Messages authored by the bot are never turned into events
- Paged history reads and notification posting as embeds
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeGuard, TypeVar

import discord
import structlog

from ...config.schema import DiscordConfig, RetryConfig
from ...models.notification import Notification
from ...models.thread import (
    MessageAttachment,
    MessageEmbed,
    Thread,
    ThreadEvent,
    ThreadEventKind,
    ThreadMessage,
)
from ...utils.async_helpers import (
    NotificationDeliveryError,
    RemoteTimeoutError,
    create_retry,
    with_timeout,
)

log = structlog.get_logger()

T = TypeVar("T")


class DiscordAdapterError(Exception):
    """Base exception for Discord adapter errors."""


class ConnectionError(DiscordAdapterError):
    """Raised when connection to Discord fails."""


class DiscordAdapter:
    """Discord thread adapter implementing the ThreadProvider protocol.

    Example:
        adapter = DiscordAdapter(config.discord)

        await adapter.connect()
        async for event in adapter.listen():
            print(f"{event.kind.value}: {event.thread.name}")
        await adapter.disconnect()
    """

    def __init__(self, config: DiscordConfig, retry_config: RetryConfig | None = None) -> None:
        """Initialize the Discord adapter.

        Args:
            config: Discord-specific configuration.
            retry_config: Retry policy for transient failures.
        """
        self._config = config
        self._forum_channel_id = int(config.forum_channel_id)
        self._guild_id = int(config.guild_id)
        self._connected = False

        intents = discord.Intents.default()
        intents.guilds = True
        intents.guild_messages = True
        intents.message_content = True
        self._client = discord.Client(intents=intents)
        self._client_task: asyncio.Task[None] | None = None

        self._event_queue: asyncio.Queue[ThreadEvent] = asyncio.Queue()
        self._ready_event = asyncio.Event()
        self._disconnect_event = asyncio.Event()

        retry_config = retry_config or RetryConfig()
        self._retry = create_retry(
            max_attempts=retry_config.max_attempts,
            min_wait=retry_config.initial_delay,
            max_wait=retry_config.max_delay,
            retry_on=(RemoteTimeoutError, discord.DiscordServerError),
        )

        self._register_handlers()

    @property
    def bot_user_id(self) -> int | None:
        """Return the id of the logged-in bot user, once connected."""
        return self._client.user.id if self._client.user else None

    def _register_handlers(self) -> None:
        """Register gateway event handlers with the client."""

        @self._client.event
        async def on_ready() -> None:
            log.info("discord_ready", user=str(self._client.user))
            self._ready_event.set()

        @self._client.event
        async def on_thread_create(thread: discord.Thread) -> None:
            await self._process_thread_event(thread)

        @self._client.event
        async def on_message(message: discord.Message) -> None:
            await self._process_message_event(message, ThreadEventKind.MESSAGE_CREATED)

        @self._client.event
        async def on_message_edit(before: discord.Message, after: discord.Message) -> None:
            await self._process_message_event(after, ThreadEventKind.MESSAGE_EDITED)

    async def _call(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run a Discord API call with a timeout, retrying transient failures.

        Args:
            factory: Creates a fresh awaitable for every attempt.
        """

        async def attempt() -> T:
            return await with_timeout(factory(), self._config.request_timeout)

        return await self._retry(attempt)()

    def _is_monitored(self, channel: object) -> TypeGuard[discord.Thread]:
        return isinstance(channel, discord.Thread) and channel.parent_id == self._forum_channel_id

    async def _process_thread_event(self, channel: discord.Thread) -> None:
        """Queue a thread-created event if the thread belongs to the forum."""
        if not self._is_monitored(channel):
            return

        thread = await self._to_thread(channel)
        await self._event_queue.put(ThreadEvent(kind=ThreadEventKind.THREAD_CREATED, thread=thread))
        log.debug("thread_event_queued", thread_id=thread.thread_id, kind="thread_created")

    async def _process_message_event(self, message: discord.Message, kind: ThreadEventKind) -> None:
        """Queue a message event if it is a human message in a forum thread."""
        channel = message.channel
        if not self._is_monitored(channel):
            return

        converted = self._to_message(message)
        if converted.from_self:
            return

        thread = await self._to_thread(channel)
        await self._event_queue.put(ThreadEvent(kind=kind, thread=thread, message=converted))
        log.debug(
            "thread_event_queued",
            thread_id=thread.thread_id,
            message_id=converted.message_id,
            kind=kind.value,
        )

    def _to_message(self, message: discord.Message) -> ThreadMessage:
        """Convert a discord.py message into a ThreadMessage."""
        bot_user_id = self.bot_user_id
        return ThreadMessage(
            message_id=str(message.id),
            author_id=str(message.author.id),
            author_name=message.author.name,
            from_self=bot_user_id is not None and message.author.id == bot_user_id,
            content=message.content or "",
            created_at=message.created_at,
            attachments=tuple(
                MessageAttachment(url=a.url, name=a.filename, content_type=a.content_type)
                for a in message.attachments
            ),
            embeds=tuple(
                MessageEmbed(
                    type=e.type or "rich",
                    url=e.url,
                    title=e.title,
                    description=e.description,
                    image_url=e.image.url,
                    video_url=e.video.url,
                    footer_text=e.footer.text,
                )
                for e in message.embeds
            ),
        )

    async def _resolve_creator(self, channel: discord.Thread) -> tuple[str | None, str]:
        """Resolve the thread creator: owner, then starter message author, then fallback."""
        fallback = self._config.creator_fallback_name

        try:
            if channel.owner_id:
                owner = self._client.get_user(channel.owner_id) or await with_timeout(
                    self._client.fetch_user(channel.owner_id), self._config.request_timeout
                )
                return str(owner.id), owner.name

            starter = await with_timeout(
                channel.fetch_message(channel.id), self._config.request_timeout
            )
            return str(starter.author.id), starter.author.name
        except (discord.DiscordException, RemoteTimeoutError) as e:
            log.warning("thread_creator_lookup_failed", thread_id=str(channel.id), error=str(e))
            return None, fallback

    async def _to_thread(self, channel: discord.Thread) -> Thread:
        """Convert a discord.py thread into a Thread."""
        creator_id, creator_name = await self._resolve_creator(channel)
        return Thread(
            thread_id=str(channel.id),
            name=channel.name,
            created_at=channel.created_at or datetime.now(UTC),
            creator_id=creator_id,
            creator_name=creator_name,
        )

    async def _get_thread_channel(self, thread_id: str) -> discord.Thread:
        """Get a thread channel from cache or the API."""
        channel = self._client.get_channel(int(thread_id))
        if channel is None:
            try:
                channel = await self._call(lambda: self._client.fetch_channel(int(thread_id)))
            except discord.NotFound as e:
                raise LookupError(f"Thread {thread_id} not found") from e

        if not isinstance(channel, discord.Thread):
            raise LookupError(f"Channel {thread_id} is not a thread")
        return channel

    async def connect(self) -> None:
        """Log in and wait until the gateway session is ready.

        Raises:
            ConnectionError: If the client fails to become ready.
        """
        if self._connected:
            return

        self._disconnect_event.clear()
        self._client_task = asyncio.create_task(
            self._client.start(self._config.bot_token),
            name="discord_client",
        )

        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout=60)
        except TimeoutError as e:
            if self._client_task.done() and self._client_task.exception():
                cause = self._client_task.exception()
                raise ConnectionError(f"Failed to connect to Discord: {cause}") from cause
            raise ConnectionError("Timed out waiting for Discord gateway") from e

        self._connected = True
        log.info("discord_connected", forum_channel_id=self._config.forum_channel_id)

    async def disconnect(self) -> None:
        """Gracefully close the Discord connection."""
        if not self._connected:
            return

        self._disconnect_event.set()

        try:
            await self._client.close()
        except Exception as e:
            log.warning("disconnect_error", error=str(e))

        if self._client_task:
            with contextlib.suppress(asyncio.CancelledError, discord.DiscordException):
                await self._client_task

        self._connected = False
        log.info("discord_disconnected")

    async def listen(self) -> AsyncIterator[ThreadEvent]:
        """Yield thread events from the monitored forum."""
        if not self._connected:
            raise DiscordAdapterError("Not connected. Call connect() first.")

        while not self._disconnect_event.is_set():
            try:
                event = await asyncio.wait_for(self._event_queue.get(), timeout=1.0)
                yield event
            except TimeoutError:
                continue
            except asyncio.CancelledError:
                break

    async def fetch_thread(self, thread_id: str) -> Thread:
        """Fetch a thread by id."""
        channel = await self._get_thread_channel(thread_id)
        return await self._to_thread(channel)

    async def list_active_threads(self) -> list[Thread]:
        """List the active threads of the monitored forum."""
        guild = self._client.get_guild(self._guild_id)
        if guild is None:
            log.error("discord_guild_not_found", guild_id=self._config.guild_id)
            return []

        active = await self._call(guild.active_threads)
        threads: list[Thread] = []
        for channel in active:
            if channel.parent_id == self._forum_channel_id:
                threads.append(await self._to_thread(channel))
        return threads

    async def fetch_messages(
        self,
        thread_id: str,
        before: str | None = None,
        limit: int = 100,
    ) -> list[ThreadMessage]:
        """Fetch one page of thread history, newest first."""
        channel = await self._get_thread_channel(thread_id)
        cursor = discord.Object(id=int(before)) if before else None

        async def read_page() -> list[discord.Message]:
            return [m async for m in channel.history(limit=limit, before=cursor)]

        page = await self._call(read_page)
        return [self._to_message(m) for m in page]

    async def fetch_recent_messages(self, thread_id: str, limit: int = 50) -> list[ThreadMessage]:
        """Fetch the most recent messages of a thread, newest first."""
        return await self.fetch_messages(thread_id, before=None, limit=limit)

    async def post_notification(self, thread_id: str, notification: Notification) -> str:
        """Post a notification into a thread as an embed."""
        embed = discord.Embed(
            title=notification.title,
            description=notification.description,
            color=notification.color,
            timestamp=notification.timestamp,
        )
        embed.set_footer(text=notification.footer, icon_url=notification.footer_icon_url)

        try:
            channel = await self._get_thread_channel(thread_id)
            sent = await with_timeout(channel.send(embed=embed), self._config.request_timeout)
        except (discord.DiscordException, RemoteTimeoutError, LookupError) as e:
            log.error("post_notification_failed", thread_id=thread_id, error=str(e))
            raise NotificationDeliveryError(f"Failed to post notification: {e}") from e

        log.debug("notification_posted", thread_id=thread_id, message_id=str(sent.id))
        return str(sent.id)
