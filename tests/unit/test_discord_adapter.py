"""Tests for the Discord thread adapter."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from discord_trello_sync.adapters.thread.discord import DiscordAdapter, DiscordAdapterError
from discord_trello_sync.config.schema import DiscordConfig, RetryConfig
from discord_trello_sync.models.notification import Notification
from discord_trello_sync.models.thread import ThreadEventKind
from discord_trello_sync.utils.async_helpers import NotificationDeliveryError

BOT_USER_ID = 42
FORUM_ID = 222222222222222222
CREATED = datetime(2024, 3, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def discord_config() -> DiscordConfig:
    """Create test Discord configuration."""
    return DiscordConfig(
        bot_token="token",
        guild_id="111111111111111111",
        forum_channel_id=str(FORUM_ID),
    )


@pytest.fixture
def adapter(discord_config: DiscordConfig) -> DiscordAdapter:
    """Create an adapter around a mocked discord.py client."""
    with patch("discord_trello_sync.adapters.thread.discord.discord.Client") as client_class:
        client = MagicMock()
        client.user.id = BOT_USER_ID
        client_class.return_value = client
        return DiscordAdapter(discord_config, RetryConfig(initial_delay=0, max_delay=0))


def make_channel(thread_id: int = 333, parent_id: int = FORUM_ID, owner_id: int | None = 7) -> MagicMock:
    channel = MagicMock(spec=discord.Thread)
    channel.id = thread_id
    channel.name = "Bug 42"
    channel.parent_id = parent_id
    channel.owner_id = owner_id
    channel.created_at = CREATED
    return channel


def make_discord_message(
    channel: MagicMock,
    author_id: int = 7,
    content: str = "It crashes",
    attachments: list | None = None,
    embeds: list | None = None,
) -> MagicMock:
    message = MagicMock()
    message.id = 1001
    message.author.id = author_id
    message.author.name = "ana"
    message.content = content
    message.created_at = CREATED
    message.channel = channel
    message.attachments = attachments or []
    message.embeds = embeds or []
    return message


def with_owner(adapter: DiscordAdapter, name: str = "ana") -> None:
    owner = MagicMock()
    owner.id = 7
    owner.name = name
    adapter._client.get_user.return_value = owner


class TestMessageConversion:
    """Tests for converting discord.py messages."""

    def test_to_message(self, adapter: DiscordAdapter) -> None:
        """Test attachments and embeds are carried over."""
        attachment = MagicMock(url="https://cdn.x/a.png", filename="a.png", content_type="image/png")
        embed = MagicMock(type="gifv", url="https://tenor.com/view/x", title=None, description=None)
        embed.image.url = None
        embed.video.url = "https://media.tenor.com/x.mp4"
        embed.footer.text = None
        message = make_discord_message(make_channel(), attachments=[attachment], embeds=[embed])

        converted = adapter._to_message(message)

        assert converted.message_id == "1001"
        assert converted.author_name == "ana"
        assert converted.from_self is False
        assert converted.attachments[0].name == "a.png"
        assert converted.attachments[0].content_type == "image/png"
        assert converted.embeds[0].type == "gifv"
        assert converted.embeds[0].video_url == "https://media.tenor.com/x.mp4"

    def test_own_message_flagged(self, adapter: DiscordAdapter) -> None:
        """Test messages by the bot user are marked as self-authored."""
        message = make_discord_message(make_channel(), author_id=BOT_USER_ID)

        assert adapter._to_message(message).from_self is True


class TestEventFiltering:
    """Tests for gateway event filtering."""

    async def test_message_in_forum_thread_queued(self, adapter: DiscordAdapter) -> None:
        """Test a human message in a forum thread becomes an event."""
        with_owner(adapter)
        channel = make_channel()

        await adapter._process_message_event(
            make_discord_message(channel), ThreadEventKind.MESSAGE_CREATED
        )

        event = adapter._event_queue.get_nowait()
        assert event.kind == ThreadEventKind.MESSAGE_CREATED
        assert event.thread.thread_id == "333"
        assert event.thread.creator_name == "ana"
        assert event.message is not None and event.message.content == "It crashes"

    async def test_own_message_ignored(self, adapter: DiscordAdapter) -> None:
        """Test the bot's own messages never trigger a sync."""
        message = make_discord_message(make_channel(), author_id=BOT_USER_ID)

        await adapter._process_message_event(message, ThreadEventKind.MESSAGE_CREATED)

        assert adapter._event_queue.empty()

    async def test_other_channel_ignored(self, adapter: DiscordAdapter) -> None:
        """Test threads outside the forum channel are ignored."""
        message = make_discord_message(make_channel(parent_id=999))

        await adapter._process_message_event(message, ThreadEventKind.MESSAGE_EDITED)

        assert adapter._event_queue.empty()

    async def test_thread_created_queued(self, adapter: DiscordAdapter) -> None:
        """Test new forum threads become events."""
        with_owner(adapter)

        await adapter._process_thread_event(make_channel())

        event = adapter._event_queue.get_nowait()
        assert event.kind == ThreadEventKind.THREAD_CREATED
        assert event.message is None

    async def test_creator_fallback(self, adapter: DiscordAdapter, discord_config) -> None:
        """Test the fallback name when the creator cannot be looked up."""
        channel = make_channel(owner_id=None)
        channel.fetch_message = AsyncMock(side_effect=discord.DiscordException("gone"))

        thread = await adapter._to_thread(channel)

        assert thread.creator_id is None
        assert thread.creator_name == discord_config.creator_fallback_name

    async def test_listen_requires_connection(self, adapter: DiscordAdapter) -> None:
        """Test listen() refuses to run before connect()."""
        with pytest.raises(DiscordAdapterError, match="Not connected"):
            async for _ in adapter.listen():
                pass


class TestHistoryAndPosting:
    """Tests for history reads and notification posting."""

    async def test_fetch_messages_page(self, adapter: DiscordAdapter) -> None:
        """Test one history page is read before the cursor."""
        channel = make_channel()
        adapter._client.get_channel.return_value = channel
        pages: list[dict] = []

        def history(limit: int, before: discord.Object | None):
            pages.append({"limit": limit, "before": before})

            async def iterate():
                yield make_discord_message(channel, content="newest")

            return iterate()

        channel.history = history

        messages = await adapter.fetch_messages("333", before="1500", limit=50)

        assert [m.content for m in messages] == ["newest"]
        assert pages[0]["limit"] == 50
        assert pages[0]["before"].id == 1500

    async def test_list_active_threads(self, adapter: DiscordAdapter) -> None:
        """Test only threads of the forum channel are listed."""
        with_owner(adapter)
        guild = MagicMock()
        guild.active_threads = AsyncMock(
            return_value=[make_channel(thread_id=1), make_channel(thread_id=2, parent_id=999)]
        )
        adapter._client.get_guild.return_value = guild

        threads = await adapter.list_active_threads()

        assert [t.thread_id for t in threads] == ["1"]

    async def test_post_notification(self, adapter: DiscordAdapter) -> None:
        """Test notifications are posted as embeds with the footer marker."""
        channel = make_channel()
        channel.send = AsyncMock(return_value=MagicMock(id=555))
        adapter._client.get_channel.return_value = channel
        notification = Notification(
            title="🏷️ Label Added",
            description="Label **bug** was added to the card",
            color=0x61BD4F,
            footer="Trello",
            timestamp=CREATED,
        )

        message_id = await adapter.post_notification("333", notification)

        assert message_id == "555"
        embed = channel.send.await_args.kwargs["embed"]
        assert embed.title == "🏷️ Label Added"
        assert embed.footer.text == "Trello"

    async def test_post_notification_failure(self, adapter: DiscordAdapter) -> None:
        """Test API errors surface as NotificationDeliveryError."""
        channel = make_channel()
        channel.send = AsyncMock(side_effect=discord.DiscordException("missing access"))
        adapter._client.get_channel.return_value = channel
        notification = Notification(
            title="t", description="d", color=0, footer="Trello", timestamp=CREATED
        )

        with pytest.raises(NotificationDeliveryError):
            await adapter.post_notification("333", notification)

    async def test_non_thread_channel_ignored(self, adapter: DiscordAdapter) -> None:
        """Test messages in plain text channels never become events."""
        message = make_discord_message(make_channel())
        message.channel = MagicMock(spec=discord.TextChannel)
        message.channel.parent_id = FORUM_ID

        await adapter._process_message_event(message, ThreadEventKind.MESSAGE_CREATED)

        assert adapter._event_queue.empty()
