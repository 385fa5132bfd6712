"""Shared test fixtures for discord-trello-sync."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from discord_trello_sync.config.schema import (
    BridgeConfig,
    DiscordConfig,
    PollingConfig,
    RetryConfig,
    TrelloConfig,
)
from discord_trello_sync.models.card import Card
from discord_trello_sync.models.thread import (
    MessageAttachment,
    MessageEmbed,
    Thread,
    ThreadMessage,
)

TEST_BOT_TOKEN = "MTIzNDU2Nzg5MDEyMzQ1Njc4OQ.GfakeX.fakefakefakefakefakefakefakefake00"
TEST_TRELLO_KEY = "0123456789abcdef0123456789abcdef"
TEST_TRELLO_TOKEN = "ATTAfaketokenfaketokenfaketoken"

THREAD_CREATED_AT = datetime(2024, 3, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Create a test bridge configuration."""
    return BridgeConfig(
        discord=DiscordConfig(
            bot_token=TEST_BOT_TOKEN,
            guild_id="111111111111111111",
            forum_channel_id="222222222222222222",
        ),
        trello=TrelloConfig(
            api_key=TEST_TRELLO_KEY,
            api_token=TEST_TRELLO_TOKEN,
            board_id="board-1",
            list_id="list-1",
        ),
        polling=PollingConfig(delivery_delay=0.0),
        retry=RetryConfig(max_attempts=3, initial_delay=0.0, max_delay=0.0),
    )


@pytest.fixture
def make_thread() -> Callable[..., Thread]:
    """Return a factory for threads."""

    def factory(
        name: str = "Bug 42",
        creator_name: str = "ana",
        thread_id: str = "333333333333333333",
    ) -> Thread:
        return Thread(
            thread_id=thread_id,
            name=name,
            created_at=THREAD_CREATED_AT,
            creator_id="444444444444444444",
            creator_name=creator_name,
        )

    return factory


@pytest.fixture
def make_message() -> Callable[..., ThreadMessage]:
    """Return a factory for thread messages.

    Message ids and timestamps increase with each call, so messages built
    in sequence are in chronological order.
    """
    counter = iter(range(1, 10_000))

    def factory(
        content: str = "",
        author_name: str = "ana",
        from_self: bool = False,
        attachments: tuple[MessageAttachment, ...] = (),
        embeds: tuple[MessageEmbed, ...] = (),
        created_at: datetime | None = None,
    ) -> ThreadMessage:
        n = next(counter)
        return ThreadMessage(
            message_id=str(1000 + n),
            author_id=f"user-{author_name}",
            author_name=author_name,
            from_self=from_self,
            content=content,
            created_at=created_at or THREAD_CREATED_AT + timedelta(minutes=n),
            attachments=attachments,
            embeds=embeds,
        )

    return factory


def build_paged_history(messages: list[ThreadMessage]) -> Callable[..., object]:
    """Build a fetch_messages side effect serving newest-first pages.

    Args:
        messages: Thread history, oldest first
    """
    newest_first = list(reversed(messages))

    async def fetch_messages(
        thread_id: str,
        before: str | None = None,
        limit: int = 100,
    ) -> list[ThreadMessage]:
        start = 0
        if before is not None:
            ids = [m.message_id for m in newest_first]
            start = ids.index(before) + 1
        return newest_first[start : start + limit]

    return fetch_messages


@pytest.fixture
def mock_board() -> AsyncMock:
    """Create a mock board provider with an empty board."""
    board = AsyncMock()
    board.search_cards.return_value = []
    board.create_card.return_value = Card(card_id="card-1", name="created")
    board.update_card.return_value = Card(card_id="card-1", name="created")
    board.list_attachments.return_value = []
    board.list_board_actions.return_value = []
    return board


@pytest.fixture
def mock_threads() -> AsyncMock:
    """Create a mock thread provider with empty threads."""
    threads = AsyncMock()
    threads.fetch_messages.side_effect = build_paged_history([])
    threads.fetch_recent_messages.return_value = []
    threads.list_active_threads.return_value = []
    threads.post_notification.return_value = "999999999999999999"
    return threads


@pytest.fixture
def paged_history() -> Callable[[list[ThreadMessage]], Callable[..., object]]:
    """Return the builder for paged fetch_messages side effects."""
    return build_paged_history
