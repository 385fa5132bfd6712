"""Tests for thread history aggregation."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from discord_trello_sync.config.schema import SyncConfig
from discord_trello_sync.core.aggregator import (
    MAX_DESCRIPTION_LENGTH,
    ContentAggregator,
    categorize_attachments,
    embed_type,
    format_discord_markdown,
    is_just_media_url,
    media_type_from_url,
)
from discord_trello_sync.models.thread import MessageAttachment, MessageEmbed


@pytest.fixture
def aggregator(mock_threads: AsyncMock) -> ContentAggregator:
    """Create an aggregator with default sync settings."""
    return ContentAggregator(mock_threads, SyncConfig())


class TestMediaDetection:
    """Tests for the media-only heuristics."""

    @pytest.mark.parametrize(
        "content",
        [
            "https://cdn.example.com/clip.gif",
            "  https://example.com/shot.PNG  ",
            "https://example.com/video.mp4?width=640",
            "https://cdn.discordapp.com/attachments/1/2/file",
            "https://media.discordapp.net/stickers/123",
            "https://tenor.com/view/cat-dance-gif-12345",
        ],
    )
    def test_bare_media_urls(self, content: str) -> None:
        """Test URLs recognized as media-only messages."""
        assert is_just_media_url(content)

    @pytest.mark.parametrize(
        "content",
        [
            "",
            "fixed!",
            "https://github.com/org/repo/pull/1",
            "see https://cdn.example.com/clip.gif",
            "screenshot attached: shot.png",
        ],
    )
    def test_not_media_only(self, content: str) -> None:
        """Test text and non-media links are kept as body text."""
        assert not is_just_media_url(content)

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://cdn.example.com/clip.gif", "a GIF"),
            ("https://tenor.com/view/cat-dance-12345", "a GIF"),
            ("https://x.com/a.jpeg?size=2", "an Image"),
            ("https://x.com/a.webm", "a Video"),
            ("https://x.com/a.ogg", "an Audio File"),
            ("https://cdn.discordapp.com/attachments/1/2/file", "a File"),
        ],
    )
    def test_media_type_from_url(self, url: str, expected: str) -> None:
        """Test describing media by URL."""
        assert media_type_from_url(url) == expected

    def test_categorize_single(self) -> None:
        """Test a single attachment is described with an article."""
        assert categorize_attachments([MessageAttachment(url="u", name="log.txt")]) == "a File"

    def test_categorize_mixed(self) -> None:
        """Test mixed attachments are counted per kind."""
        attachments = [
            MessageAttachment(url="u1", name="clip.gif"),
            MessageAttachment(url="u2", name="a.png"),
            MessageAttachment(url="u3", name="b", content_type="image/jpeg"),
        ]
        assert categorize_attachments(attachments) == "a GIF and 2 Images"

    def test_categorize_three_kinds(self) -> None:
        """Test three kinds are joined with a serial comma."""
        attachments = [
            MessageAttachment(url="u1", name="a.png"),
            MessageAttachment(url="u2", name="b.mp4"),
            MessageAttachment(url="u3", name="c.mp3"),
        ]
        assert categorize_attachments(attachments) == "an Image, a Video, and an Audio File"

    def test_categorize_empty(self) -> None:
        """Test the fallback for no attachments."""
        assert categorize_attachments([]) == "an Attachment"

    @pytest.mark.parametrize(
        "embed,expected",
        [
            (MessageEmbed(type="image"), "an Image"),
            (MessageEmbed(type="gifv"), "a GIF"),
            (MessageEmbed(type="video"), "a Video"),
            (MessageEmbed(type="rich", image_url="https://x/i.png"), "an Image"),
            (MessageEmbed(type="rich", video_url="https://x/v.mp4"), "a Video"),
            (MessageEmbed(type="link", url="https://example.com"), "a Link"),
            (MessageEmbed(type="rich"), "an Embed"),
        ],
    )
    def test_embed_type(self, embed: MessageEmbed, expected: str) -> None:
        """Test describing embeds."""
        assert embed_type(embed) == expected

    def test_spoilers_rewritten(self) -> None:
        """Test spoiler markup is made visible."""
        assert format_discord_markdown("the fix is ||a restart||") == (
            "the fix is [SPOILER: a restart]"
        )


class TestRender:
    """Tests for description rendering."""

    def test_render_is_deterministic(self, aggregator, make_thread, make_message) -> None:
        """Test rendering an unchanged thread twice gives identical output."""
        thread = make_thread()
        messages = [make_message("It crashes"), make_message("fixed!", author_name="bo")]

        assert aggregator.render(thread, messages) == aggregator.render(thread, messages)

    def test_header(self, aggregator, make_thread, make_message) -> None:
        """Test the header lists thread details and participants."""
        thread = make_thread()
        messages = [
            make_message("It crashes"),
            make_message("same here", author_name="bo"),
            make_message("logs attached"),
        ]

        description = aggregator.render(thread, messages)

        assert description.startswith("# 💬 Bug 42\n\n**📝 Thread Details**\n")
        assert "• **ID:** `333333333333333333`\n" in description
        assert "• **Created:** March 01, 2024 at 09:30 AM UTC\n" in description
        assert "• **Messages:** 3\n" in description
        assert "• **Participants:** 2\n" in description
        assert "**👥 Participants:** ana, bo\n" in description

    def test_original_post_block(self, aggregator, make_thread, make_message) -> None:
        """Test the first message is framed as the original post."""
        description = aggregator.render(make_thread(), [make_message("It crashes")])

        assert "👑 **THREAD CREATOR** **ana** • *Mar 01, 2024, 09:31 AM UTC*\n" in description
        assert "**📝 ORIGINAL THREAD CONTENT:**\nIt crashes\n" in description
        assert description.index("It crashes") < description.index("END OF ORIGINAL POST")
        assert "*No replies yet - this thread only contains the original post.*" in description

    def test_replies_grouped_by_date(self, aggregator, make_thread, make_message) -> None:
        """Test replies are grouped under one heading per date, in order."""
        messages = [
            make_message("It crashes", created_at=datetime(2024, 3, 1, 9, 31, tzinfo=UTC)),
            make_message("repro?", author_name="bo", created_at=datetime(2024, 3, 1, 18, 0, tzinfo=UTC)),
            make_message("yes", created_at=datetime(2024, 3, 1, 19, 0, tzinfo=UTC)),
            make_message("fixed!", author_name="bo", created_at=datetime(2024, 3, 3, 8, 0, tzinfo=UTC)),
        ]

        description = aggregator.render(make_thread(), messages)

        assert description.count("### 📅 ") == 2
        first = description.index("### 📅 March 01, 2024")
        second = description.index("### 📅 March 03, 2024")
        assert description.index("NEW CONTENT STARTS HERE") < first
        assert first < description.index("repro?") < description.index("yes") < second
        assert second < description.index("fixed!")
        assert "💭 **bo** • *Mar 03, 2024, 08:00 AM UTC*\nfixed!\n\n---\n" in description

    def test_media_only_message_summarized(self, aggregator, make_thread, make_message) -> None:
        """Test a bare GIF link renders as a one-line summary plus its link."""
        url = "https://cdn.example.com/clip.gif"
        messages = [
            make_message("It crashes"),
            make_message(url, author_name="bo", embeds=(MessageEmbed(type="gifv", url=url),)),
        ]

        description = aggregator.render(make_thread(), messages)

        assert f"*bo only attached a GIF*\n🔗 {url}\n" in description
        assert description.count(url) == 1

    def test_attachments_only_message(self, aggregator, make_thread, make_message) -> None:
        """Test a message with only uploads names what was attached."""
        attachments = (
            MessageAttachment(url="https://cdn.example.com/a.png", name="a.png"),
            MessageAttachment(url="https://cdn.example.com/b.png", name="b.png"),
        )
        messages = [make_message("It crashes"), make_message(attachments=attachments)]

        description = aggregator.render(make_thread(), messages)

        assert "*ana only attached 2 Images*\n🔗 https://cdn.example.com/a.png\n" in description
        assert "https://cdn.example.com/b.png" not in description

    def test_embeds_only_message(self, aggregator, make_thread, make_message) -> None:
        """Test a message with only an embed names the embed type."""
        embed = MessageEmbed(type="video", url="https://youtu.be/x")
        messages = [make_message("It crashes"), make_message(embeds=(embed,))]

        description = aggregator.render(make_thread(), messages)

        assert "*ana only attached a Video*\n🔗 https://youtu.be/x\n" in description

    def test_text_with_links(self, aggregator, make_thread, make_message) -> None:
        """Test body text is followed by one line per embed and attachment."""
        message = make_message(
            "see the PR https://github.com/o/r/pull/1",
            embeds=(MessageEmbed(type="link", url="https://github.com/o/r/pull/1"),),
            attachments=(MessageAttachment(url="https://cdn.example.com/log.txt", name="log.txt"),),
        )

        description = aggregator.render(make_thread(), [message])

        assert (
            "see the PR https://github.com/o/r/pull/1\n"
            "🔗 https://github.com/o/r/pull/1\n"
            "🔗 https://cdn.example.com/log.txt\n"
        ) in description

    def test_display_timezone(self, mock_threads, make_thread, make_message) -> None:
        """Test times are rendered in the configured timezone."""
        aggregator = ContentAggregator(mock_threads, SyncConfig(display_timezone="America/New_York"))

        description = aggregator.render(make_thread(), [make_message("hi")])

        assert "• **Created:** March 01, 2024 at 04:30 AM EST\n" in description

    def test_long_description_truncated(self, aggregator, make_thread, make_message) -> None:
        """Test descriptions never exceed the board's length limit."""
        description = aggregator.render(make_thread(), [make_message("x" * 20000)])

        assert len(description) == MAX_DESCRIPTION_LENGTH
        assert description.endswith("see the thread for the full discussion.*")

    def test_placeholder(self, aggregator, make_thread) -> None:
        """Test the placeholder written on card creation."""
        placeholder = aggregator.render_placeholder(make_thread())

        assert placeholder.startswith("# 💬 Bug 42\n")
        assert "• **Creator:** ana\n" in placeholder
        assert placeholder.endswith("*Loading thread content...*")


class TestAggregate:
    """Tests for history fetching and aggregation."""

    async def test_pages_through_history(
        self, mock_threads, make_thread, make_message, paged_history
    ) -> None:
        """Test every page is read and messages come back oldest first."""
        history = [make_message(f"message {i}") for i in range(250)]
        mock_threads.fetch_messages.side_effect = paged_history(history)
        aggregator = ContentAggregator(mock_threads, SyncConfig(history_page_size=100))

        content = await aggregator.aggregate(make_thread())

        assert mock_threads.fetch_messages.await_count == 3
        assert [m.message_id for m in content.messages] == [m.message_id for m in history]

    async def test_excludes_own_messages(
        self, aggregator, mock_threads, make_thread, make_message, paged_history
    ) -> None:
        """Test messages authored by the bridge never reach the description."""
        history = [
            make_message("It crashes"),
            make_message("Label Added", author_name="bridge", from_self=True),
            make_message("fixed!", author_name="bo"),
        ]
        mock_threads.fetch_messages.side_effect = paged_history(history)

        content = await aggregator.aggregate(make_thread())

        assert [m.content for m in content.messages] == ["It crashes", "fixed!"]
        assert "bridge" not in content.description
        assert "• **Messages:** 2\n" in content.description

    async def test_aggregate_is_idempotent(
        self, aggregator, mock_threads, make_thread, make_message, paged_history
    ) -> None:
        """Test aggregating an unchanged thread twice gives identical output."""
        mock_threads.fetch_messages.side_effect = paged_history(
            [make_message("It crashes"), make_message("fixed!", author_name="bo")]
        )
        thread = make_thread()

        first = await aggregator.aggregate(thread)
        second = await aggregator.aggregate(thread)

        assert first.description == second.description

    async def test_empty_thread(self, aggregator, make_thread) -> None:
        """Test a thread whose history is empty still renders."""
        content = await aggregator.aggregate(make_thread())

        assert content.messages == ()
        assert "• **Messages:** 0\n" in content.description
