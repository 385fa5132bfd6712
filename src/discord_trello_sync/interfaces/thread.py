"""Abstract interface for thread platform integrations."""

from collections.abc import AsyncIterator
from typing import Protocol

from ..models.notification import Notification
from ..models.thread import Thread, ThreadEvent, ThreadMessage


class ThreadProvider(Protocol):
    """Abstract interface for threaded discussion platforms.

    This protocol defines the contract the sync engine needs from the
    platform hosting the discussion threads (Discord forum channels).
    """

    async def connect(self) -> None:
        """
        Establish connection to the thread platform.

        Raises:
            ConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Gracefully close the connection."""
        ...

    def listen(self) -> AsyncIterator[ThreadEvent]:
        """
        Yield thread events from the monitored forum.

        Messages authored by the bridge itself are never yielded.

        Yields:
            ThreadEvent: thread created, message created or message edited
        """
        ...

    async def fetch_thread(self, thread_id: str) -> Thread:
        """
        Fetch a thread by id.

        The sync engine always receives threads through events or
        list_active_threads(); this lookup is part of the provider contract
        for callers that hold only an id.

        Args:
            thread_id: Thread identifier

        Returns:
            The thread with its creator resolved

        Raises:
            LookupError: If the thread does not exist
        """
        ...

    async def list_active_threads(self) -> list[Thread]:
        """
        List the currently active threads of the monitored forum.

        Returns:
            Active threads, used for the startup reconciliation pass
        """
        ...

    async def fetch_messages(
        self,
        thread_id: str,
        before: str | None = None,
        limit: int = 100,
    ) -> list[ThreadMessage]:
        """
        Fetch one page of thread history, newest first.

        Args:
            thread_id: Thread identifier
            before: Only return messages older than this message id
            limit: Maximum page size

        Returns:
            Up to ``limit`` messages ordered newest to oldest; an empty list
            once the start of the thread has been reached
        """
        ...

    async def fetch_recent_messages(self, thread_id: str, limit: int = 50) -> list[ThreadMessage]:
        """
        Fetch the most recent messages of a thread, newest first.

        Args:
            thread_id: Thread identifier
            limit: Number of messages to fetch

        Returns:
            Recent messages including ones authored by the bridge
        """
        ...

    async def post_notification(self, thread_id: str, notification: Notification) -> str:
        """
        Post a rendered notification into a thread.

        Args:
            thread_id: Target thread
            notification: Rendered notification

        Returns:
            Message id of the posted notification

        Raises:
            NotificationDeliveryError: If delivery fails
        """
        ...
