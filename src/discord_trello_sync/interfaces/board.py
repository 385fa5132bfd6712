"""Abstract interface for board platform integrations."""

from datetime import datetime
from typing import Any, Protocol

from ..models.action import BoardAction
from ..models.card import Card, CardAttachment, CardCreate


class BoardProvider(Protocol):
    """Abstract interface for card-based tracking boards.

    This protocol defines the contract the sync engine needs from the
    platform hosting the cards (Trello).
    """

    async def create_card(self, card: CardCreate) -> Card:
        """
        Create a new card.

        Args:
            card: List placement, name, description and position

        Returns:
            The created card with its assigned id

        Raises:
            BoardAPIError: If the board rejects the request
        """
        ...

    async def update_card(self, card_id: str, fields: dict[str, Any]) -> Card:
        """
        Update fields on a card.

        Args:
            card_id: Card identifier
            fields: Field name to new value (the bridge only sends ``desc``)

        Returns:
            The updated card
        """
        ...

    async def search_cards(self, board_id: str) -> list[Card]:
        """
        List the open cards on a board.

        Args:
            board_id: Board identifier

        Returns:
            Cards with at least id and name populated
        """
        ...

    async def add_attachment(self, card_id: str, url: str, name: str) -> CardAttachment:
        """
        Attach a URL to a card.

        Args:
            card_id: Card identifier
            url: URL to attach
            name: Display name of the attachment

        Returns:
            The created attachment
        """
        ...

    async def list_attachments(self, card_id: str) -> list[CardAttachment]:
        """
        List the attachments currently on a card.

        Args:
            card_id: Card identifier

        Returns:
            Current attachments, never cached
        """
        ...

    async def list_board_actions(
        self,
        board_id: str,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[BoardAction]:
        """
        List every action on a board since a checkpoint.

        Args:
            board_id: Board identifier
            since: Only return actions after this instant
            limit: Page size; all pages since the checkpoint are returned

        Returns:
            Actions in arrival order (not necessarily chronological)
        """
        ...

    async def close(self) -> None:
        """Release network resources held by the provider."""
        ...
