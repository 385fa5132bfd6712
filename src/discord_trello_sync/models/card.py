"""Data models for board cards."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Card:
    """A card on the board."""

    card_id: str
    name: str
    description: str = ""
    list_id: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class CardCreate:
    """Data for creating a new card."""

    list_id: str
    name: str
    description: str
    position: str = "top"


@dataclass(frozen=True)
class CardAttachment:
    """An attachment already present on a card."""

    url: str
    name: str


class SyncResult(Enum):
    """Outcome of syncing a thread to its card."""

    CARD_CREATED = "card_created"
    CARD_LINKED = "card_linked"  # Found an existing card by name
    CARD_UPDATED = "card_updated"
    ERROR = "error"
