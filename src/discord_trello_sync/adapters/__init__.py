"""Concrete implementations of provider interfaces."""

from .board.trello import TrelloAdapter
from .thread.discord import DiscordAdapter

__all__ = [
    "DiscordAdapter",
    "TrelloAdapter",
]
