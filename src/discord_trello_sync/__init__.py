"""Discord forum thread to Trello card synchronization."""

from discord_trello_sync._version import __version__

__all__ = ["__version__"]
