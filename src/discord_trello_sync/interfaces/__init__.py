"""Protocol definitions for pluggable adapters."""

from .board import BoardProvider
from .thread import ThreadProvider

__all__ = ["BoardProvider", "ThreadProvider"]
