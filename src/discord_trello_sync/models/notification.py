"""Data models for notifications relayed into threads."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Notification:
    """A rendered card-change notification for a thread."""

    title: str
    description: str
    color: int
    footer: str
    timestamp: datetime
    footer_icon_url: str | None = None
