"""Data models and transfer objects."""

from .action import (
    BoardAction,
    CardMoved,
    CardRenamed,
    CheckItemStateChanged,
    ChecklistAdded,
    CommentAdded,
    DueDateChanged,
    LabelAction,
    MemberAction,
    UnrecognizedAction,
)
from .card import Card, CardAttachment, CardCreate, SyncResult
from .notification import Notification
from .thread import (
    MessageAttachment,
    MessageEmbed,
    Thread,
    ThreadEvent,
    ThreadEventKind,
    ThreadMessage,
)

__all__ = [
    # Thread models
    "Thread",
    "ThreadMessage",
    "MessageAttachment",
    "MessageEmbed",
    "ThreadEvent",
    "ThreadEventKind",
    # Card models
    "Card",
    "CardCreate",
    "CardAttachment",
    "SyncResult",
    # Action models
    "BoardAction",
    "LabelAction",
    "ChecklistAdded",
    "CheckItemStateChanged",
    "MemberAction",
    "DueDateChanged",
    "CardRenamed",
    "CommentAdded",
    "CardMoved",
    "UnrecognizedAction",
    # Notification models
    "Notification",
]
