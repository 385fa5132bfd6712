"""Data models for board change actions.

Board actions arrive as loosely-typed JSON. The board adapter classifies each
one into exactly one of the variants below; anything the bridge does not
relay becomes an ``UnrecognizedAction``.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class BoardAction:
    """Fields shared by every board action."""

    action_id: str
    action_type: str
    date: datetime
    card_id: str | None
    card_name: str
    actor_name: str | None

    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Chronological order with a stable tiebreak on the action id."""
        return (self.date, self.action_id)


@dataclass(frozen=True)
class LabelAction(BoardAction):
    """A label was added to or removed from a card."""

    label_name: str
    added: bool


@dataclass(frozen=True)
class ChecklistAdded(BoardAction):
    """A checklist was added to a card."""

    checklist_name: str


@dataclass(frozen=True)
class CheckItemStateChanged(BoardAction):
    """A checklist item was ticked or unticked."""

    item_name: str
    complete: bool


@dataclass(frozen=True)
class MemberAction(BoardAction):
    """A member was assigned to or removed from a card."""

    member_name: str | None
    added: bool


@dataclass(frozen=True)
class DueDateChanged(BoardAction):
    """The due date was set, removed or moved."""

    old_due: datetime | None
    new_due: datetime | None


@dataclass(frozen=True)
class CardRenamed(BoardAction):
    """The card name changed."""

    old_name: str


@dataclass(frozen=True)
class CommentAdded(BoardAction):
    """A comment was posted on a card."""

    text: str


@dataclass(frozen=True)
class CardMoved(BoardAction):
    """The card moved to another list or board."""

    list_name: str


@dataclass(frozen=True)
class UnrecognizedAction(BoardAction):
    """Any action type the bridge does not relay."""
