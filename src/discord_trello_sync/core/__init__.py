"""Core sync engine."""

from discord_trello_sync.core.aggregator import AggregatedContent, ContentAggregator
from discord_trello_sync.core.attachments import AttachmentReconciler
from discord_trello_sync.core.backoff import BackoffController
from discord_trello_sync.core.bridge import SyncBridge, create_bridge
from discord_trello_sync.core.notifications import (
    NotificationDeduplicator,
    NotificationRenderer,
    content_hash,
)
from discord_trello_sync.core.orchestrator import CardSyncOrchestrator, card_name_for
from discord_trello_sync.core.poller import ChangePoller
from discord_trello_sync.core.registry import IdentityRegistry

__all__ = [
    "AggregatedContent",
    "AttachmentReconciler",
    "BackoffController",
    "CardSyncOrchestrator",
    "ChangePoller",
    "ContentAggregator",
    "IdentityRegistry",
    "NotificationDeduplicator",
    "NotificationRenderer",
    "SyncBridge",
    "card_name_for",
    "content_hash",
    "create_bridge",
]
