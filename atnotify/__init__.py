"""atnotify: push notifications for mentions of one AT Protocol account."""

from __future__ import annotations

from .cache import TimedCache
from .config import ConfigError, RelayConfig
from .filters import MentionFilter
from .formatters import LinkConfig, NotificationFormatter
from .lexicons import WatchedCollection
from .ntfy_sink import NtfySink
from .relay import NotificationRelay, RelayStats
from .resolvers import (
    FailureReason,
    ProfileResolver,
    RecordResolver,
    Resolved,
    Unresolved,
    display_label,
)
from .sink import NotificationPayload, NotificationSink

__all__ = [
    "ConfigError",
    "FailureReason",
    "LinkConfig",
    "MentionFilter",
    "NotificationFormatter",
    "NotificationPayload",
    "NotificationRelay",
    "NotificationSink",
    "NtfySink",
    "ProfileResolver",
    "RecordResolver",
    "RelayConfig",
    "RelayStats",
    "Resolved",
    "TimedCache",
    "Unresolved",
    "WatchedCollection",
    "display_label",
]
