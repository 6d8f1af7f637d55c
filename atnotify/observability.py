"""Structured relay log events.

Every line starts with a bracketed :class:`RelayEventType` tag followed by
``key=value`` pairs so log aggregators can parse relay activity without a
metrics backend.
"""

from __future__ import annotations

import enum
import typing as typ

from atnotify.logging import (
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    from atnotify.logging import SupportsLog
    from atnotify.resolvers import Unresolved
    from atnotify.sink import NotificationPayload


class RelayEventType(enum.StrEnum):
    """Structured log event types emitted by the relay."""

    STARTED = "relay.started"
    EVENT_MATCHED = "relay.event.matched"
    EVENT_SKIPPED = "relay.event.skipped"
    NOTIFICATION_SENT = "relay.notification.sent"
    NOTIFICATION_FAILED = "relay.notification.failed"
    RESOLUTION_FAILED = "relay.resolution.failed"
    RECORD_INVALID = "relay.record.invalid"
    STREAM_ENDED = "relay.stream.ended"


class RelayEventLogger:
    """Emit structured relay events through femtologging.

    Success paths log at INFO, degraded resolution at WARNING and delivery
    failures at ERROR.
    """

    def __init__(self, logger: SupportsLog | None = None) -> None:
        """Bind to ``logger`` or the module logger."""
        self._logger = logger or get_logger(__name__)

    def log_started(self, target_did: str, collections: typ.Sequence[str]) -> None:
        """Log relay start-up."""
        log_info(
            self._logger,
            "[%s] target_did=%s collections=%s",
            RelayEventType.STARTED,
            target_did,
            ",".join(collections),
        )

    def log_event_matched(self, author_did: str, collection: str, rkey: str) -> None:
        """Log an event that passed the mention filter."""
        log_info(
            self._logger,
            "[%s] author_did=%s collection=%s rkey=%s",
            RelayEventType.EVENT_MATCHED,
            author_did,
            collection,
            rkey,
        )

    def log_event_skipped(self, collection: str, reason: str) -> None:
        """Log a matched event that produced no notification."""
        log_debug(
            self._logger,
            "[%s] collection=%s reason=%s",
            RelayEventType.EVENT_SKIPPED,
            collection,
            reason,
        )

    def log_notification_sent(
        self, payload: NotificationPayload, status_code: int
    ) -> None:
        """Log a delivered notification."""
        log_info(
            self._logger,
            "[%s] title=%s priority=%d status_code=%d",
            RelayEventType.NOTIFICATION_SENT,
            payload.title,
            payload.priority,
            status_code,
        )

    def log_notification_failed(
        self,
        payload: NotificationPayload,
        *,
        status_code: int | None = None,
        error: BaseException | None = None,
    ) -> None:
        """Log a delivery failure; the notification is dropped."""
        log_error(
            self._logger,
            "[%s] title=%s status_code=%s error_type=%s error_message=%s",
            RelayEventType.NOTIFICATION_FAILED,
            payload.title,
            status_code,
            type(error).__name__ if error is not None else None,
            str(error) if error is not None else None,
            exc_info=error,
        )

    def log_resolution_failed(self, subject: str, failure: Unresolved) -> None:
        """Log a record or profile lookup that fell back to a placeholder."""
        log_warning(
            self._logger,
            "[%s] subject=%s reason=%s detail=%s",
            RelayEventType.RESOLUTION_FAILED,
            subject,
            failure.reason,
            failure.detail,
        )

    def log_record_invalid(
        self, collection: str, rkey: str, error: BaseException
    ) -> None:
        """Log a triggering record that does not match its collection's shape."""
        log_warning(
            self._logger,
            "[%s] collection=%s rkey=%s error_message=%s",
            RelayEventType.RECORD_INVALID,
            collection,
            rkey,
            str(error),
        )

    def log_stream_ended(self, events_seen: int, notifications_sent: int) -> None:
        """Log the end of the event stream."""
        log_info(
            self._logger,
            "[%s] events_seen=%d notifications_sent=%d",
            RelayEventType.STREAM_ENDED,
            events_seen,
            notifications_sent,
        )
