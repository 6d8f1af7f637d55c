"""Sequential event loop driving the notification pipeline.

The relay consumes events one at a time: filter, format, deliver, then the
next event. Notifications therefore leave in the order their events arrived.
A stream that ends returns from :meth:`NotificationRelay.run`; a stream that
raises propagates to the caller.
"""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import dataclasses
import typing as typ

from atnotify.lexicons import WatchedCollection
from atnotify.observability import RelayEventLogger

if typ.TYPE_CHECKING:
    import asyncio

    from atnotify.atproto.models import JetstreamEvent
    from atnotify.filters import MentionFilter
    from atnotify.formatters import NotificationFormatter
    from atnotify.sink import NotificationPayload, NotificationSink


@contextlib.asynccontextmanager
async def _closing[T](
    events: cabc.AsyncIterable[T],
) -> cabc.AsyncIterator[cabc.AsyncIterator[T]]:
    """Yield an iterator over ``events`` and close it on exit."""
    iterator = aiter(events)
    try:
        yield iterator
    finally:
        if isinstance(iterator, cabc.AsyncGenerator):
            await iterator.aclose()


@dataclasses.dataclass(slots=True)
class RelayStats:
    """Counters for a single :meth:`NotificationRelay.run`."""

    events_seen: int = 0
    events_matched: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0

    def record(self, outcome: _Outcome) -> None:
        """Fold one event outcome into the counters."""
        self.events_seen += 1
        if outcome.matched:
            self.events_matched += 1
        if outcome.payload is None:
            return
        if outcome.delivered:
            self.notifications_sent += 1
        else:
            self.notifications_failed += 1


@dataclasses.dataclass(frozen=True, slots=True)
class _Outcome:
    matched: bool = False
    payload: NotificationPayload | None = None
    delivered: bool = False


class NotificationRelay:
    """Filter events, format matches and hand them to a sink."""

    def __init__(
        self,
        mention_filter: MentionFilter,
        formatter: NotificationFormatter,
        sink: NotificationSink,
        *,
        event_logger: RelayEventLogger | None = None,
    ) -> None:
        """Wire the relay stages together."""
        self._filter = mention_filter
        self._formatter = formatter
        self._sink = sink
        self._event_logger = event_logger or RelayEventLogger()

    async def handle(self, event: JetstreamEvent) -> NotificationPayload | None:
        """Process one event and return the payload handed to the sink, if any."""
        outcome = await self._process(event)
        return outcome.payload

    async def _process(self, event: JetstreamEvent) -> _Outcome:
        if not self._filter.matches(event) or event.commit is None:
            return _Outcome()

        commit = event.commit
        collection = WatchedCollection.parse(commit.collection)
        if collection is None or commit.record is None:
            self._event_logger.log_event_skipped(commit.collection, "no formatter")
            return _Outcome(matched=True)

        self._event_logger.log_event_matched(event.did, commit.collection, commit.rkey)
        payload = await self._formatter.format(
            collection, event.did, commit.rkey, commit.record
        )
        if payload is None:
            return _Outcome(matched=True)

        delivered = await self._sink.send(payload)
        return _Outcome(matched=True, payload=payload, delivered=delivered)

    async def run(
        self,
        events: cabc.AsyncIterable[JetstreamEvent],
        *,
        stop: asyncio.Event | None = None,
    ) -> RelayStats:
        """Consume ``events`` until the stream ends or ``stop`` is set.

        ``stop`` is checked between events; an event already being processed
        always completes. The stream is closed before returning, which ends a
        live Jetstream connection.
        """
        stats = RelayStats()
        async with _closing(events) as iterator:
            async for event in iterator:
                if stop is not None and stop.is_set():
                    break
                outcome = await self._process(event)
                stats.record(outcome)

        self._event_logger.log_stream_ended(
            stats.events_seen, stats.notifications_sent
        )
        return stats
