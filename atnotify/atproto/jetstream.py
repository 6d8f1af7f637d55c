"""Jetstream websocket subscription.

Jetstream re-publishes the network firehose as JSON. The subscription asks
the server to filter by collection and yields each message decoded into a
:class:`~atnotify.atproto.models.JetstreamEvent`. The sequence is lazy,
unbounded and not restartable; reconnection is left to the process
supervisor.
"""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

import httpx
import msgspec
from websockets.asyncio.client import connect

from atnotify.logging import get_logger, log_info, log_warning

from .models import JetstreamEvent

if typ.TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = get_logger(__name__)

_EVENT_DECODER = msgspec.json.Decoder(JetstreamEvent)
# Posts with large embeds can exceed the websockets default of 1 MiB.
_MAX_MESSAGE_BYTES = 4 * 1024 * 1024


def subscription_url(
    url: str,
    wanted_collections: cabc.Iterable[str],
    *,
    cursor: int | None = None,
) -> str:
    """Return ``url`` with ``wantedCollections`` (and ``cursor``) appended."""
    params: list[tuple[str, str | int]] = [
        ("wantedCollections", collection) for collection in wanted_collections
    ]
    if cursor is not None:
        params.append(("cursor", cursor))
    return str(httpx.URL(url).copy_merge_params(params))


def decode_event(message: str | bytes) -> JetstreamEvent | None:
    """Decode one Jetstream message, returning ``None`` when it is malformed."""
    try:
        return _EVENT_DECODER.decode(message)
    except msgspec.MsgspecError as exc:
        log_warning(logger, "Dropping malformed Jetstream message: %s", exc)
        return None


class JetstreamSubscription:
    """Async iterable over Jetstream events for a set of collections.

    Parameters
    ----------
    url
        Jetstream ``/subscribe`` endpoint.
    wanted_collections
        Collection NSIDs the server should forward.
    cursor
        Optional ``time_us`` to replay from.

    """

    def __init__(
        self,
        url: str,
        wanted_collections: cabc.Iterable[str],
        *,
        cursor: int | None = None,
    ) -> None:
        """Store subscription parameters; no connection is opened yet."""
        self._url = subscription_url(url, wanted_collections, cursor=cursor)
        self._connection: ClientConnection | None = None

    @property
    def url(self) -> str:
        """Return the full subscription URL."""
        return self._url

    async def __aiter__(self) -> cabc.AsyncIterator[JetstreamEvent]:
        """Connect and yield events until the server closes the stream.

        A normal close ends iteration; abnormal closes raise
        :class:`websockets.exceptions.ConnectionClosedError`.
        """
        async with connect(self._url, max_size=_MAX_MESSAGE_BYTES) as connection:
            self._connection = connection
            log_info(logger, "Subscribed to %s", self._url)
            try:
                async for message in connection:
                    event = decode_event(message)
                    if event is not None:
                        yield event
            finally:
                self._connection = None

    async def aclose(self) -> None:
        """Close the live connection, ending any running iteration."""
        if self._connection is not None:
            await self._connection.close()
