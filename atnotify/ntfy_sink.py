"""ntfy adapter for the NotificationSink protocol.

Each payload becomes one ``POST`` to the configured topic URL. Metadata
travels in ntfy's ``Title``, ``Icon``, ``Priority``, ``Click`` and ``Attach``
headers and the message is the request body. Failed deliveries are logged
and dropped; there is no retry.
"""

from __future__ import annotations

import typing as typ

import httpx

from atnotify.observability import RelayEventLogger

if typ.TYPE_CHECKING:
    from atnotify.sink import NotificationPayload

_HTTP_ERROR_STATUS_THRESHOLD = 400


def ntfy_headers(payload: NotificationPayload) -> dict[str, str]:
    """Return the ntfy request headers for ``payload``.

    Optional headers are omitted rather than sent empty.
    """
    headers = {
        "Title": payload.title,
        "Priority": str(payload.priority),
        "Click": payload.url,
    }
    if payload.icon:
        headers["Icon"] = payload.icon
    if payload.picture:
        headers["Attach"] = payload.picture
    return headers


class NtfySink:
    """Deliver notifications to an ntfy topic.

    Parameters
    ----------
    url
        Full topic URL, for example ``https://ntfy.sh/my-topic``.
    http_client
        Shared HTTP client; the sink never closes it.
    event_logger
        Structured logger for delivery outcomes.

    """

    def __init__(
        self,
        url: str,
        http_client: httpx.AsyncClient,
        *,
        event_logger: RelayEventLogger | None = None,
    ) -> None:
        """Bind the sink to a topic URL and HTTP client."""
        self._url = url
        self._client = http_client
        self._event_logger = event_logger or RelayEventLogger()

    async def send(self, payload: NotificationPayload) -> bool:
        """POST ``payload`` to the topic; return False on any failure."""
        try:
            response = await self._client.post(
                self._url,
                headers=ntfy_headers(payload),
                content=payload.message.encode("utf-8"),
            )
        except httpx.HTTPError as exc:
            self._event_logger.log_notification_failed(payload, error=exc)
            return False

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            self._event_logger.log_notification_failed(
                payload, status_code=response.status_code
            )
            return False

        self._event_logger.log_notification_sent(payload, response.status_code)
        return True
