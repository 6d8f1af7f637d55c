"""NotificationSink protocol and the payload it delivers.

The relay formats one :class:`NotificationPayload` per qualifying event and
hands it to a sink. Adapters decide how it reaches the user; the bundled
adapter is :class:`atnotify.ntfy_sink.NtfySink`.

Usage
-----
>>> from atnotify.sink import NotificationPayload
>>> payload = NotificationPayload(title="Bluesky", message="hi", url="x")
>>> payload.priority
3

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

DEFAULT_PRIORITY = 3
MIN_PRIORITY = 1
MAX_PRIORITY = 5


@dc.dataclass(frozen=True, slots=True)
class NotificationPayload:
    """A rendered notification.

    Attributes
    ----------
    title
        Source network, ``Bluesky`` or ``Tangled``.
    message
        Free-text body.
    url
        Deep link opened when the notification is clicked.
    priority
        ntfy priority, 1 (min) to 5 (max). Defaults to 3.
    icon
        Optional icon URL, usually the actor's avatar.
    picture
        Optional attachment URL.

    """

    title: str
    message: str
    url: str
    priority: int = DEFAULT_PRIORITY
    icon: str | None = None
    picture: str | None = None

    def __post_init__(self) -> None:
        """Reject priorities outside the ntfy range."""
        if not MIN_PRIORITY <= self.priority <= MAX_PRIORITY:
            msg = (
                f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, "
                f"got: {self.priority}"
            )
            raise ValueError(msg)


@typ.runtime_checkable
class NotificationSink(typ.Protocol):
    """Protocol for delivering notifications.

    Implementations must not raise on delivery failure; they log and return
    ``False`` instead.
    """

    async def send(self, payload: NotificationPayload) -> bool:
        """Deliver ``payload`` and report whether it was accepted."""
        ...
