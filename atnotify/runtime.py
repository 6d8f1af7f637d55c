"""atnotify runtime entrypoint.

Builds the relay from :class:`~atnotify.config.RelayConfig`, subscribes to
Jetstream and forwards mentions of the target DID to ntfy until the stream
closes or the process receives SIGINT/SIGTERM.

Reconnection is not attempted: when the stream fails the process exits
non-zero and the supervisor (systemd, Kubernetes, Docker) restarts it.

Run the relay directly with ``python -m atnotify.runtime``.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import signal
import typing as typ

import httpx
import websockets.exceptions

from atnotify.atproto.client import XRPCClient, XRPCClientConfig
from atnotify.atproto.identity import HttpDidDocumentResolver, IdentityResolverConfig
from atnotify.atproto.jetstream import JetstreamSubscription
from atnotify.cache import TimedCache
from atnotify.config import ConfigError, RelayConfig
from atnotify.filters import MentionFilter
from atnotify.formatters import NotificationFormatter
from atnotify.lexicons import WATCHED_COLLECTIONS
from atnotify.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_exception,
    log_info,
    log_warning,
)
from atnotify.ntfy_sink import NtfySink
from atnotify.observability import RelayEventLogger
from atnotify.relay import NotificationRelay
from atnotify.resolvers import (
    ProfileResolver,
    RecordResolver,
    profile_ttl,
    record_ttl,
)

if typ.TYPE_CHECKING:
    from atnotify.relay import RelayStats

__all__ = ["RelayComponents", "build_relay", "main", "serve"]

logger = get_logger(__name__)

USER_AGENT = "atnotify/0.1"


@dataclasses.dataclass(frozen=True, slots=True)
class RelayComponents:
    """Fully wired relay plus the collaborators it was built from."""

    relay: NotificationRelay
    profiles: ProfileResolver
    records: RecordResolver
    sink: NtfySink


def build_relay(
    config: RelayConfig,
    http_client: httpx.AsyncClient,
    *,
    event_logger: RelayEventLogger | None = None,
) -> RelayComponents:
    """Construct caches, resolvers, formatter, sink and relay.

    Every component shares ``http_client``; the caller owns its lifetime.
    """
    events = event_logger or RelayEventLogger()
    base = config.cache_lifetime
    capacity = config.cache_max_entries

    xrpc = XRPCClient(
        XRPCClientConfig(
            appview_url=config.appview_url,
            timeout_s=config.http_timeout_s,
            user_agent=USER_AGENT,
        ),
        http_client=http_client,
    )
    identity = HttpDidDocumentResolver(
        http_client,
        config=IdentityResolverConfig(plc_url=config.plc_url),
        cache=TimedCache(base, max_entries=capacity),
    )
    profiles = ProfileResolver(
        xrpc, TimedCache(profile_ttl(base), max_entries=capacity)
    )
    records = RecordResolver(
        xrpc, identity, TimedCache(record_ttl(base), max_entries=capacity)
    )
    formatter = NotificationFormatter(
        config.target_did,
        profiles,
        records,
        links=config.links,
        event_logger=events,
    )
    sink = NtfySink(config.ntfy_url, http_client, event_logger=events)
    relay = NotificationRelay(
        MentionFilter(config.target_did, frozenset(WATCHED_COLLECTIONS)),
        formatter,
        sink,
        event_logger=events,
    )
    return RelayComponents(relay=relay, profiles=profiles, records=records, sink=sink)


def _install_stop_handlers(
    stop: asyncio.Event, subscription: JetstreamSubscription
) -> None:
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task[None]] = set()

    def _request_stop() -> None:
        if stop.is_set():
            return
        log_info(logger, "Stop requested; closing Jetstream subscription")
        stop.set()
        task = loop.create_task(subscription.aclose())
        pending.add(task)
        task.add_done_callback(pending.discard)

    for signum in (signal.SIGINT, signal.SIGTERM):
        # Signal handlers are unavailable on some platforms (Windows).
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, _request_stop)


async def serve(config: RelayConfig) -> RelayStats:
    """Run the relay against the live Jetstream until it stops."""
    events = RelayEventLogger()
    headers = {"User-Agent": USER_AGENT}
    async with httpx.AsyncClient(
        timeout=config.http_timeout_s, headers=headers
    ) as http_client:
        components = build_relay(config, http_client, event_logger=events)
        subscription = JetstreamSubscription(config.jetstream_url, WATCHED_COLLECTIONS)
        stop = asyncio.Event()
        _install_stop_handlers(stop, subscription)

        events.log_started(config.target_did, WATCHED_COLLECTIONS)
        return await components.relay.run(subscription, stop=stop)


def main() -> None:
    """Start the relay using configuration from the environment."""
    try:
        config = RelayConfig.from_env()
    except ConfigError as exc:
        # Validation failures need no traceback.
        log_error(logger, "Invalid configuration: %s", exc)
        raise SystemExit(1) from exc

    normalized_level, invalid_level = configure_logging(config.log_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid ATNOTIFY_LOG_LEVEL %r, falling back to %s",
            config.log_level,
            normalized_level,
        )

    log_info(
        logger,
        "Started notification server for %s (log_level=%s)",
        config.target_did,
        normalized_level,
    )

    try:
        asyncio.run(serve(config))
    except (websockets.exceptions.WebSocketException, OSError) as exc:
        log_exception(logger, "Jetstream stream failed; exiting", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
