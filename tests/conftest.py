"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import dataclasses
import datetime as dt

import pytest

from atnotify.cache import TimedCache
from atnotify.formatters import LinkConfig, NotificationFormatter
from atnotify.observability import RelayEventLogger
from atnotify.resolvers import ProfileResolver, RecordResolver
from tests.helpers.fakes import (
    AUTHOR_DID,
    TARGET_DID,
    FakeClock,
    FakeIdentityResolver,
    FakeLogger,
    FakeProfileFetcher,
    FakeRecordFetcher,
    profile,
)

LINKS = LinkConfig(
    bsky_url="https://bsky.example",
    pdsls_url="https://pdsls.example",
    tangled_url="https://tangled.example",
    bsky_cdn_url="https://cdn.example",
)
BASE_LIFETIME = dt.timedelta(minutes=60)


@dataclasses.dataclass(slots=True)
class FormatterHarness:
    """Formatter wired to in-memory fetchers."""

    formatter: NotificationFormatter
    profiles: FakeProfileFetcher
    records: FakeRecordFetcher
    identity: FakeIdentityResolver
    logger: FakeLogger
    clock: FakeClock


@pytest.fixture
def clock() -> FakeClock:
    """Return a fresh fake clock."""
    return FakeClock()


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Return a logger that collects calls."""
    return FakeLogger()


@pytest.fixture
def event_logger(fake_logger: FakeLogger) -> RelayEventLogger:
    """Return a structured event logger writing to ``fake_logger``."""
    return RelayEventLogger(fake_logger)


@pytest.fixture
def harness(
    clock: FakeClock, fake_logger: FakeLogger, event_logger: RelayEventLogger
) -> FormatterHarness:
    """Build a formatter whose author profile resolves and records miss."""
    profiles = FakeProfileFetcher({AUTHOR_DID: profile(AUTHOR_DID, "alice.test")})
    records = FakeRecordFetcher()
    identity = FakeIdentityResolver({TARGET_DID, AUTHOR_DID})
    formatter = NotificationFormatter(
        TARGET_DID,
        ProfileResolver(profiles, TimedCache(BASE_LIFETIME * 4, clock=clock)),
        RecordResolver(
            records, identity, TimedCache(BASE_LIFETIME * 24, clock=clock)
        ),
        links=LINKS,
        event_logger=event_logger,
    )
    return FormatterHarness(
        formatter=formatter,
        profiles=profiles,
        records=records,
        identity=identity,
        logger=fake_logger,
        clock=clock,
    )
