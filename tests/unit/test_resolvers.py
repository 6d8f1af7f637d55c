"""Unit tests for profile and record resolution."""

from __future__ import annotations

import datetime as dt
import typing as typ

import httpx
import pytest

from atnotify.atproto.identity import HttpDidDocumentResolver
from atnotify.atproto.models import INVALID_HANDLE, ActorProfile, TangledRepo
from atnotify.cache import TimedCache
from atnotify.resolvers import (
    FailureReason,
    ProfileResolver,
    RecordResolver,
    Resolved,
    Unresolved,
    display_label,
    profile_ttl,
    record_ttl,
)
from tests.helpers.fakes import (
    AUTHOR_DID,
    PDS_URL,
    TARGET_DID,
    FakeClock,
    FakeIdentityResolver,
    FakeProfileFetcher,
    FakeRecordFetcher,
    profile,
)

if typ.TYPE_CHECKING:
    from atnotify.atproto.models import GetRecordOutput
    from atnotify.atproto.uri import CanonicalResourceUri

_BASE = dt.timedelta(minutes=60)
_REPO_URI = f"at://{TARGET_DID}/sh.tangled.repo/3kwidgets"


def _record_resolver(
    clock: FakeClock,
    records: dict[str, dict[str, object]] | None = None,
    *,
    known: set[str] | None = None,
) -> tuple[RecordResolver, FakeRecordFetcher, FakeIdentityResolver]:
    fetcher = FakeRecordFetcher(records)
    identity = FakeIdentityResolver({TARGET_DID} if known is None else known)
    resolver = RecordResolver(
        fetcher, identity, TimedCache(record_ttl(_BASE), clock=clock)
    )
    return resolver, fetcher, identity


def test_lifetimes_scale_with_base() -> None:
    """Profiles live four and records twenty-four base lifetimes."""
    assert profile_ttl(_BASE) == dt.timedelta(hours=4), "Expected 4x for profiles."
    assert record_ttl(_BASE) == dt.timedelta(hours=24), "Expected 24x for records."


@pytest.mark.parametrize(
    ("actor", "expected"),
    [
        pytest.param(profile(AUTHOR_DID, "alice.test"), "alice.test", id="handle"),
        pytest.param(ActorProfile.placeholder(AUTHOR_DID), AUTHOR_DID, id="invalid"),
    ],
)
def test_display_label(actor: ActorProfile, expected: str) -> None:
    """Invalid handles fall back to the DID."""
    assert display_label(actor) == expected, "Unexpected display label."


class TestProfileResolver:
    """Tests for ProfileResolver."""

    @pytest.mark.asyncio
    async def test_returns_and_caches_profile(self, clock: FakeClock) -> None:
        """A resolved profile is served from cache on the next call."""
        fetcher = FakeProfileFetcher({AUTHOR_DID: profile(AUTHOR_DID, "alice.test")})
        resolver = ProfileResolver(fetcher, TimedCache(profile_ttl(_BASE), clock=clock))

        first = await resolver.resolve(AUTHOR_DID)
        second = await resolver.resolve(AUTHOR_DID)

        assert first.handle == "alice.test", "Expected the fetched handle."
        assert second is first, "Expected the cached profile."
        assert fetcher.calls == [AUTHOR_DID], "Expected a single fetch."

    @pytest.mark.asyncio
    async def test_failure_yields_cached_placeholder(self, clock: FakeClock) -> None:
        """Lookup failures return the placeholder and are not retried."""
        fetcher = FakeProfileFetcher()
        resolver = ProfileResolver(fetcher, TimedCache(profile_ttl(_BASE), clock=clock))

        first = await resolver.resolve(AUTHOR_DID)
        clock.advance(profile_ttl(_BASE).total_seconds() - 1)
        await resolver.resolve(AUTHOR_DID)

        assert first.handle == INVALID_HANDLE, "Expected the placeholder handle."
        assert first.display_name == "silent error!", "Expected placeholder name."
        assert first.did == AUTHOR_DID, "Expected the placeholder to keep the DID."
        assert fetcher.calls == [AUTHOR_DID], "Expected the failure to be cached."

    @pytest.mark.asyncio
    async def test_expired_placeholder_is_retried(self, clock: FakeClock) -> None:
        """Once the lifetime elapses a failed lookup is attempted again."""
        fetcher = FakeProfileFetcher()
        resolver = ProfileResolver(fetcher, TimedCache(profile_ttl(_BASE), clock=clock))

        await resolver.resolve(AUTHOR_DID)
        fetcher.profiles[AUTHOR_DID] = profile(AUTHOR_DID, "alice.test")
        clock.advance(profile_ttl(_BASE).total_seconds())
        refreshed = await resolver.resolve(AUTHOR_DID)

        assert refreshed.handle == "alice.test", "Expected a fresh lookup."
        assert len(fetcher.calls) == 2, "Expected exactly one retry."


class TestRecordResolver:
    """Tests for RecordResolver."""

    @pytest.mark.asyncio
    async def test_resolves_through_identity_and_pds(self, clock: FakeClock) -> None:
        """The repository DID is resolved before the record is fetched."""
        resolver, fetcher, identity = _record_resolver(
            clock, {_REPO_URI: {"name": "widgets"}}
        )

        result = await resolver.resolve(_REPO_URI)

        assert result == Resolved({"name": "widgets"}), "Expected the record value."
        assert identity.calls == [TARGET_DID], "Expected identity resolution."
        assert fetcher.calls == [(PDS_URL, _REPO_URI)], "Expected a PDS fetch."

    @pytest.mark.asyncio
    async def test_malformed_uri_skips_network(self, clock: FakeClock) -> None:
        """Malformed references fail without any remote call."""
        resolver, fetcher, identity = _record_resolver(clock)

        result = await resolver.resolve("at://did:web:fake/nope.nada/nada")

        assert isinstance(result, Unresolved), "Expected an unresolved result."
        assert result.reason is FailureReason.MALFORMED_REFERENCE, (
            "Expected a malformed-reference failure."
        )
        assert identity.calls == [], "Expected no identity lookup."
        assert fetcher.calls == [], "Expected no record fetch."

    @pytest.mark.asyncio
    async def test_failed_document_fetch_is_remote_failure(
        self, clock: FakeClock
    ) -> None:
        """A DID document that cannot be fetched is a transient failure."""
        resolver, fetcher, identity = _record_resolver(clock, known=set())

        result = await resolver.resolve(_REPO_URI)

        assert isinstance(result, Unresolved), "Expected an unresolved result."
        assert result.reason is FailureReason.REMOTE_FAILURE, (
            "Expected a remote failure for the failed document fetch."
        )
        assert identity.calls == [TARGET_DID], "Expected one identity lookup."
        assert fetcher.calls == [], "Expected no record fetch."

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "endpoint",
        [
            pytest.param("https://[::1", id="unterminated-ipv6"),
            pytest.param("https://pds.example.test:99x", id="bad-port"),
            pytest.param("ftp://pds.example.test", id="other-scheme"),
        ],
    )
    async def test_malformed_pds_endpoint_is_unroutable(
        self, clock: FakeClock, endpoint: str
    ) -> None:
        """A PDS endpoint httpx cannot request is unroutable, not a crash."""
        fetcher = FakeRecordFetcher({_REPO_URI: {"name": "widgets"}})
        identity = FakeIdentityResolver({TARGET_DID}, endpoints={TARGET_DID: endpoint})
        resolver = RecordResolver(
            fetcher, identity, TimedCache(record_ttl(_BASE), clock=clock)
        )

        result = await resolver.resolve(_REPO_URI)

        assert isinstance(result, Unresolved), "Expected an unresolved result."
        assert result.reason is FailureReason.UNROUTABLE_IDENTITY, (
            "Expected an unroutable-identity failure."
        )
        assert fetcher.calls == [], "Expected no record fetch."

    @pytest.mark.asyncio
    async def test_bad_did_web_port_is_unroutable(self, clock: FakeClock) -> None:
        """A did:web repository with an invalid port never reaches the network."""
        requests: list[httpx.Request] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(500)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
        resolver = RecordResolver(
            FakeRecordFetcher(),
            HttpDidDocumentResolver(http_client),
            TimedCache(record_ttl(_BASE), clock=clock),
        )

        result = await resolver.resolve(
            "at://did:web:evil.example%3A99x/sh.tangled.repo/3kwidgets"
        )

        assert isinstance(result, Unresolved), "Expected an unresolved result."
        assert result.reason is FailureReason.UNROUTABLE_IDENTITY, (
            "Expected an unroutable-identity failure."
        )
        assert requests == [], "Expected no HTTP request."

    @pytest.mark.asyncio
    async def test_invalid_url_from_fetcher_is_contained(
        self, clock: FakeClock
    ) -> None:
        """``httpx.InvalidURL`` from the PDS call becomes a remote failure."""

        class _InvalidUrlFetcher(FakeRecordFetcher):
            async def get_record(
                self, service: str, uri: CanonicalResourceUri
            ) -> GetRecordOutput:
                msg = "Invalid port: ':1'"
                raise httpx.InvalidURL(msg)

        resolver = RecordResolver(
            _InvalidUrlFetcher(),
            FakeIdentityResolver({TARGET_DID}),
            TimedCache(record_ttl(_BASE), clock=clock),
        )

        result = await resolver.resolve(_REPO_URI)

        assert result == Unresolved(
            FailureReason.REMOTE_FAILURE, "Invalid port: ':1'"
        ), "Expected the invalid URL to be contained."

    @pytest.mark.asyncio
    async def test_missing_record_failure_is_cached(self, clock: FakeClock) -> None:
        """A failed fetch is cached like a success."""
        resolver, fetcher, _ = _record_resolver(clock)

        first = await resolver.resolve(_REPO_URI)
        second = await resolver.resolve(_REPO_URI)

        assert isinstance(first, Unresolved), "Expected an unresolved result."
        assert first.reason is FailureReason.REMOTE_FAILURE, "Expected remote failure."
        assert "RecordNotFound" in first.detail, "Expected the XRPC error detail."
        assert second == first, "Expected the cached failure."
        assert len(fetcher.calls) == 1, "Expected a single fetch attempt."

    @pytest.mark.asyncio
    async def test_resolve_as_converts_to_struct(self, clock: FakeClock) -> None:
        """Resolved values are converted to the requested struct."""
        resolver, _, _ = _record_resolver(
            clock, {_REPO_URI: {"name": "widgets", "knot": "knot.example"}}
        )

        result = await resolver.resolve_as(_REPO_URI, TangledRepo)

        assert result == Resolved(TangledRepo(name="widgets", knot="knot.example")), (
            "Expected a decoded repository."
        )

    @pytest.mark.asyncio
    async def test_resolve_as_reports_unexpected_shape(self, clock: FakeClock) -> None:
        """Records that do not fit the struct are unresolved."""
        resolver, _, _ = _record_resolver(clock, {_REPO_URI: {"title": "no name"}})

        result = await resolver.resolve_as(_REPO_URI, TangledRepo)

        assert isinstance(result, Unresolved), "Expected an unresolved result."
        assert result.reason is FailureReason.UNEXPECTED_SHAPE, (
            "Expected an unexpected-shape failure."
        )
