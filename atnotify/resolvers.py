"""Profile and record resolution with cached, contained failures.

Both resolvers own a :class:`~atnotify.cache.TimedCache`. Remote failures
never escape: profile lookups fall back to
:meth:`ActorProfile.placeholder`, record lookups return an
:class:`Unresolved` value that callers pattern-match on.

Record resolution is two-level. The repository DID is resolved to its DID
document to find the hosting PDS, and only then is the record fetched from
that PDS. The DID document lookup has its own cache inside the identity
resolver.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import enum
import functools
import typing as typ

import httpx
import msgspec

from atnotify.atproto.errors import (
    AtprotoError,
    ResourceUriError,
    UnroutableIdentityError,
)
from atnotify.atproto.identity import pds_endpoint
from atnotify.atproto.models import ActorProfile, RecordValue
from atnotify.atproto.uri import parse_canonical_resource_uri

if typ.TYPE_CHECKING:
    from atnotify.atproto.client import ProfileFetcher, RecordFetcher
    from atnotify.atproto.identity import DidDocumentResolver
    from atnotify.atproto.uri import CanonicalResourceUri
    from atnotify.cache import TimedCache

# Exceptions a remote lookup may raise; anything else is a programming error.
# ``InvalidURL`` is not an ``HTTPError``; IDNA host encoding raises ``UnicodeError``.
_REMOTE_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    httpx.InvalidURL,
    UnicodeError,
    AtprotoError,
    msgspec.MsgspecError,
)

PROFILE_TTL_FACTOR = 4
RECORD_TTL_FACTOR = 24


class FailureReason(enum.StrEnum):
    """Why a record could not be resolved."""

    MALFORMED_REFERENCE = "malformed_reference"
    UNROUTABLE_IDENTITY = "unroutable_identity"
    REMOTE_FAILURE = "remote_failure"
    UNEXPECTED_SHAPE = "unexpected_shape"


@dataclasses.dataclass(frozen=True, slots=True)
class Resolved[T]:
    """Successful resolution carrying the decoded value."""

    value: T


@dataclasses.dataclass(frozen=True, slots=True)
class Unresolved:
    """Failed resolution with a categorised reason."""

    reason: FailureReason
    detail: str


type Resolution[T] = Resolved[T] | Unresolved


def display_label(profile: ActorProfile) -> str:
    """Return the handle, or the DID when the handle is ``handle.invalid``."""
    return profile.handle if profile.has_valid_handle else profile.did


def profile_ttl(base_lifetime: dt.timedelta) -> dt.timedelta:
    """Return the profile cache lifetime for a base lifetime."""
    return base_lifetime * PROFILE_TTL_FACTOR


def record_ttl(base_lifetime: dt.timedelta) -> dt.timedelta:
    """Return the record cache lifetime for a base lifetime."""
    return base_lifetime * RECORD_TTL_FACTOR


def _categorise(exc: BaseException) -> FailureReason:
    if isinstance(exc, UnroutableIdentityError):
        return FailureReason.UNROUTABLE_IDENTITY
    return FailureReason.REMOTE_FAILURE


class ProfileResolver:
    """Resolve actor profiles through a cache keyed by DID."""

    def __init__(
        self,
        fetcher: ProfileFetcher,
        cache: TimedCache[str, ActorProfile],
    ) -> None:
        """Bind the resolver to a profile fetcher and its cache."""
        self._fetcher = fetcher
        self._cache = cache

    async def resolve(self, did: str) -> ActorProfile:
        """Return the profile for ``did`` or the placeholder profile."""
        return await self._cache.get(did, functools.partial(self._fetch, did))

    async def _fetch(self, did: str) -> ActorProfile:
        try:
            return await self._fetcher.get_profile(did)
        except _REMOTE_ERRORS:
            return ActorProfile.placeholder(did)


class RecordResolver:
    """Resolve ``at://`` record references across repositories.

    Parameters
    ----------
    fetcher
        Issues ``com.atproto.repo.getRecord`` against a given PDS.
    identity
        Maps a repository DID to its DID document.
    cache
        Stores every outcome, success or failure, under the
        ``(collection, repo, rkey)`` key.

    """

    def __init__(
        self,
        fetcher: RecordFetcher,
        identity: DidDocumentResolver,
        cache: TimedCache[tuple[str, str, str], Resolution[RecordValue]],
    ) -> None:
        """Bind the resolver to its collaborators and cache."""
        self._fetcher = fetcher
        self._identity = identity
        self._cache = cache

    async def resolve(self, uri: str) -> Resolution[RecordValue]:
        """Return the record value addressed by ``uri``.

        A malformed URI fails immediately without touching the network or the
        cache.
        """
        try:
            parsed = parse_canonical_resource_uri(uri)
        except ResourceUriError as exc:
            return Unresolved(FailureReason.MALFORMED_REFERENCE, str(exc))

        return await self._cache.get(
            parsed.cache_key, functools.partial(self._fetch, parsed)
        )

    async def resolve_as[T](
        self, uri: str, struct_type: type[T]
    ) -> Resolution[T]:
        """Resolve ``uri`` and convert the record value to ``struct_type``."""
        match await self.resolve(uri):
            case Resolved(value=value):
                try:
                    return Resolved(msgspec.convert(value, struct_type))
                except msgspec.ValidationError as exc:
                    return Unresolved(FailureReason.UNEXPECTED_SHAPE, str(exc))
            case Unresolved() as failure:
                return failure

    async def _fetch(self, uri: CanonicalResourceUri) -> Resolution[RecordValue]:
        try:
            document = await self._identity.resolve(uri.repo)
            service = pds_endpoint(document)
            output = await self._fetcher.get_record(service, uri)
        except _REMOTE_ERRORS as exc:
            return Unresolved(_categorise(exc), str(exc) or type(exc).__name__)
        return Resolved(output.value)
