"""Typed AT Protocol payloads consumed by the relay.

Jetstream events and XRPC responses are decoded into these msgspec structs.
Record structs only declare the fields the relay reads; unknown fields are
ignored so lexicon additions do not break decoding.
"""

from __future__ import annotations

import typing as typ

import msgspec

RecordValue: typ.TypeAlias = dict[str, typ.Any]

INVALID_HANDLE = "handle.invalid"


class JetstreamCommit(msgspec.Struct, kw_only=True, frozen=True):
    """Repository commit carried by a Jetstream ``commit`` event."""

    operation: str
    collection: str
    rkey: str
    rev: str | None = None
    record: RecordValue | None = None
    cid: str | None = None


class JetstreamEvent(msgspec.Struct, kw_only=True, frozen=True):
    """One message from the Jetstream subscription.

    Attributes
    ----------
    did : str
        DID of the account whose repository produced the event.
    time_us : int
        Jetstream cursor, microseconds since the epoch.
    kind : str
        ``commit``, ``identity`` or ``account``.
    commit : JetstreamCommit, optional
        Present only for ``commit`` events.

    """

    did: str
    time_us: int = 0
    kind: str
    commit: JetstreamCommit | None = None


class ActorProfile(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Public profile returned by ``app.bsky.actor.getProfile``."""

    did: str
    handle: str
    display_name: str | None = None
    avatar: str | None = None

    @classmethod
    def placeholder(cls, did: str) -> ActorProfile:
        """Return the stand-in profile used when a lookup fails."""
        return cls(did=did, handle=INVALID_HANDLE, display_name="silent error!")

    @property
    def has_valid_handle(self) -> bool:
        """Return True unless the handle is the ``handle.invalid`` marker."""
        return self.handle != INVALID_HANDLE


class GetRecordOutput(msgspec.Struct, kw_only=True, frozen=True):
    """Response body of ``com.atproto.repo.getRecord``."""

    uri: str
    value: RecordValue
    cid: str | None = None


class XRPCErrorBody(msgspec.Struct, kw_only=True, frozen=True):
    """Error body returned by XRPC endpoints."""

    error: str | None = None
    message: str | None = None


class DidService(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Service entry advertised in a DID document."""

    id: str
    type: str
    service_endpoint: str | dict[str, typ.Any] | list[typ.Any]


class DidDocument(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Subset of a DID document used to locate the PDS."""

    id: str
    also_known_as: list[str] = msgspec.field(default_factory=list)
    service: list[DidService] = msgspec.field(default_factory=list)


# Record shapes ---------------------------------------------------------------


class StrongRef(msgspec.Struct, kw_only=True, frozen=True):
    """``com.atproto.repo.strongRef``."""

    uri: str
    cid: str | None = None


class ReplyRef(msgspec.Struct, kw_only=True, frozen=True):
    """Reply parent and root references of a post."""

    root: StrongRef
    parent: StrongRef


class BlobLink(msgspec.Struct, kw_only=True, frozen=True):
    """CID link inside a blob reference."""

    link: str = msgspec.field(name="$link")


class BlobRef(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Blob reference as it appears in JSON-encoded records."""

    ref: BlobLink | None = None
    mime_type: str | None = None
    cid: str | None = None

    @property
    def blob_cid(self) -> str | None:
        """Return the blob CID for current and legacy blob encodings."""
        if self.ref is not None:
            return self.ref.link
        return self.cid


class EmbedImage(msgspec.Struct, kw_only=True, frozen=True):
    """Single image inside ``app.bsky.embed.images``."""

    image: BlobRef | None = None
    alt: str = ""


class PostEmbed(msgspec.Struct, kw_only=True, frozen=True):
    """Post embed; only the type and any direct images are read."""

    type: str = msgspec.field(name="$type")
    images: list[EmbedImage] = msgspec.field(default_factory=list)


class PostRecord(msgspec.Struct, kw_only=True, frozen=True):
    """``app.bsky.feed.post``."""

    text: str = ""
    reply: ReplyRef | None = None
    embed: PostEmbed | None = None


class SubjectRecord(msgspec.Struct, kw_only=True, frozen=True):
    """Records whose only relevant field is a DID ``subject``.

    Covers ``app.bsky.graph.follow`` and ``sh.tangled.graph.follow``.
    """

    subject: str


class VerificationRecord(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """``app.bsky.graph.verification``."""

    subject: str
    handle: str | None = None
    display_name: str | None = None


class StarRecord(msgspec.Struct, kw_only=True, frozen=True):
    """``sh.tangled.feed.star``; ``subject`` is the starred repository URI."""

    subject: str


class TangledRepo(msgspec.Struct, kw_only=True, frozen=True):
    """``sh.tangled.repo``."""

    name: str
    knot: str | None = None
    description: str | None = None


class TangledIssue(msgspec.Struct, kw_only=True, frozen=True):
    """``sh.tangled.repo.issue``."""

    title: str
    repo: str | None = None
    body: str = ""


class TangledIssueComment(msgspec.Struct, kw_only=True, frozen=True):
    """``sh.tangled.repo.issue.comment``."""

    issue: str
    body: str = ""
