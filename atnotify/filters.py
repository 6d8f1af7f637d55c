"""Mention filtering for incoming Jetstream events.

An event qualifies when someone other than the target creates a record in a
watched collection and the record mentions the target DID anywhere in its
JSON form. The substring test is coarse: it matches quoted DIDs
in unrelated text and misses references not encoded as the DID string.
"""

from __future__ import annotations

import dataclasses
import typing as typ

import msgspec

from .lexicons import WATCHED_COLLECTIONS

if typ.TYPE_CHECKING:
    from atnotify.atproto.models import JetstreamEvent

_COMMIT_KIND = "commit"
_CREATE_OPERATION = "create"
_ENCODER = msgspec.json.Encoder()


@dataclasses.dataclass(frozen=True, slots=True)
class MentionFilter:
    """Decide whether an event should produce a notification."""

    target_did: str
    watched_collections: frozenset[str] = frozenset(WATCHED_COLLECTIONS)

    def matches(self, event: JetstreamEvent) -> bool:
        """Return True when ``event`` qualifies for notification.

        The author, kind, operation and collection checks run before the
        record is serialized.
        """
        if event.did == self.target_did or event.kind != _COMMIT_KIND:
            return False

        commit = event.commit
        if commit is None or commit.operation != _CREATE_OPERATION:
            return False
        if commit.collection not in self.watched_collections:
            return False
        if commit.record is None:
            return False

        return self.target_did.encode("utf-8") in _ENCODER.encode(commit.record)
