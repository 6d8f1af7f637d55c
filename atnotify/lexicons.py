"""Record collections the relay subscribes to."""

from __future__ import annotations

import enum


class WatchedCollection(enum.StrEnum):
    """Closed set of collection NSIDs requested from Jetstream."""

    BSKY_POST = "app.bsky.feed.post"
    BSKY_FOLLOW = "app.bsky.graph.follow"
    BSKY_VERIFICATION = "app.bsky.graph.verification"
    TANGLED_FOLLOW = "sh.tangled.graph.follow"
    TANGLED_STAR = "sh.tangled.feed.star"
    TANGLED_ISSUE = "sh.tangled.repo.issue"
    TANGLED_ISSUE_COMMENT = "sh.tangled.repo.issue.comment"
    # Subscribed to, but state changes are not notified.
    TANGLED_ISSUE_STATE = "sh.tangled.repo.issue.state"

    @classmethod
    def parse(cls, collection: str) -> WatchedCollection | None:
        """Return the member for ``collection`` or ``None`` if unwatched."""
        try:
            return cls(collection)
        except ValueError:
            return None


WATCHED_COLLECTIONS: tuple[str, ...] = tuple(
    member.value for member in WatchedCollection
)
