"""Per-collection notification formatters.

:class:`NotificationFormatter` turns a qualifying record into a
:class:`~atnotify.sink.NotificationPayload`. Dispatch is a ``match`` over
:class:`~atnotify.lexicons.WatchedCollection` ending in ``assert_never``, so
adding a collection without a formatter fails type checking instead of
silently dropping notifications.

Formatters never raise on lookup failures. An unresolved repository or issue
renders as ``Repository not found`` and the notification is still sent.
"""

from __future__ import annotations

import dataclasses
import typing as typ

import msgspec

from atnotify.atproto.models import (
    PostRecord,
    StarRecord,
    SubjectRecord,
    TangledIssue,
    TangledIssueComment,
    TangledRepo,
    VerificationRecord,
)
from atnotify.lexicons import WatchedCollection
from atnotify.observability import RelayEventLogger
from atnotify.resolvers import Resolved, Unresolved, display_label
from atnotify.sink import DEFAULT_PRIORITY, NotificationPayload

if typ.TYPE_CHECKING:
    from atnotify.atproto.models import PostEmbed, RecordValue, ReplyRef
    from atnotify.resolvers import ProfileResolver, RecordResolver

BLUESKY_TITLE = "Bluesky"
TANGLED_TITLE = "Tangled"
NOT_FOUND_TITLE = "Repository not found"
# Identity-level events (follows, verifications, stars) use this priority.
IDENTITY_EVENT_PRIORITY = 2

EMBED_LABELS: typ.Final[dict[str, str]] = {
    "app.bsky.embed.external": "External Link",
    "app.bsky.embed.images": "Image",
    "app.bsky.embed.record": "Record",
    "app.bsky.embed.recordWithMedia": "Record with Media",
    "app.bsky.embed.video": "Video",
}
_IMAGES_EMBED = "app.bsky.embed.images"


@dataclasses.dataclass(frozen=True, slots=True)
class LinkConfig:
    """Front-end base URLs used to build deep links."""

    bsky_url: str = "https://bsky.app"
    pdsls_url: str = "https://pdsls.dev"
    tangled_url: str = "https://tangled.sh"
    bsky_cdn_url: str = "https://cdn.bsky.app"

    def bsky_profile(self, did: str) -> str:
        """Return the Bluesky profile link for ``did``."""
        return f"{self.bsky_url}/profile/{did}"

    def bsky_post(self, did: str, rkey: str) -> str:
        """Return the Bluesky permalink for a post."""
        return f"{self.bsky_profile(did)}/post/{rkey}"

    def record_viewer(self, did: str, collection: str, rkey: str) -> str:
        """Return the generic record-viewer link for any record."""
        return f"{self.pdsls_url}/at://{did}/{collection}/{rkey}"

    def tangled_profile(self, did: str) -> str:
        """Return the Tangled profile link for ``did``."""
        return f"{self.tangled_url}/@{did}"

    def bsky_image(self, did: str, cid: str) -> str:
        """Return the CDN URL of a full-size post image."""
        return f"{self.bsky_cdn_url}/img/feed_fullsize/plain/{did}/{cid}@jpeg"


def embed_label(embed: PostEmbed | None) -> str | None:
    """Return the bracket label for a post embed, if it has a known type."""
    if embed is None:
        return None
    return EMBED_LABELS.get(embed.type)


def first_image_cid(embed: PostEmbed | None) -> str | None:
    """Return the blob CID of the first image in an images embed."""
    if embed is None or embed.type != _IMAGES_EMBED:
        return None
    for image in embed.images:
        if image.image is not None and image.image.blob_cid:
            return image.image.blob_cid
    return None


class NotificationFormatter:
    """Render notifications for every watched collection.

    Parameters
    ----------
    target_did
        DID the relay notifies for; used to tell replies from mentions.
    profiles
        Resolves actor profiles for labels and icons.
    records
        Resolves referenced Tangled repositories and issues.
    links
        Front-end base URLs.
    event_logger
        Receives resolution and decoding failures.

    """

    def __init__(
        self,
        target_did: str,
        profiles: ProfileResolver,
        records: RecordResolver,
        *,
        links: LinkConfig | None = None,
        event_logger: RelayEventLogger | None = None,
    ) -> None:
        """Bind the formatter to its resolvers and link configuration."""
        self._target_did = target_did
        self._profiles = profiles
        self._records = records
        self._links = links or LinkConfig()
        self._event_logger = event_logger or RelayEventLogger()

    async def format(
        self,
        collection: WatchedCollection,
        author_did: str,
        rkey: str,
        record: RecordValue,
    ) -> NotificationPayload | None:
        """Return the notification for ``record``, or ``None`` if none applies.

        ``None`` is returned for collections that are watched but not
        notified, and for records that do not decode to the collection's
        shape.
        """
        try:
            return await self._dispatch(collection, author_did, rkey, record)
        except msgspec.ValidationError as exc:
            self._event_logger.log_record_invalid(collection, rkey, exc)
            return None

    async def _dispatch(
        self,
        collection: WatchedCollection,
        author_did: str,
        rkey: str,
        record: RecordValue,
    ) -> NotificationPayload | None:
        match collection:
            case WatchedCollection.BSKY_POST:
                post = msgspec.convert(record, PostRecord)
                return await self.format_post(author_did, rkey, post)
            case WatchedCollection.BSKY_FOLLOW:
                msgspec.convert(record, SubjectRecord)
                return await self.format_bsky_follow(author_did)
            case WatchedCollection.BSKY_VERIFICATION:
                msgspec.convert(record, VerificationRecord)
                return await self.format_verification(author_did, rkey)
            case WatchedCollection.TANGLED_FOLLOW:
                msgspec.convert(record, SubjectRecord)
                return await self.format_tangled_follow(author_did)
            case WatchedCollection.TANGLED_STAR:
                star = msgspec.convert(record, StarRecord)
                return await self.format_star(author_did, star)
            case WatchedCollection.TANGLED_ISSUE:
                issue = msgspec.convert(record, TangledIssue)
                return await self.format_issue(author_did, issue)
            case WatchedCollection.TANGLED_ISSUE_COMMENT:
                comment = msgspec.convert(record, TangledIssueComment)
                return await self.format_issue_comment(author_did, comment)
            case WatchedCollection.TANGLED_ISSUE_STATE:
                self._event_logger.log_event_skipped(collection, "not notified")
                return None
            case _:
                typ.assert_never(collection)

    # Bluesky ------------------------------------------------------------------

    async def format_post(
        self, author_did: str, rkey: str, post: PostRecord
    ) -> NotificationPayload:
        """Render a reply to, or mention of, the target."""
        profile = await self._profiles.resolve(author_did)
        action = "replied" if self._is_reply_to_target(post.reply) else "mentioned you"

        message = f"{display_label(profile)} {action}: {post.text}"
        label = embed_label(post.embed)
        if label is not None:
            separator = " " if post.text else ""
            message = f"{message}{separator}[{label}]"

        image_cid = first_image_cid(post.embed)
        return NotificationPayload(
            title=BLUESKY_TITLE,
            icon=profile.avatar,
            message=message,
            url=self._links.bsky_post(profile.did, rkey),
            picture=(
                self._links.bsky_image(author_did, image_cid) if image_cid else None
            ),
        )

    async def format_bsky_follow(self, author_did: str) -> NotificationPayload:
        """Render a new Bluesky follower."""
        profile = await self._profiles.resolve(author_did)
        return NotificationPayload(
            title=BLUESKY_TITLE,
            icon=profile.avatar,
            message=f"{display_label(profile)} followed you",
            url=self._links.bsky_profile(profile.did),
            priority=IDENTITY_EVENT_PRIORITY,
        )

    async def format_verification(
        self, author_did: str, rkey: str
    ) -> NotificationPayload:
        """Render a verification of the target by another account."""
        profile = await self._profiles.resolve(author_did)
        return NotificationPayload(
            title=BLUESKY_TITLE,
            icon=profile.avatar,
            message=f"{display_label(profile)} verified you",
            url=self._links.record_viewer(
                author_did, WatchedCollection.BSKY_VERIFICATION, rkey
            ),
            priority=IDENTITY_EVENT_PRIORITY,
        )

    # Tangled ------------------------------------------------------------------

    async def format_tangled_follow(self, author_did: str) -> NotificationPayload:
        """Render a new Tangled follower."""
        profile = await self._profiles.resolve(author_did)
        return NotificationPayload(
            title=TANGLED_TITLE,
            icon=profile.avatar,
            message=f"{display_label(profile)} followed you",
            url=self._links.tangled_profile(profile.did),
            priority=DEFAULT_PRIORITY,
        )

    async def format_star(
        self, author_did: str, star: StarRecord
    ) -> NotificationPayload:
        """Render a star on one of the target's repositories."""
        profile = await self._profiles.resolve(author_did)
        repo_name = await self._repo_name(star.subject)
        return NotificationPayload(
            title=TANGLED_TITLE,
            icon=profile.avatar,
            message=f"{display_label(profile)} starred {repo_name}",
            url=self._links.tangled_profile(profile.did),
            priority=IDENTITY_EVENT_PRIORITY,
        )

    async def format_issue(
        self, author_did: str, issue: TangledIssue
    ) -> NotificationPayload:
        """Render an issue opened on one of the target's repositories."""
        profile = await self._profiles.resolve(author_did)
        repo_name = await self._repo_name(issue.repo)
        return NotificationPayload(
            title=TANGLED_TITLE,
            icon=profile.avatar,
            message=(
                f'{display_label(profile)} opened an issue, "{issue.title}", '
                f"on {repo_name}: {issue.body}"
            ),
            url=self._links.tangled_url,
        )

    async def format_issue_comment(
        self, author_did: str, comment: TangledIssueComment
    ) -> NotificationPayload:
        """Render a comment on an issue, resolving issue then repository."""
        profile = await self._profiles.resolve(author_did)
        issue_title, repo_name = await self._issue_context(comment.issue)
        return NotificationPayload(
            title=TANGLED_TITLE,
            icon=profile.avatar,
            message=(
                f'{display_label(profile)} commented on issue "{issue_title}", '
                f"on {repo_name}: {comment.body}"
            ),
            url=self._links.tangled_profile(profile.did),
        )

    # Helpers ------------------------------------------------------------------

    def _is_reply_to_target(self, reply: ReplyRef | None) -> bool:
        if reply is None:
            return False
        return (
            self._target_did in reply.parent.uri or self._target_did in reply.root.uri
        )

    async def _repo_name(self, uri: str | None) -> str:
        if uri is None:
            return NOT_FOUND_TITLE
        match await self._records.resolve_as(uri, TangledRepo):
            case Resolved(value=repo):
                return repo.name
            case Unresolved() as failure:
                self._event_logger.log_resolution_failed(uri, failure)
                return NOT_FOUND_TITLE

    async def _issue_context(self, uri: str) -> tuple[str, str]:
        match await self._records.resolve_as(uri, TangledIssue):
            case Resolved(value=issue):
                return (issue.title, await self._repo_name(issue.repo))
            case Unresolved() as failure:
                self._event_logger.log_resolution_failed(uri, failure)
                return (NOT_FOUND_TITLE, NOT_FOUND_TITLE)
