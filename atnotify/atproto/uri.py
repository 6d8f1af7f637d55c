"""Canonical ``at://`` resource URIs.

A canonical resource URI addresses exactly one record:
``at://<repo DID>/<collection NSID>/<record key>``. Handle-based authorities
and collection or repository URIs are rejected because the relay always needs
a DID to locate the hosting service.
"""

from __future__ import annotations

import dataclasses
import re

from .errors import ResourceUriError

_SCHEME = "at://"
_DID_RE = re.compile(r"^did:[a-z]+:[a-zA-Z0-9._:%-]*[a-zA-Z0-9._-]$")
_NSID_RE = re.compile(
    r"^[a-zA-Z](?:[a-zA-Z0-9-]{0,62})(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,62}))+"
    r"\.[a-zA-Z][a-zA-Z0-9]{0,62}$"
)
_RKEY_RE = re.compile(r"^[a-zA-Z0-9._:~-]{1,512}$")
_MAX_URI_LENGTH = 8192


@dataclasses.dataclass(frozen=True, slots=True)
class CanonicalResourceUri:
    """Structured ``(repo, collection, rkey)`` record address."""

    repo: str
    collection: str
    rkey: str

    def __str__(self) -> str:
        """Render the URI back to its ``at://`` form."""
        return f"{_SCHEME}{self.repo}/{self.collection}/{self.rkey}"

    @property
    def cache_key(self) -> tuple[str, str, str]:
        """Return the composite ``(collection, repo, rkey)`` cache key."""
        return (self.collection, self.repo, self.rkey)


def _split_path(uri: str) -> list[str]:
    if len(uri) > _MAX_URI_LENGTH:
        raise ResourceUriError.malformed(uri[:64], "too long")
    if not uri.startswith(_SCHEME):
        raise ResourceUriError.malformed(uri, "missing at:// scheme")

    remainder = uri.removeprefix(_SCHEME)
    for marker in ("#", "?"):
        if marker in remainder:
            raise ResourceUriError.malformed(uri, f"unexpected {marker!r}")

    return remainder.split("/")


def parse_canonical_resource_uri(uri: str) -> CanonicalResourceUri:
    """Parse ``uri`` into a :class:`CanonicalResourceUri`.

    Raises
    ------
    ResourceUriError
        If the URI is not ``at://<did>/<nsid>/<rkey>``.

    """
    parts = _split_path(uri)
    expected_parts = 3
    if len(parts) != expected_parts:
        raise ResourceUriError.malformed(uri, "expected repo/collection/rkey")

    repo, collection, rkey = parts
    if not _DID_RE.match(repo):
        raise ResourceUriError.malformed(uri, "authority is not a DID")
    if not _NSID_RE.match(collection):
        raise ResourceUriError.malformed(uri, "collection is not an NSID")
    if rkey in {".", ".."} or not _RKEY_RE.match(rkey):
        raise ResourceUriError.malformed(uri, "invalid record key")

    return CanonicalResourceUri(repo=repo, collection=collection, rkey=rkey)
