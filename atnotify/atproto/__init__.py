"""AT Protocol collaborators: XRPC, identity, Jetstream and record models."""

from __future__ import annotations

from .client import ProfileFetcher, RecordFetcher, XRPCClient, XRPCClientConfig
from .errors import (
    AtprotoError,
    IdentityResolutionError,
    ResourceUriError,
    UnroutableIdentityError,
    XRPCError,
)
from .identity import (
    DidDocumentResolver,
    HttpDidDocumentResolver,
    IdentityResolverConfig,
    pds_endpoint,
)
from .jetstream import JetstreamSubscription
from .models import ActorProfile, JetstreamCommit, JetstreamEvent
from .uri import CanonicalResourceUri, parse_canonical_resource_uri

__all__ = [
    "ActorProfile",
    "AtprotoError",
    "CanonicalResourceUri",
    "DidDocumentResolver",
    "HttpDidDocumentResolver",
    "IdentityResolutionError",
    "IdentityResolverConfig",
    "JetstreamCommit",
    "JetstreamEvent",
    "JetstreamSubscription",
    "ProfileFetcher",
    "RecordFetcher",
    "ResourceUriError",
    "UnroutableIdentityError",
    "XRPCClient",
    "XRPCClientConfig",
    "XRPCError",
    "parse_canonical_resource_uri",
    "pds_endpoint",
]
