"""DID document resolution and PDS endpoint discovery.

``did:plc`` documents are fetched from the PLC directory and ``did:web``
documents from the host's ``/.well-known/did.json``. Resolved documents are
memoized in a :class:`~atnotify.cache.TimedCache` owned by the resolver, one
layer below the record cache.
"""

from __future__ import annotations

import dataclasses
import functools
import typing as typ
import urllib.parse

import httpx
import msgspec

from .errors import IdentityResolutionError, UnroutableIdentityError
from .models import DidDocument

if typ.TYPE_CHECKING:
    from atnotify.cache import TimedCache

_HTTP_ERROR_STATUS_THRESHOLD = 400
_DOCUMENT_DECODER = msgspec.json.Decoder(DidDocument)

PDS_SERVICE_ID = "#atproto_pds"
PDS_SERVICE_TYPE = "AtprotoPersonalDataServer"


class DidDocumentResolver(typ.Protocol):
    """Resolve a DID to its current document."""

    async def resolve(self, did: str) -> DidDocument:
        """Return the document for ``did``."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class IdentityResolverConfig:
    """Endpoints used for DID document lookups."""

    plc_url: str = "https://plc.directory"


def did_web_document_url(did: str) -> str:
    """Return the ``did.json`` URL for a ``did:web`` identifier.

    Only host-level ``did:web`` identifiers are supported, matching the AT
    Protocol profile of the method. A percent-encoded port is decoded.
    """
    remainder = did.removeprefix("did:web:")
    if not remainder or ":" in remainder:
        raise UnroutableIdentityError.unsupported_method(did)
    host = urllib.parse.unquote(remainder)
    scheme = "http" if host.split(":", 1)[0] == "localhost" else "https"
    return requestable_url(did, f"{scheme}://{host}/.well-known/did.json")


def requestable_url(did: str, url: str) -> str:
    """Return ``url`` if it is an absolute HTTP(S) URL httpx can request.

    Raises
    ------
    UnroutableIdentityError
        If the URL has a bad port, an unencodable host or another scheme.

    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, UnicodeError) as exc:
        raise UnroutableIdentityError.invalid_host(did, url) from exc
    if parsed.scheme not in {"http", "https"} or not parsed.host:
        raise UnroutableIdentityError.invalid_host(did, url)
    return url


def pds_endpoint(document: DidDocument) -> str:
    """Return the PDS endpoint advertised by ``document``.

    The service is matched on id ``#atproto_pds`` (bare or DID-qualified) and
    type ``AtprotoPersonalDataServer``; only string endpoints that parse as
    HTTP(S) URLs are accepted.

    Raises
    ------
    UnroutableIdentityError
        If no usable endpoint is advertised.

    """
    qualified_id = f"{document.id}{PDS_SERVICE_ID}"
    for service in document.service:
        if service.id not in {PDS_SERVICE_ID, qualified_id}:
            continue
        if service.type != PDS_SERVICE_TYPE:
            continue
        endpoint = service.service_endpoint
        if isinstance(endpoint, str) and endpoint.strip():
            return requestable_url(document.id, endpoint)
    raise UnroutableIdentityError.no_pds_endpoint(document.id)


class HttpDidDocumentResolver:
    """Resolve ``did:plc`` and ``did:web`` documents over HTTP."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        config: IdentityResolverConfig | None = None,
        cache: TimedCache[str, DidDocument] | None = None,
    ) -> None:
        """Bind the resolver to a shared HTTP client and optional cache."""
        self._client = http_client
        self._config = config or IdentityResolverConfig()
        self._cache = cache

    async def resolve(self, did: str) -> DidDocument:
        """Return the document for ``did``, using the cache when present.

        Failures are not cached here; the record resolver caches the failed
        record lookup instead.

        Raises
        ------
        IdentityResolutionError
            For unsupported methods, HTTP errors or mismatched documents.
        httpx.HTTPError
            On transport failures.
        msgspec.MsgspecError
            If the document body is malformed.

        """
        if self._cache is None:
            return await self._fetch(did)

        return await self._cache.get(did, functools.partial(self._fetch, did))

    def _document_url(self, did: str) -> str:
        if did.startswith("did:plc:"):
            return f"{self._config.plc_url.rstrip('/')}/{did}"
        if did.startswith("did:web:"):
            return did_web_document_url(did)
        raise UnroutableIdentityError.unsupported_method(did)

    async def _fetch(self, did: str) -> DidDocument:
        response = await self._client.get(self._document_url(did))
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise IdentityResolutionError.http_error(did, response.status_code)
        document = _DOCUMENT_DECODER.decode(response.content)
        if document.id != did:
            raise IdentityResolutionError.document_mismatch(did, document.id)
        return document

