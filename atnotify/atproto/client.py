"""XRPC query client for AT Protocol services."""

from __future__ import annotations

import dataclasses
import typing as typ

import httpx
import msgspec

from .errors import XRPCError
from .models import ActorProfile, GetRecordOutput, XRPCErrorBody

if typ.TYPE_CHECKING:
    from .uri import CanonicalResourceUri

_HTTP_ERROR_STATUS_THRESHOLD = 400
_ERROR_BODY_DECODER = msgspec.json.Decoder(XRPCErrorBody)

GET_RECORD = "com.atproto.repo.getRecord"
GET_PROFILE = "app.bsky.actor.getProfile"


class RecordFetcher(typ.Protocol):
    """Fetch a single record from a known hosting service."""

    async def get_record(
        self, service: str, uri: CanonicalResourceUri
    ) -> GetRecordOutput:
        """Return the record addressed by ``uri`` from ``service``."""
        ...


class ProfileFetcher(typ.Protocol):
    """Fetch a public actor profile."""

    async def get_profile(self, actor: str) -> ActorProfile:
        """Return the profile of ``actor``."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class XRPCClientConfig:
    """Configuration shared by every XRPC request."""

    appview_url: str = "https://public.api.bsky.app"
    timeout_s: float = 20.0
    user_agent: str = "atnotify/0.1"


def _decode_error(response: httpx.Response) -> XRPCErrorBody:
    try:
        return _ERROR_BODY_DECODER.decode(response.content)
    except msgspec.MsgspecError:
        return XRPCErrorBody()


class XRPCClient:
    """Issue XRPC queries against any AT Protocol service.

    The same client serves the public AppView (profiles) and arbitrary PDS
    hosts (records); the target service is passed per call so one pooled
    :class:`httpx.AsyncClient` is shared across hosts.

    Parameters
    ----------
    config
        Request defaults such as the AppView URL and timeout.
    http_client
        Optional client for tests. When omitted the instance owns its own
        client and closes it in :meth:`aclose`.

    """

    def __init__(
        self,
        config: XRPCClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client."""
        self._config = config or XRPCClientConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=self._config.timeout_s,
            headers={
                "User-Agent": self._config.user_agent,
                "Accept": "application/json",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def query[T](
        self,
        service: str,
        nsid: str,
        params: dict[str, str],
        *,
        response_type: type[T],
    ) -> T:
        """Run an XRPC query and decode the JSON body into ``response_type``.

        Raises
        ------
        XRPCError
            If the service answers with a 4xx/5xx status.
        httpx.HTTPError
            On transport failures and timeouts.
        msgspec.ValidationError
            If the body does not match ``response_type``.

        """
        url = f"{service.rstrip('/')}/xrpc/{nsid}"
        response = await self._client.get(url, params=params)
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            body = _decode_error(response)
            raise XRPCError.http_error(
                nsid, response.status_code, error=body.error, detail=body.message
            )
        return msgspec.json.decode(response.content, type=response_type)

    async def get_record(
        self, service: str, uri: CanonicalResourceUri
    ) -> GetRecordOutput:
        """Fetch ``uri`` from the PDS at ``service``."""
        return await self.query(
            service,
            GET_RECORD,
            {"repo": uri.repo, "collection": uri.collection, "rkey": uri.rkey},
            response_type=GetRecordOutput,
        )

    async def get_profile(self, actor: str) -> ActorProfile:
        """Fetch the public profile of ``actor`` from the AppView."""
        return await self.query(
            self._config.appview_url,
            GET_PROFILE,
            {"actor": actor},
            response_type=ActorProfile,
        )
