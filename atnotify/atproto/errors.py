"""AT Protocol collaborator errors."""

from __future__ import annotations


class AtprotoError(RuntimeError):
    """Base class for failures talking to AT Protocol services."""


class XRPCError(AtprotoError):
    """Raised when an XRPC endpoint returns an error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error: str | None = None,
    ) -> None:
        """Initialise with a message, HTTP status and XRPC error name."""
        self.status_code = status_code
        self.error = error
        super().__init__(message)

    @classmethod
    def http_error(
        cls,
        nsid: str,
        status_code: int,
        *,
        error: str | None = None,
        detail: str | None = None,
    ) -> XRPCError:
        """Return an error for a non-2xx XRPC response."""
        name = error or "UnknownError"
        suffix = f": {detail}" if detail else ""
        return cls(
            f"XRPC {nsid} failed with HTTP {status_code} ({name}){suffix}",
            status_code=status_code,
            error=error,
        )


class IdentityResolutionError(AtprotoError):
    """Raised when a DID cannot be mapped to a hosting service."""

    @classmethod
    def document_mismatch(cls, did: str, document_id: str) -> IdentityResolutionError:
        """Return an error when a fetched document describes another DID."""
        return cls(f"DID document for {did} has id {document_id}")

    @classmethod
    def http_error(cls, did: str, status_code: int) -> IdentityResolutionError:
        """Return an error for a failed DID document fetch."""
        return cls(f"DID document fetch for {did} failed with HTTP {status_code}")


class UnroutableIdentityError(IdentityResolutionError):
    """Raised when a DID can never be routed to a usable PDS.

    The method is unsupported, or the DID maps to no requestable endpoint.
    Failed document fetches raise the base class instead.
    """

    @classmethod
    def unsupported_method(cls, did: str) -> UnroutableIdentityError:
        """Return an error for DID methods other than plc and web."""
        return cls(f"Unsupported DID method: {did}")

    @classmethod
    def invalid_host(cls, did: str, url: str) -> UnroutableIdentityError:
        """Return an error when a DID maps to a URL that cannot be requested."""
        return cls(f"Invalid service URL for {did}: {url!r}")

    @classmethod
    def no_pds_endpoint(cls, did: str) -> UnroutableIdentityError:
        """Return an error when the document advertises no PDS service."""
        return cls(f"No PDS service endpoint found for {did}")


class ResourceUriError(AtprotoError, ValueError):
    """Raised when an ``at://`` URI is not a canonical record reference."""

    @classmethod
    def malformed(cls, uri: str, reason: str) -> ResourceUriError:
        """Return an error describing why ``uri`` failed to parse."""
        return cls(f"Malformed resource URI {uri!r}: {reason}")
