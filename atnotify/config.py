"""Environment-driven relay configuration.

Every setting has a default so the relay starts with no environment at all.
The first six variables keep their historical unprefixed names; settings
added later use the ``ATNOTIFY_`` prefix.

- ``TARGET_DID``: account to notify for.
- ``JETSTREAM_URL``: Jetstream ``/subscribe`` endpoint.
- ``NTFY_URL``: ntfy topic URL.
- ``BSKY_URL``, ``PDSLS_URL``, ``TANGLED_URL``: front-end base URLs.
- ``ATNOTIFY_APPVIEW_URL``: AppView used for profile lookups.
- ``ATNOTIFY_PLC_URL``: PLC directory for ``did:plc`` documents.
- ``ATNOTIFY_BSKY_CDN_URL``: CDN used for image attachments.
- ``ATNOTIFY_CACHE_LIFETIME_MINUTES``: base cache lifetime.
- ``ATNOTIFY_CACHE_MAX_ENTRIES``: optional per-cache capacity.
- ``ATNOTIFY_HTTP_TIMEOUT_S``: timeout for every outbound HTTP request.
- ``ATNOTIFY_LOG_LEVEL``: femtologging level.

Usage
-----
>>> config = RelayConfig()
>>> config.cache_lifetime
datetime.timedelta(seconds=3600)

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os

from atnotify.formatters import LinkConfig

_DEFAULT_TARGET_DID = "did:plc:3c6vkaq7xf5kz3va3muptjh5"
_DEFAULT_CACHE_LIFETIME_MINUTES = 60
_DEFAULT_HTTP_TIMEOUT_S = 20.0


class ConfigError(ValueError):
    """Raised when an environment variable holds an invalid value."""

    @classmethod
    def not_positive_int(cls, env_var: str, raw: str) -> ConfigError:
        """Return an error for a value that is not a positive integer."""
        return cls(f"{env_var} must be a positive integer, got: {raw!r}")

    @classmethod
    def not_positive_float(cls, env_var: str, raw: str) -> ConfigError:
        """Return an error for a value that is not a positive number."""
        return cls(f"{env_var} must be a positive number, got: {raw!r}")

    @classmethod
    def not_a_did(cls, raw: str) -> ConfigError:
        """Return an error for a target that is not a DID."""
        return cls(f"TARGET_DID must start with 'did:', got: {raw!r}")


def _env_str(env_var: str, default: str) -> str:
    raw = os.environ.get(env_var, "")
    return raw.strip() or default


def _env_positive_int(env_var: str, default: int | None) -> int | None:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError.not_positive_int(env_var, raw) from exc
    if value < 1:
        raise ConfigError.not_positive_int(env_var, raw)
    return value


def _env_positive_float(env_var: str, default: float) -> float:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError.not_positive_float(env_var, raw) from exc
    if value <= 0:
        raise ConfigError.not_positive_float(env_var, raw)
    return value


@dc.dataclass(frozen=True, slots=True)
class RelayConfig:
    """Settings for one relay process.

    Attributes
    ----------
    target_did
        DID whose mentions trigger notifications.
    jetstream_url
        Jetstream subscription endpoint.
    ntfy_url
        ntfy topic that receives notifications.
    bsky_url, pdsls_url, tangled_url
        Front-end base URLs for deep links.
    appview_url
        XRPC service used for ``app.bsky.actor.getProfile``.
    plc_url
        PLC directory for ``did:plc`` resolution.
    bsky_cdn_url
        CDN base for image attachments.
    cache_lifetime
        Base lifetime; profiles live 4x and records 24x this long.
    cache_max_entries
        Optional LRU capacity per cache; ``None`` means unbounded.
    http_timeout_s
        Timeout applied to every outbound request.
    log_level
        Raw log level string, normalized at start-up.

    """

    target_did: str = _DEFAULT_TARGET_DID
    jetstream_url: str = "wss://jetstream2.us-east.bsky.network/subscribe"
    ntfy_url: str = "http://0.0.0.0"
    bsky_url: str = "https://bsky.app"
    pdsls_url: str = "https://pdsls.dev"
    tangled_url: str = "https://tangled.sh"
    appview_url: str = "https://public.api.bsky.app"
    plc_url: str = "https://plc.directory"
    bsky_cdn_url: str = "https://cdn.bsky.app"
    cache_lifetime: dt.timedelta = dt.timedelta(
        minutes=_DEFAULT_CACHE_LIFETIME_MINUTES
    )
    cache_max_entries: int | None = None
    http_timeout_s: float = _DEFAULT_HTTP_TIMEOUT_S
    log_level: str = "INFO"

    @property
    def links(self) -> LinkConfig:
        """Return the deep-link configuration for formatters."""
        return LinkConfig(
            bsky_url=self.bsky_url,
            pdsls_url=self.pdsls_url,
            tangled_url=self.tangled_url,
            bsky_cdn_url=self.bsky_cdn_url,
        )

    @classmethod
    def from_env(cls) -> RelayConfig:
        """Create configuration from environment variables.

        Raises
        ------
        ConfigError
            If ``TARGET_DID`` is not a DID or a numeric setting is not a
            positive number.

        """
        defaults = cls()
        target_did = _env_str("TARGET_DID", defaults.target_did)
        if not target_did.startswith("did:"):
            raise ConfigError.not_a_did(target_did)

        lifetime_minutes = _env_positive_int(
            "ATNOTIFY_CACHE_LIFETIME_MINUTES", _DEFAULT_CACHE_LIFETIME_MINUTES
        )
        return cls(
            target_did=target_did,
            jetstream_url=_env_str("JETSTREAM_URL", defaults.jetstream_url),
            ntfy_url=_env_str("NTFY_URL", defaults.ntfy_url),
            bsky_url=_env_str("BSKY_URL", defaults.bsky_url),
            pdsls_url=_env_str("PDSLS_URL", defaults.pdsls_url),
            tangled_url=_env_str("TANGLED_URL", defaults.tangled_url),
            appview_url=_env_str("ATNOTIFY_APPVIEW_URL", defaults.appview_url),
            plc_url=_env_str("ATNOTIFY_PLC_URL", defaults.plc_url),
            bsky_cdn_url=_env_str("ATNOTIFY_BSKY_CDN_URL", defaults.bsky_cdn_url),
            cache_lifetime=dt.timedelta(
                minutes=lifetime_minutes or _DEFAULT_CACHE_LIFETIME_MINUTES
            ),
            cache_max_entries=_env_positive_int("ATNOTIFY_CACHE_MAX_ENTRIES", None),
            http_timeout_s=_env_positive_float(
                "ATNOTIFY_HTTP_TIMEOUT_S", _DEFAULT_HTTP_TIMEOUT_S
            ),
            log_level=_env_str("ATNOTIFY_LOG_LEVEL", defaults.log_level),
        )
