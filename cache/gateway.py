"""
cache/gateway.py -- Client for the remote key-value cache service.

The cache is advisory. Nothing here may turn a successful database read into
a failed response:

  get()  One POST with a bounded wait (default 500 ms). A timeout, a refused
         connection, an HTTP error, an unparseable reply and a genuine miss
         all come back as None. get() never raises.

  set()  Best effort, issued after the database already answered. Failures
         are logged as "degraded" and dropped. No retries.

Wire contract (JSON over HTTP, one endpoint):
    POST http://{host}:{port}/rpc
      {"cmd": "get_cache", "data": "<key>"}                            -> {"result": <value or null>}
      {"cmd": "set_cache", "data": {"key": "...", "value": ..., "ttl": 60}} -> {"result": true}

The gateway is built once in the FastAPI lifespan and injected through
app.state -- there is no module-level client.

Usage:
    cache = CacheGateway.from_settings(get_settings())
    envelope = cache_aside(cache, key, ttl=60, compute=lambda: store.list_accounts(opts).to_dict())
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

import requests

from core.config import Settings

logger = logging.getLogger("accessdesk.cache")


class CacheBackend(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int) -> None: ...


class CacheUnavailable(Exception):
    """Internal signal from _call(); never escapes get()/set()."""


class CacheGateway:
    """RPC client to the cache service. Safe to share across threads."""

    def __init__(self, url: str, timeout_seconds: float = 0.5, session: requests.Session | None = None) -> None:
        self.url = url
        self.timeout = timeout_seconds
        self._session = session or requests.Session()
        # Point-to-point service on a fixed address; a redirect means misconfiguration.
        self._session.max_redirects = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheGateway":
        return cls(settings.cache_url, timeout_seconds=settings.cache_timeout_ms / 1000)

    def get(self, key: str) -> Any | None:
        """Return the cached value for key, or None on miss or any failure."""
        try:
            return self._call("get_cache", key)
        except CacheUnavailable as e:
            logger.warning("Cache degraded: get %s skipped (%s)", key, e)
            return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        """Store value under key for ttl seconds. Failures are logged, never raised."""
        try:
            acknowledged = self._call("set_cache", {"key": key, "value": value, "ttl": ttl})
        except CacheUnavailable as e:
            logger.warning("Cache degraded: set %s dropped (%s)", key, e)
            return
        if not acknowledged:
            logger.warning("Cache degraded: set %s rejected by cache service", key)

    def ping(self) -> bool:
        """True if the cache service answered a request at all (hit or miss)."""
        try:
            self._call("get_cache", "__healthcheck__")
        except CacheUnavailable:
            return False
        return True

    def close(self) -> None:
        self._session.close()

    def _call(self, cmd: str, data: Any) -> Any:
        """Send one RPC and return its "result". Every failure becomes CacheUnavailable.

        requests applies the timeout to the connect and to each read
        separately, so the worst case is bounded by a small multiple of it.
        """
        try:
            resp = self._session.post(self.url, json={"cmd": cmd, "data": data}, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.Timeout as e:
            raise CacheUnavailable(f"timed out after {self.timeout * 1000:.0f}ms") from e
        except requests.RequestException as e:
            raise CacheUnavailable(f"transport error: {e.__class__.__name__}") from e
        except (TypeError, ValueError) as e:
            # Unserializable value on the way out, or non-JSON reply on the way back.
            raise CacheUnavailable(f"bad payload: {e.__class__.__name__}") from e
        if not isinstance(body, dict):
            raise CacheUnavailable("malformed reply")
        return body.get("result")


class NullCache:
    """Cache that never holds anything. Used when CACHE_ENABLED=false."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        return None


def cache_aside(cache: CacheBackend, key: str, ttl: int, compute: Callable[[], dict[str, Any]]) -> dict[str, Any]:
    """Return the cached dict for key, or compute it and populate the cache.

    A cached value that is not a dict is treated as a miss. compute() is the
    source of truth; its exceptions propagate. cache.set() runs only after
    compute() succeeded and cannot fail the call.
    """
    cached = cache.get(key)
    if isinstance(cached, dict):
        logger.debug("Cache hit %s", key)
        return cached
    value = compute()
    cache.set(key, value, ttl)
    return value
