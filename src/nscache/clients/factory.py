"""
Client construction from configuration.

Clients built with a persistent_id are shared by every caller passing the
same id, until reset_persistent_clients() is called.
"""

from __future__ import annotations

import threading

from nscache.clients.base import CacheClient
from nscache.clients.memcached import MemcachedClient
from nscache.clients.memory import InMemoryClient
from nscache.config import Settings, get_settings
from nscache.exceptions import ConfigurationError
from nscache.logging import get_logger

logger = get_logger(__name__)

_persistent_clients: dict[str, CacheClient] = {}
_persistent_lock = threading.Lock()


def _build_client(settings: Settings) -> CacheClient:
    if settings.CACHE_BACKEND == "memory":
        return InMemoryClient()
    if settings.CACHE_BACKEND == "memcached":
        return MemcachedClient(
            settings.memcached_servers,
            connect_timeout=settings.MEMCACHED_CONNECT_TIMEOUT,
            timeout=settings.MEMCACHED_TIMEOUT,
            no_delay=settings.MEMCACHED_NO_DELAY,
            max_pool_size=settings.MEMCACHED_MAX_POOL_SIZE,
        )
    raise ConfigurationError(
        "Unknown cache backend", context={"backend": settings.CACHE_BACKEND}
    )


def create_client(
    settings: Settings | None = None,
    persistent_id: str | None = None,
) -> CacheClient:
    """Build the configured cache client.

    Args:
        settings: Settings to use; defaults to get_settings().
        persistent_id: When given, reuse the client previously created
            under the same id.

    Returns:
        A CacheClient for the configured backend.

    Raises:
        ConfigurationError: If the backend is unknown.
    """
    settings = settings or get_settings()

    if persistent_id is None:
        return _build_client(settings)

    with _persistent_lock:
        client = _persistent_clients.get(persistent_id)
        if client is None:
            client = _build_client(settings)
            _persistent_clients[persistent_id] = client
            logger.debug(
                "Created persistent cache client",
                persistent_id=persistent_id,
                backend=settings.CACHE_BACKEND,
            )
        return client


def reset_persistent_clients() -> None:
    """Close and forget all shared clients."""
    with _persistent_lock:
        clients = list(_persistent_clients.values())
        _persistent_clients.clear()
    for client in clients:
        client.close()
