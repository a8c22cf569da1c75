"""
memcached client backed by pymemcache.

One pymemcache pooled client is kept per server, so a MemcachedClient can be
shared between threads. Rendezvous hashing picks the server: plain
operations route by their own key, ``*_by_key`` operations by the server
key, and batch operations are split per server.

Errors raised by pymemcache (connection failures, protocol errors) are not
caught here.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from pymemcache import serde
from pymemcache.client.base import PooledClient
from pymemcache.client.rendezvous import RendezvousHash

from nscache.clients.base import CacheClient, ResultCode
from nscache.exceptions import ConfigurationError
from nscache.logging import get_logger

logger = get_logger(__name__)

_MISSING = object()


class MemcachedClient(CacheClient):
    """Cache client talking to one or more memcached servers.

    Args:
        servers: (host, port) pairs.
        connect_timeout: Connect timeout in seconds.
        timeout: Read/write timeout in seconds.
        no_delay: Set TCP_NODELAY on sockets.
        max_pool_size: Connections kept per server; None for unbounded.
        client_factory: Callable building one per-server client; defaults
            to pymemcache's PooledClient.
    """

    def __init__(
        self,
        servers: Sequence[tuple[str, int]],
        connect_timeout: float | None = None,
        timeout: float | None = None,
        no_delay: bool = True,
        max_pool_size: int | None = None,
        client_factory: Callable[..., Any] | None = None,
    ) -> None:
        super().__init__()
        if not servers:
            raise ConfigurationError("At least one memcached server is required")

        factory = client_factory or PooledClient
        self._clients: dict[str, Any] = {}
        for host, port in servers:
            node = f"{host}:{port}"
            self._clients[node] = factory(
                (host, port),
                serde=serde.pickle_serde,
                connect_timeout=connect_timeout,
                timeout=timeout,
                no_delay=no_delay,
                max_pool_size=max_pool_size,
                default_noreply=False,
                allow_unicode_keys=True,
            )
        self._hash = RendezvousHash(nodes=list(self._clients))

        logger.debug("Created memcached client", servers=list(self._clients))

    @property
    def nodes(self) -> list[str]:
        """Server names in host:port form."""
        return list(self._clients)

    def node_for(self, routing_key: Any) -> str:
        """Name of the server a routing key maps to."""
        if isinstance(routing_key, bytes):
            routing_key = routing_key.decode("utf-8")
        return self._hash.get_node(str(routing_key))

    def _client_for(self, key: Any, route: str | None) -> Any:
        return self._clients[self.node_for(key if route is None else route)]

    def _group(self, keys: Iterable[Any], route: str | None) -> dict[str, list[Any]]:
        groups: dict[str, list[Any]] = defaultdict(list)
        for key in keys:
            groups[self.node_for(key if route is None else route)].append(key)
        return groups

    def _get(self, key: Any, route: str | None) -> Any:
        value = self._client_for(key, route).get(key, default=_MISSING)
        if value is _MISSING:
            self._record(ResultCode.NOTFOUND)
            return None
        self._record(ResultCode.SUCCESS)
        return value

    def _gets(self, key: Any, route: str | None) -> tuple[Any, int | None]:
        value, token = self._client_for(key, route).gets(key)
        if token is None:
            self._record(ResultCode.NOTFOUND)
            return None, None
        self._record(ResultCode.SUCCESS)
        return value, int(token)

    def _store(self, command: str, key: Any, value: Any, expire: int, route: str | None) -> bool:
        client = self._client_for(key, route)
        if command in ("append", "prepend"):
            stored = getattr(client, command)(key, value, noreply=False)
        else:
            stored = getattr(client, command)(key, value, expire=expire, noreply=False)
        self._record(ResultCode.SUCCESS if stored else ResultCode.NOTSTORED)
        return bool(stored)

    def _delete(self, key: Any, route: str | None) -> bool:
        deleted = self._client_for(key, route).delete(key, noreply=False)
        self._record(ResultCode.SUCCESS if deleted else ResultCode.NOTFOUND)
        return bool(deleted)

    def _touch(self, key: Any, expire: int, route: str | None) -> bool:
        touched = self._client_for(key, route).touch(key, expire=expire, noreply=False)
        self._record(ResultCode.SUCCESS if touched else ResultCode.NOTFOUND)
        return bool(touched)

    def _incr(self, key: Any, delta: int, route: str | None) -> int | None:
        client = self._client_for(key, route)
        if delta >= 0:
            result = client.incr(key, delta, noreply=False)
        else:
            result = client.decr(key, -delta, noreply=False)
        self._record(ResultCode.NOTFOUND if result is None else ResultCode.SUCCESS)
        return result

    def _cas(self, cas_token: int, key: Any, value: Any, expire: int, route: str | None) -> bool:
        result = self._client_for(key, route).cas(
            key, value, cas_token, expire=expire, noreply=False
        )
        # pymemcache: None when missing, False when the token is stale
        if result is None:
            self._record(ResultCode.NOTFOUND)
        elif not result:
            self._record(ResultCode.DATA_EXISTS)
        else:
            self._record(ResultCode.SUCCESS)
        return bool(result)

    def _get_multi(self, keys: list[Any], route: str | None) -> dict[Any, Any]:
        found: dict[Any, Any] = {}
        for node, node_keys in self._group(keys, route).items():
            found.update(self._clients[node].get_many(node_keys))
        self._record(ResultCode.SUCCESS if found or not keys else ResultCode.NOTFOUND)
        return found

    def _set_multi(self, items: Mapping[Any, Any], expire: int, route: str | None) -> bool:
        failed: list[Any] = []
        for node, node_keys in self._group(items.keys(), route).items():
            batch = {key: items[key] for key in node_keys}
            failed.extend(self._clients[node].set_many(batch, expire=expire, noreply=False))
        if failed:
            logger.warning("Some keys were not stored", failed=len(failed))
            self._record(ResultCode.NOTSTORED)
            return False
        self._record(ResultCode.SUCCESS)
        return True

    def flush(self, delay: int = 0) -> bool:
        for client in self._clients.values():
            client.flush_all(delay=delay, noreply=False)
        self._record(ResultCode.SUCCESS)
        return True

    def close(self) -> None:
        for client in self._clients.values():
            client.close()
