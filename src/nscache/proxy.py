"""
Namespacing proxy over a cache client.

PrefixingCacheProxy prepends a fixed prefix to every key before handing the
call to the wrapped client, and can be used exactly like the client itself:

    cache = PrefixingCacheProxy("foo", client)
    cache["bar"] = "x"          # sets "foobar" to "x"
    "bar" in cache              # True
    del cache["bar"]            # deletes "foobar"
    cache.set("bar", "x")       # sets "foobar" to "x"
    cache.set_multi({"a": 1})   # sets "fooa" to 1

``cache.client`` is the wrapped client, for calls that must bypass the
prefix.
"""

from __future__ import annotations

import functools
from typing import Any

from nscache.clients.base import CacheClient, ResultCode
from nscache.clients.factory import create_client
from nscache.config import Settings, get_settings
from nscache.exceptions import InvalidKeyError
from nscache.logging import get_logger, log_context, set_log_level
from nscache.operations import Operation, lookup, rewrite_arguments

logger = get_logger(__name__)


class PrefixingCacheProxy:
    """Cache client proxy that namespaces every key with a prefix.

    Args:
        prefix: Prepended to every key; empty means plain passthrough.
        client: The client to wrap. Built from settings when omitted.
        persistent_id: Share the built client with other proxies using the
            same id. Ignored when ``client`` is given.
    """

    def __init__(
        self,
        prefix: str = "",
        client: CacheClient | None = None,
        persistent_id: str | None = None,
    ) -> None:
        self._prefix = prefix
        self.client = client if client is not None else create_client(persistent_id=persistent_id)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        client: CacheClient | None = None,
        persistent_id: str | None = None,
    ) -> PrefixingCacheProxy:
        """Build a proxy using CACHE_PREFIX, LOG_LEVEL and the configured backend."""
        settings = settings or get_settings()
        set_log_level(settings.LOG_LEVEL)
        if client is None:
            client = create_client(settings, persistent_id=persistent_id)
        return cls(settings.CACHE_PREFIX, client)

    @property
    def prefix(self) -> str:
        return self._prefix

    def forward(self, operation: Operation | str, /, *args: Any, **kwargs: Any) -> Any:
        """Call ``operation`` on the client with its key argument prefixed.

        Operations without a key descriptor are forwarded unchanged. The
        client's result, or exception, is returned as-is.
        """
        name = operation.value if isinstance(operation, Operation) else operation
        descriptor = lookup(name)

        with log_context(namespace=self._prefix, operation=name):
            if descriptor is not None:
                args, kwargs = rewrite_arguments(descriptor, self._prefix, args, kwargs)
                logger.debug("Forwarding with prefixed key", batch=descriptor.batch)
            else:
                logger.debug("Forwarding unchanged")
            return getattr(self.client, name)(*args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        # Only reached for names the proxy does not define itself
        if name.startswith("_") or name == "client":
            raise AttributeError(name)
        attr = getattr(self.client, name)
        if not callable(attr):
            return attr
        return functools.partial(self.forward, name)

    # -- Subscript access --

    def exists(self, key: Any) -> bool:
        """Check whether ``key`` holds a value, falsy values included."""
        if self.forward(Operation.GET, key):
            return True
        return self.client.result_code != ResultCode.NOTFOUND

    def __contains__(self, key: Any) -> bool:
        return self.exists(key)

    def __getitem__(self, key: Any) -> Any:
        return self.forward(Operation.GET, key)

    def __setitem__(self, key: Any, value: Any) -> None:
        if key is None:
            raise InvalidKeyError("Tried to set None key", context={"prefix": self._prefix})
        self.forward(Operation.SET, key, value)

    def __delitem__(self, key: Any) -> None:
        self.forward(Operation.DELETE, key)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(prefix={self._prefix!r}, client={self.client!r})"
