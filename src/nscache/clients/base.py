"""
Base classes for cache clients.

This module defines:
- ResultCode: memcached-style result codes reported after each call
- CacheClient: Abstract client exposing the full memcached-like operation set

Every public operation has a key-routed ``*_by_key`` twin taking an explicit
server key first. Both forms delegate to the same abstract hook, which
receives the server key as ``route`` (None means "route each key by itself").
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from enum import IntEnum
from typing import Any


class ResultCode(IntEnum):
    """Result of the last operation, as reported by memcached clients."""

    SUCCESS = 0
    FAILURE = 1
    DATA_EXISTS = 12
    NOTSTORED = 14
    NOTFOUND = 16
    SOME_ERRORS = 19


RESULT_MESSAGES: dict[ResultCode, str] = {
    ResultCode.SUCCESS: "SUCCESS",
    ResultCode.FAILURE: "FAILURE",
    ResultCode.DATA_EXISTS: "CONNECTION DATA EXISTS",
    ResultCode.NOTSTORED: "NOT STORED",
    ResultCode.NOTFOUND: "NOT FOUND",
    ResultCode.SOME_ERRORS: "SOME ERRORS WERE REPORTED",
}


class CacheClient(ABC):
    """Abstract memcached-like cache client.

    Read operations return None when nothing is found; check ``result_code``
    to tell a missing key from a stored falsy value. Result codes and the
    delayed-fetch buffer are tracked per thread.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    # -- Result reporting --

    @property
    def result_code(self) -> ResultCode:
        """Result code of the last operation in this thread."""
        return getattr(self._local, "result_code", ResultCode.SUCCESS)

    @property
    def result_message(self) -> str:
        """Human readable form of ``result_code``."""
        return RESULT_MESSAGES[self.result_code]

    def _record(self, code: ResultCode) -> None:
        self._local.result_code = code

    # -- Delayed fetch buffer --

    def _pending(self) -> list[dict[str, Any]]:
        pending = getattr(self._local, "pending", None)
        if pending is None:
            pending = []
            self._local.pending = pending
        return pending

    def _queue_results(self, values: Mapping[Any, Any], tokens: Mapping[Any, int] | None) -> None:
        pending = self._pending()
        pending.clear()
        for key, value in values.items():
            item: dict[str, Any] = {"key": key, "value": value}
            if tokens is not None:
                item["cas"] = tokens.get(key)
            pending.append(item)

    def fetch(self) -> dict[str, Any] | None:
        """Return the next result of a previous get_delayed call."""
        pending = self._pending()
        if not pending:
            self._record(ResultCode.NOTFOUND)
            return None
        self._record(ResultCode.SUCCESS)
        return pending.pop(0)

    def fetch_all(self) -> list[dict[str, Any]]:
        """Return all remaining results of a previous get_delayed call."""
        pending = self._pending()
        items = list(pending)
        pending.clear()
        self._record(ResultCode.SUCCESS if items else ResultCode.NOTFOUND)
        return items

    def get_delayed(self, keys: Iterable[Any], with_cas: bool = False) -> bool:
        """Request several keys; results are read with fetch()/fetch_all()."""
        return self._get_delayed(keys, with_cas, route=None)

    def get_delayed_by_key(
        self, server_key: str, keys: Iterable[Any], with_cas: bool = False
    ) -> bool:
        return self._get_delayed(keys, with_cas, route=server_key)

    def _get_delayed(self, keys: Iterable[Any], with_cas: bool, route: str | None) -> bool:
        keys = list(keys)
        if with_cas:
            values: dict[Any, Any] = {}
            tokens: dict[Any, int] = {}
            for key in keys:
                value, token = self._gets(key, route)
                if token is not None:
                    values[key] = value
                    tokens[key] = token
            self._queue_results(values, tokens)
        else:
            self._queue_results(self._get_multi(keys, route), None)
        self._record(ResultCode.SUCCESS)
        return True

    # -- Single-key operations --

    def get(self, key: Any) -> Any:
        return self._get(key, route=None)

    def get_by_key(self, server_key: str, key: Any) -> Any:
        return self._get(key, route=server_key)

    def gets(self, key: Any) -> tuple[Any, int | None]:
        """Get a value together with its CAS token (None when missing)."""
        return self._gets(key, route=None)

    def gets_by_key(self, server_key: str, key: Any) -> tuple[Any, int | None]:
        return self._gets(key, route=server_key)

    def set(self, key: Any, value: Any, expire: int = 0) -> bool:
        return self._store("set", key, value, expire, route=None)

    def set_by_key(self, server_key: str, key: Any, value: Any, expire: int = 0) -> bool:
        return self._store("set", key, value, expire, route=server_key)

    def add(self, key: Any, value: Any, expire: int = 0) -> bool:
        """Store only if the key does not exist yet."""
        return self._store("add", key, value, expire, route=None)

    def add_by_key(self, server_key: str, key: Any, value: Any, expire: int = 0) -> bool:
        return self._store("add", key, value, expire, route=server_key)

    def replace(self, key: Any, value: Any, expire: int = 0) -> bool:
        """Store only if the key already exists."""
        return self._store("replace", key, value, expire, route=None)

    def replace_by_key(self, server_key: str, key: Any, value: Any, expire: int = 0) -> bool:
        return self._store("replace", key, value, expire, route=server_key)

    def append(self, key: Any, value: Any) -> bool:
        return self._store("append", key, value, 0, route=None)

    def append_by_key(self, server_key: str, key: Any, value: Any) -> bool:
        return self._store("append", key, value, 0, route=server_key)

    def prepend(self, key: Any, value: Any) -> bool:
        return self._store("prepend", key, value, 0, route=None)

    def prepend_by_key(self, server_key: str, key: Any, value: Any) -> bool:
        return self._store("prepend", key, value, 0, route=server_key)

    def delete(self, key: Any) -> bool:
        return self._delete(key, route=None)

    def delete_by_key(self, server_key: str, key: Any) -> bool:
        return self._delete(key, route=server_key)

    def touch(self, key: Any, expire: int) -> bool:
        """Set a new expiration time on an existing key."""
        return self._touch(key, expire, route=None)

    def touch_by_key(self, server_key: str, key: Any, expire: int) -> bool:
        return self._touch(key, expire, route=server_key)

    def increment(self, key: Any, offset: int = 1) -> int | None:
        return self._incr(key, offset, route=None)

    def increment_by_key(self, server_key: str, key: Any, offset: int = 1) -> int | None:
        return self._incr(key, offset, route=server_key)

    def decrement(self, key: Any, offset: int = 1) -> int | None:
        return self._incr(key, -offset, route=None)

    def decrement_by_key(self, server_key: str, key: Any, offset: int = 1) -> int | None:
        return self._incr(key, -offset, route=server_key)

    def cas(self, cas_token: int, key: Any, value: Any, expire: int = 0) -> bool:
        """Store only if the item is unchanged since ``cas_token`` was read."""
        return self._cas(cas_token, key, value, expire, route=None)

    def cas_by_key(
        self, cas_token: int, server_key: str, key: Any, value: Any, expire: int = 0
    ) -> bool:
        return self._cas(cas_token, key, value, expire, route=server_key)

    # -- Batch operations --

    def get_multi(self, keys: Iterable[Any]) -> dict[Any, Any]:
        """Get several keys; missing keys are omitted from the result."""
        return self._get_multi(list(keys), route=None)

    def get_multi_by_key(self, server_key: str, keys: Iterable[Any]) -> dict[Any, Any]:
        return self._get_multi(list(keys), route=server_key)

    def set_multi(self, items: Mapping[Any, Any], expire: int = 0) -> bool:
        return self._set_multi(items, expire, route=None)

    def set_multi_by_key(
        self, server_key: str, items: Mapping[Any, Any], expire: int = 0
    ) -> bool:
        return self._set_multi(items, expire, route=server_key)

    def delete_multi(self, keys: Iterable[Any]) -> dict[Any, bool]:
        """Delete several keys; maps each key to whether it was deleted."""
        return self._delete_multi(list(keys), route=None)

    def delete_multi_by_key(self, server_key: str, keys: Iterable[Any]) -> dict[Any, bool]:
        return self._delete_multi(list(keys), route=server_key)

    def _delete_multi(self, keys: list[Any], route: str | None) -> dict[Any, bool]:
        results = {key: self._delete(key, route) for key in keys}
        if all(results.values()):
            self._record(ResultCode.SUCCESS)
        elif any(results.values()):
            self._record(ResultCode.SOME_ERRORS)
        else:
            self._record(ResultCode.NOTFOUND)
        return results

    # -- Server-wide operations --

    @abstractmethod
    def flush(self, delay: int = 0) -> bool:
        """Invalidate all items."""
        ...

    def close(self) -> None:
        """Release connections; the default client holds none."""

    # -- Hooks implemented by backends --

    @abstractmethod
    def _get(self, key: Any, route: str | None) -> Any:
        ...

    @abstractmethod
    def _gets(self, key: Any, route: str | None) -> tuple[Any, int | None]:
        ...

    @abstractmethod
    def _store(self, command: str, key: Any, value: Any, expire: int, route: str | None) -> bool:
        ...

    @abstractmethod
    def _delete(self, key: Any, route: str | None) -> bool:
        ...

    @abstractmethod
    def _touch(self, key: Any, expire: int, route: str | None) -> bool:
        ...

    @abstractmethod
    def _incr(self, key: Any, delta: int, route: str | None) -> int | None:
        ...

    @abstractmethod
    def _cas(self, cas_token: int, key: Any, value: Any, expire: int, route: str | None) -> bool:
        ...

    @abstractmethod
    def _get_multi(self, keys: list[Any], route: str | None) -> dict[Any, Any]:
        ...

    @abstractmethod
    def _set_multi(self, items: Mapping[Any, Any], expire: int, route: str | None) -> bool:
        ...
