"""
In-process cache client with memcached semantics.

Used as the default backend and in tests. Items live in a dict guarded by a
lock; expiry is checked lazily on access.
"""

from __future__ import annotations

import itertools
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from nscache.clients.base import CacheClient, ResultCode
from nscache.exceptions import InvalidKeyError

# memcached protocol limits
MAX_KEY_LENGTH = 250
# Expiry values above this are absolute unix timestamps
RELATIVE_EXPIRY_LIMIT = 60 * 60 * 24 * 30


def normalize_key(key: Any) -> str:
    """Validate a memcached key and return it as text.

    Raises:
        InvalidKeyError: For None, empty, over-long, or whitespace keys.
    """
    if key is None:
        raise InvalidKeyError("Key must not be None")
    if isinstance(key, bytes):
        key = key.decode("utf-8")
    elif not isinstance(key, str):
        key = str(key)
    if not key or len(key.encode("utf-8")) > MAX_KEY_LENGTH:
        raise InvalidKeyError(
            f"Key length must be between 1 and {MAX_KEY_LENGTH} bytes",
            context={"key": key},
        )
    if any(ch.isspace() or ord(ch) < 32 or ord(ch) == 127 for ch in key):
        raise InvalidKeyError(
            "Key must not contain whitespace or control characters",
            context={"key": key},
        )
    return key


def expiry_deadline(expire: int, now: float | None = None) -> float | None:
    """Convert a memcached expiry value into an absolute deadline.

    0 means never; values up to 30 days are relative seconds; larger values
    are unix timestamps.
    """
    if not expire:
        return None
    if expire > RELATIVE_EXPIRY_LIMIT:
        return float(expire)
    return (time.time() if now is None else now) + expire


@dataclass
class _Item:
    value: Any
    cas: int
    deadline: float | None = None
    stored_at: float = 0.0

    def expired(self, now: float) -> bool:
        return self.deadline is not None and self.deadline <= now


def counter_value(value: Any) -> int | None:
    """Read a stored value as an unsigned counter, or None if it is not one.

    Only ints (not bools) and ASCII digit strings qualify, as in memcached.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, (str, bytes)) and value.isascii() and value.isdigit():
        return int(value)
    return None


class InMemoryClient(CacheClient):
    """Thread-safe dict-backed cache client."""

    def __init__(self) -> None:
        super().__init__()
        self._items: dict[str, _Item] = {}
        self._lock = threading.Lock()
        self._cas_counter = itertools.count(1)
        # Items stored before this time are invalid once it has passed
        self._flush_at: float | None = None

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return self._live(normalize_key(key)) is not None

    def keys(self) -> list[str]:
        """Keys currently stored, for inspection."""
        now = time.time()
        with self._lock:
            return [key for key, item in self._items.items() if not self._dead(item, now)]

    def _dead(self, item: _Item, now: float) -> bool:
        if item.expired(now):
            return True
        flush_at = self._flush_at
        return flush_at is not None and flush_at <= now and item.stored_at < flush_at

    def _live(self, key: str) -> _Item | None:
        # Caller holds the lock
        item = self._items.get(key)
        if item is not None and self._dead(item, time.time()):
            del self._items[key]
            return None
        return item

    def _put(self, key: str, value: Any, expire: int) -> None:
        now = time.time()
        self._items[key] = _Item(
            value, next(self._cas_counter), expiry_deadline(expire, now), stored_at=now
        )

    def _get(self, key: Any, route: str | None) -> Any:
        key = normalize_key(key)
        with self._lock:
            item = self._live(key)
        if item is None:
            self._record(ResultCode.NOTFOUND)
            return None
        self._record(ResultCode.SUCCESS)
        return item.value

    def _gets(self, key: Any, route: str | None) -> tuple[Any, int | None]:
        key = normalize_key(key)
        with self._lock:
            item = self._live(key)
        if item is None:
            self._record(ResultCode.NOTFOUND)
            return None, None
        self._record(ResultCode.SUCCESS)
        return item.value, item.cas

    def _store(self, command: str, key: Any, value: Any, expire: int, route: str | None) -> bool:
        key = normalize_key(key)
        with self._lock:
            item = self._live(key)
            if command == "add" and item is not None:
                self._record(ResultCode.NOTSTORED)
                return False
            if command in ("replace", "append", "prepend") and item is None:
                self._record(ResultCode.NOTSTORED)
                return False

            if command in ("append", "prepend"):
                assert item is not None
                try:
                    if command == "append":
                        combined = item.value + value
                    else:
                        combined = value + item.value
                except TypeError:
                    self._record(ResultCode.NOTSTORED)
                    return False
                item.value = combined
                item.cas = next(self._cas_counter)
                item.stored_at = time.time()
            else:
                self._put(key, value, expire)

        self._record(ResultCode.SUCCESS)
        return True

    def _delete(self, key: Any, route: str | None) -> bool:
        key = normalize_key(key)
        with self._lock:
            item = self._live(key)
            if item is None:
                self._record(ResultCode.NOTFOUND)
                return False
            del self._items[key]
        self._record(ResultCode.SUCCESS)
        return True

    def _touch(self, key: Any, expire: int, route: str | None) -> bool:
        key = normalize_key(key)
        with self._lock:
            item = self._live(key)
            if item is None:
                self._record(ResultCode.NOTFOUND)
                return False
            item.deadline = expiry_deadline(expire)
        self._record(ResultCode.SUCCESS)
        return True

    def _incr(self, key: Any, delta: int, route: str | None) -> int | None:
        key = normalize_key(key)
        with self._lock:
            item = self._live(key)
            if item is None:
                self._record(ResultCode.NOTFOUND)
                return None
            current = counter_value(item.value)
            if current is None:
                self._record(ResultCode.FAILURE)
                return None
            # memcached never decrements below zero
            item.value = max(current + delta, 0)
            item.cas = next(self._cas_counter)
            item.stored_at = time.time()
            result = item.value
        self._record(ResultCode.SUCCESS)
        return result

    def _cas(self, cas_token: int, key: Any, value: Any, expire: int, route: str | None) -> bool:
        key = normalize_key(key)
        with self._lock:
            item = self._live(key)
            if item is None:
                self._record(ResultCode.NOTFOUND)
                return False
            if item.cas != cas_token:
                self._record(ResultCode.DATA_EXISTS)
                return False
            self._put(key, value, expire)
        self._record(ResultCode.SUCCESS)
        return True

    def _get_multi(self, keys: list[Any], route: str | None) -> dict[Any, Any]:
        normalized = [normalize_key(key) for key in keys]
        found: dict[Any, Any] = {}
        with self._lock:
            for original, key in zip(keys, normalized):
                item = self._live(key)
                if item is not None:
                    found[original] = item.value
        self._record(ResultCode.SUCCESS if found or not keys else ResultCode.NOTFOUND)
        return found

    def _set_multi(self, items: Mapping[Any, Any], expire: int, route: str | None) -> bool:
        normalized = {normalize_key(key): value for key, value in items.items()}
        with self._lock:
            for key, value in normalized.items():
                self._put(key, value, expire)
        self._record(ResultCode.SUCCESS)
        return True

    def flush(self, delay: int = 0) -> bool:
        deadline = expiry_deadline(delay)
        with self._lock:
            if deadline is None:
                self._items.clear()
                self._flush_at = None
            else:
                self._flush_at = deadline
        self._record(ResultCode.SUCCESS)
        return True
