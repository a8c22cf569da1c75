"""
Operation descriptors for key-bearing cache client calls.

Every operation whose arguments include a cache key (or a batch of keys) is
listed here with the position and keyword name of that argument. Operations
not listed are forwarded to the client without any rewriting.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from nscache.exceptions import InvalidKeyError

# Substrings that mark an operation taking a batch of keys
BATCH_MARKERS: tuple[str, ...] = ("multi", "delayed")


class Operation(str, Enum):
    """Key-bearing operations of the cache client capability."""

    GET = "get"
    GET_BY_KEY = "get_by_key"
    GETS = "gets"
    GETS_BY_KEY = "gets_by_key"
    SET = "set"
    SET_BY_KEY = "set_by_key"
    ADD = "add"
    ADD_BY_KEY = "add_by_key"
    REPLACE = "replace"
    REPLACE_BY_KEY = "replace_by_key"
    APPEND = "append"
    APPEND_BY_KEY = "append_by_key"
    PREPEND = "prepend"
    PREPEND_BY_KEY = "prepend_by_key"
    DELETE = "delete"
    DELETE_BY_KEY = "delete_by_key"
    TOUCH = "touch"
    TOUCH_BY_KEY = "touch_by_key"
    INCREMENT = "increment"
    INCREMENT_BY_KEY = "increment_by_key"
    DECREMENT = "decrement"
    DECREMENT_BY_KEY = "decrement_by_key"
    CAS = "cas"
    CAS_BY_KEY = "cas_by_key"
    GET_MULTI = "get_multi"
    GET_MULTI_BY_KEY = "get_multi_by_key"
    SET_MULTI = "set_multi"
    SET_MULTI_BY_KEY = "set_multi_by_key"
    DELETE_MULTI = "delete_multi"
    DELETE_MULTI_BY_KEY = "delete_multi_by_key"
    GET_DELAYED = "get_delayed"
    GET_DELAYED_BY_KEY = "get_delayed_by_key"


def is_batch_operation(name: str) -> bool:
    """Check whether an operation name denotes a batch (multi-key) call."""
    return any(marker in name for marker in BATCH_MARKERS)


@dataclass(frozen=True)
class KeyArgument:
    """Where the key argument of an operation lives.

    Attributes:
        operation: The operation described.
        position: Zero-based position of the key argument.
        keyword: Name of the same argument when passed by keyword.
        batch: Whether the argument is a batch of keys rather than one key.
    """

    operation: Operation
    position: int
    keyword: str

    @property
    def batch(self) -> bool:
        return is_batch_operation(self.operation.value)


def _build_table() -> Mapping[str, KeyArgument]:
    table: dict[str, KeyArgument] = {}
    for operation in Operation:
        name = operation.value
        # cas takes the token first, *_by_key takes the server key first
        position = 1 if name.startswith("cas") else 0
        if name.endswith("_by_key"):
            position += 1
        if name.startswith("set_multi"):
            keyword = "items"
        elif is_batch_operation(name):
            keyword = "keys"
        else:
            keyword = "key"
        table[name] = KeyArgument(operation, position, keyword)
    return MappingProxyType(table)


OPERATIONS: Mapping[str, KeyArgument] = _build_table()


def lookup(operation: Operation | str) -> KeyArgument | None:
    """Find the descriptor for an operation, or None for passthrough."""
    name = operation.value if isinstance(operation, Operation) else operation
    return OPERATIONS.get(name)


def prefix_key(prefix: str, key: Any) -> Any:
    """Prepend ``prefix`` to a single key.

    Args:
        prefix: Namespace prefix.
        key: A str, bytes, or other scalar key (converted with str()).

    Returns:
        The prefixed key, bytes if the key was bytes.

    Raises:
        InvalidKeyError: If key is None.
    """
    if key is None:
        raise InvalidKeyError("Key must not be None", context={"prefix": prefix})
    if isinstance(key, bytes):
        return prefix.encode("utf-8") + key
    if not isinstance(key, str):
        key = str(key)
    return prefix + key


def prefix_keys(prefix: str, keys: Any) -> dict[Any, Any] | list[Any]:
    """Prepend ``prefix`` to every key of a batch.

    A mapping keeps its values; any other iterable yields a list of keys.

    Raises:
        InvalidKeyError: If keys is a single str/bytes or not iterable.
    """
    if isinstance(keys, Mapping):
        return {prefix_key(prefix, key): value for key, value in keys.items()}
    if isinstance(keys, (str, bytes)) or not isinstance(keys, Iterable):
        raise InvalidKeyError(
            "Batch operations take a mapping or an iterable of keys",
            context={"keys": keys},
        )
    return [prefix_key(prefix, key) for key in keys]


def rewrite_arguments(
    descriptor: KeyArgument,
    prefix: str,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    """Return copies of ``args``/``kwargs`` with the key argument prefixed.

    The inputs are left untouched. If the key argument was not supplied the
    call is returned as-is so the client reports the missing argument.
    """
    if not prefix:
        return args, kwargs

    rewrite = prefix_keys if descriptor.batch else prefix_key

    if len(args) > descriptor.position:
        new_args = list(args)
        new_args[descriptor.position] = rewrite(prefix, args[descriptor.position])
        return tuple(new_args), dict(kwargs)

    if descriptor.keyword in kwargs:
        new_kwargs = dict(kwargs)
        new_kwargs[descriptor.keyword] = rewrite(prefix, kwargs[descriptor.keyword])
        return tuple(args), new_kwargs

    return args, kwargs
