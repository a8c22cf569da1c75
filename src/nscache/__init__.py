"""
nscache: key-prefixing proxy for memcached-style cache clients.

The proxy prepends a namespace prefix to every key, forwards the call to the
wrapped client, and adds subscript access on top.
"""

from nscache.clients import (
    CacheClient,
    InMemoryClient,
    MemcachedClient,
    ResultCode,
    create_client,
)
from nscache.exceptions import ConfigurationError, InvalidKeyError, NSCacheError
from nscache.operations import OPERATIONS, KeyArgument, Operation
from nscache.proxy import PrefixingCacheProxy

__version__ = "0.1.0"

__all__ = [
    "CacheClient",
    "ConfigurationError",
    "InMemoryClient",
    "InvalidKeyError",
    "KeyArgument",
    "MemcachedClient",
    "NSCacheError",
    "OPERATIONS",
    "Operation",
    "PrefixingCacheProxy",
    "ResultCode",
    "create_client",
]
