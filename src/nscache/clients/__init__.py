"""
Cache client package.

This package provides the capability wrapped by PrefixingCacheProxy:
- CacheClient / ResultCode (base.py): the memcached-like operation set
- InMemoryClient (memory.py): in-process backend
- MemcachedClient (memcached.py): pymemcache-backed backend
- create_client (factory.py): backend selection from settings
"""

from nscache.clients.base import CacheClient, ResultCode
from nscache.clients.factory import create_client, reset_persistent_clients
from nscache.clients.memcached import MemcachedClient
from nscache.clients.memory import InMemoryClient

__all__ = [
    "CacheClient",
    "InMemoryClient",
    "MemcachedClient",
    "ResultCode",
    "create_client",
    "reset_persistent_clients",
]
