"""
Pytest configuration and fixtures for nscache tests.
"""

from __future__ import annotations

import os
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest

from nscache.clients import InMemoryClient, ResultCode, reset_persistent_clients
from nscache.config import clear_settings_cache
from nscache.proxy import PrefixingCacheProxy


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide environment variables for a memcached-backed configuration."""
    env_vars = {
        "CACHE_PREFIX": "app:",
        "CACHE_BACKEND": "memcached",
        "MEMCACHED_SERVERS": "cache-a:11211,cache-b:11212",
        "MEMCACHED_CONNECT_TIMEOUT": "0.5",
        "MEMCACHED_TIMEOUT": "2.0",
        "MEMCACHED_NO_DELAY": "false",
        "MEMCACHED_MAX_POOL_SIZE": "4",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def memory_client() -> InMemoryClient:
    """Provide an empty in-memory client."""
    return InMemoryClient()


@pytest.fixture
def proxy(memory_client: InMemoryClient) -> PrefixingCacheProxy:
    """Provide a proxy with prefix "foo" over an in-memory client."""
    return PrefixingCacheProxy("foo", memory_client)


@pytest.fixture
def recording_client() -> MagicMock:
    """Provide a mock client that records every call made to it."""
    client = MagicMock(name="cache_client")
    client.result_code = ResultCode.SUCCESS
    return client


@pytest.fixture(autouse=True)
def reset_shared_state() -> Generator[None, None, None]:
    """Reset settings cache and shared clients around each test."""
    clear_settings_cache()
    reset_persistent_clients()
    yield
    clear_settings_cache()
    reset_persistent_clients()
