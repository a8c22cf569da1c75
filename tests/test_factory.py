"""
Tests for cache client construction.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from nscache.clients import (
    InMemoryClient,
    MemcachedClient,
    create_client,
    reset_persistent_clients,
)
from nscache.config import Settings, get_settings


class TestCreateClient:
    """Test backend selection."""

    def test_memory_backend_by_default(self) -> None:
        settings = Settings(_env_file=None, CACHE_BACKEND="memory")
        assert isinstance(create_client(settings), InMemoryClient)

    def test_memcached_backend(self, mock_env_vars: dict[str, str]) -> None:
        with patch("nscache.clients.memcached.PooledClient") as client_cls:
            client = create_client()

        assert isinstance(client, MemcachedClient)
        assert client.nodes == ["cache-a:11211", "cache-b:11212"]
        kwargs = client_cls.call_args.kwargs
        assert kwargs["connect_timeout"] == 0.5
        assert kwargs["timeout"] == 2.0
        assert kwargs["no_delay"] is False
        assert kwargs["max_pool_size"] == 4

    def test_new_client_without_persistent_id(self) -> None:
        settings = get_settings()
        assert create_client(settings) is not create_client(settings)


class TestPersistentClients:
    """Test sharing of clients by persistent id."""

    def test_same_id_shares_client(self) -> None:
        assert create_client(persistent_id="a") is create_client(persistent_id="a")

    def test_different_ids_do_not_share(self) -> None:
        assert create_client(persistent_id="a") is not create_client(persistent_id="b")

    def test_reset_closes_clients(self) -> None:
        first = create_client(persistent_id="a")
        with patch.object(first, "close", MagicMock()) as close:
            reset_persistent_clients()

        close.assert_called_once_with()
        assert create_client(persistent_id="a") is not first
