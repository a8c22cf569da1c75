"""
Tests for the pymemcache-backed client.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from pymemcache import serde

from nscache.clients import MemcachedClient, ResultCode
from nscache.exceptions import ConfigurationError
from nscache.proxy import PrefixingCacheProxy

SERVERS = [("cache-a", 11211), ("cache-b", 11211), ("cache-c", 11211)]


def _missing_get(key: Any, default: Any = None) -> Any:
    return default


@pytest.fixture
def node_clients() -> dict[str, MagicMock]:
    """Per-server mock clients, keyed by host:port."""
    return {}


@pytest.fixture
def memcached(node_clients: dict[str, MagicMock]) -> MemcachedClient:
    """Provide a MemcachedClient whose per-server clients are mocks."""

    def factory(server: tuple[str, int], **kwargs: Any) -> MagicMock:
        mock = MagicMock(name=f"{server[0]}:{server[1]}")
        mock.init_kwargs = kwargs
        node_clients[f"{server[0]}:{server[1]}"] = mock
        return mock

    return MemcachedClient(SERVERS, connect_timeout=0.5, timeout=1.0, client_factory=factory)


class TestConstruction:
    """Test client construction."""

    def test_requires_servers(self) -> None:
        with pytest.raises(ConfigurationError):
            MemcachedClient([])

    def test_builds_one_client_per_server(
        self, memcached: MemcachedClient, node_clients: dict[str, MagicMock]
    ) -> None:
        assert memcached.nodes == ["cache-a:11211", "cache-b:11211", "cache-c:11211"]
        kwargs = node_clients["cache-a:11211"].init_kwargs
        assert kwargs["serde"] is serde.pickle_serde
        assert kwargs["default_noreply"] is False
        assert kwargs["connect_timeout"] == 0.5

    def test_default_factory_is_pooled_client(self) -> None:
        """Test that each server gets a thread-safe pooled pymemcache client."""
        with patch("nscache.clients.memcached.PooledClient") as client_cls:
            client = MemcachedClient([("localhost", 11211)], max_pool_size=8)

        client_cls.assert_called_once()
        assert client_cls.call_args.args == (("localhost", 11211),)
        assert client_cls.call_args.kwargs["max_pool_size"] == 8
        assert client._clients["localhost:11211"] is client_cls.return_value


class TestRouting:
    """Test server selection."""

    def test_plain_operation_routes_by_key(
        self, memcached: MemcachedClient, node_clients: dict[str, MagicMock]
    ) -> None:
        node = node_clients[memcached.node_for("user:1")]
        node.get.return_value = "v"

        assert memcached.get("user:1") == "v"
        node.get.assert_called_once()
        assert node.get.call_args.args == ("user:1",)

    def test_by_key_routes_by_server_key(
        self, memcached: MemcachedClient, node_clients: dict[str, MagicMock]
    ) -> None:
        node = node_clients[memcached.node_for("tenant-7")]
        node.set.return_value = True

        assert memcached.set_by_key("tenant-7", "anything", "v", expire=5)
        node.set.assert_called_once_with("anything", "v", expire=5, noreply=False)

    def test_routing_is_stable(self, memcached: MemcachedClient) -> None:
        assert memcached.node_for("k") == memcached.node_for(b"k")

    def test_get_multi_splits_per_server(
        self, memcached: MemcachedClient, node_clients: dict[str, MagicMock]
    ) -> None:
        keys = [f"key-{i}" for i in range(12)]
        for node in node_clients.values():
            node.get_many.side_effect = lambda ks: {k: k.upper() for k in ks}

        assert memcached.get_multi(keys) == {k: k.upper() for k in keys}

        requested: list[str] = []
        for node in node_clients.values():
            for call in node.get_many.call_args_list:
                requested.extend(call.args[0])
        assert sorted(requested) == sorted(keys)

    def test_get_multi_by_key_uses_one_server(
        self, memcached: MemcachedClient, node_clients: dict[str, MagicMock]
    ) -> None:
        target = memcached.node_for("route")
        node_clients[target].get_many.return_value = {}

        assert memcached.get_multi_by_key("route", ["a", "b", "c"]) == {}
        node_clients[target].get_many.assert_called_once_with(["a", "b", "c"])
        assert memcached.result_code == ResultCode.NOTFOUND


class TestResultCodes:
    """Test mapping of pymemcache results onto result codes."""

    @pytest.fixture
    def node(self) -> MagicMock:
        return MagicMock(name="node")

    @pytest.fixture
    def single(self, node: MagicMock) -> MemcachedClient:
        return MemcachedClient([("localhost", 11211)], client_factory=lambda *a, **kw: node)

    def test_get_missing_vs_falsy(self, single: MemcachedClient, node: MagicMock) -> None:
        node.get.side_effect = _missing_get
        assert single.get("k") is None
        assert single.result_code == ResultCode.NOTFOUND

        node.get.side_effect = None
        node.get.return_value = ""
        assert single.get("k") == ""
        assert single.result_code == ResultCode.SUCCESS

    def test_add_not_stored(self, single: MemcachedClient, node: MagicMock) -> None:
        node.add.return_value = False
        assert not single.add("k", "v")
        assert single.result_code == ResultCode.NOTSTORED

    def test_append_has_no_expiry(self, single: MemcachedClient, node: MagicMock) -> None:
        node.append.return_value = True
        assert single.append("k", "tail")
        node.append.assert_called_once_with("k", "tail", noreply=False)

    def test_delete_missing(self, single: MemcachedClient, node: MagicMock) -> None:
        node.delete.return_value = False
        assert not single.delete("k")
        assert single.result_code == ResultCode.NOTFOUND

    def test_increment_and_decrement(self, single: MemcachedClient, node: MagicMock) -> None:
        node.incr.return_value = 5
        node.decr.return_value = None

        assert single.increment("n", 2) == 5
        node.incr.assert_called_once_with("n", 2, noreply=False)

        assert single.decrement("n", 3) is None
        node.decr.assert_called_once_with("n", 3, noreply=False)
        assert single.result_code == ResultCode.NOTFOUND

    @pytest.mark.parametrize(
        ("response", "code"),
        [(True, ResultCode.SUCCESS), (False, ResultCode.DATA_EXISTS), (None, ResultCode.NOTFOUND)],
    )
    def test_cas(
        self, single: MemcachedClient, node: MagicMock, response: Any, code: ResultCode
    ) -> None:
        node.cas.return_value = response
        assert single.cas(42, "k", "v") is bool(response)
        node.cas.assert_called_once_with("k", "v", 42, expire=0, noreply=False)
        assert single.result_code == code

    def test_gets_converts_token(self, single: MemcachedClient, node: MagicMock) -> None:
        node.gets.return_value = ("v", b"17")
        assert single.gets("k") == ("v", 17)

    def test_set_multi_reports_failures(self, single: MemcachedClient, node: MagicMock) -> None:
        node.set_many.return_value = ["b"]
        assert not single.set_multi({"a": 1, "b": 2}, expire=9)
        node.set_many.assert_called_once_with({"a": 1, "b": 2}, expire=9, noreply=False)
        assert single.result_code == ResultCode.NOTSTORED

    def test_errors_propagate(self, single: MemcachedClient, node: MagicMock) -> None:
        node.get.side_effect = ConnectionRefusedError("down")
        with pytest.raises(ConnectionRefusedError):
            single.get("k")

    def test_flush_and_close(self, single: MemcachedClient, node: MagicMock) -> None:
        assert single.flush(3)
        node.flush_all.assert_called_once_with(delay=3, noreply=False)
        single.close()
        node.close.assert_called_once_with()


class TestThroughProxy:
    """Test the proxy over the memcached client."""

    def test_prefixed_key_is_routed(
        self, memcached: MemcachedClient, node_clients: dict[str, MagicMock]
    ) -> None:
        """Test that routing uses the prefixed key, as stored on the server."""
        node = node_clients[memcached.node_for("app:bar")]
        node.set.return_value = True

        proxy = PrefixingCacheProxy("app:", memcached)
        proxy["bar"] = "x"

        node.set.assert_called_once_with("app:bar", "x", expire=0, noreply=False)

    def test_exists_uses_result_code(
        self, memcached: MemcachedClient, node_clients: dict[str, MagicMock]
    ) -> None:
        for node in node_clients.values():
            node.get.side_effect = _missing_get

        proxy = PrefixingCacheProxy("app:", memcached)
        assert "bar" not in proxy
