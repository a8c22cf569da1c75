"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Only consulted when a proxy or client is built without explicit arguments.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_server(entry: str) -> tuple[str, int]:
    host, sep, port = entry.strip().rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"Invalid memcached server {entry!r}, expected host:port")
    port_num = int(port)
    if not 0 < port_num < 65536:
        raise ValueError(f"Invalid memcached port in {entry!r}")
    return host, port_num


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Optional:
        CACHE_PREFIX: Namespace prefix used by PrefixingCacheProxy.from_settings
        CACHE_BACKEND: "memory" (in-process) or "memcached"
        MEMCACHED_SERVERS: Comma separated host:port list
        MEMCACHED_CONNECT_TIMEOUT: Connect timeout in seconds
        MEMCACHED_TIMEOUT: Socket read/write timeout in seconds
        MEMCACHED_NO_DELAY: Set TCP_NODELAY on memcached sockets
        MEMCACHED_MAX_POOL_SIZE: Connections pooled per server (unset: unbounded)
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_PREFIX: str = Field(default="", description="Key prefix for the default namespace")
    CACHE_BACKEND: Literal["memory", "memcached"] = Field(
        default="memory", description="Cache client backend"
    )

    MEMCACHED_SERVERS: str = Field(
        default="127.0.0.1:11211",
        description="Comma separated memcached servers (host:port)",
    )
    MEMCACHED_CONNECT_TIMEOUT: float = Field(
        default=1.0, gt=0.0, description="Connect timeout in seconds"
    )
    MEMCACHED_TIMEOUT: float = Field(
        default=1.0, gt=0.0, description="Read/write timeout in seconds"
    )
    MEMCACHED_NO_DELAY: bool = Field(default=True, description="Enable TCP_NODELAY")
    MEMCACHED_MAX_POOL_SIZE: int | None = Field(
        default=None, ge=1, description="Connections pooled per memcached server"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("MEMCACHED_SERVERS")
    @classmethod
    def validate_memcached_servers(cls, v: str) -> str:
        """Validate that every server entry is host:port."""
        entries = [entry for entry in v.split(",") if entry.strip()]
        if not entries:
            raise ValueError("MEMCACHED_SERVERS must list at least one host:port")
        for entry in entries:
            _parse_server(entry)
        return v

    @property
    def memcached_servers(self) -> list[tuple[str, int]]:
        """Parsed (host, port) pairs."""
        return [
            _parse_server(entry)
            for entry in self.MEMCACHED_SERVERS.split(",")
            if entry.strip()
        ]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
