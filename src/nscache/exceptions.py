"""
Exception hierarchy for the namespaced cache proxy.

All exceptions raised by nscache itself inherit from NSCacheError, which
carries optional structured context for logging. Errors reported by the
wrapped cache client are never wrapped and propagate as-is.
"""

from __future__ import annotations

from typing import Any


class NSCacheError(Exception):
    """Base exception for all nscache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class InvalidKeyError(NSCacheError):
    """Raised when a key cannot be used.

    Examples:
        - Writing through subscript access with a None key
        - A bare string passed where a batch of keys is expected
        - A key the in-memory client rejects (too long, whitespace)

    Context should include:
        - key: The offending key
        - operation: The operation being attempted, if known
    """

    pass


class ConfigurationError(NSCacheError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Unknown CACHE_BACKEND
        - Empty MEMCACHED_SERVERS list
    """

    pass
