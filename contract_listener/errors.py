from __future__ import annotations

from typing import Any, Optional


class ListenerError(Exception):
    """Base error for the contract listener."""


class ConfigurationError(ListenerError):
    """Invalid or missing configuration. Fatal at construction time."""


class RpcError(ListenerError):
    """Transport-level JSON-RPC failure (network, timeout, bad payload)."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class RpcResponseError(RpcError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None, url: Optional[str] = None) -> None:
        super().__init__(message, url=url)
        self.code = code
        self.data = data


class ClassificationMismatch(ListenerError):
    """Created contract does not expose the token accessor set."""


class EnrichmentError(ListenerError):
    """External reputation/balance lookup failed."""
