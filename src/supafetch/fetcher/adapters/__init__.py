"""Transport adapters: the interface and the default httpx backend."""

from supafetch.fetcher.adapters.base import TransportAdapter, not_implemented_error
from supafetch.fetcher.adapters.httpx_adapter import HTTPXAdapter

__all__ = ["HTTPXAdapter", "TransportAdapter", "not_implemented_error"]
