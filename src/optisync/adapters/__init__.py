"""Cache store and network transport adapters."""

from optisync.adapters.base import CacheStore, Listener, MutationTransport
from optisync.adapters.http import HttpTransport, page_fetcher, record_fetcher
from optisync.adapters.memory import MemoryStore

__all__ = [
    "CacheStore",
    "HttpTransport",
    "Listener",
    "MemoryStore",
    "MutationTransport",
    "page_fetcher",
    "record_fetcher",
]
