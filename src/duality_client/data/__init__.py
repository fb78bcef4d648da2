"""Payload providers, their cache identities and the shared data cache."""

from __future__ import annotations

from .cache import CacheEvent, CacheHandle, CacheStats, DataCache
from .providers import (
    DataProvider,
    DownloadIdentity,
    DownloadProvider,
    ParametrizedIdentity,
    ParametrizedProvider,
    ProviderIdentity,
    ProviderKind,
)
from .store import CacheStore, DirectoryCacheStore

__all__ = [
    "CacheEvent",
    "CacheHandle",
    "CacheStats",
    "CacheStore",
    "DataCache",
    "DataProvider",
    "DirectoryCacheStore",
    "DownloadIdentity",
    "DownloadProvider",
    "ParametrizedIdentity",
    "ParametrizedProvider",
    "ProviderIdentity",
    "ProviderKind",
]
