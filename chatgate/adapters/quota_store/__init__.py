"""Quota store adapters.

This package provides a small abstraction layer over the shared atomic store so
services never talk to a concrete client directly. Redis is the shared backend;
the in-memory store serves tests and single-process development.
"""

from chatgate.adapters.quota_store.base import AbstractQuotaStore
from chatgate.adapters.quota_store.factory import create_quota_store
from chatgate.adapters.quota_store.in_memory import InMemoryQuotaStore
from chatgate.adapters.quota_store.redis_store import RedisQuotaStore

__all__ = [
    "AbstractQuotaStore",
    "InMemoryQuotaStore",
    "RedisQuotaStore",
    "create_quota_store",
]
