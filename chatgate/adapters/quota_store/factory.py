"""Factory for creating quota store instances."""

from chatgate.adapters.quota_store.base import AbstractQuotaStore
from chatgate.adapters.quota_store.in_memory import InMemoryQuotaStore
from chatgate.adapters.quota_store.redis_store import RedisQuotaStore
from chatgate.core.config import StoreSettings, settings
from chatgate.core.errors import ValidationAppError


def create_quota_store(store_settings: StoreSettings | None = None) -> AbstractQuotaStore:
    """Factory function to instantiate the quota store based on backend.

    Reads configuration from chatgate.core.config.settings (Pydantic Settings)
    unless explicit settings are passed.

    Returns:
        AbstractQuotaStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisQuotaStore.from_url(cfg.redis_url, timeout_seconds=cfg.timeout_seconds)

    if backend == "memory":
        return InMemoryQuotaStore()

    raise ValidationAppError(
        code="quota_store_unknown_backend",
        message=f"Unknown quota store backend: '{backend}'. Supported backends: redis, memory",
    )
