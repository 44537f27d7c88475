"""Gate configuration providers.

Consumers receive a ``ConfigProvider`` and call ``current()`` whenever they need
the policy; they never hold on to a snapshot across requests.

``FileConfigProvider`` reloads lazily: each ``current()`` call stats the backing
file and only re-parses it when the modification time changed, so the caller
that happens to observe staleness pays the reload cost. There is no background
timer. Reload problems are logged and never raised: the provider keeps serving
the last-known-good snapshot, or the built-in default if nothing valid was ever
loaded.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from chatgate.schemas.gate_config import DEFAULT_GATE_CONFIG, GateConfig

logger = logging.getLogger(__name__)


class ConfigProvider(ABC):
    """Source of the current gate configuration snapshot."""

    @abstractmethod
    def current(self) -> GateConfig:
        """Return the current, read-only configuration snapshot."""
        raise NotImplementedError


class StaticConfigProvider(ConfigProvider):
    """Provider returning a fixed snapshot (tests, embedding)."""

    def __init__(self, config: GateConfig | None = None) -> None:
        self._config = config or DEFAULT_GATE_CONFIG

    def current(self) -> GateConfig:
        return self._config


class FileConfigProvider(ConfigProvider):
    """Provider backed by a JSON file, reloaded when its mtime changes."""

    def __init__(
        self,
        path: str | Path,
        *,
        default: GateConfig = DEFAULT_GATE_CONFIG,
        stat: Callable[[Path], os.stat_result] = os.stat,
    ) -> None:
        """Initialize the provider. The file is read on the first ``current()`` call.

        Args:
            path: Location of the JSON configuration file.
            default: Snapshot served until a valid file has been loaded.
            stat: Stat function (injectable for tests).
        """
        self._path = Path(path)
        self._default = default
        self._stat = stat
        self._lock = threading.Lock()
        self._snapshot: GateConfig | None = None
        self._observed_mtime: float | None = None
        self._source_missing = False

    @property
    def path(self) -> Path:
        return self._path

    def current(self) -> GateConfig:
        try:
            mtime = self._stat(self._path).st_mtime
        except OSError as exc:
            return self._on_source_missing(exc)

        if mtime == self._observed_mtime:
            return self._fallback()

        with self._lock:
            # Another thread may have reloaded while we waited for the lock.
            if mtime != self._observed_mtime:
                self._reload_locked(mtime)
        return self._fallback()

    def _fallback(self) -> GateConfig:
        return self._snapshot or self._default

    def _on_source_missing(self, exc: OSError) -> GateConfig:
        if not self._source_missing:
            self._source_missing = True
            logger.warning(
                "config.source_missing",
                extra={
                    "config_path": str(self._path),
                    "error_type": type(exc).__name__,
                    "using": "last_known_good" if self._snapshot else "default",
                },
            )
        # Force a reload once the file reappears.
        self._observed_mtime = None
        return self._fallback()

    def _reload_locked(self, mtime: float) -> None:
        # Remember the mtime even on failure so a broken file is parsed once.
        self._observed_mtime = mtime
        self._source_missing = False
        try:
            raw = self._path.read_text(encoding="utf-8")
            config = GateConfig.model_validate_json(raw)
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning(
                "config.reload_failed",
                extra={
                    "config_path": str(self._path),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc)[:500],
                    "using": "last_known_good" if self._snapshot else "default",
                },
            )
            return

        self._snapshot = config
        logger.info(
            "config.reloaded",
            extra={
                "config_path": str(self._path),
                "identity_order": [s.value for s in config.identity_order],
                "enforced_windows": [w.unit.value for w in config.enforced_windows],
                "routes_in_scope": len(config.routes_in_scope),
                "verification_enabled": config.verification.enabled,
            },
        )
