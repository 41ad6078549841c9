"""Cache configuration for salescache."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from salescache._constants import DEFAULT_SAVE_DELAY, DEFAULT_SYNC_QUOTA_BYTES, NAMESPACE
from salescache.exceptions import CacheConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _default_data_dir() -> Path:
    return Path.home() / ".salescache"


@dataclasses.dataclass(frozen=True)
class CacheConfig:
    """Cache configuration.

    Parameters
    ----------
    namespace : str
        Prefix shared by every persisted key (e.g. ``"shopee_"``).
    data_dir : Path
        Directory holding the synchronous store file and the record database.
    sync_store_file : str
        File name of the synchronous key/value store inside ``data_dir``.
    record_db_file : str
        File name of the SQLite record store inside ``data_dir``.
    sync_quota_bytes : int
        Capacity of the synchronous store, counted as key length plus value
        length over all slots.  Writes past the quota raise
        :class:`~salescache.exceptions.StorageQuotaError`.
    save_delay : float
        Quiet period in seconds before a debounced write fires.
    export_dir : Path or None
        Where the recovery console writes export files.  Defaults to
        ``data_dir``.
    cloud_url : str
        Base URL of the remote push/pull endpoint.
    cloud_collection : str
        Remote collection holding one snapshot record per user.
    cloud_enabled : bool
        Whether callers should attempt remote push/pull at all.
    """

    namespace: str = NAMESPACE
    data_dir: Path = dataclasses.field(default_factory=_default_data_dir)
    sync_store_file: str = "local_storage.json"
    record_db_file: str = "SalesTrackerDB.sqlite3"
    sync_quota_bytes: int = DEFAULT_SYNC_QUOTA_BYTES
    save_delay: float = DEFAULT_SAVE_DELAY
    export_dir: Path | None = None
    cloud_url: str = "http://localhost:3001"
    cloud_collection: str = "sales_tracker_data"
    cloud_enabled: bool = False

    def __post_init__(self) -> None:
        if not self.namespace:
            raise CacheConfigError("namespace must be non-empty")
        if self.save_delay < 0:
            raise CacheConfigError(f"save_delay must be >= 0, got {self.save_delay}")
        if self.sync_quota_bytes <= 0:
            raise CacheConfigError(f"sync_quota_bytes must be positive, got {self.sync_quota_bytes}")
        # Accept plain strings from env/overrides.
        object.__setattr__(self, "data_dir", Path(self.data_dir).expanduser())
        if self.export_dir is not None:
            object.__setattr__(self, "export_dir", Path(self.export_dir).expanduser())

    @property
    def sync_store_path(self) -> Path:
        return self.data_dir / self.sync_store_file

    @property
    def record_db_path(self) -> Path:
        return self.data_dir / self.record_db_file

    @property
    def resolved_export_dir(self) -> Path:
        return self.export_dir if self.export_dir is not None else self.data_dir

    @classmethod
    def from_env(cls, **overrides: Any) -> CacheConfig:
        """Create configuration from environment variables.

        Reads optional ``SALESCACHE_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        CacheConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "SALESCACHE_NAMESPACE": "namespace",
            "SALESCACHE_DATA_DIR": "data_dir",
            "SALESCACHE_SYNC_STORE_FILE": "sync_store_file",
            "SALESCACHE_RECORD_DB_FILE": "record_db_file",
            "SALESCACHE_EXPORT_DIR": "export_dir",
            "SALESCACHE_CLOUD_URL": "cloud_url",
            "SALESCACHE_CLOUD_COLLECTION": "cloud_collection",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # numeric fields, handled separately
        try:
            delay_env = env.get("SALESCACHE_SAVE_DELAY")
            if delay_env is not None and "save_delay" not in overrides:
                config_kwargs["save_delay"] = float(delay_env)

            quota_env = env.get("SALESCACHE_SYNC_QUOTA_BYTES")
            if quota_env is not None and "sync_quota_bytes" not in overrides:
                config_kwargs["sync_quota_bytes"] = int(quota_env)
        except ValueError as exc:
            raise CacheConfigError(f"Invalid numeric environment value: {exc}") from exc

        if "cloud_enabled" not in overrides:
            config_kwargs["cloud_enabled"] = _env_bool(env.get("SALESCACHE_CLOUD_ENABLED"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
