"""Service configuration for cellgeo."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from cellgeo._constants import (
    DEFAULT_MAX_SCAN_RECORDS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RESOLUTION_DEADLINE,
    DEFAULT_STAGE_TIMEOUT,
    UNWIREDLABS_ENDPOINT,
    UNWIREDLABS_RADIOS,
)
from cellgeo.exceptions import CellGeoConfigError
from cellgeo.resolve.aggregate import strategy_by_name


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise CellGeoConfigError(f"{key} must be a number, got {value!r}") from exc


def _env_int(env: Mapping[str, str], key: str) -> int | None:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise CellGeoConfigError(f"{key} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class CellGeoConfig:
    """Service configuration.

    Parameters
    ----------
    stage_timeout : float
        Seconds each resolution tier may take before it counts as a miss.
    resolution_deadline : float
        Seconds a whole resolution may take before it fails with ``TIMEOUT``.
    max_scan_records : int
        Most-recent device records considered per aggregation.
    page_size : int
        Records fetched per page when scanning device locations.
    aggregation_strategy : str
        ``"most_recent"`` (default) or ``"accuracy_weighted_centroid"``.
    database_path : str or None
        SQLite database file for durable stores.  ``None`` keeps both
        stores in memory.
    unwiredlabs_token : str or None
        API token for the UnwiredLabs provider.  The external tier is
        enabled only when a token is set.
    unwiredlabs_endpoint : str
        Provider base URL.
    unwiredlabs_radio : str
        Radio type sent to the provider (``lte``, ``nbiot``, ...).
    """

    stage_timeout: float = DEFAULT_STAGE_TIMEOUT
    resolution_deadline: float = DEFAULT_RESOLUTION_DEADLINE
    max_scan_records: int = DEFAULT_MAX_SCAN_RECORDS
    page_size: int = DEFAULT_PAGE_SIZE
    aggregation_strategy: str = "most_recent"
    database_path: str | None = None
    unwiredlabs_token: str | None = None
    unwiredlabs_endpoint: str = UNWIREDLABS_ENDPOINT
    unwiredlabs_radio: str = "lte"

    def __post_init__(self) -> None:
        if self.stage_timeout <= 0:
            raise CellGeoConfigError("stage_timeout must be positive")
        if self.resolution_deadline <= 0:
            raise CellGeoConfigError("resolution_deadline must be positive")
        if self.max_scan_records < 1:
            raise CellGeoConfigError("max_scan_records must be at least 1")
        if self.page_size < 1:
            raise CellGeoConfigError("page_size must be at least 1")
        strategy_by_name(self.aggregation_strategy)
        if self.unwiredlabs_radio not in UNWIREDLABS_RADIOS:
            raise CellGeoConfigError(f"unsupported unwiredlabs_radio {self.unwiredlabs_radio!r}")

    @property
    def external_api_enabled(self) -> bool:
        """Whether the third-party resolution tier is configured."""
        return bool(self.unwiredlabs_token)

    @classmethod
    def from_env(cls, **overrides: Any) -> CellGeoConfig:
        """Create configuration from environment variables.

        Reads optional ``CELLGEO_*`` variables.  Explicit keyword
        arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "CELLGEO_AGGREGATION_STRATEGY": "aggregation_strategy",
            "CELLGEO_DATABASE_PATH": "database_path",
            "CELLGEO_UNWIREDLABS_TOKEN": "unwiredlabs_token",
            "CELLGEO_UNWIREDLABS_ENDPOINT": "unwiredlabs_endpoint",
            "CELLGEO_UNWIREDLABS_RADIO": "unwiredlabs_radio",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and val.strip():
                config_kwargs[field_name] = val.strip()

        stage_timeout = _env_float(env, "CELLGEO_STAGE_TIMEOUT")
        if stage_timeout is not None:
            config_kwargs["stage_timeout"] = stage_timeout

        deadline = _env_float(env, "CELLGEO_RESOLUTION_DEADLINE")
        if deadline is not None:
            config_kwargs["resolution_deadline"] = deadline

        max_scan = _env_int(env, "CELLGEO_MAX_SCAN_RECORDS")
        if max_scan is not None:
            config_kwargs["max_scan_records"] = max_scan

        page_size = _env_int(env, "CELLGEO_PAGE_SIZE")
        if page_size is not None:
            config_kwargs["page_size"] = page_size

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
