"""High-level async service wiring the cell geolocation pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import aiohttp

from cellgeo._transport import JsonTransport
from cellgeo.config import CellGeoConfig
from cellgeo.exceptions import CellGeoError
from cellgeo.ingestion.pipeline import IngestionOutcome, IngestionPipeline
from cellgeo.ingestion.populator import CachePopulator
from cellgeo.models.cell import CellId
from cellgeo.models.report import DeviceReport
from cellgeo.models.resolution import ResolutionResult
from cellgeo.resolve.aggregate import Aggregator, strategy_by_name
from cellgeo.resolve.external import ExternalResolver, UnwiredLabsResolver
from cellgeo.resolve.orchestrator import ResolutionOrchestrator
from cellgeo.store.cache import CellGeoCache, MemoryCellGeoCache, SqliteCellGeoCache
from cellgeo.store.locations import DeviceLocationStore, MemoryDeviceLocationStore, SqliteDeviceLocationStore

_logger = logging.getLogger(__name__)


class CellGeoService:
    """Async facade over the cache, device store, resolver chain and ingestion.

    Usage::

        async with CellGeoService(CellGeoConfig.from_env()) as service:
            await service.ingest({"deviceId": "d1", "roam": {...}, "gps": {...}})
            result = await service.resolve("21-21685-2305")

    Whether the provider tier exists is decided once, on entry, from the
    configuration (or from an explicitly passed ``external`` resolver).
    """

    def __init__(
        self,
        config: CellGeoConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        cache: CellGeoCache | None = None,
        locations: DeviceLocationStore | None = None,
        external: ExternalResolver | None = None,
        resolve_on_ingest: bool = True,
    ) -> None:
        self._config = config or CellGeoConfig()
        self._external_session = session is not None
        self._http_session = session
        self._cache = cache
        self._locations = locations
        self._external = external
        self._resolve_on_ingest = resolve_on_ingest
        self._orchestrator: ResolutionOrchestrator | None = None
        self._pipeline: IngestionPipeline | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> CellGeoService:
        config = self._config
        if self._cache is None:
            self._cache = (
                SqliteCellGeoCache(Path(config.database_path))
                if config.database_path
                else MemoryCellGeoCache()
            )
        if self._locations is None:
            self._locations = (
                SqliteDeviceLocationStore(Path(config.database_path))
                if config.database_path
                else MemoryDeviceLocationStore()
            )

        if self._external is None and config.external_api_enabled:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            assert config.unwiredlabs_token is not None  # noqa: S101
            self._external = UnwiredLabsResolver(
                JsonTransport(self._http_session, timeout=config.stage_timeout),
                config.unwiredlabs_token,
                endpoint=config.unwiredlabs_endpoint,
                radio=config.unwiredlabs_radio,
            )

        aggregator = Aggregator(
            self._locations,
            strategy=strategy_by_name(config.aggregation_strategy),
            max_records=config.max_scan_records,
            page_size=config.page_size,
        )
        self._orchestrator = ResolutionOrchestrator(
            self._cache,
            aggregator,
            external=self._external,
            stage_timeout=config.stage_timeout,
            deadline=config.resolution_deadline,
        )
        self._pipeline = IngestionPipeline(
            self._locations,
            CachePopulator(self._cache),
            on_resolution_request=self._orchestrator.resolve if self._resolve_on_ingest else None,
        )
        _logger.debug(
            "Cell geolocation service started (tiers: %s)",
            ", ".join(stage.name for stage in self._orchestrator.stages),
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._orchestrator = None
        self._pipeline = None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _require_orchestrator(self) -> ResolutionOrchestrator:
        if self._orchestrator is None:
            raise CellGeoError("Service not started. Use 'async with CellGeoService(...) as service:'")
        return self._orchestrator

    def _require_pipeline(self) -> IngestionPipeline:
        if self._pipeline is None:
            raise CellGeoError("Service not started. Use 'async with CellGeoService(...) as service:'")
        return self._pipeline

    @property
    def external_api_enabled(self) -> bool:
        return self._require_orchestrator().external_api_enabled

    async def resolve(self, cell_id: CellId | str) -> ResolutionResult:
        """Resolve a cell's location through the tier chain."""
        return await self._require_orchestrator().resolve(cell_id)

    async def ingest(self, report: DeviceReport | dict[str, Any]) -> IngestionOutcome:
        """Ingest one device report."""
        return await self._require_pipeline().handle_report(report)

    async def ingest_many(self, reports: list[DeviceReport | dict[str, Any]]) -> list[IngestionOutcome]:
        """Ingest a batch of device reports."""
        return await self._require_pipeline().handle_reports(reports)
