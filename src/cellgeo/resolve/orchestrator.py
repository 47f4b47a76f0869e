"""Tiered cell resolution.

A resolution walks an ordered list of tiers, each sharing the contract
``(CellId) -> GeoLocation | None``:

1. the write-once cache;
2. the crowd-sourced estimate from device fixes;
3. the third-party provider, when one is configured.

The first tier that produces a location wins.  A location produced by a
tier after the cache is written back with ``put_if_absent`` before the
result is returned.  Concurrent resolutions of the same cell need no
coordination: whichever write lands first is what the cache keeps.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from cellgeo._constants import DEFAULT_RESOLUTION_DEADLINE, DEFAULT_STAGE_TIMEOUT
from cellgeo.exceptions import CellGeoError, StorageError
from cellgeo.models.cell import CellId
from cellgeo.models.location import GeoLocation, LocationSource
from cellgeo.models.resolution import ResolutionError, ResolutionResult
from cellgeo.resolve.aggregate import Aggregator
from cellgeo.resolve.external import ExternalResolver
from cellgeo.store.cache import CellGeoCache

_logger = logging.getLogger(__name__)

StageLookup = Callable[[CellId], Awaitable[tuple[GeoLocation, LocationSource] | None]]


@dataclass(frozen=True, slots=True)
class ResolutionStage:
    """One tier of the resolution chain."""

    name: str
    lookup: StageLookup
    cache_result: bool


class ResolutionOrchestrator:
    """Resolves cells through cache, device fixes and an optional provider.

    Usage::

        orchestrator = ResolutionOrchestrator(cache, aggregator, external=resolver)
        result = await orchestrator.resolve("21-21685-2305")

    ``resolve`` never raises for misses, provider failures or timeouts;
    those end in a :class:`ResolutionResult` with ``located=False``.
    Retrying a whole resolution is always safe.
    """

    def __init__(
        self,
        cache: CellGeoCache,
        aggregator: Aggregator,
        *,
        external: ExternalResolver | None = None,
        stage_timeout: float = DEFAULT_STAGE_TIMEOUT,
        deadline: float = DEFAULT_RESOLUTION_DEADLINE,
    ) -> None:
        self._cache = cache
        self._aggregator = aggregator
        self._external = external
        self._stage_timeout = stage_timeout
        self._deadline = deadline
        self._stages = self._build_stages()

    @property
    def external_api_enabled(self) -> bool:
        return self._external is not None

    @property
    def stages(self) -> tuple[ResolutionStage, ...]:
        return self._stages

    def _build_stages(self) -> tuple[ResolutionStage, ...]:
        stages = [
            ResolutionStage("cache", self._from_cache, cache_result=False),
            ResolutionStage("devices", self._from_devices, cache_result=True),
        ]
        if self._external is not None:
            stages.append(ResolutionStage("external", self._from_external, cache_result=True))
        return tuple(stages)

    # ------------------------------------------------------------------
    # Tier lookups
    # ------------------------------------------------------------------

    async def _from_cache(self, cell_id: CellId) -> tuple[GeoLocation, LocationSource] | None:
        entry = await self._cache.get(cell_id)
        if entry is None:
            return None
        return entry.location, entry.source

    async def _from_devices(self, cell_id: CellId) -> tuple[GeoLocation, LocationSource] | None:
        location = await self._aggregator.estimate(cell_id)
        if location is None:
            return None
        return location, LocationSource.CROWD_SOURCED

    async def _from_external(self, cell_id: CellId) -> tuple[GeoLocation, LocationSource] | None:
        assert self._external is not None  # noqa: S101
        location = await self._external.resolve(cell_id)
        if location is None:
            return None
        return location, LocationSource.EXTERNAL_API

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    async def resolve(self, cell_id: CellId | str) -> ResolutionResult:
        """Resolve the location of *cell_id*.

        Accepts a :class:`CellId` or its canonical string form; an
        unparseable string raises :class:`~cellgeo.exceptions.InvalidCellIdError`.
        """
        cell = CellId.parse(cell_id)
        try:
            async with asyncio.timeout(self._deadline):
                return await self._run(cell)
        except TimeoutError:
            _logger.warning("Resolution of cell %s exceeded %.1fs deadline", cell, self._deadline)
            return ResolutionResult.failure(cell, ResolutionError.TIMEOUT)

    async def _run(self, cell_id: CellId) -> ResolutionResult:
        for stage in self._stages:
            hit = await self._try_stage(stage, cell_id)
            if hit is None:
                continue
            location, source = hit
            if stage.cache_result:
                await self._store(cell_id, location, source)
            _logger.debug("Cell %s resolved by %s tier", cell_id, stage.name)
            return ResolutionResult.success(cell_id, location, source)

        error = ResolutionError.FAILED if self.external_api_enabled else ResolutionError.NO_API
        _logger.info("Cell %s could not be resolved (%s)", cell_id, error.value)
        return ResolutionResult.failure(cell_id, error)

    async def _try_stage(
        self, stage: ResolutionStage, cell_id: CellId
    ) -> tuple[GeoLocation, LocationSource] | None:
        try:
            return await asyncio.wait_for(stage.lookup(cell_id), timeout=self._stage_timeout)
        except TimeoutError:
            _logger.warning("%s tier timed out for cell %s", stage.name, cell_id)
        except CellGeoError as exc:
            _logger.warning("%s tier failed for cell %s: %s", stage.name, cell_id, exc)
        return None

    async def _store(self, cell_id: CellId, location: GeoLocation, source: LocationSource) -> None:
        # The computed location is returned whether or not this write wins.
        try:
            await asyncio.wait_for(
                self._cache.put_if_absent(cell_id, location, source),
                timeout=self._stage_timeout,
            )
        except TimeoutError:
            _logger.warning("Caching cell %s timed out", cell_id)
        except StorageError as exc:
            _logger.warning("Caching cell %s failed: %s", cell_id, exc)
