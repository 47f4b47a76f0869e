"""cellgeo - Approximate cell tower geolocation from crowd-sourced device fixes."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cellgeo")
except PackageNotFoundError:
    __version__ = "0+local"
from cellgeo.config import CellGeoConfig
from cellgeo.exceptions import (
    CacheStorageError,
    CellGeoConfigError,
    CellGeoError,
    CellGeoTransportError,
    InvalidCellIdError,
    LocationStoreError,
    MalformedRecordError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    StorageError,
)
from cellgeo.ingestion.pipeline import IngestionOutcome, IngestionPipeline
from cellgeo.ingestion.populator import CachePopulator
from cellgeo.models import (
    CacheEntry,
    CellId,
    CellObservation,
    DeviceLocationRecord,
    DeviceReport,
    GeoLocation,
    LocationSource,
    ResolutionError,
    ResolutionResult,
)
from cellgeo.resolve import Aggregator, ResolutionOrchestrator, UnwiredLabsResolver
from cellgeo.service import CellGeoService
from cellgeo.store import (
    MemoryCellGeoCache,
    MemoryDeviceLocationStore,
    SqliteCellGeoCache,
    SqliteDeviceLocationStore,
)

__all__ = [
    "__version__",
    "Aggregator",
    "CacheEntry",
    "CachePopulator",
    "CacheStorageError",
    "CellGeoConfig",
    "CellGeoConfigError",
    "CellGeoError",
    "CellGeoService",
    "CellGeoTransportError",
    "CellId",
    "CellObservation",
    "DeviceLocationRecord",
    "DeviceReport",
    "GeoLocation",
    "IngestionOutcome",
    "IngestionPipeline",
    "InvalidCellIdError",
    "LocationSource",
    "LocationStoreError",
    "MalformedRecordError",
    "MemoryCellGeoCache",
    "MemoryDeviceLocationStore",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ResolutionError",
    "ResolutionOrchestrator",
    "ResolutionResult",
    "SqliteCellGeoCache",
    "SqliteDeviceLocationStore",
    "StorageError",
    "UnwiredLabsResolver",
]
