"""Custom exception hierarchy for cellgeo."""

from __future__ import annotations


class CellGeoError(Exception):
    """Base exception for all cellgeo errors."""


class CellGeoConfigError(CellGeoError):
    """Invalid or missing configuration."""


class InvalidCellIdError(CellGeoError, ValueError):
    """A cell identifier could not be parsed from its canonical form."""


class MalformedRecordError(CellGeoError):
    """A device location record lacks a cell id or GPS coordinates."""


class StorageError(CellGeoError):
    """Transient failure of a backing store.

    Callers may retry the operation.  A storage error is never a signal
    that a conditional write lost its race.
    """


class CacheStorageError(StorageError):
    """The cell geolocation cache could not be read or written."""


class LocationStoreError(StorageError):
    """The device location store could not be read or written."""


class CellGeoTransportError(CellGeoError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ProviderError(CellGeoError):
    """Third-party geolocation provider failure."""


class ProviderUnavailableError(ProviderError):
    """Provider rejected the request or is unreachable (rate limit, 5xx, bad token)."""


class ProviderTimeoutError(ProviderError):
    """Provider did not answer in time."""
