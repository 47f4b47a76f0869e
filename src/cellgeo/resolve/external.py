"""Third-party cell geolocation providers.

A provider is optional.  When none is configured the resolution chain
ends after the device tier and fails with ``NO_API``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import ValidationError

from cellgeo._constants import UNWIREDLABS_ENDPOINT, UNWIREDLABS_PROCESS_PATH
from cellgeo._transport import Transport
from cellgeo.exceptions import CellGeoTransportError, ProviderTimeoutError, ProviderUnavailableError
from cellgeo.ingestion.normalize import safe_float
from cellgeo.models.cell import CellId
from cellgeo.models.location import GeoLocation

_logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("no matches", "not found")


class ExternalResolver(Protocol):
    """Structural interface of a provider integration.

    Returns ``None`` when the provider does not know the cell and raises
    :class:`ProviderUnavailableError` or :class:`ProviderTimeoutError`
    when it could not answer.
    """

    async def resolve(self, cell_id: CellId) -> GeoLocation | None:
        ...


class UnwiredLabsResolver:
    """Resolves cells through the UnwiredLabs location API."""

    def __init__(
        self,
        transport: Transport,
        token: str,
        *,
        endpoint: str = UNWIREDLABS_ENDPOINT,
        radio: str = "lte",
    ) -> None:
        if not token:
            raise ValueError("UnwiredLabs token must be non-empty")
        self._transport = transport
        self._token = token
        self._url = f"{endpoint.rstrip('/')}{UNWIREDLABS_PROCESS_PATH}"
        self._radio = radio

    def build_request(self, cell_id: CellId) -> dict[str, Any]:
        return {
            "token": self._token,
            "radio": self._radio,
            "mcc": cell_id.mcc,
            "mnc": cell_id.mnc,
            "cells": [{"lac": cell_id.area, "cid": cell_id.cell}],
        }

    async def resolve(self, cell_id: CellId) -> GeoLocation | None:
        try:
            response = await self._transport.post_json(self._url, self.build_request(cell_id))
        except TimeoutError as exc:
            raise ProviderTimeoutError(f"UnwiredLabs did not answer for cell {cell_id}") from exc
        except CellGeoTransportError as exc:
            raise ProviderUnavailableError(f"UnwiredLabs request for cell {cell_id} failed: {exc}") from exc
        return _parse_response(cell_id, response)


def _parse_response(cell_id: CellId, response: dict[str, Any]) -> GeoLocation | None:
    status = str(response.get("status", "")).lower()
    if status == "ok":
        lat = safe_float(response.get("lat"))
        lng = safe_float(response.get("lon"))
        if lat is None or lng is None:
            _logger.warning("UnwiredLabs answered ok without coordinates for cell %s", cell_id)
            return None
        try:
            return GeoLocation(lat=lat, lng=lng, accuracy=safe_float(response.get("accuracy")))
        except ValidationError:
            _logger.warning("UnwiredLabs returned invalid coordinates for cell %s", cell_id)
            return None

    message = str(response.get("message", ""))
    if any(marker in message.lower() for marker in _NOT_FOUND_MARKERS):
        _logger.debug("UnwiredLabs does not know cell %s", cell_id)
        return None
    raise ProviderUnavailableError(f"UnwiredLabs error for cell {cell_id}: {message or status or 'unknown'}")
