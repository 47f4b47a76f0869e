"""JSON-over-HTTP transport for third-party provider calls."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from cellgeo._constants import USER_AGENT
from cellgeo._redact import redact_for_log
from cellgeo.exceptions import CellGeoTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by provider integrations.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`JsonTransport`) concrete.
    """

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        ...


class JsonTransport:
    """POSTs JSON bodies and decodes JSON object responses."""

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float | None = None) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        body = json.dumps(payload, separators=(",", ":"))
        request_kwargs: dict[str, Any] = {"data": body, "headers": headers}
        if self._timeout is not None:
            request_kwargs["timeout"] = self._timeout

        _logger.debug("POST %s %s", url, redact_for_log(payload))

        try:
            async with self._http.post(url, **request_kwargs) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise CellGeoTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except (CellGeoTransportError, TimeoutError):
            raise
        except UnicodeDecodeError as exc:
            raise CellGeoTransportError(f"Undecodable response body from {url}", endpoint=url) from exc
        except aiohttp.ClientError as exc:
            raise CellGeoTransportError(
                f"Request to {url} failed: {exc}",
                endpoint=url,
            ) from exc

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CellGeoTransportError(
                f"Invalid JSON from {url}: {text[:200]}",
                endpoint=url,
            ) from exc

        if not isinstance(result, dict):
            raise CellGeoTransportError(f"Expected a JSON object from {url}", endpoint=url)

        _logger.debug("Response from %s: %s", url, redact_for_log(result))
        return result
