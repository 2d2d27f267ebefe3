from __future__ import annotations

from dataclasses import dataclass, field
import logging

import httpx

from quoteflow.domain.models import Coordinates
from quoteflow.settings import GeocoderSettings

logger = logging.getLogger("quoteflow.geocoding")


@dataclass
class NominatimGeocoder:
    """Address lookup against the OpenStreetMap Nominatim search API.

    Free, no API key, but a User-Agent header is mandatory. Every failure
    path returns None.
    """

    settings: GeocoderSettings = field(default_factory=GeocoderSettings)
    client: httpx.AsyncClient | None = None

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.timeout_ms / 1000),
                headers={"User-Agent": self.settings.user_agent},
            )

    async def resolve(self, address: str) -> Coordinates | None:
        query = (address or "").strip()
        if not query:
            return None

        try:
            response = await self._http().get(
                self.settings.base_url,
                params={"q": query, "format": "json", "limit": "1", "addressdetails": "1"},
                headers={"User-Agent": self.settings.user_agent},
            )
        except httpx.HTTPError as exc:
            logger.warning("geocoding request failed: %s", exc)
            return None

        if response.is_error:
            logger.warning("geocoding api error", extra={"status_code": response.status_code})
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("geocoding api returned invalid json")
            return None

        if not isinstance(data, list) or not data:
            logger.warning("address not found")
            return None

        first = data[0]
        try:
            return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
        except (KeyError, TypeError, ValueError):
            logger.warning("geocoding result has no usable coordinates")
            return None

    def _http(self) -> httpx.AsyncClient:
        if self.client is None:
            raise RuntimeError("geocoder http client is closed")
        return self.client

    async def close(self) -> None:
        if self.client is None:
            return
        await self.client.aclose()
        self.client = None
