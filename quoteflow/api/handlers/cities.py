from __future__ import annotations

from quoteflow.api.schemas import CityListResponse, CityResponse
from quoteflow.domain.cities import CITY_CATALOG

COMPONENT_ID = "api.list_cities"


async def list_cities_handler() -> CityListResponse:
    return CityListResponse(
        items=[CityResponse(name=city.name, lat=city.lat, lng=city.lng) for city in CITY_CATALOG]
    )
