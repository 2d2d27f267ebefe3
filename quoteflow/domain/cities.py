from __future__ import annotations

from quoteflow.domain.errors import UnknownCityError
from quoteflow.domain.models import City

# Ten largest Finnish municipalities, offered when GPS is unavailable.
CITY_CATALOG: tuple[City, ...] = (
    City(name="Helsinki", lat=60.1699, lng=24.9384),
    City(name="Espoo", lat=60.2052, lng=24.6522),
    City(name="Tampere", lat=61.4981, lng=23.7608),
    City(name="Vantaa", lat=60.2934, lng=25.0378),
    City(name="Oulu", lat=65.0121, lng=25.4651),
    City(name="Turku", lat=60.4518, lng=22.2666),
    City(name="Jyväskylä", lat=62.2426, lng=25.7473),
    City(name="Lahti", lat=60.9827, lng=25.6612),
    City(name="Kuopio", lat=62.8924, lng=27.6770),
    City(name="Kouvola", lat=60.8682, lng=26.7042),
)

_CITIES_BY_NAME: dict[str, City] = {city.name: city for city in CITY_CATALOG}


def find_city(name: str) -> City:
    city = _CITIES_BY_NAME.get(name)
    if city is None:
        raise UnknownCityError(f"unknown city: {name}")
    return city
