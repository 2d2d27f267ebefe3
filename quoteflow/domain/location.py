from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
import logging

from quoteflow.domain.cities import find_city
from quoteflow.domain.contracts import Geocoder
from quoteflow.domain.error_taxonomy import ErrorCode, classify_error
from quoteflow.domain.errors import IllegalTransitionError, LocationUnavailableError
from quoteflow.domain.lifecycle import CITY_SELECTION_STATES, LOCATION_TRANSITIONS, ensure_transition
from quoteflow.domain.models import City, GpsFix, LocationSource, LocationStatus, ResolvedLocation

LocationResolver = Callable[[], Awaitable[ResolvedLocation | None]]

logger = logging.getLogger("quoteflow.submission")


@dataclass
class LocationTracker:
    """Where the visitor's coordinates come from before submit.

    GPS sharing moves idle -> requesting -> granted/error. Declining or a
    failed request opens the city list; retrying GPS goes back to idle.
    """

    status: LocationStatus = LocationStatus.IDLE
    fix: GpsFix | None = None
    selected_city: City | None = None

    def _move(self, to_state: LocationStatus) -> None:
        ensure_transition(LOCATION_TRANSITIONS, from_state=self.status, to_state=to_state)
        self.status = to_state

    def begin_request(self) -> None:
        self._move(LocationStatus.REQUESTING)

    def grant(self, fix: GpsFix, *, now_ms: int, max_age_ms: int) -> bool:
        age_ms = now_ms - fix.captured_at_ms
        # Fixes stamped in the future are rejected like stale ones.
        if age_ms < 0 or age_ms > max_age_ms:
            logger.info("device location fix rejected", extra={"fix_age_ms": age_ms})
            self._move(LocationStatus.ERROR)
            return False
        self._move(LocationStatus.GRANTED)
        self.fix = fix
        return True

    def fail(self) -> None:
        self._move(LocationStatus.ERROR)

    def decline(self) -> None:
        self._move(LocationStatus.DENIED)

    def clear_fix(self) -> None:
        self._move(LocationStatus.IDLE)
        self.fix = None

    def retry(self) -> None:
        if self.status not in CITY_SELECTION_STATES:
            raise IllegalTransitionError(f"cannot retry GPS from {self.status}")
        self._move(LocationStatus.IDLE)
        self.selected_city = None

    def select_city(self, name: str | None) -> City | None:
        if self.status not in CITY_SELECTION_STATES:
            raise IllegalTransitionError(f"city selection is not available while {self.status}")
        self.selected_city = find_city(name) if name else None
        return self.selected_city

    def reset(self) -> None:
        self.status = LocationStatus.IDLE
        self.fix = None
        self.selected_city = None


def gps_resolver(tracker: LocationTracker) -> LocationResolver:
    async def _resolve() -> ResolvedLocation | None:
        if tracker.status is not LocationStatus.GRANTED or tracker.fix is None:
            return None
        return ResolvedLocation(source=LocationSource.GPS, lat=tracker.fix.lat, lng=tracker.fix.lng)

    return _resolve


def city_resolver(tracker: LocationTracker) -> LocationResolver:
    async def _resolve() -> ResolvedLocation | None:
        city = tracker.selected_city
        if city is None:
            return None
        return ResolvedLocation(source=LocationSource.CITY, lat=city.lat, lng=city.lng, city_name=city.name)

    return _resolve


def geocoding_resolver(geocoder: Geocoder, address: str | None) -> LocationResolver:
    async def _resolve() -> ResolvedLocation | None:
        if not address:
            return None
        try:
            coordinates = await geocoder.resolve(address)
        except Exception as exc:
            raise LocationUnavailableError(f"geocoder raised: {exc}") from exc
        if coordinates is None:
            raise LocationUnavailableError("address could not be geocoded")
        return ResolvedLocation(source=LocationSource.GEOCODED, lat=coordinates.lat, lng=coordinates.lng)

    return _resolve


async def resolve_location(resolvers: Sequence[LocationResolver]) -> ResolvedLocation:
    """Run resolvers in precedence order and stop at the first hit."""
    for resolver in resolvers:
        try:
            resolved = await resolver()
        except LocationUnavailableError as exc:
            error_code: ErrorCode = "location_resolution_failed"
            if classify_error(error_code) != "swallowed":
                raise
            logger.warning(
                "location resolution failed, continuing without coordinates: %s",
                exc,
                extra={"error_code": error_code},
            )
            continue
        if resolved is not None:
            return resolved
    return ResolvedLocation.none()
