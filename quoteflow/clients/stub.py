from __future__ import annotations

from dataclasses import dataclass, field

from quoteflow.domain.errors import LocationUnavailableError
from quoteflow.domain.models import Coordinates, GpsFix


@dataclass
class StubGeocoder:
    known: dict[str, Coordinates] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    async def resolve(self, address: str) -> Coordinates | None:
        self.calls.append(address)
        return self.known.get(address.strip())


@dataclass
class StubDeviceLocator:
    fix: GpsFix | None = None
    calls: int = 0

    async def locate(self) -> GpsFix:
        self.calls += 1
        if self.fix is None:
            raise LocationUnavailableError("location permission denied")
        return self.fix
