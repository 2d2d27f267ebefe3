from __future__ import annotations

from dataclasses import dataclass

from quoteflow.domain.errors import LocationUnavailableError
from quoteflow.domain.models import GpsFix


@dataclass(frozen=True)
class ReportedFixLocator:
    """Locator for fixes measured by the browser and posted to the API.

    A missing fix carries the browser's error text (denied, unavailable,
    timeout) and surfaces as LocationUnavailableError.
    """

    fix: GpsFix | None = None
    error: str | None = None

    async def locate(self) -> GpsFix:
        if self.fix is None:
            raise LocationUnavailableError(self.error or "device did not report a position")
        return self.fix
