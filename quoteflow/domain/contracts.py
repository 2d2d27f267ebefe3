from __future__ import annotations

from typing import Protocol, runtime_checkable

from quoteflow.domain.models import Coordinates, GpsFix, PersistenceResult, SubmissionRecord


@runtime_checkable
class LeadRepository(Protocol):
    """Persistence contract for accepted form submissions.

    Expected failures (validation, connectivity) come back as a rejected
    PersistenceResult with a user-facing reason. Anything raised is treated
    by the caller as an unexpected failure.
    """

    async def submit(self, record: SubmissionRecord) -> PersistenceResult: ...


@runtime_checkable
class Geocoder(Protocol):
    """Free-text address to coordinates. Must not raise: failures are None."""

    async def resolve(self, address: str) -> Coordinates | None: ...


@runtime_checkable
class LocalMemory(Protocol):
    """Key-value store local to one browser/device.

    Both operations are fallible; callers treat errors as absent/ignored.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


@runtime_checkable
class DeviceLocator(Protocol):
    """One-shot device position reading.

    Raises LocationUnavailableError when the device refuses or cannot
    provide a fix.
    """

    async def locate(self) -> GpsFix: ...
