from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from quoteflow.domain.error_taxonomy import ErrorCode
from quoteflow.domain.errors import UnknownFieldError


class FormField(StrEnum):
    TITLE = "title"
    DESCRIPTION = "description"
    CONTACT_NAME = "contact_name"
    CONTACT_EMAIL = "contact_email"
    PHONE = "phone"
    ADDRESS = "address"
    # Hidden decoy input, must stay empty.
    HONEYPOT = "honey"


# Canonical display states of one form session.
#
# IMPORTANT: keep synchronized with DISPLAY_TRANSITIONS in
# quoteflow/domain/lifecycle.py.
class DisplayState(StrEnum):
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"


class LocationStatus(StrEnum):
    IDLE = "idle"
    REQUESTING = "requesting"
    GRANTED = "granted"
    DENIED = "denied"
    ERROR = "error"


class LocationSource(StrEnum):
    GPS = "gps"
    CITY = "city"
    GEOCODED = "geocoded"
    NONE = "none"


# Mirrors the CHECK constraint on leads.status in
# db/migrations/000001_bootstrap.up.sql.
class LeadStatus(StrEnum):
    NEW = "new"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class GpsFix:
    lat: float
    lng: float
    captured_at_ms: int


@dataclass(frozen=True)
class City:
    name: str
    lat: float
    lng: float


@dataclass(frozen=True)
class ResolvedLocation:
    source: LocationSource
    lat: float | None = None
    lng: float | None = None
    city_name: str | None = None

    @classmethod
    def none(cls) -> ResolvedLocation:
        return cls(source=LocationSource.NONE)


_FIELD_ATTRIBUTES: dict[FormField, str] = {
    FormField.TITLE: "title",
    FormField.DESCRIPTION: "description",
    FormField.CONTACT_NAME: "contact_name",
    FormField.CONTACT_EMAIL: "contact_email",
    FormField.PHONE: "phone",
    FormField.ADDRESS: "address",
    FormField.HONEYPOT: "honeypot",
}


def parse_field(name: str) -> FormField:
    try:
        return FormField(name)
    except ValueError as exc:
        raise UnknownFieldError(f"unknown form field: {name}") from exc


@dataclass
class FormDraft:
    title: str = ""
    description: str = ""
    contact_name: str = ""
    contact_email: str = ""
    phone: str = ""
    address: str = ""
    honeypot: str = ""
    touched: set[FormField] = field(default_factory=set)

    def get(self, name: FormField) -> str:
        return getattr(self, _FIELD_ATTRIBUTES[name])

    def set(self, name: FormField, value: str) -> None:
        setattr(self, _FIELD_ATTRIBUTES[name], value)

    def mark_touched(self, name: FormField) -> None:
        self.touched.add(name)

    def values(self) -> dict[str, str]:
        return {
            name.value: self.get(name)
            for name in FormField
            if name is not FormField.HONEYPOT
        }


@dataclass(frozen=True)
class SubmissionRecord:
    business_id: str
    title: str
    description: str
    contact_name: str
    contact_email: str | None
    phone: str | None
    address: str | None
    latitude: float | None
    longitude: float | None
    status: LeadStatus = LeadStatus.NEW


@dataclass(frozen=True)
class StoredLead:
    lead_id: str
    record: SubmissionRecord
    created_at: datetime


@dataclass(frozen=True)
class PersistenceResult:
    accepted: bool
    lead: StoredLead | None = None
    reason: str | None = None

    @classmethod
    def accept(cls, lead: StoredLead) -> PersistenceResult:
        return cls(accepted=True, lead=lead)

    @classmethod
    def reject(cls, reason: str) -> PersistenceResult:
        return cls(accepted=False, reason=reason)


@dataclass(frozen=True)
class SubmissionOutcome:
    state: DisplayState
    error_code: ErrorCode | None = None
    message: str = ""
    field_errors: dict[str, str] = field(default_factory=dict)
    retry_after_seconds: int | None = None
    lead: StoredLead | None = None
    location: ResolvedLocation | None = None
