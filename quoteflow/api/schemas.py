from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from quoteflow.domain.models import DisplayState, LocationSource, LocationStatus


SESSION_ID_PATTERN = r"^frm_[0-9A-HJKMNP-TV-Z]{26}$"
FIELD_MAX_LENGTH = 4000


class ErrorResponse(BaseModel):
    detail: str


class HealthResponse(BaseModel):
    status: str
    service: str
    mode: str


class ReadyResponse(BaseModel):
    status: str
    service: str
    mode: str
    repository: str
    sessions_open: int


class CityResponse(BaseModel):
    name: str
    lat: float
    lng: float


class CityListResponse(BaseModel):
    items: list[CityResponse]


class UpdateFieldsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=256)
    description: str | None = Field(default=None, max_length=FIELD_MAX_LENGTH)
    contact_name: str | None = Field(default=None, max_length=256)
    contact_email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=64)
    address: str | None = Field(default=None, max_length=512)
    honey: str | None = Field(default=None, max_length=FIELD_MAX_LENGTH)


class GpsReportRequest(BaseModel):
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    captured_at_ms: int | None = Field(default=None, ge=0)
    error: str | None = Field(default=None, max_length=256)


class SelectCityRequest(BaseModel):
    name: str | None = Field(default=None, max_length=128)


class CoordinatesView(BaseModel):
    lat: float
    lng: float


class LocationView(BaseModel):
    status: LocationStatus
    fix: CoordinatesView | None = None
    selected_city: CityResponse | None = None


class SessionResponse(BaseModel):
    session_id: str = Field(pattern=SESSION_ID_PATTERN)
    business_id: str
    business_id_valid: bool
    state: DisplayState
    message: str
    values: dict[str, str]
    field_errors: dict[str, str]
    submit_attempted: bool
    can_submit: bool
    location: LocationView
    lead_id: str | None = None


class SubmitResponse(BaseModel):
    session: SessionResponse
    error_code: str | None = None
    retry_after_seconds: int | None = Field(default=None, ge=1)
    field_errors: dict[str, str] = Field(default_factory=dict)
    location_source: LocationSource | None = None
