from __future__ import annotations

import os
from dataclasses import dataclass

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"

DEFAULT_SESSION_TTL_MS = 1_800_000
DEFAULT_MAX_SESSIONS = 10_000
DEFAULT_MAX_DEVICES = 10_000


@dataclass(frozen=True)
class FormSettings:
    rate_limit_ms: int = 10000
    gps_timeout_ms: int = 10000
    gps_max_age_ms: int = 60000
    require_email: bool = True
    validate_business_id: bool = True
    session_ttl_ms: int = DEFAULT_SESSION_TTL_MS
    max_sessions: int = DEFAULT_MAX_SESSIONS
    max_devices: int = DEFAULT_MAX_DEVICES


@dataclass(frozen=True)
class GeocoderSettings:
    base_url: str = NOMINATIM_SEARCH_URL
    user_agent: str = "QuoteFlow-WebForm/1.0"
    timeout_ms: int = 5000


def form_settings_from_env() -> FormSettings:
    return FormSettings(
        rate_limit_ms=_env_int("FORM_RATE_LIMIT_MS", 10000),
        gps_timeout_ms=_env_int("FORM_GPS_TIMEOUT_MS", 10000),
        gps_max_age_ms=_env_int("FORM_GPS_MAX_AGE_MS", 60000),
        require_email=_env_bool("FORM_REQUIRE_EMAIL", True),
        validate_business_id=_env_bool("FORM_VALIDATE_BUSINESS_ID", True),
        session_ttl_ms=_env_int("FORM_SESSION_TTL_MS", DEFAULT_SESSION_TTL_MS),
        max_sessions=_env_int("FORM_MAX_SESSIONS", DEFAULT_MAX_SESSIONS),
        max_devices=_env_int("FORM_MAX_DEVICES", DEFAULT_MAX_DEVICES),
    )


def geocoder_settings_from_env() -> GeocoderSettings:
    return GeocoderSettings(
        base_url=os.getenv("GEOCODER_BASE_URL") or NOMINATIM_SEARCH_URL,
        user_agent=os.getenv("GEOCODER_USER_AGENT") or "QuoteFlow-WebForm/1.0",
        timeout_ms=_env_int("GEOCODER_TIMEOUT_MS", 5000),
    )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default

    try:
        parsed = int(value)
    except ValueError:
        return default

    return parsed if parsed > 0 else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default
