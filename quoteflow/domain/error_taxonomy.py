from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

# Canonical error vocabulary for the submission pipeline.
ErrorCode = Literal[
    "abuse_suspected",
    "rate_limited",
    "validation_failed",
    "invalid_business_identifier",
    "location_resolution_failed",
    "persistence_failed",
    "unexpected_failure",
]

ErrorClassification = Literal["blocking", "advisory", "swallowed"]

CANONICAL_ERROR_CODES: tuple[ErrorCode, ...] = (
    "abuse_suspected",
    "rate_limited",
    "validation_failed",
    "invalid_business_identifier",
    "location_resolution_failed",
    "persistence_failed",
    "unexpected_failure",
)

# Validation errors are shown inline next to fields and never end the session.
ADVISORY_ERROR_CODES: frozenset[ErrorCode] = frozenset({"validation_failed"})

# Only logged; the attempt continues without the missing data.
SWALLOWED_ERROR_CODES: frozenset[ErrorCode] = frozenset({"location_resolution_failed"})

# Codes that reach the session as-is. Anything else is normalized by
# resolve_session_error().
SESSION_ERROR_CODES: frozenset[ErrorCode] = frozenset(
    {
        "abuse_suspected",
        "rate_limited",
        "validation_failed",
        "invalid_business_identifier",
        "persistence_failed",
    }
)

GENERIC_PERSISTENCE_MESSAGE = "Saving failed. Please try again."

DEFAULT_MESSAGES: Mapping[ErrorCode, str] = {
    # Must not mention the decoy field.
    "abuse_suspected": "The submission was blocked by automatic protection. Please try again.",
    "rate_limited": "Too many submissions. Please try again in {seconds} seconds.",
    "validation_failed": "Please check the highlighted fields.",
    "invalid_business_identifier": "The business link is not valid. Check the address you followed.",
    "location_resolution_failed": "The address could not be converted to coordinates.",
    "persistence_failed": GENERIC_PERSISTENCE_MESSAGE,
    "unexpected_failure": "Unexpected error. Please try again in a moment.",
}


def is_canonical_error_code(code: str) -> bool:
    return code in CANONICAL_ERROR_CODES


def classify_error(code: ErrorCode) -> ErrorClassification:
    if code in ADVISORY_ERROR_CODES:
        return "advisory"
    if code in SWALLOWED_ERROR_CODES:
        return "swallowed"
    return "blocking"


def resolve_session_error(code: str) -> ErrorCode:
    if code in SESSION_ERROR_CODES and is_canonical_error_code(code):
        return code  # type: ignore[return-value]
    # Unexpected failures surface as a failed save, never as a crash.
    return "persistence_failed"


def format_error_message(code: ErrorCode, *, seconds: int | None = None) -> str:
    template = DEFAULT_MESSAGES[code]
    if code == "rate_limited":
        return template.format(seconds=seconds if seconds is not None else 1)
    return template
