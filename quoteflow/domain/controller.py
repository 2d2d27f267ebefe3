from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import logging
import time

from quoteflow.domain.contracts import DeviceLocator, Geocoder, LeadRepository, LocalMemory
from quoteflow.domain.error_taxonomy import (
    GENERIC_PERSISTENCE_MESSAGE,
    ErrorCode,
    classify_error,
    format_error_message,
    resolve_session_error,
)
from quoteflow.domain.errors import IllegalTransitionError, LocationUnavailableError, SubmissionInProgressError
from quoteflow.domain.guards import RateLimitMemory, run_guards
from quoteflow.domain.lifecycle import DISPLAY_TRANSITIONS, ensure_transition
from quoteflow.domain.location import (
    LocationTracker,
    city_resolver,
    geocoding_resolver,
    gps_resolver,
    resolve_location,
)
from quoteflow.domain.models import (
    City,
    DisplayState,
    FormDraft,
    FormField,
    LocationStatus,
    PersistenceResult,
    ResolvedLocation,
    StoredLead,
    SubmissionOutcome,
    SubmissionRecord,
)
from quoteflow.domain.validation import is_valid_business_id, validate_draft, visible_errors
from quoteflow.settings import FormSettings

Clock = Callable[[], int]

logger = logging.getLogger("quoteflow.submission")


def system_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SubmissionController:
    """Drives one form session from editing to a success or error display.

    A submit attempt runs guards (honeypot, rate limit), field validation,
    the business-identifier check, location resolution and persistence in
    that order. Only an accepted submission re-arms the rate limit.
    """

    business_id: str
    repository: LeadRepository
    geocoder: Geocoder
    memory: LocalMemory
    settings: FormSettings = field(default_factory=FormSettings)
    clock: Clock = system_clock_ms
    session_id: str = ""
    draft: FormDraft = field(default_factory=FormDraft)
    location: LocationTracker = field(default_factory=LocationTracker)
    state: DisplayState = DisplayState.EDITING
    message: str = ""
    submit_attempted: bool = False
    accepted_lead: StoredLead | None = None

    @property
    def rate_limit(self) -> RateLimitMemory:
        return RateLimitMemory(memory=self.memory)

    @property
    def field_errors(self) -> dict[FormField, str]:
        return validate_draft(self.draft, require_email=self.settings.require_email)

    @property
    def visible_field_errors(self) -> dict[FormField, str]:
        return visible_errors(
            self.field_errors,
            touched=self.draft.touched,
            submit_attempted=self.submit_attempted,
        )

    @property
    def is_valid(self) -> bool:
        return not self.field_errors

    @property
    def business_id_valid(self) -> bool:
        if not self.settings.validate_business_id:
            return True
        return is_valid_business_id(self.business_id)

    @property
    def can_submit(self) -> bool:
        return (
            self.state is DisplayState.EDITING
            and self.location.status is not LocationStatus.REQUESTING
            and self.is_valid
            and self.business_id_valid
        )

    def _log_extra(self, **extra: object) -> dict[str, object]:
        return {"session_id": self.session_id, "business_id": self.business_id, **extra}

    def _transition(self, to_state: DisplayState) -> None:
        ensure_transition(DISPLAY_TRANSITIONS, from_state=self.state, to_state=to_state)
        self.state = to_state

    def _require_editing(self, action: str) -> None:
        if self.state is not DisplayState.EDITING:
            raise IllegalTransitionError(f"cannot {action} while {self.state}")

    def update_field(self, name: FormField, value: str) -> None:
        self._require_editing("edit fields")
        self.draft.set(name, value)

    def blur(self, name: FormField) -> None:
        self.draft.mark_touched(name)

    async def request_gps(self, locator: DeviceLocator) -> LocationStatus:
        self._require_editing("request location")
        self.location.begin_request()
        try:
            fix = await asyncio.wait_for(locator.locate(), timeout=self.settings.gps_timeout_ms / 1000)
        except TimeoutError:
            logger.info("device location request timed out", extra=self._log_extra())
            self.location.fail()
        except LocationUnavailableError as exc:
            logger.info("device location unavailable: %s", exc, extra=self._log_extra())
            self.location.fail()
        except Exception:
            logger.exception("device locator raised", extra=self._log_extra())
            self.location.fail()
        else:
            self.location.grant(fix, now_ms=self.clock(), max_age_ms=self.settings.gps_max_age_ms)
        return self.location.status

    def decline_gps(self) -> None:
        self._require_editing("decline location")
        self.location.decline()

    def clear_gps(self) -> None:
        self._require_editing("clear location")
        self.location.clear_fix()

    def retry_gps(self) -> None:
        self._require_editing("retry location")
        self.location.retry()

    def select_city(self, name: str | None) -> City | None:
        self._require_editing("select a city")
        return self.location.select_city(name)

    async def submit(self) -> SubmissionOutcome:
        if self.state is DisplayState.SUBMITTING or self.location.status is LocationStatus.REQUESTING:
            raise SubmissionInProgressError("a submission or location request is already in flight")
        self._require_editing("submit")

        self.submit_attempted = True
        rejection = run_guards(
            self.draft,
            rate_limit=self.rate_limit,
            now_ms=self.clock(),
            window_ms=self.settings.rate_limit_ms,
        )
        if rejection is not None:
            return self._reject(rejection.error_code, retry_after_seconds=rejection.retry_after_seconds)

        errors = self.field_errors
        if errors:
            return self._reject(
                "validation_failed",
                field_errors={name.value: message for name, message in errors.items()},
            )

        if not self.business_id_valid:
            return self._reject("invalid_business_identifier")

        # Snapshot before the first await so later edits cannot leak in.
        values = self._trimmed_values()
        self._transition(DisplayState.SUBMITTING)
        self.message = ""

        location = await resolve_location(
            [
                gps_resolver(self.location),
                city_resolver(self.location),
                geocoding_resolver(self.geocoder, values["address"]),
            ]
        )
        record = SubmissionRecord(
            business_id=self.business_id,
            title=values["title"] or "",
            description=values["description"] or "",
            contact_name=values["contact_name"] or "",
            contact_email=values["contact_email"],
            phone=values["phone"],
            address=values["address"],
            latitude=location.lat,
            longitude=location.lng,
        )
        result, failure_code = await self._persist(record)

        if not result.accepted:
            return self._reject(
                resolve_session_error(failure_code),
                message=(result.reason or "").strip() or GENERIC_PERSISTENCE_MESSAGE,
                location=location,
            )

        self.rate_limit.remember(self.clock())
        self._transition(DisplayState.SUCCESS)
        self.message = ""
        self.accepted_lead = result.lead
        logger.info(
            "lead submitted",
            extra=self._log_extra(
                lead_id=result.lead.lead_id if result.lead else None,
                location_source=location.source.value,
            ),
        )
        return SubmissionOutcome(state=self.state, lead=result.lead, location=location)

    def return_to_form(self) -> None:
        was_success = self.state is DisplayState.SUCCESS
        self._transition(DisplayState.EDITING)
        self.message = ""
        if was_success:
            # A completed request starts over from a blank draft.
            self.draft = FormDraft()
            self.location.reset()
            self.submit_attempted = False
            self.accepted_lead = None

    def _trimmed_values(self) -> dict[str, str | None]:
        draft = self.draft
        return {
            "title": draft.title.strip(),
            "description": draft.description.strip(),
            "contact_name": draft.contact_name.strip(),
            "contact_email": (draft.contact_email.strip() or None) if self.settings.require_email else None,
            "phone": draft.phone.strip() or None,
            "address": draft.address.strip() or None,
        }

    async def _persist(self, record: SubmissionRecord) -> tuple[PersistenceResult, ErrorCode]:
        try:
            return await self.repository.submit(record), "persistence_failed"
        except Exception:
            logger.exception(
                "lead persistence raised",
                extra=self._log_extra(error_code="unexpected_failure"),
            )
            return PersistenceResult.reject(format_error_message("unexpected_failure")), "unexpected_failure"

    def _reject(
        self,
        code: ErrorCode,
        *,
        message: str | None = None,
        retry_after_seconds: int | None = None,
        field_errors: dict[str, str] | None = None,
        location: ResolvedLocation | None = None,
    ) -> SubmissionOutcome:
        text = message or format_error_message(code, seconds=retry_after_seconds)
        # Advisory errors are shown inline and leave the form editable.
        if classify_error(code) == "blocking":
            self._transition(DisplayState.ERROR)
            self.message = text
            logger.warning("submission rejected", extra=self._log_extra(error_code=code))
        else:
            logger.info("submission needs corrections", extra=self._log_extra(error_code=code))
        return SubmissionOutcome(
            state=self.state,
            error_code=code,
            message=text,
            field_errors=field_errors or {},
            retry_after_seconds=retry_after_seconds,
            location=location,
        )
