from __future__ import annotations

import logging

from quoteflow.api.handlers.deps import ApiDeps, FormSession
from quoteflow.api.schemas import (
    CityResponse,
    CoordinatesView,
    GpsReportRequest,
    LocationView,
    SessionResponse,
    SubmitResponse,
    UpdateFieldsRequest,
)
from quoteflow.clients.device_location import ReportedFixLocator
from quoteflow.domain.controller import SubmissionController
from quoteflow.domain.errors import UnknownSessionError
from quoteflow.domain.ids import new_session_id
from quoteflow.domain.models import GpsFix, parse_field

COMPONENT_ID_OPEN = "api.open_session"
COMPONENT_ID_GET = "api.get_session"
COMPONENT_ID_FIELDS = "api.update_fields"
COMPONENT_ID_LOCATION = "api.location"
COMPONENT_ID_SUBMIT = "api.submit"

logger = logging.getLogger("runtime")


def session_view(session: FormSession) -> SessionResponse:
    controller = session.controller
    tracker = controller.location
    fix = tracker.fix
    city = tracker.selected_city
    lead = controller.accepted_lead
    return SessionResponse(
        session_id=session.session_id,
        business_id=controller.business_id,
        business_id_valid=controller.business_id_valid,
        state=controller.state,
        message=controller.message,
        values=controller.draft.values(),
        field_errors={name.value: message for name, message in controller.visible_field_errors.items()},
        submit_attempted=controller.submit_attempted,
        can_submit=controller.can_submit,
        location=LocationView(
            status=tracker.status,
            fix=CoordinatesView(lat=fix.lat, lng=fix.lng) if fix is not None else None,
            selected_city=CityResponse(name=city.name, lat=city.lat, lng=city.lng) if city is not None else None,
        ),
        lead_id=lead.lead_id if lead is not None else None,
    )


def _get_session(session_id: str, api_deps: ApiDeps) -> FormSession:
    session = api_deps.sessions.get(session_id, now_ms=api_deps.clock())
    if session is None:
        raise UnknownSessionError(f"form session not found: {session_id}")
    return session


async def open_session_handler(*, business_id: str, device_id: str, api_deps: ApiDeps) -> SessionResponse:
    session_id = new_session_id()
    controller = SubmissionController(
        business_id=business_id,
        repository=api_deps.repository,
        geocoder=api_deps.geocoder,
        memory=api_deps.local_memory.for_device(device_id),
        settings=api_deps.settings,
        clock=api_deps.clock,
        session_id=session_id,
    )
    session = FormSession(session_id=session_id, device_id=device_id, controller=controller)
    api_deps.sessions.add(session, now_ms=api_deps.clock())
    logger.info(
        "form session opened",
        extra={"session_id": session_id, "business_id": business_id},
    )
    return session_view(session)


async def get_session_handler(*, session_id: str, api_deps: ApiDeps) -> SessionResponse:
    return session_view(_get_session(session_id, api_deps))


async def update_fields_handler(
    *,
    session_id: str,
    request: UpdateFieldsRequest,
    api_deps: ApiDeps,
) -> SessionResponse:
    session = _get_session(session_id, api_deps)
    for name, value in request.model_dump(exclude_none=True).items():
        session.controller.update_field(parse_field(name), value)
    return session_view(session)


async def blur_field_handler(*, session_id: str, field_name: str, api_deps: ApiDeps) -> SessionResponse:
    session = _get_session(session_id, api_deps)
    session.controller.blur(parse_field(field_name))
    return session_view(session)


async def report_gps_handler(
    *,
    session_id: str,
    request: GpsReportRequest,
    api_deps: ApiDeps,
) -> SessionResponse:
    session = _get_session(session_id, api_deps)
    fix = None
    if request.lat is not None and request.lng is not None:
        fix = GpsFix(
            lat=request.lat,
            lng=request.lng,
            captured_at_ms=request.captured_at_ms if request.captured_at_ms is not None else api_deps.clock(),
        )
    locator = ReportedFixLocator(fix=fix, error=request.error)
    await session.controller.request_gps(locator)
    return session_view(session)


async def decline_gps_handler(*, session_id: str, api_deps: ApiDeps) -> SessionResponse:
    session = _get_session(session_id, api_deps)
    session.controller.decline_gps()
    return session_view(session)


async def clear_gps_handler(*, session_id: str, api_deps: ApiDeps) -> SessionResponse:
    session = _get_session(session_id, api_deps)
    session.controller.clear_gps()
    return session_view(session)


async def retry_gps_handler(*, session_id: str, api_deps: ApiDeps) -> SessionResponse:
    session = _get_session(session_id, api_deps)
    session.controller.retry_gps()
    return session_view(session)


async def select_city_handler(*, session_id: str, name: str | None, api_deps: ApiDeps) -> SessionResponse:
    session = _get_session(session_id, api_deps)
    session.controller.select_city(name)
    return session_view(session)


async def submit_handler(*, session_id: str, api_deps: ApiDeps) -> SubmitResponse:
    session = _get_session(session_id, api_deps)
    outcome = await session.controller.submit()
    return SubmitResponse(
        session=session_view(session),
        error_code=outcome.error_code,
        retry_after_seconds=outcome.retry_after_seconds,
        field_errors=dict(outcome.field_errors),
        location_source=outcome.location.source if outcome.location is not None else None,
    )


async def return_to_form_handler(*, session_id: str, api_deps: ApiDeps) -> SessionResponse:
    session = _get_session(session_id, api_deps)
    session.controller.return_to_form()
    return session_view(session)
