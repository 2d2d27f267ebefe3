from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
import logging

from fastapi import Body, FastAPI, Header, HTTPException, Request

from quoteflow.api.handlers.cities import list_cities_handler
from quoteflow.api.handlers.deps import ApiDeps
from quoteflow.api.handlers.sessions import (
    blur_field_handler,
    clear_gps_handler,
    decline_gps_handler,
    get_session_handler,
    open_session_handler,
    report_gps_handler,
    retry_gps_handler,
    return_to_form_handler,
    select_city_handler,
    submit_handler,
    update_fields_handler,
)
from quoteflow.api.schemas import (
    CityListResponse,
    ErrorResponse,
    GpsReportRequest,
    HealthResponse,
    ReadyResponse,
    SelectCityRequest,
    SessionResponse,
    SubmitResponse,
    UpdateFieldsRequest,
)
from quoteflow.domain.errors import (
    DomainError,
    DomainInvariantError,
    DomainValidationError,
    UnknownSessionError,
)

SERVICE_NAME = "quoteflow"

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@contextmanager
def _domain_errors() -> Iterator[None]:
    try:
        yield
    except UnknownSessionError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DomainValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except DomainInvariantError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DomainError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _device_id(request: Request, header_value: str | None) -> str:
    if header_value and header_value.strip():
        return header_value.strip()
    if request.client is not None:
        return request.client.host
    return "anonymous"


def build_app(
    run_id: str,
    api_deps: ApiDeps | None = None,
    repository_mode: str = "memory",
    on_startup: Callable[[], Awaitable[None]] | None = None,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> FastAPI:
    logger = logging.getLogger("runtime")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        del app
        logger.info("service started", extra={"service": SERVICE_NAME, "run_id": run_id})
        if on_startup is not None:
            await on_startup()

        yield

        if on_shutdown is not None:
            await on_shutdown()
        logger.info("service stopped", extra={"service": SERVICE_NAME, "run_id": run_id})

    app = FastAPI(title="quoteflow", version="0.1.0", lifespan=lifespan)

    def _deps() -> ApiDeps:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        return api_deps

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service=SERVICE_NAME, mode=repository_mode)

    @app.get("/ready", response_model=ReadyResponse, tags=["System"])
    async def ready() -> ReadyResponse:
        return ReadyResponse(
            status="ready" if api_deps is not None else "degraded",
            service=SERVICE_NAME,
            mode=repository_mode,
            repository=repository_mode,
            sessions_open=len(api_deps.sessions) if api_deps is not None else 0,
        )

    @app.get("/cities", response_model=CityListResponse, tags=["Location"])
    async def list_cities() -> CityListResponse:
        return await list_cities_handler()

    @app.post(
        "/b/{business_id}/sessions",
        response_model=SessionResponse,
        status_code=201,
        responses=ERROR_RESPONSES,
        tags=["Sessions"],
    )
    async def open_session(
        business_id: str,
        request: Request,
        x_device_id: str | None = Header(default=None, alias="X-Device-Id"),
    ) -> SessionResponse:
        deps = _deps()
        return await open_session_handler(
            business_id=business_id,
            device_id=_device_id(request, x_device_id),
            api_deps=deps,
        )

    @app.get("/sessions/{session_id}", response_model=SessionResponse, responses=ERROR_RESPONSES, tags=["Sessions"])
    async def get_session(session_id: str) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await get_session_handler(session_id=session_id, api_deps=deps)

    @app.patch(
        "/sessions/{session_id}/fields",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Sessions"],
    )
    async def update_fields(session_id: str, request: UpdateFieldsRequest) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await update_fields_handler(session_id=session_id, request=request, api_deps=deps)

    @app.post(
        "/sessions/{session_id}/fields/{field_name}/blur",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Sessions"],
    )
    async def blur_field(session_id: str, field_name: str) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await blur_field_handler(session_id=session_id, field_name=field_name, api_deps=deps)

    @app.post(
        "/sessions/{session_id}/location/gps",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Location"],
    )
    async def report_gps(session_id: str, request: GpsReportRequest) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await report_gps_handler(session_id=session_id, request=request, api_deps=deps)

    @app.post(
        "/sessions/{session_id}/location/decline",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Location"],
    )
    async def decline_gps(session_id: str) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await decline_gps_handler(session_id=session_id, api_deps=deps)

    @app.post(
        "/sessions/{session_id}/location/clear",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Location"],
    )
    async def clear_gps(session_id: str) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await clear_gps_handler(session_id=session_id, api_deps=deps)

    @app.post(
        "/sessions/{session_id}/location/retry",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Location"],
    )
    async def retry_gps(session_id: str) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await retry_gps_handler(session_id=session_id, api_deps=deps)

    @app.post(
        "/sessions/{session_id}/location/city",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Location"],
    )
    async def select_city(session_id: str, request: SelectCityRequest = Body(...)) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await select_city_handler(session_id=session_id, name=request.name, api_deps=deps)

    @app.post(
        "/sessions/{session_id}/submit",
        response_model=SubmitResponse,
        responses=ERROR_RESPONSES,
        tags=["Sessions"],
    )
    async def submit(session_id: str) -> SubmitResponse:
        deps = _deps()
        with _domain_errors():
            return await submit_handler(session_id=session_id, api_deps=deps)

    @app.post(
        "/sessions/{session_id}/return",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Sessions"],
    )
    async def return_to_form(session_id: str) -> SessionResponse:
        deps = _deps()
        with _domain_errors():
            return await return_to_form_handler(session_id=session_id, api_deps=deps)

    return app
