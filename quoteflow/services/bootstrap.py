from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import os

from quoteflow.api.handlers.deps import ApiDeps, SessionRegistry
from quoteflow.clients.geocoding import NominatimGeocoder
from quoteflow.clients.local_memory import InMemoryLocalMemory
from quoteflow.domain.contracts import Geocoder, LeadRepository
from quoteflow.repositories.postgres import AsyncpgPoolManager, PostgresLeadRepository
from quoteflow.repositories.stub import InMemoryLeadRepository
from quoteflow.settings import FormSettings, form_settings_from_env, geocoder_settings_from_env


@dataclass
class RuntimeContainer:
    repository: LeadRepository
    repository_mode: str
    geocoder: Geocoder
    local_memory: InMemoryLocalMemory
    settings: FormSettings
    api_deps: ApiDeps
    on_startup: Callable[[], Awaitable[None]] | None
    on_shutdown: Callable[[], Awaitable[None]] | None


def build_runtime_container() -> RuntimeContainer:
    database_url = os.getenv("DATABASE_URL")
    settings = form_settings_from_env()
    geocoder = NominatimGeocoder(settings=geocoder_settings_from_env())
    startup_hooks: list[Callable[[], Awaitable[None]]] = []
    shutdown_hooks: list[Callable[[], Awaitable[None]]] = [geocoder.close]

    repository: LeadRepository
    if database_url:
        pool_manager = AsyncpgPoolManager(dsn=database_url)
        repository = PostgresLeadRepository(pool_manager=pool_manager)
        repository_mode = "postgres"
        startup_hooks.append(pool_manager.startup)
        shutdown_hooks.append(pool_manager.shutdown)
    else:
        # Demo mode: submissions are accepted and kept in process memory.
        repository = InMemoryLeadRepository(keep_received=False)
        repository_mode = "memory"

    local_memory = InMemoryLocalMemory(max_devices=settings.max_devices)
    api_deps = ApiDeps(
        repository=repository,
        geocoder=geocoder,
        local_memory=local_memory,
        settings=settings,
        sessions=SessionRegistry(idle_ttl_ms=settings.session_ttl_ms, max_sessions=settings.max_sessions),
    )

    async def on_startup() -> None:
        for hook in startup_hooks:
            await hook()

    async def on_shutdown() -> None:
        for hook in shutdown_hooks:
            await hook()

    return RuntimeContainer(
        repository=repository,
        repository_mode=repository_mode,
        geocoder=geocoder,
        local_memory=local_memory,
        settings=settings,
        api_deps=api_deps,
        on_startup=on_startup,
        on_shutdown=on_shutdown,
    )
