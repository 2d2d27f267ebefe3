import asyncio
from dataclasses import dataclass, field

import pytest

from quoteflow.clients.device_location import ReportedFixLocator
from quoteflow.clients.local_memory import InMemoryLocalMemory
from quoteflow.clients.stub import StubDeviceLocator, StubGeocoder
from quoteflow.domain.error_taxonomy import DEFAULT_MESSAGES, GENERIC_PERSISTENCE_MESSAGE
from quoteflow.domain.errors import IllegalTransitionError, SubmissionInProgressError
from quoteflow.domain.guards import RATE_LIMIT_STORAGE_KEY
from quoteflow.domain.models import (
    Coordinates,
    DisplayState,
    FormField,
    GpsFix,
    LocationSource,
    LocationStatus,
    PersistenceResult,
    SubmissionRecord,
)
from quoteflow.repositories.stub import InMemoryLeadRepository
from quoteflow.settings import FormSettings
from tests.unit.form_fixtures import START_MS, FakeClock, build_controller, fill_roof_repair


@dataclass
class RejectingRepository:
    reason: str | None = "Database is read-only."
    received: list[SubmissionRecord] = field(default_factory=list)

    async def submit(self, record: SubmissionRecord) -> PersistenceResult:
        self.received.append(record)
        return PersistenceResult.reject(self.reason or "")


@dataclass
class ExplodingRepository:
    calls: int = 0

    async def submit(self, record: SubmissionRecord) -> PersistenceResult:
        self.calls += 1
        raise ConnectionResetError("socket closed")


@dataclass
class SlowRepository:
    inner: InMemoryLeadRepository = field(default_factory=InMemoryLeadRepository)

    async def submit(self, record: SubmissionRecord) -> PersistenceResult:
        await asyncio.sleep(0.01)
        return await self.inner.submit(record)


@dataclass
class HangingLocator:
    async def locate(self) -> GpsFix:
        await asyncio.sleep(10)
        raise AssertionError("unreachable")


@pytest.mark.unit
def test_roof_repair_scenario_is_persisted_without_coordinates() -> None:
    repository = InMemoryLeadRepository()
    controller = build_controller(repository=repository)
    fill_roof_repair(controller)

    outcome = asyncio.run(controller.submit())

    assert outcome.state is DisplayState.SUCCESS
    assert controller.state is DisplayState.SUCCESS
    assert controller.message == ""
    [record] = repository.received
    assert record.latitude is None and record.longitude is None
    assert record.address is None and record.phone is None
    assert record.status.value == "new"
    assert outcome.lead is not None and outcome.lead.lead_id in repository.leads


@pytest.mark.unit
def test_second_submit_within_window_is_rate_limited() -> None:
    clock = FakeClock()
    repository = InMemoryLeadRepository()
    controller = build_controller(repository=repository, clock=clock)
    fill_roof_repair(controller)
    asyncio.run(controller.submit())

    controller.return_to_form()
    fill_roof_repair(controller)
    clock.advance(3_500)
    outcome = asyncio.run(controller.submit())

    assert outcome.state is DisplayState.ERROR
    assert outcome.error_code == "rate_limited"
    assert outcome.retry_after_seconds == 7
    assert "7 seconds" in outcome.message
    assert len(repository.received) == 1


@pytest.mark.unit
def test_rate_limit_is_per_device_not_per_business() -> None:
    clock = FakeClock()
    store = InMemoryLocalMemory()
    first = build_controller(memory=store.for_device("phone"), clock=clock)
    other_business = build_controller(
        business_id="9b7e6a50-1c2d-5e3f-a4b5-c6d7e8f90a1b",
        memory=store.for_device("phone"),
        clock=clock,
    )
    other_device = build_controller(memory=store.for_device("laptop"), clock=clock)
    for controller in (first, other_business, other_device):
        fill_roof_repair(controller)

    assert asyncio.run(first.submit()).state is DisplayState.SUCCESS
    assert asyncio.run(other_business.submit()).error_code == "rate_limited"
    assert asyncio.run(other_device.submit()).state is DisplayState.SUCCESS


@pytest.mark.unit
def test_submit_after_window_is_accepted_again() -> None:
    clock = FakeClock()
    controller = build_controller(clock=clock)
    fill_roof_repair(controller)
    asyncio.run(controller.submit())
    controller.return_to_form()
    fill_roof_repair(controller)

    clock.advance(10_000)

    assert asyncio.run(controller.submit()).state is DisplayState.SUCCESS


@pytest.mark.unit
def test_honeypot_rejects_before_validation_and_never_persists() -> None:
    repository = InMemoryLeadRepository()
    controller = build_controller(repository=repository)
    controller.update_field(FormField.HONEYPOT, "x")

    outcome = asyncio.run(controller.submit())

    assert outcome.state is DisplayState.ERROR
    assert outcome.error_code == "abuse_suspected"
    assert outcome.field_errors == {}
    assert "honey" not in outcome.message.lower()
    assert repository.received == []


@pytest.mark.unit
def test_honeypot_rejects_even_a_valid_draft() -> None:
    repository = InMemoryLeadRepository()
    controller = build_controller(repository=repository)
    fill_roof_repair(controller)
    controller.update_field(FormField.HONEYPOT, "http://spam.example")

    assert asyncio.run(controller.submit()).error_code == "abuse_suspected"
    assert repository.received == []


@pytest.mark.unit
def test_invalid_draft_stays_editing_and_exposes_all_errors() -> None:
    repository = InMemoryLeadRepository()
    controller = build_controller(repository=repository)
    controller.update_field(FormField.TITLE, "Roof repair")
    assert controller.visible_field_errors == {}
    assert controller.can_submit is False

    outcome = asyncio.run(controller.submit())

    assert outcome.state is DisplayState.EDITING
    assert outcome.error_code == "validation_failed"
    assert controller.message == ""
    assert set(outcome.field_errors) == {"description", "contact_name"}
    assert set(controller.visible_field_errors) == {FormField.DESCRIPTION, FormField.CONTACT_NAME}
    assert repository.received == []


@pytest.mark.unit
def test_email_flag_controls_requirement_and_persisted_value() -> None:
    repository = InMemoryLeadRepository()
    controller = build_controller(repository=repository, settings=FormSettings(require_email=True))
    fill_roof_repair(controller)

    assert asyncio.run(controller.submit()).field_errors == {"contact_email": "Email is required."}

    controller.update_field(FormField.CONTACT_EMAIL, "  anna@example.fi ")
    assert asyncio.run(controller.submit()).state is DisplayState.SUCCESS
    assert repository.received[0].contact_email == "anna@example.fi"

    without_email = InMemoryLeadRepository()
    plain = build_controller(repository=without_email)
    fill_roof_repair(plain)
    plain.update_field(FormField.CONTACT_EMAIL, "anna@example.fi")
    asyncio.run(plain.submit())
    assert without_email.received[0].contact_email is None


@pytest.mark.unit
def test_invalid_business_id_blocks_with_distinct_error() -> None:
    repository = InMemoryLeadRepository()
    controller = build_controller(business_id="acme-roofing", repository=repository)
    fill_roof_repair(controller)
    assert controller.can_submit is False

    outcome = asyncio.run(controller.submit())

    assert outcome.state is DisplayState.ERROR
    assert outcome.error_code == "invalid_business_identifier"
    assert outcome.message == DEFAULT_MESSAGES["invalid_business_identifier"]
    assert repository.received == []


@pytest.mark.unit
def test_business_id_check_can_be_disabled() -> None:
    controller = build_controller(
        business_id="acme-roofing",
        settings=FormSettings(require_email=False, validate_business_id=False),
    )
    fill_roof_repair(controller)

    assert asyncio.run(controller.submit()).state is DisplayState.SUCCESS


@pytest.mark.unit
def test_record_holds_trimmed_values_from_submit_time() -> None:
    repository = SlowRepository()
    geocoder = StubGeocoder(known={"Katu 1, 90100 Oulu": Coordinates(lat=65.01, lng=25.47)})
    controller = build_controller(repository=repository, geocoder=geocoder)
    controller.update_field(FormField.TITLE, "  Roof repair ")
    controller.update_field(FormField.DESCRIPTION, "Leak near chimney\n")
    controller.update_field(FormField.CONTACT_NAME, " Anna")
    controller.update_field(FormField.PHONE, " 040 123 4567 ")
    controller.update_field(FormField.ADDRESS, " Katu 1, 90100 Oulu ")

    async def _run() -> None:
        task = asyncio.create_task(controller.submit())
        await asyncio.sleep(0)
        controller.draft.title = "Changed afterwards"
        await task

    asyncio.run(_run())

    [record] = repository.inner.received
    assert record.title == "Roof repair"
    assert record.description == "Leak near chimney"
    assert record.contact_name == "Anna"
    assert record.phone == "040 123 4567"
    assert record.address == "Katu 1, 90100 Oulu"
    assert (record.latitude, record.longitude) == (65.01, 25.47)
    assert geocoder.calls == ["Katu 1, 90100 Oulu"]


@pytest.mark.unit
def test_geocoder_failure_still_reaches_persistence_with_null_coordinates() -> None:
    repository = InMemoryLeadRepository()
    geocoder = StubGeocoder()
    controller = build_controller(repository=repository, geocoder=geocoder)
    fill_roof_repair(controller, address="Unknown street 404")

    outcome = asyncio.run(controller.submit())

    assert outcome.state is DisplayState.SUCCESS
    assert outcome.location is not None and outcome.location.source is LocationSource.NONE
    assert repository.received[0].latitude is None
    assert geocoder.calls == ["Unknown street 404"]


@pytest.mark.unit
def test_gps_fix_is_used_over_city_and_address() -> None:
    clock = FakeClock()
    repository = InMemoryLeadRepository()
    geocoder = StubGeocoder(known={"Katu 1": Coordinates(lat=1.0, lng=1.0)})
    controller = build_controller(repository=repository, geocoder=geocoder, clock=clock)
    fill_roof_repair(controller, address="Katu 1")
    locator = StubDeviceLocator(fix=GpsFix(lat=61.4981, lng=23.7608, captured_at_ms=clock() - 5_000))

    assert asyncio.run(controller.request_gps(locator)) is LocationStatus.GRANTED
    outcome = asyncio.run(controller.submit())

    assert outcome.location is not None and outcome.location.source is LocationSource.GPS
    assert (repository.received[0].latitude, repository.received[0].longitude) == (61.4981, 23.7608)
    assert geocoder.calls == []


@pytest.mark.unit
def test_denied_gps_falls_back_to_city_pick() -> None:
    repository = InMemoryLeadRepository()
    controller = build_controller(repository=repository)
    fill_roof_repair(controller, address="Katu 1")

    status = asyncio.run(controller.request_gps(StubDeviceLocator(fix=None)))
    assert status is LocationStatus.ERROR
    controller.select_city("Kuopio")
    outcome = asyncio.run(controller.submit())

    assert outcome.location is not None and outcome.location.city_name == "Kuopio"
    assert repository.received[0].latitude == pytest.approx(62.8924)


@pytest.mark.unit
def test_gps_request_times_out_into_error() -> None:
    controller = build_controller(settings=FormSettings(require_email=False, gps_timeout_ms=10))

    status = asyncio.run(controller.request_gps(HangingLocator()))

    assert status is LocationStatus.ERROR


@pytest.mark.unit
def test_stale_reported_fix_is_rejected() -> None:
    clock = FakeClock()
    controller = build_controller(clock=clock)
    stale = GpsFix(lat=60.0, lng=24.0, captured_at_ms=START_MS - 60_001)

    status = asyncio.run(controller.request_gps(ReportedFixLocator(fix=stale)))

    assert status is LocationStatus.ERROR
    assert controller.location.fix is None


@pytest.mark.unit
def test_reported_fix_from_the_future_is_rejected() -> None:
    clock = FakeClock()
    controller = build_controller(clock=clock)
    future = GpsFix(lat=60.0, lng=24.0, captured_at_ms=START_MS + 3_600_000)

    status = asyncio.run(controller.request_gps(ReportedFixLocator(fix=future)))

    assert status is LocationStatus.ERROR
    assert controller.location.fix is None

@pytest.mark.unit
def test_rejection_preserves_draft_and_does_not_arm_rate_limit() -> None:
    store = InMemoryLocalMemory()
    repository = RejectingRepository()
    controller = build_controller(repository=repository, memory=store.for_device("d"))
    fill_roof_repair(controller)

    outcome = asyncio.run(controller.submit())

    assert outcome.state is DisplayState.ERROR
    assert outcome.error_code == "persistence_failed"
    assert outcome.message == "Database is read-only."
    assert store.read(device_id="d", key=RATE_LIMIT_STORAGE_KEY) is None

    controller.return_to_form()
    assert controller.state is DisplayState.EDITING
    assert controller.draft.title == "Roof repair"
    asyncio.run(controller.submit())
    assert len(repository.received) == 2


@pytest.mark.unit
def test_blank_rejection_reason_falls_back_to_generic_message() -> None:
    controller = build_controller(repository=RejectingRepository(reason="  "))
    fill_roof_repair(controller)

    outcome = asyncio.run(controller.submit())

    assert outcome.message == GENERIC_PERSISTENCE_MESSAGE


@pytest.mark.unit
def test_unexpected_repository_exception_becomes_persistence_failure() -> None:
    repository = ExplodingRepository()
    controller = build_controller(repository=repository)
    fill_roof_repair(controller)

    outcome = asyncio.run(controller.submit())

    assert repository.calls == 1
    assert outcome.state is DisplayState.ERROR
    assert outcome.error_code == "persistence_failed"
    assert outcome.message == DEFAULT_MESSAGES["unexpected_failure"]


@pytest.mark.unit
def test_success_then_return_starts_fresh_draft() -> None:
    controller = build_controller()
    fill_roof_repair(controller)
    controller.decline_gps()
    controller.select_city("Oulu")
    asyncio.run(controller.submit())

    controller.return_to_form()

    assert controller.state is DisplayState.EDITING
    assert controller.draft.title == ""
    assert controller.submit_attempted is False
    assert controller.location.status is LocationStatus.IDLE
    assert controller.location.selected_city is None


@pytest.mark.unit
def test_second_concurrent_submit_is_refused() -> None:
    controller = build_controller(repository=SlowRepository())
    fill_roof_repair(controller)

    async def _run() -> None:
        first = asyncio.create_task(controller.submit())
        await asyncio.sleep(0)
        assert controller.state is DisplayState.SUBMITTING
        assert controller.can_submit is False
        with pytest.raises(SubmissionInProgressError):
            await controller.submit()
        await first

    asyncio.run(_run())
    assert controller.state is DisplayState.SUCCESS


@pytest.mark.unit
def test_fields_are_read_only_outside_editing() -> None:
    controller = build_controller()
    fill_roof_repair(controller)
    asyncio.run(controller.submit())

    with pytest.raises(IllegalTransitionError):
        controller.update_field(FormField.TITLE, "Another")
    with pytest.raises(IllegalTransitionError):
        asyncio.run(controller.submit())
