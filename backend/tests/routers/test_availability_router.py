from datetime import date, datetime, timezone
from typing import AsyncIterator, Iterator

import pytest
from fakes import DummySession, FakeBlockedDateRepo, FakeReservationRepo, FakeResourceRepo
from httpx import ASGITransport, AsyncClient
from slotkeeper.deps import get_clock, get_session
from slotkeeper.main import app
from slotkeeper.models import ResourceKind
from slotkeeper.routers import availability as router
from slotkeeper.utils.time import Clock

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def repos(monkeypatch: pytest.MonkeyPatch) -> Iterator[tuple[FakeResourceRepo, FakeReservationRepo, FakeBlockedDateRepo]]:
    resources = FakeResourceRepo()
    reservations = FakeReservationRepo()
    blocked = FakeBlockedDateRepo()
    monkeypatch.setattr(router, "SqlAlchemyResourceRepository", lambda s: resources)
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: reservations)
    monkeypatch.setattr(router, "SqlAlchemyBlockedDateRepository", lambda s: blocked)

    async def override_session() -> AsyncIterator[DummySession]:
        yield DummySession()

    def override_clock() -> Clock:
        return lambda: NOW

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = override_clock
    yield resources, reservations, blocked
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health() -> None:
    async with _client() as client:
        resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_slots_endpoint(repos) -> None:
    resources, reservations, _ = repos
    resource = resources.add(ResourceKind.PROFESSIONAL, granularity=30, hours={1: ("09:00", "12:00")})
    service = resources.add_offering(resource.id, 30)
    reservations.add(resource.id, date(2030, 1, 8), "10:00", "10:30")

    async with _client() as client:
        by_offering = await client.get(
            f"/resources/{resource.id}/slots", params={"day": "2030-01-08", "offering_ids": [service.id]}
        )
        by_duration = await client.get(f"/resources/{resource.id}/slots", params={"day": "2030-01-08", "duration": 30})
        missing = await client.get(f"/resources/{resource.id}/slots", params={"day": "2030-01-08"})

    assert by_offering.status_code == 200
    assert by_offering.json()["slots"] == ["09:00", "10:30", "11:00", "11:30"]
    assert by_duration.json()["slots"] == ["09:00", "10:30", "11:00", "11:30"]
    assert missing.status_code == 400


@pytest.mark.asyncio
async def test_slots_endpoint_maps_domain_errors(repos) -> None:
    resources, _, _ = repos
    venue = resources.add(ResourceKind.VENUE)
    async with _client() as client:
        unknown = await client.get("/resources/99/slots", params={"day": "2030-01-08", "duration": 30})
        wrong_mode = await client.get(f"/resources/{venue.id}/slots", params={"day": "2030-01-08", "duration": 30})
    assert unknown.status_code == 404
    assert unknown.json()["detail"]["code"] == "resource_not_found"
    assert wrong_mode.status_code == 422
    assert wrong_mode.json()["detail"]["code"] == "booking_mode"


@pytest.mark.asyncio
async def test_dates_endpoint(repos) -> None:
    resources, reservations, blocked = repos
    venue = resources.add(ResourceKind.VENUE)
    reservations.add(venue.id, date(2030, 1, 8))
    blocked.add(venue.id, date(2030, 1, 9))
    async with _client() as client:
        resp = await client.get(f"/resources/{venue.id}/dates", params={"start": "2030-01-07", "end": "2030-01-10"})
    assert resp.status_code == 200
    assert resp.json()["days"] == ["2030-01-07", "2030-01-10"]


@pytest.mark.asyncio
async def test_resource_and_schedule_endpoints(repos) -> None:
    resources, _, _ = repos
    resource = resources.add(ResourceKind.PROFESSIONAL, hours={0: ("08:00", "12:00")})
    resources.add_offering(resource.id, 45, name="Haircut")
    resources.add_offering(resource.id, 15, name="Retired", active=False)
    async with _client() as client:
        detail = await client.get(f"/resources/{resource.id}")
        schedule = await client.get(f"/resources/{resource.id}/schedule")
    assert [o["name"] for o in detail.json()["offerings"]] == ["Haircut"]
    assert schedule.json()["days"] == [
        {"weekday": "monday", "is_open": True, "opens_at": "08:00", "closes_at": "12:00"}
    ]
