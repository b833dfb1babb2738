from datetime import date, datetime, timedelta, timezone
from typing import AsyncIterator, Iterator

import pytest
from fakes import DummySession, FakeReservationRepo, FakeResourceRepo
from httpx import ASGITransport, AsyncClient
from slotkeeper.config import get_settings
from slotkeeper.deps import get_clock, get_session
from slotkeeper.main import app
from slotkeeper.models import ReservationStatus, ResourceKind
from slotkeeper.routers import reservations as router
from slotkeeper.utils.auth import create_operator_token, create_payment_token
from slotkeeper.utils.time import Clock

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def hold(monkeypatch: pytest.MonkeyPatch) -> Iterator[FakeReservationRepo]:
    resources = FakeResourceRepo()
    reservations = FakeReservationRepo()
    resource = resources.add(ResourceKind.PROFESSIONAL, hours={1: ("09:00", "12:00")})
    reservations.add(
        resource.id,
        date(2030, 1, 8),
        "10:00",
        "10:30",
        status=ReservationStatus.PENDING,
        expires_at=NOW.replace(tzinfo=None) + timedelta(minutes=30),
    )
    monkeypatch.setattr(router, "SqlAlchemyResourceRepository", lambda s: resources)
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: reservations)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: None)

    async def override_session() -> AsyncIterator[DummySession]:
        yield DummySession()

    def override_clock() -> Clock:
        return lambda: NOW

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = override_clock
    yield reservations
    app.dependency_overrides.clear()


async def _post(headers: dict[str, str]) -> tuple[int, dict]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post(
            "/reservations/1/payment",
            json={"payment_reference": "pay_1", "status": "paid"},
            headers=headers,
        )
    return resp.status_code, resp.json()


@pytest.mark.asyncio
async def test_anonymous_payment_event_is_rejected(hold: FakeReservationRepo) -> None:
    status_code, _ = await _post({})
    assert status_code == 401
    assert hold.rows[1].status == ReservationStatus.PENDING
    assert hold.rows[1].payment_reference is None


@pytest.mark.asyncio
async def test_operator_token_cannot_report_payments(hold: FakeReservationRepo) -> None:
    token = create_operator_token(operator_id=1, secret=get_settings().auth_secret)
    status_code, _ = await _post({"Authorization": f"Bearer {token}"})
    assert status_code == 401
    assert hold.rows[1].status == ReservationStatus.PENDING


@pytest.mark.asyncio
async def test_signed_payment_event_confirms(hold: FakeReservationRepo) -> None:
    token = create_payment_token(provider="acme-pay", secret=get_settings().payment_secret)
    status_code, body = await _post({"Authorization": f"Bearer {token}"})
    assert status_code == 200
    assert body["status"] == "confirmed"
    assert hold.rows[1].payment_reference == "pay_1"
