from datetime import date, datetime, timedelta, timezone
from typing import Any

import pytest
from fakes import FakeReservationRepo, RecordingNotifier
from slotkeeper.models import ReservationStatus
from slotkeeper.usecases import sweep as uc

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)
DAY = date(2030, 1, 8)


def _repo() -> FakeReservationRepo:
    repo = FakeReservationRepo()
    past = NOW.replace(tzinfo=None) - timedelta(minutes=5)
    repo.add(1, DAY, "09:00", "09:30", status=ReservationStatus.PENDING, expires_at=past)
    repo.add(1, DAY, "10:00", "10:30", status=ReservationStatus.PENDING, expires_at=past)
    repo.add(1, DAY, "11:00", "11:30", status=ReservationStatus.PENDING, expires_at=past + timedelta(hours=1))
    repo.add(1, DAY, "12:00", "12:30", status=ReservationStatus.CONFIRMED)
    return repo


@pytest.fixture
def audit_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(uc, "emit_audit_log", lambda **kwargs: calls.append(kwargs))
    return calls


@pytest.mark.asyncio
async def test_sweep_notifies_each_lapsed_hold_once(audit_calls: list[dict[str, Any]]) -> None:
    repo = _repo()
    notifier = RecordingNotifier()

    first = await uc.sweep_expired(repo, notifier, now=NOW)
    second = await uc.sweep_expired(repo, notifier, now=NOW + timedelta(minutes=1))

    assert [r.id for r in first] == [1, 2]
    assert second == []
    assert notifier.expired == [1, 2]
    assert all(repo.rows[i].expiry_notice_sent for i in (1, 2))
    assert repo.rows[1].status == ReservationStatus.PENDING
    assert [c["action"] for c in audit_calls] == ["reservation.expired", "reservation.expired"]
    assert audit_calls[0]["initiator"] == "system"


@pytest.mark.asyncio
async def test_failed_notice_is_retried_next_pass(audit_calls: list[dict[str, Any]]) -> None:
    repo = _repo()
    flaky = RecordingNotifier(fail_for=[2])

    notified = await uc.sweep_expired(repo, flaky, now=NOW)
    assert [r.id for r in notified] == [1]
    assert repo.rows[2].expiry_notice_sent is False

    recovered = RecordingNotifier()
    notified = await uc.sweep_expired(repo, recovered, now=NOW)
    assert [r.id for r in notified] == [2]
    assert recovered.expired == [2]


@pytest.mark.asyncio
async def test_audit_failure_keeps_notice_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    repo = _repo()
    notifier = RecordingNotifier()
    calls: list[int] = []

    def flaky_emit(**kwargs: Any) -> None:
        calls.append(kwargs["reservation_id"])
        if len(calls) == 2:
            raise RuntimeError("audit sink down")

    monkeypatch.setattr(uc, "emit_audit_log", flaky_emit)
    notified = await uc.sweep_expired(repo, notifier, now=NOW)

    assert [r.id for r in notified] == [1, 2]
    assert notifier.expired == [1, 2]
    assert repo.rows[1].expiry_notice_sent and repo.rows[2].expiry_notice_sent
    assert await uc.sweep_expired(repo, notifier, now=NOW) == []
    assert notifier.expired == [1, 2]
