import pytest
from fakes import FakeResourceRepo
from slotkeeper.domain.errors import InvalidIntervalError, ResourceNotFoundError, ScheduleError
from slotkeeper.domain.schedule import DaySchedule
from slotkeeper.models import ResourceKind
from slotkeeper.usecases import resources as uc

WEEKDAY = DaySchedule(is_open=True, opens_at="08:00", closes_at="12:00")


@pytest.mark.asyncio
async def test_create_resource_with_schedule_and_offerings() -> None:
    repo = FakeResourceRepo()
    resource, offerings = await uc.create_resource(
        repo,
        owner_id=7,
        name="Barber Joe",
        kind=ResourceKind.PROFESSIONAL,
        slot_granularity=10,
        schedule={0: WEEKDAY},
        offerings=[("Haircut", 30, True), ("Beard", 20, True)],
    )
    assert resource.owner_id == 7
    assert [o.duration_minutes for o in offerings] == [30, 20]
    week = await uc.load_week(repo, resource)
    assert week.days[0] == WEEKDAY
    assert week.granularity == 10


@pytest.mark.asyncio
async def test_create_resource_rejects_bad_schedule() -> None:
    repo = FakeResourceRepo()
    with pytest.raises(ScheduleError):
        await uc.create_resource(
            repo,
            owner_id=7,
            name="Hall",
            kind=ResourceKind.VENUE,
            slot_granularity=10,
            schedule={0: DaySchedule(is_open=True, opens_at="12:00", closes_at="08:00")},
        )
    assert repo.resources == {}


@pytest.mark.asyncio
async def test_update_schedule_only_by_owner() -> None:
    repo = FakeResourceRepo()
    resource = repo.add(owner_id=1)
    with pytest.raises(ResourceNotFoundError):
        await uc.update_schedule(repo, resource_id=resource.id, operator_id=2, days={0: WEEKDAY}, slot_granularity=15)
    week = await uc.update_schedule(
        repo, resource_id=resource.id, operator_id=1, days={0: WEEKDAY}, slot_granularity=15, break_minutes=5
    )
    assert week.granularity == 15
    assert week.break_minutes == 5
    assert resource.slot_granularity == 15
    assert set(week.days) == {0}


@pytest.mark.asyncio
async def test_replace_offerings_deactivates_previous() -> None:
    repo = FakeResourceRepo()
    resource = repo.add(owner_id=1)
    old = repo.add_offering(resource.id, 30)
    created = await uc.replace_offerings(repo, resource_id=resource.id, operator_id=1, offerings=[("Color", 90, True)])
    assert old.is_active is False
    assert [o.duration_minutes for o in created] == [90]
    with pytest.raises(InvalidIntervalError):
        await uc.replace_offerings(repo, resource_id=resource.id, operator_id=1, offerings=[("Zero", 0, True)])


@pytest.mark.asyncio
async def test_deactivated_resource_is_hidden() -> None:
    repo = FakeResourceRepo()
    resource = repo.add(owner_id=1)
    await uc.deactivate_resource(repo, resource_id=resource.id, operator_id=1)
    with pytest.raises(ResourceNotFoundError):
        await uc.load_resource(repo, resource.id)
    assert (await uc.load_resource(repo, resource.id, require_active=False)).is_active is False
