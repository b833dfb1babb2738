from __future__ import annotations

from typing import Optional, Sequence

from ..domain.errors import InvalidIntervalError, ResourceNotFoundError
from ..domain.repositories import ResourceRepository
from ..domain.schedule import DaySchedule, WeeklySchedule, build_week
from ..models import Offering, Resource, ResourceKind


async def load_resource(
    resource_repo: ResourceRepository,
    resource_id: int,
    *,
    for_update: bool = False,
    require_active: bool = True,
) -> Resource:
    if for_update:
        resource = await resource_repo.get_for_update(resource_id)
    else:
        resource = await resource_repo.get(resource_id)
    if resource is None or (require_active and not resource.is_active):
        raise ResourceNotFoundError("resource not found")
    return resource


def require_owner(resource: Resource, operator_id: int) -> None:
    # Foreign resources look exactly like missing ones.
    if resource.owner_id != operator_id:
        raise ResourceNotFoundError("resource not found")


async def load_week(resource_repo: ResourceRepository, resource: Resource) -> WeeklySchedule:
    rows = await resource_repo.list_schedule(resource.id)
    return build_week(rows, granularity=resource.slot_granularity, break_minutes=resource.break_minutes)


async def create_resource(
    resource_repo: ResourceRepository,
    *,
    owner_id: int,
    name: str,
    kind: ResourceKind,
    slot_granularity: int,
    break_minutes: int = 0,
    auto_confirm: bool = False,
    schedule: Optional[dict[int, DaySchedule]] = None,
    offerings: Sequence[tuple[str, int, bool]] = (),
) -> tuple[Resource, list[Offering]]:
    WeeklySchedule(days=schedule or {}, granularity=slot_granularity, break_minutes=break_minutes).validate()
    resource = await resource_repo.create(
        owner_id=owner_id,
        name=name,
        kind=kind,
        slot_granularity=slot_granularity,
        break_minutes=break_minutes,
        auto_confirm=auto_confirm,
    )
    if schedule:
        await resource_repo.replace_schedule(resource.id, schedule)
    created: list[Offering] = []
    if offerings:
        created = await resource_repo.replace_offerings(resource.id, offerings)
    return resource, created


async def update_schedule(
    resource_repo: ResourceRepository,
    *,
    resource_id: int,
    operator_id: int,
    days: dict[int, DaySchedule],
    slot_granularity: int,
    break_minutes: int = 0,
) -> WeeklySchedule:
    resource = await load_resource(resource_repo, resource_id, for_update=True, require_active=False)
    require_owner(resource, operator_id)
    week = WeeklySchedule(days=days, granularity=slot_granularity, break_minutes=break_minutes)
    week.validate()
    resource.slot_granularity = slot_granularity
    resource.break_minutes = break_minutes
    await resource_repo.save(resource)
    await resource_repo.replace_schedule(resource.id, days)
    return await load_week(resource_repo, resource)


async def replace_offerings(
    resource_repo: ResourceRepository,
    *,
    resource_id: int,
    operator_id: int,
    offerings: Sequence[tuple[str, int, bool]],
) -> list[Offering]:
    resource = await load_resource(resource_repo, resource_id, for_update=True, require_active=False)
    require_owner(resource, operator_id)
    for name, duration, _ in offerings:
        if duration <= 0:
            raise InvalidIntervalError(f"offering {name!r} must have a positive duration")
    return await resource_repo.replace_offerings(resource.id, offerings)


async def deactivate_resource(
    resource_repo: ResourceRepository,
    *,
    resource_id: int,
    operator_id: int,
) -> Resource:
    resource = await load_resource(resource_repo, resource_id, for_update=True, require_active=False)
    require_owner(resource, operator_id)
    if resource.is_active:
        resource.is_active = False
        await resource_repo.save(resource)
    return resource
