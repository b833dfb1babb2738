from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from ..domain.errors import ResourceClosedError
from ..domain.repositories import BlockedDateRepository, ResourceRepository
from ..models import BlockedDate
from ..utils.time import local_today
from .resources import load_resource, require_owner


async def list_blocked_dates(
    resource_repo: ResourceRepository,
    blocked_repo: BlockedDateRepository,
    *,
    resource_id: int,
    operator_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[BlockedDate]:
    resource = await load_resource(resource_repo, resource_id, require_active=False)
    require_owner(resource, operator_id)
    return await blocked_repo.list_for_resource(resource.id, start, end)


async def block_date(
    resource_repo: ResourceRepository,
    blocked_repo: BlockedDateRepository,
    *,
    resource_id: int,
    operator_id: int,
    day: date,
    now: datetime,
    reason: Optional[str] = None,
) -> BlockedDate:
    """
    Existing reservations on the day are left alone; blocking only stops new
    admissions. A duplicate block surfaces as the store's IntegrityError.
    """
    resource = await load_resource(resource_repo, resource_id, for_update=True, require_active=False)
    require_owner(resource, operator_id)
    if day < local_today(now):
        raise ResourceClosedError("cannot block a day in the past")
    return await blocked_repo.create(resource.id, day, reason)


async def unblock_date(
    resource_repo: ResourceRepository,
    blocked_repo: BlockedDateRepository,
    *,
    resource_id: int,
    operator_id: int,
    day: date,
) -> bool:
    resource = await load_resource(resource_repo, resource_id, for_update=True, require_active=False)
    require_owner(resource, operator_id)
    return await blocked_repo.delete(resource.id, day)
