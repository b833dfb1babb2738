import json
from datetime import date
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_change_feed, get_clock, get_session
from ..domain.errors import DomainError
from ..infrastructure.change_feed import ChangeFeed
from ..infrastructure.repositories import (
    SqlAlchemyBlockedDateRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyResourceRepository,
)
from ..schemas import ResourceRead, ScheduleRead, SelectableDays, SlotAvailability
from ..usecases import availability as availability_usecase
from ..usecases import resources as resource_usecase
from ..utils.retry import retry_read
from ..utils.time import Clock
from .errors import to_http

router = APIRouter(prefix="/resources", tags=["availability"])


@router.get("/{resource_id}", response_model=ResourceRead)
async def get_resource(
    resource_id: int,
    session: AsyncSession = Depends(get_session),
) -> ResourceRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    try:
        resource = await resource_usecase.load_resource(resource_repo, resource_id)
    except DomainError as exc:
        raise to_http(exc) from exc
    offerings = [o for o in await resource_repo.list_offerings(resource.id) if o.is_active]
    return ResourceRead.from_db(resource=resource, offerings=offerings)


@router.get("/{resource_id}/schedule", response_model=ScheduleRead)
async def get_schedule(
    resource_id: int,
    session: AsyncSession = Depends(get_session),
) -> ScheduleRead:
    resource_repo = SqlAlchemyResourceRepository(session)
    try:
        resource = await resource_usecase.load_resource(resource_repo, resource_id)
    except DomainError as exc:
        raise to_http(exc) from exc
    return ScheduleRead.from_domain(await resource_usecase.load_week(resource_repo, resource))


@router.get("/{resource_id}/slots", response_model=SlotAvailability)
async def list_available_slots(
    resource_id: int,
    day: date = Query(..., description="Calendar day (YYYY-MM-DD) on the resource's wall clock"),
    duration: Optional[int] = Query(default=None, ge=1, le=24 * 60),
    offering_ids: Optional[List[int]] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> SlotAvailability:
    if duration is None and not offering_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="duration or offering_ids required")
    resource_repo = SqlAlchemyResourceRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    blocked_repo = SqlAlchemyBlockedDateRepository(session)

    async def read() -> list[str]:
        return await availability_usecase.list_available_slots(
            resource_repo,
            res_repo,
            blocked_repo,
            resource_id=resource_id,
            day=day,
            now=clock(),
            duration=duration,
            offering_ids=offering_ids,
            default_buffer=settings.default_min_service_minutes,
        )

    try:
        slots = await retry_read(read, attempts=settings.read_retry_attempts, on_retry=session.rollback)
    except DomainError as exc:
        raise to_http(exc) from exc
    return SlotAvailability(
        resource_id=resource_id,
        day=day,
        duration_minutes=duration if not offering_ids else None,
        slots=slots,
    )


@router.get("/{resource_id}/dates", response_model=SelectableDays)
async def list_selectable_days(
    resource_id: int,
    start: date = Query(...),
    end: date = Query(...),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> SelectableDays:
    resource_repo = SqlAlchemyResourceRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    blocked_repo = SqlAlchemyBlockedDateRepository(session)

    async def read() -> list[date]:
        return await availability_usecase.list_selectable_days(
            resource_repo,
            res_repo,
            blocked_repo,
            resource_id=resource_id,
            start=start,
            end=end,
            now=clock(),
        )

    try:
        days = await retry_read(read, attempts=settings.read_retry_attempts, on_retry=session.rollback)
    except DomainError as exc:
        raise to_http(exc) from exc
    return SelectableDays(resource_id=resource_id, start=start, end=end, days=days)


@router.get("/{resource_id}/changes")
async def stream_changes(
    resource_id: int,
    request: Request,
    feed: ChangeFeed = Depends(get_change_feed),
) -> StreamingResponse:
    async def events() -> AsyncIterator[str]:
        yield ": subscribed\n\n"
        async for event in feed.subscribe(resource_id):
            if await request.is_disconnected():
                break
            yield f"event: {event.kind}\ndata: {json.dumps(event.as_dict())}\n\n"

    return StreamingResponse(events(), media_type="text/event-stream")
