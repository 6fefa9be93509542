"""Scheduling API endpoints: technicians, schedules and auto-assignment."""

import uuid
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dern_support.api.dependencies import get_current_actor, get_scheduling_service
from dern_support.core.models import ScheduleStatus, UserType
from dern_support.core.schemas import (
    AssignmentRead,
    AutoAssignRequest,
    Pagination,
    ScheduleRead,
    SchedulePage,
    TechnicianRead,
)
from dern_support.scheduling.models import (
    Actor,
    PageParams,
    ScheduleCreate,
    ScheduleFilters,
    ScheduleUpdate,
)
from dern_support.scheduling.service import SchedulingService

router = APIRouter()


# ---------------------------------------------------------------------------
# Technicians
# ---------------------------------------------------------------------------

@router.get("/technicians", response_model=list[TechnicianRead])
async def list_technicians(
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> list[TechnicianRead]:
    technicians = await service.list_technicians(actor)
    return [TechnicianRead.model_validate(t) for t in technicians]


@router.get("/technicians/available", response_model=list[TechnicianRead])
async def available_technicians(
    start: datetime = Query(..., description="Window start (ISO 8601)"),
    end: datetime = Query(..., description="Window end (ISO 8601)"),
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> list[TechnicianRead]:
    """Technicians with no schedule intersecting ``[start, end)``."""
    actor.require(UserType.admin)
    technicians = await service.find_available(start, end)
    return [TechnicianRead.model_validate(t) for t in technicians]


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------

@router.get("/schedule", response_model=SchedulePage)
async def list_schedules(
    technician_id: Optional[uuid.UUID] = Query(None),
    support_request_id: Optional[uuid.UUID] = Query(None),
    status: Optional[ScheduleStatus] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> SchedulePage:
    """Paginated schedules; technicians only see their own."""
    filters = ScheduleFilters(
        technician_id=technician_id,
        support_request_id=support_request_id,
        status=status,
        start=start,
        end=end,
    )
    params = PageParams(page=page, limit=limit or service.settings.default_page_size)
    listing = await service.list_all(filters, actor, params)
    return SchedulePage(
        schedules=[ScheduleRead.model_validate(s) for s in listing.items],
        pagination=Pagination(
            total=listing.total,
            page=listing.page,
            limit=listing.limit,
            pages=listing.pages,
        ),
    )


@router.post("/schedule/auto-assign", response_model=ScheduleRead, status_code=201)
async def auto_assign(
    body: AutoAssignRequest,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ScheduleRead:
    """Book the first available technician for a support request."""
    schedule = await service.auto_assign(
        body.support_request_id,
        body.preferred_start,
        actor,
        duration_hours=body.duration_hours,
    )
    return ScheduleRead.model_validate(schedule)


@router.get("/schedule/{schedule_id}", response_model=ScheduleRead)
async def get_schedule(
    schedule_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ScheduleRead:
    schedule = await service.get_by_id(schedule_id, actor)
    return ScheduleRead.model_validate(schedule)


@router.post("/schedule", response_model=ScheduleRead, status_code=201)
async def create_schedule(
    body: ScheduleCreate,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ScheduleRead:
    """Book a technician. Overlaps answer 400 with the conflicting schedules."""
    schedule = await service.create(body, actor)
    return ScheduleRead.model_validate(schedule)


@router.put("/schedule/{schedule_id}", response_model=ScheduleRead)
async def update_schedule(
    schedule_id: uuid.UUID,
    body: ScheduleUpdate,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ScheduleRead:
    schedule = await service.update(schedule_id, body, actor)
    return ScheduleRead.model_validate(schedule)


@router.delete("/schedule/{schedule_id}")
async def delete_schedule(
    schedule_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> dict:
    deleted = await service.delete(schedule_id, actor)
    return {"message": "Schedule deleted successfully", "id": str(deleted.id)}


# ---------------------------------------------------------------------------
# Technician view
# ---------------------------------------------------------------------------

@router.get("/technician/assignments", response_model=list[AssignmentRead])
async def my_assignments(
    status: Optional[ScheduleStatus] = Query(None),
    day: Optional[date] = Query(None, alias="date"),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
) -> list[AssignmentRead]:
    """The calling technician's assignments with request and customer details."""
    actor.require(UserType.technician)
    filters = ScheduleFilters(status=status, day=day, start=start, end=end)
    schedules = await service.list_for_technician(actor.id, filters, actor)
    return [AssignmentRead.model_validate(s) for s in schedules]
