"""Scheduling service: schedule CRUD, conflict checks and auto-assignment."""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dern_support.config import Settings, get_settings
from dern_support.core.models import Schedule, ScheduleStatus, SupportRequest, User, UserType
from dern_support.core.repository import ScheduleRepository, SupportRequestRepository, UserRepository
from dern_support.core.schemas import ScheduleRead
from dern_support.scheduling.availability import AvailabilityFinder
from dern_support.scheduling.conflicts import ConflictChecker
from dern_support.scheduling.errors import (
    AuthorizationError,
    ConflictError,
    NoAvailabilityError,
    NotFoundError,
    ValidationError,
)
from dern_support.scheduling.events import EventDispatcher, ScheduleEvent, ScheduleEventType
from dern_support.scheduling.handlers import ScheduleNotifications, SupportRequestSync
from dern_support.scheduling.locks import TechnicianLocks, technician_locks
from dern_support.scheduling.models import (
    TERMINAL_STATUSES,
    Actor,
    PageParams,
    ScheduleCreate,
    ScheduleFilters,
    ScheduleUpdate,
    as_utc,
    resolve_location,
    resolve_priority,
    validate_window,
)
from dern_support.scheduling.notifier import DatabaseNotifier, Notifier

logger = logging.getLogger(__name__)


@dataclass
class ScheduleListing:
    """One page of schedules plus the total matching count."""

    items: list[Schedule] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _day_bounds(day) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(day, time.max, tzinfo=timezone.utc)
    return start, end


class SchedulingService:
    """Creates, updates and deletes technician schedules.

    Writes for a technician are serialized through ``locks``; the conflict
    check, the write and the commit happen under the technician's lock. After
    the commit, a ScheduleEvent is dispatched to the support-request sync and
    notification handlers, whose failures never undo the schedule change.
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: Optional[Notifier] = None,
        locks: Optional[TechnicianLocks] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.locks = locks or technician_locks

        self.schedules = ScheduleRepository(session)
        self.users = UserRepository(session)
        self.requests = SupportRequestRepository(session)
        self.conflicts = ConflictChecker(session)
        self.availability = AvailabilityFinder(
            session, count_terminal=self.settings.availability_counts_terminal_schedules
        )

        self.events = EventDispatcher(session)
        self.events.subscribe(SupportRequestSync(session))
        self.events.subscribe(ScheduleNotifications(session, notifier or DatabaseNotifier(session)))

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    async def find_conflicts(
        self,
        technician_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_schedule_id: Optional[uuid.UUID] = None,
    ) -> list[Schedule]:
        return await self.conflicts.find_conflicts(technician_id, start, end, exclude_schedule_id)

    async def find_available(self, start: datetime, end: datetime) -> list[User]:
        return await self.availability.find_available(start, end)

    async def list_technicians(self, actor: Actor) -> list[User]:
        actor.require(UserType.admin, UserType.technician)
        return await self.availability.list_technicians()

    async def get_by_id(self, schedule_id: uuid.UUID, actor: Actor) -> Schedule:
        actor.require(UserType.admin, UserType.technician)
        schedule = await self._get_schedule(schedule_id)
        actor.require_view(schedule)
        return schedule

    async def list_all(
        self,
        filters: ScheduleFilters,
        actor: Actor,
        page: Optional[PageParams] = None,
    ) -> ScheduleListing:
        """Filtered, paginated schedules ordered by start; technicians see only their own."""
        actor.require(UserType.admin, UserType.technician)
        page = page or PageParams(limit=self.settings.default_page_size)
        page = PageParams(page=page.page, limit=min(page.limit, self.settings.max_page_size))
        items, total = await self.schedules.search(
            technician_id=actor.visible_technician_id() or filters.technician_id,
            support_request_id=filters.support_request_id,
            status=filters.status.value if filters.status else None,
            **self._filter_range(filters),
            offset=page.offset,
            limit=page.limit,
        )
        return ScheduleListing(items=list(items), total=total, page=page.page, limit=page.limit)

    async def list_for_technician(
        self,
        technician_id: uuid.UUID,
        filters: ScheduleFilters,
        actor: Actor,
    ) -> list[Schedule]:
        """A technician's assignments with the support request and customer loaded."""
        actor.require(UserType.admin, UserType.technician)
        if actor.is_technician and technician_id != actor.id:
            raise AuthorizationError("You can only view your own assignments")
        items, _ = await self.schedules.search(
            technician_id=technician_id,
            status=filters.status.value if filters.status else None,
            **self._filter_range(filters),
            with_customer=True,
        )
        return list(items)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, data: ScheduleCreate, actor: Actor) -> Schedule:
        """Book a technician; raises ConflictError if the window is taken."""
        actor.require(UserType.admin)
        start, end = validate_window(data.scheduled_start, data.scheduled_end)
        await self._require_technician(data.technician_id)
        request = await self._get_request(data.support_request_id)
        status = ScheduleStatus(data.status).value

        async with self.locks.hold(data.technician_id):
            if status not in TERMINAL_STATUSES:
                await self._reject_conflicts(data.technician_id, start, end)

            schedule = await self.schedules.create(
                technician_id=data.technician_id,
                support_request_id=data.support_request_id,
                created_by_id=actor.id,
                scheduled_start=start,
                scheduled_end=end,
                status=status,
                notes=data.notes,
                priority=resolve_priority(data.priority, request),
                location=resolve_location(data.location, request),
            )
            await self.session.commit()

        logger.info(
            f"Schedule {schedule.id} created: technician={data.technician_id} "
            f"{start.isoformat()}..{end.isoformat()} by={actor.id}"
        )
        await self.events.dispatch(
            ScheduleEvent.from_schedule(ScheduleEventType.CREATED, schedule, actor.id)
        )
        await self.session.refresh(schedule)
        return schedule

    async def update(
        self, schedule_id: uuid.UUID, patch: ScheduleUpdate, actor: Actor
    ) -> Schedule:
        """Apply *patch* within the actor's editable fields.

        Re-checks conflicts when the window or technician moves, or when a
        completed/cancelled schedule becomes active again.
        """
        schedule = await self._get_schedule(schedule_id)
        changes = patch.changes()
        forbidden = set(changes) - actor.editable_schedule_fields(schedule)
        if forbidden:
            raise AuthorizationError(
                f"Not allowed to change: {', '.join(sorted(forbidden))}"
            )

        if "technician_id" in changes:
            await self._require_technician(changes["technician_id"])
        if "support_request_id" in changes:
            await self._get_request(changes["support_request_id"])
        values = self._column_values(changes)

        while True:
            held = schedule.technician_id
            async with self.locks.hold(held, changes.get("technician_id", held)):
                # Another writer may have changed the row before the lock was ours.
                schedule = await self.schedules.get_by_id(schedule_id, refresh=True)
                if schedule is None:
                    raise NotFoundError("Schedule not found")
                if schedule.technician_id != held:
                    continue
                actor.editable_schedule_fields(schedule)

                previous_status = schedule.status
                previous_technician = schedule.technician_id
                technician_id = changes.get("technician_id", previous_technician)
                current_start, current_end = as_utc(schedule.scheduled_start), as_utc(schedule.scheduled_end)
                start, end = validate_window(
                    changes.get("scheduled_start", current_start),
                    changes.get("scheduled_end", current_end),
                )
                status = ScheduleStatus(changes["status"]).value if "status" in changes else previous_status

                moved = (start, end) != (current_start, current_end) or technician_id != previous_technician
                reactivated = previous_status in TERMINAL_STATUSES and status not in TERMINAL_STATUSES
                if "scheduled_start" in changes or "scheduled_end" in changes:
                    values["scheduled_start"], values["scheduled_end"] = start, end

                if (moved or reactivated) and status not in TERMINAL_STATUSES:
                    await self._reject_conflicts(technician_id, start, end, exclude=schedule.id)
                schedule = await self.schedules.update(schedule.id, **values)
                await self.session.commit()
                break

        logger.info(
            f"Schedule {schedule.id} updated by={actor.id} fields={sorted(values)} "
            f"status={previous_status}->{status}"
        )

        events = [
            ScheduleEvent.from_schedule(
                ScheduleEventType.UPDATED,
                schedule,
                actor.id,
                previous_status=previous_status,
                previous_technician_id=previous_technician,
            )
        ]
        if status != previous_status:
            if status == ScheduleStatus.completed.value:
                events.append(
                    ScheduleEvent.from_schedule(
                        ScheduleEventType.COMPLETED, schedule, actor.id, previous_status=previous_status
                    )
                )
            elif status == ScheduleStatus.cancelled.value:
                events.append(
                    ScheduleEvent.from_schedule(
                        ScheduleEventType.CANCELLED, schedule, actor.id, previous_status=previous_status
                    )
                )
        await self.events.dispatch(*events)
        await self.session.refresh(schedule)
        return schedule

    async def delete(self, schedule_id: uuid.UUID, actor: Actor) -> ScheduleRead:
        """Remove a schedule; returns a snapshot of what was deleted."""
        actor.require(UserType.admin)
        schedule = await self._get_schedule(schedule_id)
        snapshot = ScheduleRead.model_validate(schedule)
        event = ScheduleEvent.from_schedule(ScheduleEventType.DELETED, schedule, actor.id)

        async with self.locks.hold(schedule.technician_id):
            await self.schedules.delete(schedule.id)
            await self.session.commit()

        logger.info(f"Schedule {schedule_id} deleted by={actor.id}")
        await self.events.dispatch(event)
        return snapshot

    async def auto_assign(
        self,
        support_request_id: uuid.UUID,
        preferred_start: datetime,
        actor: Actor,
        duration_hours: Optional[float] = None,
    ) -> Schedule:
        """Book the first available technician for a support request.

        Greedy single pass: no load balancing or skill matching, the first
        technician in id order wins.
        """
        actor.require(UserType.admin)
        request = await self._get_request(support_request_id)
        hours = self.settings.auto_assign_duration_hours if duration_hours is None else duration_hours
        if hours <= 0:
            raise ValidationError(
                "Duration must be positive",
                errors=[{"field": "duration_hours", "message": "must be greater than 0"}],
            )

        start = as_utc(preferred_start)
        end = start + timedelta(hours=hours)
        available = await self.find_available(start, end)
        if not available:
            logger.info(f"Auto-assign for request {support_request_id}: no technician free")
            raise NoAvailabilityError("No technicians available for the requested time slot")

        technician = available[0]
        logger.info(f"Auto-assign for request {support_request_id}: picked technician={technician.id}")
        return await self.create(
            ScheduleCreate(
                technician_id=technician.id,
                support_request_id=request.id,
                scheduled_start=start,
                scheduled_end=end,
                notes=f"Support for {request.title}",
            ),
            actor,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _get_schedule(self, schedule_id: uuid.UUID) -> Schedule:
        schedule = await self.schedules.get_by_id(schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule not found")
        return schedule

    async def _get_request(self, request_id: Optional[uuid.UUID]) -> Optional[SupportRequest]:
        if request_id is None:
            return None
        request = await self.requests.get_by_id(request_id)
        if request is None:
            raise NotFoundError("Support request not found")
        return request

    async def _require_technician(self, technician_id: uuid.UUID) -> User:
        user = await self.users.get_by_id(technician_id)
        if user is None:
            raise NotFoundError("Technician not found")
        if user.user_type != UserType.technician.value:
            raise ValidationError(
                "Invalid technician",
                errors=[{"field": "technician_id", "message": "user is not a technician"}],
            )
        return user

    async def _reject_conflicts(
        self,
        technician_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude: Optional[uuid.UUID] = None,
    ) -> None:
        conflicts = await self.conflicts.find_conflicts(technician_id, start, end, exclude)
        if conflicts:
            logger.info(
                f"Conflict for technician={technician_id} {start.isoformat()}..{end.isoformat()}: "
                f"{[str(c.id) for c in conflicts]}"
            )
            raise ConflictError([ScheduleRead.model_validate(c) for c in conflicts])

    @staticmethod
    def _column_values(changes: dict) -> dict:
        values = {}
        for name, value in changes.items():
            if name in ("scheduled_start", "scheduled_end"):
                continue
            if name == "location":
                values[name] = value.model_dump(exclude_none=True)
            elif name in ("status", "priority"):
                values[name] = value.value
            else:
                values[name] = value
        return values

    @staticmethod
    def _filter_range(filters: ScheduleFilters) -> dict:
        """Search bounds for *filters*; a ``day`` matches schedules starting on it."""
        if filters.day is not None:
            return {"starts_within": _day_bounds(filters.day)}
        return {
            "start": as_utc(filters.start) if filters.start else None,
            "end": as_utc(filters.end) if filters.end else None,
        }
