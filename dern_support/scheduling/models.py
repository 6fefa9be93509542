"""Pydantic models and value objects for the scheduling service."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field

from dern_support.core.models import Priority, ScheduleStatus, SupportRequestStatus, UserType
from dern_support.scheduling.errors import AuthorizationError, ValidationError

if TYPE_CHECKING:
    from dern_support.core.models import Schedule, SupportRequest


# Statuses after which a schedule no longer blocks its technician's time.
TERMINAL_STATUSES: frozenset[str] = frozenset(
    {ScheduleStatus.completed.value, ScheduleStatus.cancelled.value}
)

# Support request statuses that a schedule change must not reopen or reassign.
CLOSED_REQUEST_STATUSES: frozenset[str] = frozenset(
    {SupportRequestStatus.resolved.value, SupportRequestStatus.closed.value}
)

SCHEDULE_FIELDS: frozenset[str] = frozenset(
    {
        "technician_id",
        "support_request_id",
        "scheduled_start",
        "scheduled_end",
        "status",
        "notes",
        "priority",
        "location",
    }
)
TECHNICIAN_FIELDS: frozenset[str] = frozenset({"status", "notes"})


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_window(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """Normalize a booking window to UTC and require ``start < end``."""
    start, end = as_utc(start), as_utc(end)
    if start >= end:
        raise ValidationError(
            "Scheduled start must be before scheduled end",
            errors=[{"field": "scheduled_end", "message": "must be after scheduled_start"}],
        )
    return start, end


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class Location(BaseModel):
    """Structured service address."""

    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class Actor(BaseModel):
    """The authenticated user performing an operation.

    Every service call receives an actor and asks it what it may do, instead
    of branching on user types at each call site.
    """

    id: uuid.UUID
    role: UserType

    @property
    def is_admin(self) -> bool:
        return self.role == UserType.admin

    @property
    def is_technician(self) -> bool:
        return self.role == UserType.technician

    def require(self, *roles: UserType) -> None:
        """Raise AuthorizationError unless the actor holds one of *roles*."""
        if self.role not in roles:
            raise AuthorizationError("Access denied")

    def owns(self, schedule: Schedule) -> bool:
        return schedule.technician_id == self.id

    def require_view(self, schedule: Schedule) -> None:
        if self.is_admin:
            return
        if self.is_technician and self.owns(schedule):
            return
        raise AuthorizationError("You can only view your own schedules")

    def editable_schedule_fields(self, schedule: Schedule) -> frozenset[str]:
        """Fields of *schedule* this actor may change."""
        if self.is_admin:
            return SCHEDULE_FIELDS
        if self.is_technician:
            if not self.owns(schedule):
                raise AuthorizationError("You can only update your own schedules")
            return TECHNICIAN_FIELDS
        raise AuthorizationError("Access denied")

    def visible_technician_id(self) -> Optional[uuid.UUID]:
        """Technicians only ever list their own schedules."""
        return self.id if self.is_technician else None


class ScheduleCreate(BaseModel):
    """Input for creating a schedule entry."""

    technician_id: uuid.UUID
    support_request_id: Optional[uuid.UUID] = None
    scheduled_start: datetime
    scheduled_end: datetime
    status: ScheduleStatus = ScheduleStatus.scheduled
    notes: Optional[str] = None
    priority: Optional[Priority] = None
    location: Optional[Location] = None


class ScheduleUpdate(BaseModel):
    """Partial update; only explicitly provided fields are applied."""

    technician_id: Optional[uuid.UUID] = None
    support_request_id: Optional[uuid.UUID] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    status: Optional[ScheduleStatus] = None
    notes: Optional[str] = None
    priority: Optional[Priority] = None
    location: Optional[Location] = None

    def changes(self) -> dict:
        """Provided fields with non-null values."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }


class ScheduleFilters(BaseModel):
    technician_id: Optional[uuid.UUID] = None
    support_request_id: Optional[uuid.UUID] = None
    status: Optional[ScheduleStatus] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    day: Optional[date] = None


class PageParams(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def resolve_priority(
    explicit: Optional[Priority], support_request: Optional[SupportRequest]
) -> str:
    """Explicit priority, else the linked request's, else medium."""
    if explicit is not None:
        return Priority(explicit).value
    if support_request is not None and support_request.priority:
        return support_request.priority
    return Priority.medium.value


def resolve_location(
    explicit: Optional[Location], support_request: Optional[SupportRequest]
) -> Optional[dict]:
    """Explicit location, else the linked request's, else none."""
    if explicit is not None:
        return explicit.model_dump(exclude_none=True)
    if support_request is not None and support_request.location:
        return dict(support_request.location)
    return None
