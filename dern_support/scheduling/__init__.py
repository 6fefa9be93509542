"""Technician scheduling for Dern Support."""

from dern_support.scheduling.availability import AvailabilityFinder
from dern_support.scheduling.conflicts import ConflictChecker, intervals_overlap
from dern_support.scheduling.errors import (
    AuthorizationError,
    ConflictError,
    NoAvailabilityError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from dern_support.scheduling.events import EventDispatcher, ScheduleEvent, ScheduleEventType
from dern_support.scheduling.locks import TechnicianLocks
from dern_support.scheduling.models import (
    Actor,
    Location,
    PageParams,
    ScheduleCreate,
    ScheduleFilters,
    ScheduleUpdate,
)
from dern_support.scheduling.notifier import DatabaseNotifier, NotificationMessage, Notifier
from dern_support.scheduling.service import ScheduleListing, SchedulingService

__all__ = [
    "Actor",
    "AuthorizationError",
    "AvailabilityFinder",
    "ConflictChecker",
    "ConflictError",
    "DatabaseNotifier",
    "EventDispatcher",
    "Location",
    "NoAvailabilityError",
    "NotFoundError",
    "NotificationMessage",
    "Notifier",
    "PageParams",
    "ScheduleCreate",
    "ScheduleEvent",
    "ScheduleEventType",
    "ScheduleFilters",
    "ScheduleListing",
    "ScheduleUpdate",
    "SchedulingError",
    "SchedulingService",
    "TechnicianLocks",
    "ValidationError",
    "intervals_overlap",
]
