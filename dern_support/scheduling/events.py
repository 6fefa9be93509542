"""Schedule domain events and their best-effort dispatch."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dern_support.core.models import Schedule

logger = logging.getLogger(__name__)


class ScheduleEventType(str, Enum):
    """Types of schedule events."""

    CREATED = "schedule.created"
    UPDATED = "schedule.updated"
    COMPLETED = "schedule.completed"
    CANCELLED = "schedule.cancelled"
    DELETED = "schedule.deleted"


class ScheduleEvent(BaseModel):
    """A change to one schedule, as seen by downstream handlers."""

    event_type: ScheduleEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    schedule_id: uuid.UUID
    technician_id: uuid.UUID
    previous_technician_id: Optional[uuid.UUID] = None
    support_request_id: Optional[uuid.UUID] = None
    actor_id: uuid.UUID
    scheduled_start: datetime
    scheduled_end: datetime
    status: str
    previous_status: Optional[str] = None

    @classmethod
    def from_schedule(
        cls,
        event_type: ScheduleEventType,
        schedule: Schedule,
        actor_id: uuid.UUID,
        previous_status: Optional[str] = None,
        previous_technician_id: Optional[uuid.UUID] = None,
    ) -> "ScheduleEvent":
        return cls(
            event_type=event_type,
            schedule_id=schedule.id,
            technician_id=schedule.technician_id,
            previous_technician_id=previous_technician_id,
            support_request_id=schedule.support_request_id,
            actor_id=actor_id,
            scheduled_start=schedule.scheduled_start,
            scheduled_end=schedule.scheduled_end,
            status=schedule.status,
            previous_status=previous_status,
        )

    @property
    def technician_changed(self) -> bool:
        return (
            self.previous_technician_id is not None
            and self.previous_technician_id != self.technician_id
        )


EventHandler = Callable[[ScheduleEvent], Awaitable[None]]


class EventDispatcher:
    """Runs registered handlers for each event, in registration order.

    Handlers run after the schedule write is committed. Each handler's work
    is committed on its own; a failing handler is logged and rolled back and
    the remaining handlers still run.
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        self.session = session
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    async def dispatch(self, *events: ScheduleEvent) -> int:
        """Deliver *events*; returns the number of handler failures."""
        failures = 0
        for event in events:
            for handler in self._handlers:
                try:
                    await handler(event)
                    if self.session is not None:
                        await self.session.commit()
                except Exception as e:
                    failures += 1
                    logger.error(
                        f"Handler {getattr(handler, '__qualname__', handler)!s} failed "
                        f"for {event.event_type.value} schedule={event.schedule_id}: {e}"
                    )
                    if self.session is not None:
                        await self.session.rollback()
        return failures
