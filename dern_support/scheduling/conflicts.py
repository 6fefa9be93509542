"""Conflict detection between a requested window and existing bookings."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dern_support.core.models import Schedule
from dern_support.core.repository import ScheduleRepository
from dern_support.scheduling.models import TERMINAL_STATUSES, as_utc, validate_window


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open interval intersection: touching windows (end == start) do not overlap."""
    return a_start < b_end and b_start < a_end


class ConflictChecker:
    """Finds a technician's bookings that would collide with a window."""

    def __init__(self, session: AsyncSession):
        self.schedules = ScheduleRepository(session)

    async def find_conflicts(
        self,
        technician_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_schedule_id: Optional[uuid.UUID] = None,
    ) -> list[Schedule]:
        """Return non-terminal schedules of *technician_id* overlapping ``[start, end)``.

        An empty list means the window is free. *exclude_schedule_id* keeps a
        schedule being moved from conflicting with itself.
        """
        start, end = validate_window(start, end)
        conflicts = await self.schedules.find_overlapping(
            start,
            end,
            technician_id=technician_id,
            exclude_statuses=TERMINAL_STATUSES,
            exclude_id=exclude_schedule_id,
        )
        # SQLite compares stored timestamps as text; re-check the window on aware values.
        return [
            s for s in conflicts
            if intervals_overlap(as_utc(s.scheduled_start), as_utc(s.scheduled_end), start, end)
        ]
