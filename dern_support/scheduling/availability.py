"""Technician availability lookup."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from dern_support.core.models import User
from dern_support.core.repository import ScheduleRepository, UserRepository
from dern_support.scheduling.models import TERMINAL_STATUSES, validate_window

logger = logging.getLogger(__name__)


class AvailabilityFinder:
    """Lists technicians with no booking intersecting a window.

    By default every schedule counts as busy, completed and cancelled ones
    included, which is stricter than ConflictChecker. Pass
    ``count_terminal=False`` to apply the conflict checker's rule instead.
    """

    def __init__(self, session: AsyncSession, count_terminal: bool = True):
        self.users = UserRepository(session)
        self.schedules = ScheduleRepository(session)
        self.count_terminal = count_terminal

    async def list_technicians(self) -> list[User]:
        return list(await self.users.list_technicians())

    async def find_available(self, start: datetime, end: datetime) -> list[User]:
        """Active technicians free for ``[start, end)``, in id order.

        The order carries no preference; callers taking the first entry get an
        arbitrary, non-load-balanced pick.
        """
        start, end = validate_window(start, end)
        technicians = await self.users.list_technicians()
        busy = await self.schedules.busy_technician_ids(
            start,
            end,
            exclude_statuses=() if self.count_terminal else TERMINAL_STATUSES,
        )
        available = [tech for tech in technicians if tech.id not in busy]
        logger.debug(
            f"Availability {start.isoformat()}..{end.isoformat()}: "
            f"{len(available)}/{len(technicians)} technicians free"
        )
        return available
