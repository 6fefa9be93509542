"""CRUD repositories for the support and scheduling models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dern_support.core.models import (
    Notification,
    Schedule,
    SupportRequest,
    SupportRequestHistory,
    User,
    UserType,
)


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> User:
        user = User(**kwargs)
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def list_technicians(self, active_only: bool = True) -> Sequence[User]:
        stmt = select(User).where(User.user_type == UserType.technician.value)
        if active_only:
            stmt = stmt.where(User.active.is_(True))
        stmt = stmt.order_by(User.id)
        result = await self.session.execute(stmt)
        return result.scalars().all()


class SupportRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> SupportRequest:
        req = SupportRequest(**kwargs)
        self.session.add(req)
        await self.session.flush()
        return req

    async def get_by_id(self, request_id: uuid.UUID) -> Optional[SupportRequest]:
        return await self.session.get(SupportRequest, request_id)

    async def update(self, request_id: uuid.UUID, **kwargs) -> Optional[SupportRequest]:
        """Set the given fields; ``None`` values are written as-is (clears)."""
        req = await self.get_by_id(request_id)
        if not req:
            return None
        for k, v in kwargs.items():
            setattr(req, k, v)
        req.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return req

    async def add_history(
        self,
        request_id: uuid.UUID,
        action: str,
        performed_by_id: Optional[uuid.UUID] = None,
        details: Optional[dict] = None,
    ) -> SupportRequestHistory:
        entry = SupportRequestHistory(
            support_request_id=request_id,
            action=action,
            performed_by_id=performed_by_id,
            details=details,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_history(self, request_id: uuid.UUID) -> Sequence[SupportRequestHistory]:
        stmt = (
            select(SupportRequestHistory)
            .where(SupportRequestHistory.support_request_id == request_id)
            .order_by(SupportRequestHistory.timestamp)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class ScheduleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Schedule:
        schedule = Schedule(**kwargs)
        self.session.add(schedule)
        await self.session.flush()
        return schedule

    async def get_by_id(self, schedule_id: uuid.UUID, refresh: bool = False) -> Optional[Schedule]:
        return await self.session.get(Schedule, schedule_id, populate_existing=refresh)

    async def update(self, schedule_id: uuid.UUID, **kwargs) -> Optional[Schedule]:
        schedule = await self.get_by_id(schedule_id)
        if not schedule:
            return None
        for k, v in kwargs.items():
            setattr(schedule, k, v)
        schedule.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return schedule

    async def delete(self, schedule_id: uuid.UUID) -> bool:
        schedule = await self.get_by_id(schedule_id)
        if not schedule:
            return False
        await self.session.delete(schedule)
        await self.session.flush()
        return True

    async def find_overlapping(
        self,
        start: datetime,
        end: datetime,
        technician_id: Optional[uuid.UUID] = None,
        exclude_statuses: Iterable[str] = (),
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Sequence[Schedule]:
        """Schedules whose ``[scheduled_start, scheduled_end)`` intersects ``[start, end)``."""
        stmt = select(Schedule).where(
            Schedule.scheduled_start < end,
            Schedule.scheduled_end > start,
        )
        if technician_id is not None:
            stmt = stmt.where(Schedule.technician_id == technician_id)
        statuses = list(exclude_statuses)
        if statuses:
            stmt = stmt.where(Schedule.status.not_in(statuses))
        if exclude_id is not None:
            stmt = stmt.where(Schedule.id != exclude_id)
        stmt = stmt.order_by(Schedule.scheduled_start)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def busy_technician_ids(
        self,
        start: datetime,
        end: datetime,
        exclude_statuses: Iterable[str] = (),
    ) -> set[uuid.UUID]:
        stmt = select(Schedule.technician_id).where(
            Schedule.scheduled_start < end,
            Schedule.scheduled_end > start,
        )
        statuses = list(exclude_statuses)
        if statuses:
            stmt = stmt.where(Schedule.status.not_in(statuses))
        result = await self.session.execute(stmt.distinct())
        return set(result.scalars().all())

    async def search(
        self,
        technician_id: Optional[uuid.UUID] = None,
        support_request_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        starts_within: Optional[tuple[datetime, datetime]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
        with_customer: bool = False,
    ) -> tuple[Sequence[Schedule], int]:
        """Filtered schedules ordered by start, plus the unpaginated total.

        With both *start* and *end* the range matches by interval overlap;
        with only one bound it matches schedules on that side of it.
        *starts_within* keeps schedules whose start falls inside the bounds.
        """
        conditions = []
        if technician_id is not None:
            conditions.append(Schedule.technician_id == technician_id)
        if support_request_id is not None:
            conditions.append(Schedule.support_request_id == support_request_id)
        if status is not None:
            conditions.append(Schedule.status == status)
        if start is not None and end is not None:
            conditions.append(Schedule.scheduled_start <= end)
            conditions.append(Schedule.scheduled_end >= start)
        elif start is not None:
            conditions.append(Schedule.scheduled_start >= start)
        elif end is not None:
            conditions.append(Schedule.scheduled_end <= end)
        if starts_within is not None:
            conditions.append(Schedule.scheduled_start.between(*starts_within))

        count_stmt = select(func.count()).select_from(Schedule).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = select(Schedule).where(*conditions).order_by(Schedule.scheduled_start)
        if with_customer:
            stmt = stmt.options(
                selectinload(Schedule.support_request).selectinload(SupportRequest.customer)
            ).execution_options(populate_existing=True)
        stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all(), total


class NotificationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Notification:
        notification = Notification(**kwargs)
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def list_for_user(
        self, user_id: uuid.UUID, unread_only: bool = False, limit: int = 50
    ) -> Sequence[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Notification]:
        notification = await self.session.get(Notification, notification_id)
        if not notification or notification.user_id != user_id:
            return None
        notification.is_read = True
        await self.session.flush()
        return notification

    async def unread_count(self, user_id: uuid.UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return (await self.session.execute(stmt)).scalar_one()
