"""Event handlers that keep support requests and users informed of schedule changes."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dern_support.core.models import SupportRequest, SupportRequestStatus
from dern_support.core.repository import SupportRequestRepository
from dern_support.scheduling.events import ScheduleEvent, ScheduleEventType
from dern_support.scheduling.models import CLOSED_REQUEST_STATUSES, as_utc
from dern_support.scheduling.notifier import NotificationMessage, Notifier

logger = logging.getLogger(__name__)


def _fmt(event: ScheduleEvent) -> str:
    return as_utc(event.scheduled_start).strftime("%Y-%m-%d %H:%M UTC")


class SupportRequestSync:
    """Mirrors schedule state onto the linked support request.

    The two records are not updated atomically; if this handler fails the
    schedule change stands and the request needs manual reconciliation.
    """

    def __init__(self, session: AsyncSession):
        self.requests = SupportRequestRepository(session)

    async def __call__(self, event: ScheduleEvent) -> None:
        if event.support_request_id is None:
            return
        request = await self.requests.get_by_id(event.support_request_id)
        if request is None:
            logger.warning(
                f"Schedule {event.schedule_id} links missing support request {event.support_request_id}"
            )
            return

        if event.event_type == ScheduleEventType.CREATED:
            await self._assign(request, event, action="assigned")
        elif event.event_type == ScheduleEventType.UPDATED and event.technician_changed:
            await self._assign(request, event, action="reassigned")
        elif event.event_type == ScheduleEventType.COMPLETED:
            await self._resolve(request, event)
        elif event.event_type in (ScheduleEventType.CANCELLED, ScheduleEventType.DELETED):
            await self._reopen(request, event)

    async def _assign(self, request: SupportRequest, event: ScheduleEvent, action: str) -> None:
        """Assign a new request; on reassignment move ``assigned_to`` and keep its progress."""
        is_new = request.status == SupportRequestStatus.new.value
        if action == "assigned" and not is_new:
            return
        if request.status in CLOSED_REQUEST_STATUSES:
            return

        values = {"assigned_to_id": event.technician_id}
        if is_new:
            values["status"] = SupportRequestStatus.assigned.value
        await self.requests.update(request.id, **values)
        await self.requests.add_history(
            request.id,
            action,
            performed_by_id=event.actor_id,
            details={
                "message": "Request assigned to technician",
                "technician_id": str(event.technician_id),
                "schedule_id": str(event.schedule_id),
            },
        )

    async def _resolve(self, request: SupportRequest, event: ScheduleEvent) -> None:
        if request.status == SupportRequestStatus.resolved.value:
            return
        await self.requests.update(request.id, status=SupportRequestStatus.resolved.value)
        await self.requests.add_history(
            request.id,
            "resolved",
            performed_by_id=event.actor_id,
            details={"message": "Support request resolved", "schedule_id": str(event.schedule_id)},
        )

    async def _reopen(self, request: SupportRequest, event: ScheduleEvent) -> None:
        if request.status in CLOSED_REQUEST_STATUSES:
            return
        await self.requests.update(
            request.id,
            status=SupportRequestStatus.new.value,
            assigned_to_id=None,
        )
        await self.requests.add_history(
            request.id,
            "reopened",
            performed_by_id=event.actor_id,
            details={"message": "Scheduled appointment cancelled", "schedule_id": str(event.schedule_id)},
        )


class ScheduleNotifications:
    """Tells technicians and customers about schedule changes."""

    def __init__(self, session: AsyncSession, notifier: Notifier):
        self.requests = SupportRequestRepository(session)
        self.notifier = notifier

    async def __call__(self, event: ScheduleEvent) -> None:
        request: Optional[SupportRequest] = None
        if event.support_request_id is not None:
            request = await self.requests.get_by_id(event.support_request_id)

        for message in self._messages(event, request):
            try:
                await self.notifier.notify(message)
            except Exception as e:
                logger.warning(
                    f"Notification '{message.title}' to user={message.user_id} failed: {e}"
                )

    def _messages(
        self, event: ScheduleEvent, request: Optional[SupportRequest]
    ) -> list[NotificationMessage]:
        when = _fmt(event)
        schedule_ref = {"related_model": "Schedule", "related_id": str(event.schedule_id)}
        messages: list[NotificationMessage] = []

        def to_customer(title: str, text: str) -> None:
            if request is None:
                return
            messages.append(
                NotificationMessage(
                    user_id=request.user_id,
                    title=title,
                    message=text,
                    type="support_request",
                    related_model="SupportRequest",
                    related_id=str(request.id),
                )
            )

        if event.event_type == ScheduleEventType.CREATED:
            messages.append(
                NotificationMessage(
                    user_id=event.technician_id,
                    title="New Schedule Assignment",
                    message=f"You have been scheduled for an appointment on {when}",
                    **schedule_ref,
                )
            )
            to_customer(
                "Support Request Scheduled",
                f"Your support request has been scheduled for {when}",
            )
        elif event.event_type == ScheduleEventType.UPDATED:
            if event.technician_changed:
                messages.append(
                    NotificationMessage(
                        user_id=event.previous_technician_id,
                        title="Schedule Cancelled",
                        message=f"Your appointment on {when} has been reassigned",
                        **schedule_ref,
                    )
                )
                messages.append(
                    NotificationMessage(
                        user_id=event.technician_id,
                        title="New Schedule Assignment",
                        message=f"You have been scheduled for an appointment on {when}",
                        **schedule_ref,
                    )
                )
            else:
                messages.append(
                    NotificationMessage(
                        user_id=event.technician_id,
                        title="Schedule Updated",
                        message=f"Your appointment on {when} has been updated",
                        **schedule_ref,
                    )
                )
        elif event.event_type == ScheduleEventType.COMPLETED:
            to_customer(
                "Support Request Resolved",
                "The scheduled appointment for your support request has been completed",
            )
        elif event.event_type in (ScheduleEventType.CANCELLED, ScheduleEventType.DELETED):
            messages.append(
                NotificationMessage(
                    user_id=event.technician_id,
                    title="Schedule Cancelled",
                    message=f"Your appointment on {when} has been cancelled",
                    **schedule_ref,
                )
            )
            if request is not None and request.status not in CLOSED_REQUEST_STATUSES:
                to_customer(
                    "Schedule Cancelled",
                    "The scheduled appointment for your support request has been cancelled",
                )
        return messages
