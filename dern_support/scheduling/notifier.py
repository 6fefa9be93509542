"""Notification sink used by the scheduling service."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dern_support.core.repository import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationMessage(BaseModel):
    """A message addressed to one user."""

    user_id: uuid.UUID
    title: str
    message: str
    type: str = "scheduling"
    related_model: Optional[str] = None
    related_id: Optional[str] = None


class Notifier(ABC):
    """Abstract base class for notification sinks."""

    @abstractmethod
    async def notify(self, notification: NotificationMessage) -> None:
        """Deliver a notification."""
        pass


class DatabaseNotifier(Notifier):
    """Stores notifications for users to read in-app."""

    def __init__(self, session: AsyncSession):
        self.notifications = NotificationRepository(session)

    async def notify(self, notification: NotificationMessage) -> None:
        await self.notifications.create(**notification.model_dump())
        logger.debug(f"Notification '{notification.title}' queued for user={notification.user_id}")
