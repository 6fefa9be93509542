"""Pydantic schemas for API I/O."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Users ---

class TechnicianRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str
    company: Optional[str] = None
    phone: Optional[str] = None


# --- Support request ---

class SupportRequestSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: str
    request_type: str
    priority: str
    status: str
    customer: Optional[CustomerRead] = None


# --- Schedule ---

class ScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    technician_id: uuid.UUID
    support_request_id: Optional[uuid.UUID] = None
    created_by_id: uuid.UUID
    scheduled_start: datetime
    scheduled_end: datetime
    status: str
    notes: Optional[str] = None
    priority: str
    location: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssignmentRead(ScheduleRead):
    support_request: Optional[SupportRequestSummary] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class SchedulePage(BaseModel):
    schedules: list[ScheduleRead] = Field(default_factory=list)
    pagination: Pagination


class AutoAssignRequest(BaseModel):
    support_request_id: uuid.UUID
    preferred_start: datetime
    duration_hours: Optional[float] = Field(default=None, gt=0)


# --- Notifications ---

class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    message: str
    type: str
    related_model: Optional[str] = None
    related_id: Optional[str] = None
    is_read: bool
    created_at: datetime
