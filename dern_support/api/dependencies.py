"""FastAPI dependencies: current actor and scheduling service."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dern_support.core.auth import ACCESS_COOKIE, decode_token
from dern_support.core.database import get_db
from dern_support.core.models import UserType
from dern_support.core.repository import UserRepository
from dern_support.scheduling.models import Actor
from dern_support.scheduling.service import SchedulingService


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


async def get_current_actor(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Resolve the authenticated user.

    The access token is read from the ``dern_access`` cookie, falling back to
    an ``Authorization: Bearer`` header. The token subject must name an active
    user.
    """
    token = request.cookies.get(ACCESS_COOKIE) or _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    claims = decode_token(token)
    if not claims or claims.get("type") != "access" or not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = uuid.UUID(claims["sub"])
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = await UserRepository(db).get_by_id(user_id)
    if user is None or not user.active:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return Actor(id=user.id, role=UserType(user.user_type))


async def get_scheduling_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SchedulingService:
    """Scheduling service bound to the request session and the app's lock registry."""
    locks = getattr(request.app.state, "technician_locks", None)
    return SchedulingService(db, locks=locks)
