"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from greenquest.config import get_settings
from greenquest.database import get_session
from greenquest.db.models import User
from greenquest.notifications import Notifier
from greenquest.redis_client import get_redis


async def get_current_user(
    x_user_id: int | None = Header(default=None),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the caller from the X-User-Id header set by the upstream gateway.

    Raises 401 when the header is missing and 403 for unknown or inactive users.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    user = await db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=403, detail="Unknown or inactive user")
    return user


def get_notifier() -> Notifier:
    """Notifier bound to the shared Redis pool."""
    return Notifier(get_redis(), get_settings().notification_channel)
