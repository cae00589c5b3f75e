"""Shared FastAPI dependencies: database session, caller identity, access state."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.db import session_scope
from workforce_api.features.access.session import AccessSession
from workforce_api.features.realtime.capture import install_change_capture
from workforce_api.features.realtime.feed import ChangeFeed
from workforce_api.settings import Settings

USER_ID_HEADER = "X-User-Id"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_change_feed(request: Request) -> ChangeFeed:
    return request.app.state.change_feed


async def get_session(
    feed: Annotated[ChangeFeed, Depends(get_change_feed)],
) -> AsyncIterator[AsyncSession]:
    """One session per request; committed changes are published to the change feed."""
    async with session_scope() as session:
        install_change_capture(session, feed)
        yield session


def get_caller_id(
    x_user_id: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None,
) -> UUID:
    """Caller identity as asserted by the upstream auth gateway."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{USER_ID_HEADER} header is required",
        )
    try:
        return UUID(x_user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{USER_ID_HEADER} must be a UUID",
        ) from exc


SessionDep = Annotated[AsyncSession, Depends(get_session)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
CallerDep = Annotated[UUID, Depends(get_caller_id)]


async def get_access(
    session: SessionDep,
    settings: SettingsDep,
    feed: Annotated[ChangeFeed, Depends(get_change_feed)],
    caller_id: CallerDep,
) -> AsyncIterator[AccessSession]:
    access = AccessSession(session=session, settings=settings, feed=feed)
    try:
        await access.init(caller_id)
        yield access
    finally:
        access.dispose()


AccessDep = Annotated[AccessSession, Depends(get_access)]

__all__ = [
    "AccessDep",
    "CallerDep",
    "SessionDep",
    "SettingsDep",
    "USER_ID_HEADER",
    "get_access",
    "get_caller_id",
    "get_session",
]
