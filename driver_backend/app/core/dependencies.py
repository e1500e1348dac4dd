"""
FastAPI dependencies.

Authentication for protected routes, plus providers that wire the trip core
to its database, change feed and notification adapters.
"""

import asyncio
from typing import Set

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select

from driver_backend.app.core.jwt import decode_access_token
from driver_backend.app.db.session import get_db, get_session_factory
from driver_backend.app.domain.trips.controller import TripPhaseController
from driver_backend.app.domain.trips.events import TripEventDispatcher
from driver_backend.app.domain.trips.notifier import TripNotifier
from driver_backend.app.models.user import User
from driver_backend.app.services.change_feed import get_change_feed
from driver_backend.app.services.dispatch_service import DispatchService
from driver_backend.app.services.notification_service import StoreNotificationSender
from driver_backend.app.services.record_store import SqlAlchemyRecordStore

# HTTP Bearer security scheme
security = HTTPBearer()

# Background notification tasks from every request's dispatcher.
trip_event_tasks: Set[asyncio.Task] = set()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    1. Validates JWT token signature and expiry
    2. Verifies user still exists and is active (real-time check)

    Returns:
        Decoded token payload containing user information

    Raises:
        HTTPException: 401 if authentication fails, 403 if the account is inactive
    """
    token = credentials.credentials

    payload = decode_access_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("user_id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return payload


def get_record_store(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> SqlAlchemyRecordStore:
    return SqlAlchemyRecordStore(session_factory, get_change_feed())


def get_notification_sender(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> StoreNotificationSender:
    return StoreNotificationSender(session_factory)


def get_event_dispatcher(
    store: SqlAlchemyRecordStore = Depends(get_record_store),
    sender: StoreNotificationSender = Depends(get_notification_sender),
) -> TripEventDispatcher:
    return TripEventDispatcher([TripNotifier(store, sender)], pending=trip_event_tasks)


def get_trip_controller(
    store: SqlAlchemyRecordStore = Depends(get_record_store),
    events: TripEventDispatcher = Depends(get_event_dispatcher),
) -> TripPhaseController:
    return TripPhaseController(store, events)


def get_dispatch_service(
    store: SqlAlchemyRecordStore = Depends(get_record_store),
    sender: StoreNotificationSender = Depends(get_notification_sender),
) -> DispatchService:
    return DispatchService(store, sender)


async def drain_trip_events() -> None:
    """Wait for in-flight trip notifications (shutdown, tests)."""
    await TripEventDispatcher(pending=trip_event_tasks).drain()
