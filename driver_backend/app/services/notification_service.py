"""
Notification Service.

Handles creation and state management of in-app notifications and the
device push tokens they are delivered to.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, update, delete
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional, Dict, Any, List

from driver_backend.app.core.clock import utcnow
from driver_backend.app.domain.ports import StoreError
from driver_backend.app.models.enums import AppScope
from driver_backend.app.models.notification import Notification, PushToken

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        user_id: int,
        app_type: str,
        notification_type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Create a single notification row. Caller commits."""
        notif = Notification(
            user_id=user_id,
            app_type=app_type,
            notification_type=notification_type,
            title=title,
            body=body,
            data=data or {},
        )
        db.add(notif)
        await db.flush()
        return notif

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        app_type: str = AppScope.DRIVER.value,
        limit: int = 50
    ) -> List[Notification]:
        """Most recent notifications first."""
        query = select(Notification).where(
            Notification.user_id == user_id,
            Notification.app_type == app_type
        ).order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(read=True)
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int, app_type: str = AppScope.DRIVER.value) -> int:
        """Mark all unread notifications for user as read."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.app_type == app_type,
            Notification.read == False  # noqa: E712
        ).values(read=True)
        result = await db.execute(stmt)
        return result.rowcount

    @staticmethod
    async def delete_notification(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        stmt = delete(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def upsert_push_token(
        db: AsyncSession,
        user_id: int,
        push_token: str,
        platform: str,
        app_type: str = AppScope.DRIVER.value
    ) -> PushToken:
        """One token per user/app/platform; re-registering replaces it."""
        result = await db.execute(
            select(PushToken).where(
                PushToken.user_id == user_id,
                PushToken.app_type == app_type,
                PushToken.platform == platform
            )
        )
        token = result.scalar_one_or_none()
        if token is None:
            token = PushToken(user_id=user_id, app_type=app_type, platform=platform, push_token=push_token)
            db.add(token)
        else:
            token.push_token = push_token
            token.updated_at = utcnow()
        await db.flush()
        return token


class StoreNotificationSender:
    """
    Writes notification rows for the trip notifier.

    Opens a session per send: notifications run in background tasks after
    the request that triggered them has finished.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def notify(
        self,
        target_user_id: Any,
        app_scope: str,
        notification_type: str,
        title: str,
        body: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            async with self._session_factory() as session:
                await NotificationService.create_notification(
                    session,
                    user_id=target_user_id,
                    app_type=app_scope,
                    notification_type=notification_type,
                    title=title,
                    body=body,
                    data=payload,
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to store notification for user {target_user_id}: {exc}") from exc

        logger.debug("Notification %s stored for user %s (%s)", notification_type, target_user_id, app_scope)
