"""
Notification API Endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from driver_backend.app.db.session import get_db
from driver_backend.app.models.enums import AppScope
from driver_backend.app.core.dependencies import get_current_user
from driver_backend.app.services.notification_service import NotificationService
from driver_backend.app.schemas.notification import (
    NotificationListResponse, NotificationResponse, PushTokenRequest, PushTokenResponse
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    app_type: AppScope = Query(AppScope.DRIVER),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List current user's notifications, newest first."""
    notifications = await NotificationService.list_for_user(
        db, current_user["user_id"], app_type=app_type.value, limit=limit
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=sum(1 for n in notifications if not n.read)
    )


@router.patch("/read-all")
async def mark_all_notifications_read(
    app_type: AppScope = Query(AppScope.DRIVER),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark all notifications as read."""
    count = await NotificationService.mark_all_read(db, current_user["user_id"], app_type=app_type.value)
    await db.commit()
    return {"status": "success", "count": count}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int = Path(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read."""
    success = await NotificationService.mark_read(db, notification_id, current_user["user_id"])
    if not success:
        raise HTTPException(status_code=404, detail="Notification not found")

    await db.commit()
    return {"status": "success"}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int = Path(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    success = await NotificationService.delete_notification(db, notification_id, current_user["user_id"])
    if not success:
        raise HTTPException(status_code=404, detail="Notification not found")

    await db.commit()
    return {"status": "success"}


@router.put("/push-token", response_model=PushTokenResponse)
async def register_push_token(
    payload: PushTokenRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Register or replace this device's push token."""
    token = await NotificationService.upsert_push_token(
        db,
        user_id=current_user["user_id"],
        push_token=payload.push_token,
        platform=payload.platform,
        app_type=payload.app_type
    )
    await db.commit()
    await db.refresh(token)
    return PushTokenResponse.model_validate(token)
