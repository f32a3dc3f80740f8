from fastapi import APIRouter, Depends, Query
from models.auth import User
from models.notification import NotificationAction
from core.auth import get_current_user
from controllers import notification_controller

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def get_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_user),
):
    return await notification_controller.get_notifications(current_user.id, unread_only, limit)


@router.post("")
async def notification_action(data: NotificationAction, current_user: User = Depends(get_current_user)):
    return await notification_controller.apply_action(current_user.id, data)


@router.post("/read-all")
async def mark_all_read(current_user: User = Depends(get_current_user)):
    return await notification_controller.mark_all_read(current_user.id)
