import logging
from fastapi import HTTPException
from typing import Optional
from datetime import datetime, timezone

from database import db
from models.auth import User
from models.efiling import EfilingNotification

logger = logging.getLogger(__name__)

# action -> flag set on the notification
ACTIONS = {
    "read": "is_read",
    "dismiss": "is_dismissed",
    "archive": "is_archived",
}


async def create_notification(efiling_user_id: str, type: str, title: str, message: str,
                              file_id: Optional[str] = None, priority: str = "normal",
                              action_required: bool = False):
    """Insert an e-filing notification; failures are logged and never propagate."""
    if not efiling_user_id:
        return
    try:
        await db.efiling_notifications.insert_one(EfilingNotification(
            efiling_user_id=efiling_user_id, file_id=file_id, type=type, title=title,
            message=message, priority=priority, action_required=action_required,
        ).model_dump())
    except Exception as e:
        logger.error(f"Failed to create e-filing notification for {efiling_user_id}: {e}")


async def _profile_id(current_user: User) -> str:
    profile = await db.efiling_users.find_one({"user_id": current_user.id, "is_active": True}, {"_id": 0, "id": 1})
    if not profile:
        raise HTTPException(status_code=403, detail="No active e-filing profile found for current user")
    return profile["id"]


async def get_notifications(current_user: User, limit: int = 50, offset: int = 0, unread_only: bool = False) -> dict:
    profile_id = await _profile_id(current_user)
    query = {"efiling_user_id": profile_id, "is_dismissed": False, "is_archived": False}
    if unread_only:
        query["is_read"] = False
    total = await db.efiling_notifications.count_documents(query)
    items = await db.efiling_notifications.find(query, {"_id": 0}) \
        .sort("created_at", -1) \
        .skip(offset) \
        .limit(limit) \
        .to_list(limit)
    unread = await db.efiling_notifications.count_documents(
        {"efiling_user_id": profile_id, "is_read": False, "is_dismissed": False, "is_archived": False}
    )
    return {"notifications": items, "total": total, "unread_count": unread, "limit": limit, "offset": offset}


async def apply_action(notification_id: str, action: str, current_user: User) -> dict:
    if action not in ACTIONS:
        raise HTTPException(status_code=400, detail="Invalid action")
    profile_id = await _profile_id(current_user)
    query = {"id": notification_id, "efiling_user_id": profile_id}
    if not await db.efiling_notifications.find_one(query, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=404, detail="Notification not found")
    update = {ACTIONS[action]: True, "updated_at": datetime.now(timezone.utc).isoformat()}
    if action != "read":
        update["is_read"] = True
    await db.efiling_notifications.update_one(query, {"$set": update})
    return await db.efiling_notifications.find_one(query, {"_id": 0})
