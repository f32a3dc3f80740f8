import logging
from fastapi import HTTPException
from typing import Iterable, Optional

from database import db
from models.notification import Notification, NotificationAction

logger = logging.getLogger(__name__)

PLACEHOLDER_MESSAGES = ["", "No message"]


def _visible(user_id: str) -> dict:
    return {"user_id": user_id, "message": {"$nin": PLACEHOLDER_MESSAGES, "$ne": None}}


async def notify(user_id: Optional[str], type: str, message: str, entity_id: Optional[str] = None):
    """Insert a notification; failures are logged and never propagate."""
    if not user_id or not message:
        return
    try:
        await db.notifications.insert_one(
            Notification(user_id=user_id, type=type, entity_id=entity_id, message=message).model_dump()
        )
    except Exception as e:
        logger.error(f"Failed to notify user {user_id}: {e}")


async def notify_many(user_ids: Iterable[str], type: str, message: str, entity_id: Optional[str] = None, exclude: Optional[str] = None):
    for user_id in dict.fromkeys(u for u in user_ids if u and u != exclude):
        await notify(user_id, type, message, entity_id)


async def admin_level_user_ids() -> list:
    users = await db.users.find(
        {"user_type": "user", "role": {"$in": ["admin", "manager"]}, "is_active": True},
        {"_id": 0, "id": 1},
    ).to_list(1000)
    return [u["id"] for u in users]


async def get_notifications(user_id: str, unread_only: bool = False, limit: int = 50) -> dict:
    query = _visible(user_id)
    if unread_only:
        query["read"] = False
    items = await db.notifications.find(query, {"_id": 0}).sort("created_at", -1).limit(limit).to_list(limit)
    unread = await db.notifications.count_documents({**_visible(user_id), "read": False})
    return {"notifications": items, "unread_count": unread}


async def apply_action(user_id: str, data: NotificationAction) -> dict:
    if data.action != "mark_read":
        raise HTTPException(status_code=400, detail="Invalid action")
    if not data.notification_ids:
        raise HTTPException(status_code=400, detail="Invalid request data")
    result = await db.notifications.update_many(
        {"id": {"$in": data.notification_ids}, "user_id": user_id},
        {"$set": {"read": True}},
    )
    return {"message": "Notifications marked as read", "updated": result.modified_count}


async def mark_all_read(user_id: str) -> dict:
    result = await db.notifications.update_many({"user_id": user_id, "read": False}, {"$set": {"read": True}})
    return {"message": "All notifications marked as read", "updated": result.modified_count}
