import re
import logging
from fastapi import HTTPException
from datetime import datetime, timezone

from database import db
from models.auth import User, UserCreate, UserUpdate, UserType, CEScope
from core.auth import get_password_hash

logger = logging.getLogger(__name__)

PUBLIC_PROJECTION = {"_id": 0, "password": 0}


async def _ensure_role(role: str):
    if role == "admin":
        return
    if not await db.roles.find_one({"name": role}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail=f"Role '{role}' does not exist")


async def get_users(role: str = None, user_type: str = None, search: str = None, include_inactive: bool = True) -> list:
    query = {}
    if role:
        query["role"] = role
    if user_type:
        query["user_type"] = user_type
    if not include_inactive:
        query["is_active"] = True
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"email": pattern}, {"phone": pattern}]
    return await db.users.find(query, PUBLIC_PROJECTION).sort("name", 1).to_list(5000)


async def get_user(user_id: str) -> dict:
    user = await db.users.find_one({"id": user_id}, PUBLIC_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def create_user(data: UserCreate) -> User:
    if data.user_type not in UserType.ALL:
        raise HTTPException(status_code=400, detail=f"Invalid user type: {data.user_type}")
    if len(data.password) < 6:
        raise HTTPException(status_code=400, detail="Password must be at least 6 characters")
    if await db.users.find_one({"email": data.email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    await _ensure_role(data.role)
    user = User(**data.model_dump(exclude={"password"}))
    doc = user.model_dump()
    doc["password"] = get_password_hash(data.password)
    await db.users.insert_one(doc)
    logger.info(f"User created: {user.email} ({user.user_type}/{user.role})")
    return user


async def update_user(user_id: str, data: UserUpdate) -> dict:
    await get_user(user_id)
    updates = {k: v for k, v in data.model_dump().items() if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "user_type" in updates and updates["user_type"] not in UserType.ALL:
        raise HTTPException(status_code=400, detail=f"Invalid user type: {updates['user_type']}")
    if "email" in updates:
        if await db.users.find_one({"email": updates["email"], "id": {"$ne": user_id}}):
            raise HTTPException(status_code=400, detail="Email already in use")
    if "password" in updates:
        if len(updates["password"]) < 6:
            raise HTTPException(status_code=400, detail="Password must be at least 6 characters")
        updates["password"] = get_password_hash(updates["password"])
    updates["updated_at"] = datetime.now(timezone.utc).isoformat()
    await db.users.update_one({"id": user_id}, {"$set": updates})
    return await get_user(user_id)


async def deactivate_user(user_id: str, current_user_id: str) -> dict:
    if user_id == current_user_id:
        raise HTTPException(status_code=400, detail="Cannot deactivate your own account")
    await get_user(user_id)
    await db.users.update_one({"id": user_id}, {"$set": {
        "is_active": False,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }})
    return {"message": "User deactivated"}


# ── CE scope ──────────────────────────────────────────────

async def get_ce_scope(user_id: str) -> dict:
    user = await get_user(user_id)
    return user.get("ce_scope") or CEScope().model_dump()


async def set_ce_scope(user_id: str, scope: CEScope) -> dict:
    user = await get_user(user_id)
    if user.get("role") != "ce":
        raise HTTPException(status_code=400, detail="Scope can only be assigned to CE users")
    if scope.complaint_type_ids:
        found = await db.complaint_types.count_documents({"id": {"$in": scope.complaint_type_ids}})
        if found != len(set(scope.complaint_type_ids)):
            raise HTTPException(status_code=400, detail="One or more complaint types do not exist")
    doc = scope.model_dump()
    await db.users.update_one({"id": user_id}, {"$set": {"ce_scope": doc}})
    return doc
