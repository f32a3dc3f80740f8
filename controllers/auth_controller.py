from fastapi import HTTPException
from database import db
from models.auth import UserLogin, Token, User, ProfileUpdate, PasswordChange
from core.auth import verify_password, get_password_hash, create_access_token, is_admin_level
from config import MODULES


def _issue_token(user: User) -> Token:
    access_token = create_access_token({"sub": user.id, "role": user.role, "user_type": user.user_type})
    return Token(access_token=access_token, user=user)


async def login(credentials: UserLogin) -> Token:
    user_doc = await db.users.find_one({"email": credentials.email})
    if not user_doc or not verify_password(credentials.password, user_doc['password']):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user_doc.get("is_active", True):
        raise HTTPException(status_code=401, detail="Account is inactive")
    user = User(**{k: v for k, v in user_doc.items() if k not in ['_id', 'password']})
    return _issue_token(user)


async def refresh(current_user: User) -> Token:
    return _issue_token(current_user)


async def update_profile(current_user: User, data: ProfileUpdate) -> User:
    updates = {k: v for k, v in data.model_dump().items() if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "email" in updates:
        existing = await db.users.find_one({"email": updates["email"], "id": {"$ne": current_user.id}})
        if existing:
            raise HTTPException(status_code=400, detail="Email already in use")
    await db.users.update_one({"id": current_user.id}, {"$set": updates})
    updated = await db.users.find_one({"id": current_user.id}, {"_id": 0, "password": 0})
    return User(**updated)


async def change_password(current_user: User, data: PasswordChange) -> dict:
    user_doc = await db.users.find_one({"id": current_user.id})
    if not verify_password(data.current_password, user_doc["password"]):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if len(data.new_password) < 6:
        raise HTTPException(status_code=400, detail="New password must be at least 6 characters")
    await db.users.update_one({"id": current_user.id}, {"$set": {"password": get_password_hash(data.new_password)}})
    return {"message": "Password updated successfully"}


async def get_my_permissions(current_user: User) -> dict:
    if current_user.role == "admin" or is_admin_level(current_user):
        perms = {module: {"view": True, "create": True, "edit": True, "delete": True} for module in MODULES}
        return {"role": current_user.role, "permissions": perms}
    role_doc = await db.roles.find_one({"name": current_user.role}, {"_id": 0})
    if not role_doc:
        perms = {module: {"view": False, "create": False, "edit": False, "delete": False} for module in MODULES}
        return {"role": current_user.role, "permissions": perms}
    return {"role": current_user.role, "permissions": role_doc.get("permissions", {})}
