from fastapi import HTTPException
from datetime import datetime, timezone

from database import db
from models.rbac import Role, RoleCreate, RoleUpdate
from models.auth import UserRoleAssign
from config import MODULES

EMPTY_PERMISSIONS = {"view": False, "create": False, "edit": False, "delete": False}


def _validate_modules(permissions: dict):
    unknown = [m for m in permissions if m not in MODULES]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Invalid module: {unknown[0]}")


async def get_roles() -> list:
    return await db.roles.find({}, {"_id": 0}).sort("created_at", 1).to_list(100)


async def get_role(role_id: str) -> dict:
    role = await db.roles.find_one({"id": role_id}, {"_id": 0})
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


async def create_role(role_data: RoleCreate) -> Role:
    if await db.roles.find_one({"name": role_data.name}):
        raise HTTPException(status_code=400, detail="Role name already exists")
    _validate_modules(role_data.permissions)
    permissions = {
        module: role_data.permissions[module].model_dump() if module in role_data.permissions else dict(EMPTY_PERMISSIONS)
        for module in MODULES
    }
    role = Role(
        name=role_data.name,
        label=role_data.label or role_data.name.replace("_", " ").title(),
        description=role_data.description,
        permissions=permissions,
    )
    await db.roles.insert_one(role.model_dump())
    return role


async def update_role(role_id: str, role_data: RoleUpdate) -> dict:
    existing = await get_role(role_id)
    if existing.get("name") == "admin":
        raise HTTPException(status_code=400, detail="Cannot modify admin role")
    update = {"updated_at": datetime.now(timezone.utc).isoformat()}
    if role_data.label is not None:
        update["label"] = role_data.label
    if role_data.description is not None:
        update["description"] = role_data.description
    if role_data.permissions is not None:
        _validate_modules(role_data.permissions)
        merged = existing.get("permissions", {})
        merged.update({module: perms.model_dump() for module, perms in role_data.permissions.items()})
        update["permissions"] = merged
    await db.roles.update_one({"id": role_id}, {"$set": update})
    return await db.roles.find_one({"id": role_id}, {"_id": 0})


async def delete_role(role_id: str) -> dict:
    existing = await get_role(role_id)
    if existing.get("is_system"):
        raise HTTPException(status_code=400, detail="Cannot delete system role")
    assigned = await db.users.count_documents({"role": existing["name"]})
    if assigned > 0:
        raise HTTPException(status_code=400, detail=f"Cannot delete role: {assigned} user(s) still assigned")
    await db.roles.delete_one({"id": role_id})
    return {"message": "Role deleted"}


async def assign_user_role(user_id: str, data: UserRoleAssign) -> dict:
    if not await db.users.find_one({"id": user_id}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=404, detail="User not found")
    if data.role != "admin" and not await db.roles.find_one({"name": data.role}):
        raise HTTPException(status_code=400, detail=f"Role '{data.role}' does not exist")
    await db.users.update_one({"id": user_id}, {"$set": {"role": data.role}})
    return {"message": f"Role updated to '{data.role}'"}
