from fastapi import HTTPException
from typing import Optional
from datetime import datetime, timezone

from database import db
from models.auth import User
from models.efiling import Template, TemplateCreate, TemplateUpdate
from core.auth import is_admin_level
from core.geography import get_user_geography


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _audience_clause(profile: dict) -> dict:
    """Templates a non-admin profile may see: matching department and role, or their own."""
    department_match = {"$or": [
        {"department_ids": profile.get("department_id")},
        {"department_ids": {"$size": 0}},
    ]}
    role_match = {"$or": [
        {"role_ids": profile.get("efiling_role_id")},
        {"role_ids": {"$size": 0}},
    ]}
    return {"$or": [{"$and": [department_match, role_match]}, {"created_by": profile["efiling_user_id"]}]}


async def find_template(template_id: str) -> dict:
    item = await db.efiling_templates.find_one({"id": template_id, "is_active": True}, {"_id": 0})
    if not item:
        raise HTTPException(status_code=404, detail="Template not found")
    return item


async def get_templates(
    current_user: User,
    department_id: Optional[str] = None,
    role_id: Optional[str] = None,
    template_type: Optional[str] = None,
    include_system: bool = True,
) -> list:
    clauses = [{"is_active": True}]
    if not is_admin_level(current_user):
        profile = await get_user_geography(current_user.id)
        if profile:
            clauses.append(_audience_clause(profile))
        else:
            clauses.append({"department_ids": {"$size": 0}, "role_ids": {"$size": 0}})
    if department_id:
        clauses.append({"department_ids": department_id})
    if role_id:
        clauses.append({"role_ids": role_id})
    if template_type:
        clauses.append({"template_type": template_type})
    if not include_system:
        clauses.append({"is_system_template": False})

    rows = await db.efiling_templates.find({"$and": clauses}, {"_id": 0}) \
        .sort([("template_type", 1), ("name", 1)]).to_list(1000)
    categories = await db.efiling_file_categories.find(
        {"id": {"$in": list({r.get("category_id") for r in rows if r.get("category_id")})}}, {"_id": 0, "id": 1, "name": 1}
    ).to_list(1000)
    category_map = {c["id"]: c["name"] for c in categories}
    for r in rows:
        r["category_name"] = category_map.get(r.get("category_id"))
    return rows


async def get_template(template_id: str) -> dict:
    return await find_template(template_id)


async def create_template(data: TemplateCreate, current_user: User) -> Template:
    if not data.name or not (data.title or data.subject or data.main_content):
        raise HTTPException(status_code=400, detail="Name and at least one of (title, subject, main_content) is required")
    profile = await get_user_geography(current_user.id)
    payload = data.model_dump()
    if is_admin_level(current_user):
        payload["is_system_template"] = True
    else:
        if not profile:
            raise HTTPException(status_code=403, detail="User not found in e-filing system")
        # non-admin templates are bound to the author's department and role
        payload["department_ids"] = [profile["department_id"]] if profile.get("department_id") else []
        payload["role_ids"] = [profile["efiling_role_id"]] if profile.get("efiling_role_id") else []
        payload["is_system_template"] = False
    payload["created_by"] = (profile or {}).get("efiling_user_id")
    item = Template(**payload)
    await db.efiling_templates.insert_one(item.model_dump())
    return item


async def update_template(template_id: str, data: TemplateUpdate, current_user: User) -> dict:
    item = await find_template(template_id)
    if not is_admin_level(current_user):
        profile = await get_user_geography(current_user.id)
        if not profile:
            raise HTTPException(status_code=403, detail="User not found in e-filing system")
        if item.get("created_by") != profile["efiling_user_id"]:
            raise HTTPException(status_code=403, detail="You can only edit your own templates")
    update = {k: v for k, v in data.model_dump().items() if v is not None}
    if not update:
        raise HTTPException(status_code=400, detail="No fields to update")
    update["updated_at"] = _now()
    await db.efiling_templates.update_one({"id": template_id}, {"$set": update})
    return await db.efiling_templates.find_one({"id": template_id}, {"_id": 0})


async def delete_template(template_id: str, current_user: User) -> dict:
    if not is_admin_level(current_user):
        raise HTTPException(status_code=403, detail="Only administrators can delete templates")
    await find_template(template_id)
    await db.efiling_templates.update_one({"id": template_id}, {"$set": {"is_active": False, "updated_at": _now()}})
    return {"message": "Template deleted successfully"}


async def use_template(template_id: str) -> dict:
    await find_template(template_id)
    await db.efiling_templates.update_one(
        {"id": template_id},
        {"$inc": {"usage_count": 1}, "$set": {"last_used_at": _now()}},
    )
    return await db.efiling_templates.find_one({"id": template_id}, {"_id": 0})
