from fastapi import HTTPException
from typing import Optional
from datetime import datetime, timezone

from database import db
from models.efiling import (
    Department, DepartmentType, EfilingRole, EfilingUser,
    SlaRule, FileCategory, FileStatus,
)
from core.geography import normalise_role_code, enrich_profiles

# collection -> (model, label, unique field)
RESOURCES = {
    "efiling_departments": (Department, "Department", "code"),
    "efiling_roles": (EfilingRole, "Role", "code"),
    "efiling_users": (EfilingUser, "E-filing user", "user_id"),
    "efiling_sla_matrix": (SlaRule, "SLA rule", None),
    "efiling_file_categories": (FileCategory, "Category", "code"),
    "efiling_file_statuses": (FileStatus, "Status", "code"),
}

# collection -> [(dependent collection, field, what)]
DEPENDENTS = {
    "efiling_departments": [
        ("efiling_roles", "department_id", "role(s)"),
        ("efiling_users", "department_id", "user(s)"),
        ("efiling_files", "department_id", "file(s)"),
    ],
    "efiling_roles": [("efiling_users", "efiling_role_id", "user(s)")],
    "efiling_file_categories": [("efiling_files", "category_id", "file(s)")],
    "efiling_file_statuses": [("efiling_files", "status_id", "file(s)")],
}


def _normalise(collection: str, payload: dict) -> dict:
    if collection in ("efiling_departments", "efiling_roles", "efiling_file_categories", "efiling_file_statuses"):
        payload["code"] = (payload.get("code") or "").strip().upper()
    if collection == "efiling_sla_matrix":
        payload["from_role_code"] = normalise_role_code(payload.get("from_role_code")) or "*"
        payload["to_role_code"] = normalise_role_code(payload.get("to_role_code")) or "*"
        payload["level_scope"] = (payload.get("level_scope") or DepartmentType.DISTRICT).lower()
        if payload["level_scope"] not in DepartmentType.ALL:
            raise HTTPException(status_code=400, detail=f"Invalid level scope: {payload['level_scope']}")
        if payload.get("sla_hours") is not None and payload["sla_hours"] <= 0:
            raise HTTPException(status_code=400, detail="SLA hours must be positive")
    if collection == "efiling_departments" and payload.get("department_type") not in DepartmentType.ALL:
        raise HTTPException(status_code=400, detail=f"Invalid department type: {payload.get('department_type')}")
    return payload


async def _check_references(collection: str, payload: dict):
    if collection == "efiling_users":
        if not await db.users.find_one({"id": payload["user_id"]}, {"_id": 0, "id": 1}):
            raise HTTPException(status_code=400, detail="Invalid user_id")
        if not await db.efiling_roles.find_one({"id": payload["efiling_role_id"]}, {"_id": 0, "id": 1}):
            raise HTTPException(status_code=400, detail="Invalid efiling_role_id")
    if payload.get("department_id") and collection != "efiling_departments":
        if not await db.efiling_departments.find_one({"id": payload["department_id"]}, {"_id": 0, "id": 1}):
            raise HTTPException(status_code=400, detail="Invalid department_id")


async def _check_unique(collection: str, payload: dict, exclude_id: Optional[str] = None):
    _, label, field = RESOURCES[collection]
    if not field:
        return
    query = {field: payload[field]}
    if exclude_id:
        query["id"] = {"$ne": exclude_id}
    if await db[collection].find_one(query, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=409, detail=f"{label} with {field} '{payload[field]}' already exists")


# ── Generic CRUD ──────────────────────────────────────────

async def list_items(collection: str, filters: Optional[dict] = None) -> list:
    query = {k: v for k, v in (filters or {}).items() if v is not None and v != ""}
    sort_field = "created_at" if collection in ("efiling_users", "efiling_sla_matrix") else "name"
    rows = await db[collection].find(query, {"_id": 0}).sort(sort_field, 1).to_list(5000)
    if collection == "efiling_users":
        return await enrich_profiles(rows)
    return rows


async def get_item(collection: str, item_id: str) -> dict:
    item = await db[collection].find_one({"id": item_id}, {"_id": 0})
    if not item:
        raise HTTPException(status_code=404, detail=f"{RESOURCES[collection][1]} not found")
    return item


async def create_item(collection: str, data):
    model = RESOURCES[collection][0]
    payload = _normalise(collection, data.model_dump())
    await _check_references(collection, payload)
    await _check_unique(collection, payload)
    item = model(**payload)
    await db[collection].insert_one(item.model_dump())
    return item


async def update_item(collection: str, item_id: str, data) -> dict:
    await get_item(collection, item_id)
    payload = _normalise(collection, data.model_dump())
    await _check_references(collection, payload)
    await _check_unique(collection, payload, exclude_id=item_id)
    payload["updated_at"] = datetime.now(timezone.utc).isoformat()
    await db[collection].update_one({"id": item_id}, {"$set": payload})
    return await get_item(collection, item_id)


async def delete_item(collection: str, item_id: str) -> dict:
    await get_item(collection, item_id)
    for dependent, field, what in DEPENDENTS.get(collection, []):
        count = await db[dependent].count_documents({field: item_id})
        if count:
            raise HTTPException(status_code=400, detail=f"Cannot delete: {count} {what} still linked")
    await db[collection].delete_one({"id": item_id})
    return {"message": f"{RESOURCES[collection][1]} deleted"}


# ── Categories & statuses ─────────────────────────────────

async def get_categories(department_id: Optional[str] = None, is_active: Optional[bool] = None) -> list:
    return await list_items("efiling_file_categories", {"department_id": department_id, "is_active": is_active})


async def get_statuses() -> list:
    statuses = await db.efiling_file_statuses.find({}, {"_id": 0}).sort("created_at", 1).to_list(100)
    files = await db.efiling_files.find({}, {"_id": 0, "status_id": 1}).to_list(100000)
    counts = {}
    for f in files:
        counts[f.get("status_id")] = counts.get(f.get("status_id"), 0) + 1
    for s in statuses:
        s["file_count"] = counts.get(s["id"], 0)
    return statuses


async def get_status_by_code(code: str) -> dict:
    status = await db.efiling_file_statuses.find_one({"code": (code or "").upper()}, {"_id": 0})
    if not status:
        raise HTTPException(status_code=404, detail=f"Status '{code}' not found")
    return status
