from fastapi import HTTPException
from typing import Optional
from datetime import datetime, timezone

from database import db
from models.geography import (
    District, DistrictCreate, Town, TownCreate, Subtown, SubtownCreate,
    Division, DivisionCreate, Zone, ZoneCreate,
    ComplaintType, ComplaintTypeCreate, ComplaintSubtype, ComplaintSubtypeCreate,
)

# collection -> (model, label, parent field, parent collection)
LOCATIONS = {
    "districts": (District, "District", None, None),
    "towns": (Town, "Town", "district_id", "districts"),
    "subtowns": (Subtown, "Subtown", "town_id", "towns"),
    "divisions": (Division, "Division", "zone_id", "zones"),
    "zones": (Zone, "Zone", None, None),
}

# collection -> [(dependent collection, field, what)]
DEPENDENTS = {
    "districts": [("towns", "district_id", "town(s)")],
    "towns": [("subtowns", "town_id", "subtown(s)"), ("work_requests", "town_id", "work request(s)")],
    "subtowns": [("work_requests", "subtown_id", "work request(s)")],
    "divisions": [("work_requests", "division_id", "work request(s)")],
    "zones": [("divisions", "zone_id", "division(s)")],
}


async def _check_parent(collection: str, data: dict):
    _, _, parent_field, parent_collection = LOCATIONS[collection]
    if parent_field and data.get(parent_field):
        if not await db[parent_collection].find_one({"id": data[parent_field]}, {"_id": 0, "id": 1}):
            raise HTTPException(status_code=400, detail=f"Invalid {parent_field}")


# ── Locations ─────────────────────────────────────────────

async def list_locations(collection: str, filters: Optional[dict] = None) -> list:
    query = {k: v for k, v in (filters or {}).items() if v}
    return await db[collection].find(query, {"_id": 0}).sort("name", 1).to_list(5000)


async def get_location(collection: str, item_id: str) -> dict:
    item = await db[collection].find_one({"id": item_id}, {"_id": 0})
    if not item:
        raise HTTPException(status_code=404, detail=f"{LOCATIONS[collection][1]} not found")
    return item


async def create_location(collection: str, data):
    model, label, parent_field, _ = LOCATIONS[collection]
    payload = data.model_dump()
    await _check_parent(collection, payload)
    # names are unique within the parent
    duplicate_query = {"name": payload["name"]}
    if parent_field:
        duplicate_query[parent_field] = payload.get(parent_field)
    if await db[collection].find_one(duplicate_query):
        raise HTTPException(status_code=400, detail=f"{label} '{payload['name']}' already exists")
    item = model(**payload)
    await db[collection].insert_one(item.model_dump())
    return item


async def update_location(collection: str, item_id: str, data) -> dict:
    await get_location(collection, item_id)
    payload = data.model_dump()
    await _check_parent(collection, payload)
    payload["updated_at"] = datetime.now(timezone.utc).isoformat()
    await db[collection].update_one({"id": item_id}, {"$set": payload})
    return await get_location(collection, item_id)


async def delete_location(collection: str, item_id: str) -> dict:
    await get_location(collection, item_id)
    for dependent, field, what in DEPENDENTS.get(collection, []):
        count = await db[dependent].count_documents({field: item_id})
        if count:
            raise HTTPException(status_code=400, detail=f"Cannot delete: {count} {what} still linked")
    await db[collection].delete_one({"id": item_id})
    return {"message": f"{LOCATIONS[collection][1]} deleted"}


# ── Complaint types ───────────────────────────────────────

async def get_complaint_types() -> list:
    types = await db.complaint_types.find({}, {"_id": 0}).sort("type_name", 1).to_list(1000)
    subtypes = await db.complaint_subtypes.find({}, {"_id": 0, "complaint_type_id": 1}).to_list(5000)
    counts = {}
    for s in subtypes:
        counts[s["complaint_type_id"]] = counts.get(s["complaint_type_id"], 0) + 1
    for t in types:
        t["subtype_count"] = counts.get(t["id"], 0)
    return types


async def get_complaint_type(type_id: str) -> dict:
    item = await db.complaint_types.find_one({"id": type_id}, {"_id": 0})
    if not item:
        raise HTTPException(status_code=404, detail="Complaint type not found")
    return item


async def create_complaint_type(data: ComplaintTypeCreate) -> ComplaintType:
    if await db.complaint_types.find_one({"type_name": data.type_name}):
        raise HTTPException(status_code=400, detail=f"Complaint type '{data.type_name}' already exists")
    item = ComplaintType(**data.model_dump())
    await db.complaint_types.insert_one(item.model_dump())
    return item


async def update_complaint_type(type_id: str, data: ComplaintTypeCreate) -> dict:
    await get_complaint_type(type_id)
    if await db.complaint_types.find_one({"type_name": data.type_name, "id": {"$ne": type_id}}):
        raise HTTPException(status_code=400, detail=f"Complaint type '{data.type_name}' already exists")
    await db.complaint_types.update_one({"id": type_id}, {"$set": data.model_dump()})
    return await get_complaint_type(type_id)


async def delete_complaint_type(type_id: str) -> dict:
    await get_complaint_type(type_id)
    if await db.complaint_subtypes.count_documents({"complaint_type_id": type_id}):
        raise HTTPException(status_code=400, detail="Cannot delete complaint type with subtypes")
    if await db.work_requests.count_documents({"complaint_type_id": type_id}):
        raise HTTPException(status_code=400, detail="Cannot delete complaint type used by work requests")
    await db.complaint_types.delete_one({"id": type_id})
    return {"message": "Complaint type deleted"}


async def get_complaint_subtypes(complaint_type_id: Optional[str] = None) -> list:
    query = {"complaint_type_id": complaint_type_id} if complaint_type_id else {}
    return await db.complaint_subtypes.find(query, {"_id": 0}).sort("subtype_name", 1).to_list(5000)


async def create_complaint_subtype(data: ComplaintSubtypeCreate) -> ComplaintSubtype:
    await get_complaint_type(data.complaint_type_id)
    item = ComplaintSubtype(**data.model_dump())
    await db.complaint_subtypes.insert_one(item.model_dump())
    return item


async def update_complaint_subtype(subtype_id: str, data: ComplaintSubtypeCreate) -> dict:
    if not await db.complaint_subtypes.find_one({"id": subtype_id}):
        raise HTTPException(status_code=404, detail="Complaint subtype not found")
    await get_complaint_type(data.complaint_type_id)
    await db.complaint_subtypes.update_one({"id": subtype_id}, {"$set": data.model_dump()})
    return await db.complaint_subtypes.find_one({"id": subtype_id}, {"_id": 0})


async def delete_complaint_subtype(subtype_id: str) -> dict:
    if await db.work_requests.count_documents({"complaint_subtype_id": subtype_id}):
        raise HTTPException(status_code=400, detail="Cannot delete complaint subtype used by work requests")
    result = await db.complaint_subtypes.delete_one({"id": subtype_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Complaint subtype not found")
    return {"message": "Complaint subtype deleted"}


async def get_statuses() -> list:
    return await db.statuses.find({}, {"_id": 0}).sort("order", 1).to_list(100)
