import re
import math
import logging
from fastapi import HTTPException
from typing import Optional
from datetime import date, datetime, timezone, timedelta

from database import db, next_sequence
from models.auth import User
from models.work_request import WorkRequest, WorkRequestCreate, WorkRequestUpdate
from core.geography import (
    resolve_efiling_scope, build_geography_query, record_matches_geography, has_any_geography,
)
from core.uploads import remove_stored_file
from controllers.notification_controller import notify_many, admin_level_user_ids

logger = logging.getLogger(__name__)

DIRECT_SORT = {"id": "request_no", "request_no": "request_no", "request_date": "request_date", "address": "address"}
JOINED_SORT = {"town_name", "division_name", "complaint_type", "status_name"}
TIE_BREAKERS = [("request_date", -1), ("created_at", -1), ("id", -1)]
ID_FIELDS = {
    "assigned_to", "status_id", "executive_engineer_id", "contractor_id",
    "town_id", "subtown_id", "complaint_type_id", "complaint_subtype_id",
}
APPROVER_TYPES = ("ce", "ceo", "coo")


def clean_id(value) -> Optional[str]:
    """Blank, placeholder and non-positive numeric ids become None."""
    if value is None:
        return None
    text = str(value).strip()
    if text in ("", "undefined", "null"):
        return None
    if re.fullmatch(r"-?\d+", text) and int(text) <= 0:
        return None
    return text


def _end_of_day_bound(day: date) -> str:
    return (day + timedelta(days=1)).isoformat()


async def _name_map(collection: str, ids, field: str = "name") -> dict:
    wanted = list({i for i in ids if i})
    if not wanted:
        return {}
    docs = await db[collection].find({"id": {"$in": wanted}}, {"_id": 0, "id": 1, field: 1}).to_list(len(wanted))
    return {d["id"]: d.get(field) for d in docs}


async def enrich_requests(rows: list) -> list:
    """Attach location, type, status, people and approval columns to request rows."""
    if not rows:
        return rows

    def col(key):
        return [r.get(key) for r in rows]

    towns = await _name_map("towns", col("town_id"))
    subtowns = await _name_map("subtowns", col("subtown_id"))
    divisions = await _name_map("divisions", col("division_id"))
    districts = await _name_map("districts", col("district_id"))
    types = await _name_map("complaint_types", col("complaint_type_id"), "type_name")
    subtypes = await _name_map("complaint_subtypes", col("complaint_subtype_id"), "subtype_name")
    statuses = await _name_map("statuses", col("status_id"))
    people = await _name_map(
        "users", col("creator_id") + col("executive_engineer_id") + col("contractor_id") + col("assigned_to")
    )
    approvals = await db.work_request_approvals.find(
        {"work_request_id": {"$in": col("id")}}, {"_id": 0}
    ).to_list(len(rows) * len(APPROVER_TYPES))
    approval_map = {(a["work_request_id"], a["approver_type"]): a for a in approvals}

    for r in rows:
        r["town_name"] = towns.get(r.get("town_id"))
        r["subtown_name"] = subtowns.get(r.get("subtown_id"))
        r["division_name"] = divisions.get(r.get("division_id"))
        r["district_name"] = districts.get(r.get("district_id"))
        r["complaint_type"] = types.get(r.get("complaint_type_id"))
        r["complaint_subtype"] = subtypes.get(r.get("complaint_subtype_id"))
        r["status_name"] = statuses.get(r.get("status_id"))
        r["creator_name"] = people.get(r.get("creator_id"))
        r["executive_engineer_name"] = people.get(r.get("executive_engineer_id"))
        r["contractor_name"] = people.get(r.get("contractor_id"))
        r["assigned_to_name"] = people.get(r.get("assigned_to"))
        for approver in APPROVER_TYPES:
            approval = approval_map.get((r["id"], approver), {})
            r[f"{approver}_approval_status"] = approval.get("approval_status")
            r[f"{approver}_comments"] = approval.get("comments")
    return rows


async def _text_filter(text: str) -> dict:
    pattern = {"$regex": re.escape(text), "$options": "i"}
    clauses = [{"address": pattern}]
    if text.strip().isdigit():
        clauses.append({"request_no": int(text.strip())})
    lookups = (
        ("towns", "name", "town_id"),
        ("divisions", "name", "division_id"),
        ("complaint_types", "type_name", "complaint_type_id"),
        ("statuses", "name", "status_id"),
        ("users", "name", "creator_id"),
    )
    for collection, field, key in lookups:
        matches = await db[collection].find({field: pattern}, {"_id": 0, "id": 1}).to_list(5000)
        if matches:
            clauses.append({key: {"$in": [m["id"] for m in matches]}})
    return {"$or": clauses}


async def resolve_request_scope(user: User, scope: Optional[str]):
    """Geography restriction for ``scope=efiling`` callers, or None when unrestricted."""
    if scope != "efiling":
        return None
    info = await resolve_efiling_scope(user.id)
    if info["is_global"]:
        return None
    if not has_any_geography(info["geography"]):
        raise HTTPException(status_code=403, detail="No geographic assignment found for current user")
    return info["geography"]


async def find_request(request_id: str) -> dict:
    doc = await db.work_requests.find_one({"id": request_id}, {"_id": 0})
    if not doc and str(request_id).isdigit():
        doc = await db.work_requests.find_one({"request_no": int(request_id)}, {"_id": 0})
    if not doc:
        raise HTTPException(status_code=404, detail="Request not found")
    return doc


# ── Queries ───────────────────────────────────────────────

async def get_requests(
    current_user: User,
    page: int = 1,
    limit: int = 0,
    filter: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    creator_id: Optional[str] = None,
    creator_type: Optional[str] = None,
    assigned_sm_agent_id: Optional[str] = None,
    approval_status: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: str = "asc",
    scope: Optional[str] = None,
) -> dict:
    clauses = []
    if creator_id and creator_type == "agent":
        clauses.append({"$or": [{"contractor_id": creator_id}, {"executive_engineer_id": creator_id}]})
    elif creator_id and creator_type:
        clauses.append({"creator_id": creator_id, "creator_type": creator_type})
    if assigned_sm_agent_id:
        clauses.append({"assigned_sm_agents.sm_agent_id": assigned_sm_agent_id})
    if approval_status:
        clauses.append({"approval_status": approval_status})
    if filter:
        clauses.append(await _text_filter(filter))
    if date_from:
        clauses.append({"request_date": {"$gte": date_from.isoformat()}})
    if date_to:
        clauses.append({"request_date": {"$lt": _end_of_day_bound(date_to)}})
    geography = await resolve_request_scope(current_user, scope)
    if geography:
        clauses.append(build_geography_query(geography))
    query = {"$and": clauses} if clauses else {}

    total = await db.work_requests.count_documents(query)
    direction = -1 if (sort_order or "").lower() == "desc" else 1
    skip = (page - 1) * limit if limit > 0 else 0

    if sort_by in JOINED_SORT:
        rows = await db.work_requests.find(query, {"_id": 0}).sort(TIE_BREAKERS).to_list(max(total, 1))
        rows = await enrich_requests(rows)
        rows.sort(key=lambda r: (r.get(sort_by) or "").lower(), reverse=direction == -1)
        if limit > 0:
            rows = rows[skip:skip + limit]
    else:
        sort = TIE_BREAKERS
        if sort_by in DIRECT_SORT:
            field = DIRECT_SORT[sort_by]
            sort = [(field, direction)] + [(f, d) for f, d in TIE_BREAKERS if f != field]
        cursor = db.work_requests.find(query, {"_id": 0}).sort(sort)
        if limit > 0:
            cursor = cursor.skip(skip).limit(limit)
        rows = await enrich_requests(await cursor.to_list(limit if limit > 0 else max(total, 1)))

    return {
        "data": rows,
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit > 0 else 1,
        "limit": limit,
    }


async def get_request(request_id: str, current_user: User, scope: Optional[str] = None) -> dict:
    doc = await find_request(request_id)
    geography = await resolve_request_scope(current_user, scope)
    if geography and not record_matches_geography(doc, geography):
        raise HTTPException(status_code=403, detail="Forbidden")
    row = (await enrich_requests([doc]))[0]
    final_video = await db.media.find_one(
        {"work_request_id": doc["id"], "media_type": "final_video"}, {"_id": 0, "link": 1}
    )
    row["final_video_link"] = (final_video or {}).get("link")
    sm_names = await _name_map("users", [a.get("sm_agent_id") for a in doc.get("assigned_sm_agents", [])])
    for agent in row.get("assigned_sm_agents", []):
        agent["name"] = sm_names.get(agent.get("sm_agent_id"))
    return row


# ── Mutations ─────────────────────────────────────────────

async def _notify_created(request: WorkRequest, creator: User):
    message = f"New work request from {creator.name} for you."
    if creator.user_type == "agent":
        counterpart = None
        if creator.role == "contractor":
            counterpart = request.executive_engineer_id
        elif creator.role == "executive_engineer":
            counterpart = request.contractor_id
        await notify_many([counterpart], "request", message, request.id, exclude=creator.id)
        await notify_many(
            await admin_level_user_ids(), "request",
            f"New work request from {creator.name} (Agent).", request.id,
        )
    elif creator.user_type == "user":
        await notify_many(
            [request.contractor_id, request.executive_engineer_id], "request",
            message, request.id, exclude=creator.id,
        )


async def create_request(data: WorkRequestCreate, current_user: User) -> WorkRequest:
    if not data.town_id and not data.division_id:
        raise HTTPException(status_code=400, detail="Either town_id or division_id is required")
    if not await db.complaint_types.find_one({"id": data.complaint_type_id}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Invalid complaint_type_id")

    doc = data.model_dump()
    location = {"district_id": None, "zone_id": None}
    if data.division_id:
        division = await db.divisions.find_one({"id": data.division_id}, {"_id": 0})
        if not division:
            raise HTTPException(status_code=400, detail="Invalid division_id")
        location["zone_id"] = division.get("zone_id")
        # division-based requests carry no town information
        doc.update(town_id=None, subtown_id=None, subtown_ids=[])
    else:
        town = await db.towns.find_one({"id": data.town_id}, {"_id": 0})
        if not town:
            raise HTTPException(status_code=400, detail="Invalid town_id")
        location["district_id"] = town.get("district_id")

    doc["additional_locations"] = [
        loc for loc in doc["additional_locations"]
        if loc.get("latitude") is not None and loc.get("longitude") is not None
    ]
    if current_user.user_type == "agent":
        if current_user.role == "contractor":
            doc["contractor_id"] = current_user.id
        elif current_user.role == "executive_engineer":
            doc["executive_engineer_id"] = current_user.id

    pending = await db.statuses.find_one({"name": "Pending"}, {"_id": 0, "id": 1})
    request = WorkRequest(
        **doc,
        **location,
        request_no=await next_sequence("work_request"),
        creator_id=current_user.id,
        creator_type=current_user.user_type,
        status_id=(pending or {}).get("id"),
    )
    await db.work_requests.insert_one(request.model_dump())
    logger.info(f"Work request #{request.request_no} created by {current_user.email}")
    await _notify_created(request, current_user)
    return request


async def update_request(request_id: str, data: WorkRequestUpdate, current_user: User) -> dict:
    existing = await find_request(request_id)
    payload = data.model_dump(exclude_unset=True)
    sm_agents = payload.pop("assigned_sm_agents", None)
    latitude = payload.pop("latitude", None)
    longitude = payload.pop("longitude", None)

    updates = {}
    for key, value in payload.items():
        if key in ID_FIELDS:
            value = clean_id(value)
            if value is None:
                logger.warning(f"Skipping invalid {key} on request {existing['id']}")
                continue
        updates[key] = value

    if "town_id" in updates:
        town = await db.towns.find_one({"id": updates["town_id"]}, {"_id": 0})
        if not town:
            raise HTTPException(status_code=400, detail="Invalid town_id")
        # a request is either town-based or division-based
        updates.update(district_id=town.get("district_id"), division_id=None, zone_id=None)
    if latitude is not None and longitude is not None:
        updates["latitude"] = latitude
        updates["longitude"] = longitude
    if sm_agents:
        updates["assigned_sm_agents"] = sm_agents

    updates["updated_at"] = datetime.now(timezone.utc).isoformat()
    await db.work_requests.update_one({"id": existing["id"]}, {"$set": updates})

    if sm_agents:
        await notify_many(
            [a["sm_agent_id"] for a in sm_agents], "assignment",
            f"You have been assigned to request #{existing['request_no']}.", existing["id"],
        )
    return await get_request(existing["id"], current_user)


async def delete_request(request_id: str) -> dict:
    existing = await find_request(request_id)
    media = await db.media.find({"work_request_id": existing["id"]}, {"_id": 0, "file_path": 1}).to_list(10000)
    for item in media:
        remove_stored_file(item.get("file_path"))
    await db.media.delete_many({"work_request_id": existing["id"]})
    await db.work_request_approvals.delete_many({"work_request_id": existing["id"]})
    await db.work_requests.delete_one({"id": existing["id"]})
    return {"message": "Work request deleted", "media_removed": len(media)}
