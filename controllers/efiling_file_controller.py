import os
import re
import math
import logging
from fastapi import HTTPException
from typing import Optional
from datetime import datetime, timezone, timedelta

from database import db, next_sequence
from models.auth import User
from models.efiling import (
    EfilingFile, EfilingFileCreate, EfilingFileUpdate, FileMovement, FileStatusCode,
    MarkToInput, SignInput, CompleteInput, FileSignature, Attachment, CommentInput, FileComment,
)
from core.auth import is_admin_level
from core.geography import get_allowed_recipients, get_sla_hours, get_user_geography, is_global_role_code
from core.uploads import validate_document, store_bytes, public_link
from config import EFILING_ATTACHMENT_DIR
from controllers.efiling_admin_controller import get_status_by_code
from controllers.efiling_notification_controller import create_notification

logger = logging.getLogger(__name__)

EXTERNAL_ROLE_CODES = {"ADLFA"}
EXTERNAL_ROLE_PREFIX = "CON"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_external_role(role_code: str) -> bool:
    code = (role_code or "").upper()
    return code in EXTERNAL_ROLE_CODES or code.startswith(EXTERNAL_ROLE_PREFIX)


async def require_profile(current_user: User) -> dict:
    geography = await get_user_geography(current_user.id)
    if not geography:
        raise HTTPException(status_code=403, detail="No active e-filing profile found for current user")
    return geography


async def find_file(file_id: str) -> dict:
    item = await db.efiling_files.find_one({"id": file_id}, {"_id": 0})
    if not item:
        raise HTTPException(status_code=404, detail="File not found")
    return item


async def _accessible_file_ids(profile_id: str) -> list:
    movements = await db.efiling_file_movements.find(
        {"$or": [{"to_user_id": profile_id}, {"from_user_id": profile_id}]}, {"_id": 0, "file_id": 1}
    ).to_list(100000)
    return list({m["file_id"] for m in movements})


async def user_can_access_file(file_id: str, user: User) -> bool:
    """Admin-level users, the creator, the assignee and anyone on the movement trail."""
    if is_admin_level(user):
        return True
    geography = await get_user_geography(user.id)
    if not geography:
        return False
    if is_global_role_code(geography["role_code"]):
        return True
    profile_id = geography["efiling_user_id"]
    item = await db.efiling_files.find_one({"id": file_id}, {"_id": 0, "created_by": 1, "assigned_to": 1})
    if not item:
        return False
    if profile_id in (item.get("created_by"), item.get("assigned_to")):
        return True
    movement = await db.efiling_file_movements.find_one(
        {"file_id": file_id, "$or": [{"to_user_id": profile_id}, {"from_user_id": profile_id}]}, {"_id": 0, "id": 1}
    )
    return movement is not None


async def _require_access(file_id: str, user: User) -> dict:
    item = await find_file(file_id)
    if not await user_can_access_file(file_id, user):
        raise HTTPException(status_code=403, detail="Forbidden - You do not have access to this file")
    return item


async def _enrich_files(rows: list) -> list:
    def ids(key):
        return list({r.get(key) for r in rows if r.get(key)})

    categories = await db.efiling_file_categories.find({"id": {"$in": ids("category_id")}}, {"_id": 0}).to_list(1000)
    depts = await db.efiling_departments.find({"id": {"$in": ids("department_id")}}, {"_id": 0}).to_list(1000)
    statuses = await db.efiling_file_statuses.find({"id": {"$in": ids("status_id")}}, {"_id": 0}).to_list(100)
    profile_ids = list(set(ids("created_by")) | set(ids("assigned_to")))
    profiles = await db.efiling_users.find({"id": {"$in": profile_ids}}, {"_id": 0, "id": 1, "user_id": 1}).to_list(5000)
    users = await db.users.find(
        {"id": {"$in": [p["user_id"] for p in profiles]}}, {"_id": 0, "id": 1, "name": 1}
    ).to_list(5000)

    category_map = {c["id"]: c.get("name") for c in categories}
    dept_map = {d["id"]: d for d in depts}
    status_map = {s["id"]: s for s in statuses}
    user_names = {u["id"]: u.get("name") for u in users}
    profile_names = {p["id"]: user_names.get(p["user_id"]) for p in profiles}

    for r in rows:
        status = status_map.get(r.get("status_id"), {})
        r["category_name"] = category_map.get(r.get("category_id"))
        r["department_name"] = dept_map.get(r.get("department_id"), {}).get("name")
        r["status_name"] = status.get("name")
        r["status_code"] = status.get("code")
        r["status_color"] = status.get("color")
        r["created_by_name"] = profile_names.get(r.get("created_by"))
        r["assigned_to_name"] = profile_names.get(r.get("assigned_to"))
    return rows


# ── Files ─────────────────────────────────────────────────

async def create_file(data: EfilingFileCreate, current_user: User) -> EfilingFile:
    if not (data.subject or "").strip():
        raise HTTPException(status_code=400, detail="Subject, category, and department are required")
    profile = await require_profile(current_user)
    if is_external_role(profile["role_code"]):
        raise HTTPException(status_code=403, detail="External users cannot create files")

    dept = await db.efiling_departments.find_one({"id": data.department_id}, {"_id": 0})
    if not dept:
        raise HTTPException(status_code=400, detail="Invalid department_id")
    if not await db.efiling_file_categories.find_one({"id": data.category_id}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Invalid category_id")
    draft = await get_status_by_code(FileStatusCode.DRAFT)

    year = datetime.now(timezone.utc).year
    seq = await next_sequence(f"efiling_file:{dept['id']}:{year}")
    payload = data.model_dump()
    for key in ("district_id", "town_id", "division_id"):
        payload[key] = payload.get(key) or profile.get(key)

    item = EfilingFile(
        **payload,
        file_number=f"{dept['code']}/{year}/{seq:04d}",
        status_id=draft["id"],
        created_by=profile["efiling_user_id"],
    )
    await db.efiling_files.insert_one(item.model_dump())
    logger.info(f"E-filing file {item.file_number} created by {current_user.email}")
    return item


async def get_files(
    current_user: User,
    page: int = 1,
    limit: int = 25,
    department_id: Optional[str] = None,
    status_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
) -> dict:
    query = {}
    if department_id:
        query["department_id"] = department_id
    if status_id:
        query["status_id"] = status_id
    if assigned_to:
        query["assigned_to"] = assigned_to
    if priority:
        query["priority"] = priority
    if search:
        query["$or"] = [
            {"subject": {"$regex": re.escape(search), "$options": "i"}},
            {"file_number": {"$regex": re.escape(search), "$options": "i"}},
        ]

    if not is_admin_level(current_user):
        profile = await require_profile(current_user)
        if not is_global_role_code(profile["role_code"]):
            profile_id = profile["efiling_user_id"]
            visible = {"$or": [
                {"created_by": profile_id},
                {"assigned_to": profile_id},
                {"id": {"$in": await _accessible_file_ids(profile_id)}},
            ]}
            query = {"$and": [query, visible]} if query else visible

    total = await db.efiling_files.count_documents(query)
    rows = await db.efiling_files.find(query, {"_id": 0}) \
        .sort([("created_at", -1), ("id", -1)]) \
        .skip((page - 1) * limit) \
        .limit(limit) \
        .to_list(limit)
    return {
        "data": await _enrich_files(rows),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit else 1,
        "limit": limit,
    }


async def get_file(file_id: str, current_user: User) -> dict:
    item = await _require_access(file_id, current_user)
    return (await _enrich_files([item]))[0]


async def update_file(file_id: str, data: EfilingFileUpdate, current_user: User) -> dict:
    await _require_access(file_id, current_user)
    update = {k: v for k, v in data.model_dump().items() if v is not None}
    if "department_id" in update and not await db.efiling_departments.find_one({"id": update["department_id"]}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Invalid department_id")
    if "category_id" in update and not await db.efiling_file_categories.find_one({"id": update["category_id"]}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Invalid category_id")
    if "status_id" in update and not await db.efiling_file_statuses.find_one({"id": update["status_id"]}, {"_id": 0, "id": 1}):
        raise HTTPException(status_code=400, detail="Invalid status_id")
    update["updated_at"] = _now()
    await db.efiling_files.update_one({"id": file_id}, {"$set": update})
    return await get_file(file_id, current_user)


async def delete_file(file_id: str, current_user: User) -> dict:
    await _require_access(file_id, current_user)
    attachments = await db.efiling_attachments.count_documents({"file_id": file_id, "is_active": True})
    if attachments:
        raise HTTPException(status_code=400, detail="Cannot delete file with existing attachments")
    await db.efiling_files.delete_one({"id": file_id})
    await db.efiling_file_movements.delete_many({"file_id": file_id})
    await db.efiling_file_signatures.delete_many({"file_id": file_id})
    await db.efiling_file_comments.delete_many({"file_id": file_id})
    return {"message": "File deleted successfully"}


# ── Routing ───────────────────────────────────────────────

def _sender_for(item: dict, profile: dict) -> str:
    """The caller when they hold the file, otherwise the holder."""
    profile_id = profile["efiling_user_id"]
    holder = item.get("assigned_to") or item.get("created_by")
    if profile_id in (item.get("assigned_to"), item.get("created_by")):
        return profile_id
    return holder or profile_id


async def get_marking_recipients(file_id: str, current_user: User) -> dict:
    item = await _require_access(file_id, current_user)
    profile = await require_profile(current_user)
    sender_id = _sender_for(item, profile)
    recipients = await get_allowed_recipients(
        sender_id, item.get("department_id"), item.get("district_id"), item.get("town_id"), item.get("division_id"),
    )
    return {"file_id": file_id, "from_user_id": sender_id, "recipients": recipients}


async def mark_to(file_id: str, data: MarkToInput, current_user: User) -> dict:
    user_ids = [u for u in dict.fromkeys(data.user_ids or []) if u]
    if not user_ids:
        raise HTTPException(status_code=400, detail="User IDs array is required")
    item = await _require_access(file_id, current_user)
    profile = await require_profile(current_user)
    sender_id = profile["efiling_user_id"]

    allowed = await get_allowed_recipients(
        sender_id, item.get("department_id"), item.get("district_id"), item.get("town_id"), item.get("division_id"),
    )
    allowed_map = {r["id"]: r for r in allowed}
    denied = [u for u in user_ids if u not in allowed_map]
    if denied:
        raise HTTPException(status_code=403, detail=f"Not allowed to mark this file to: {', '.join(denied)}")

    status = await db.efiling_file_statuses.find_one({"id": item.get("status_id")}, {"_id": 0, "code": 1}) or {}
    update = {"assigned_to": user_ids[0], "updated_at": _now()}
    if status.get("code") == FileStatusCode.DRAFT:
        update["status_id"] = (await get_status_by_code(FileStatusCode.IN_PROGRESS))["id"]
    await db.efiling_files.update_one({"id": file_id}, {"$set": update})

    # the sender's own pending movements on this file are done
    await db.efiling_file_movements.update_many(
        {"file_id": file_id, "to_user_id": sender_id, "is_completed": False},
        {"$set": {"is_completed": True, "completed_at": _now()}},
    )

    now = datetime.now(timezone.utc)
    movements = []
    for user_id in user_ids:
        recipient = allowed_map[user_id]
        hours = await get_sla_hours(profile["role_code"], recipient.get("role_code"))
        movement = FileMovement(
            file_id=file_id,
            from_user_id=sender_id,
            to_user_id=user_id,
            from_department_id=profile.get("department_id"),
            to_department_id=recipient.get("department_id"),
            action_type="forward",
            remarks=data.remarks,
            sla_hours=hours,
            sla_deadline=(now + timedelta(hours=hours)).isoformat(),
        )
        await db.efiling_file_movements.insert_one(movement.model_dump())
        movements.append(movement.model_dump())
        await create_notification(
            user_id, "file_marked", "File marked to you",
            f"File {item['file_number']} ({item['subject']}) has been marked to you",
            file_id=file_id, priority=item.get("priority", "normal"), action_required=True,
        )
    logger.info(f"File {item['file_number']} marked to {len(user_ids)} user(s)")
    return {"message": "File marked successfully", "file_id": file_id, "assigned_to": user_ids[0], "movements": movements}


async def get_movements(file_id: str, current_user: User) -> dict:
    await _require_access(file_id, current_user)
    movements = await db.efiling_file_movements.find({"file_id": file_id}, {"_id": 0}) \
        .sort("created_at", -1).to_list(1000)
    return {"file_id": file_id, "movements": movements}


# ── Signing & completion ──────────────────────────────────

async def sign_file(file_id: str, data: SignInput, current_user: User) -> dict:
    if not data.method or not data.signature_text:
        raise HTTPException(status_code=400, detail="Method and signature text are required")
    await _require_access(file_id, current_user)
    geography = await get_user_geography(current_user.id)
    signature = FileSignature(
        file_id=file_id,
        user_id=current_user.id,
        efiling_user_id=(geography or {}).get("efiling_user_id"),
        signature_method=data.method,
        signature_text=data.signature_text,
        signature_id=data.signature_id,
        remarks=data.remarks,
    )
    await db.efiling_file_signatures.insert_one(signature.model_dump())
    pending = await get_status_by_code(FileStatusCode.PENDING_APPROVAL)
    await db.efiling_files.update_one({"id": file_id}, {"$set": {"status_id": pending["id"], "updated_at": _now()}})
    return {"message": "Document signed successfully", "signature": signature.model_dump()}


async def get_signatures(file_id: str, current_user: User) -> list:
    await _require_access(file_id, current_user)
    signatures = await db.efiling_file_signatures.find({"file_id": file_id}, {"_id": 0}).sort("signed_at", 1).to_list(500)
    users = await db.users.find(
        {"id": {"$in": list({s["user_id"] for s in signatures})}}, {"_id": 0, "id": 1, "name": 1}
    ).to_list(500)
    names = {u["id"]: u.get("name") for u in users}
    for s in signatures:
        s["user_name"] = names.get(s["user_id"])
    return signatures


async def complete_file(file_id: str, data: CompleteInput, current_user: User) -> dict:
    item = await find_file(file_id)
    profile = await require_profile(current_user)
    profile_id = profile["efiling_user_id"]
    if profile_id not in (item.get("created_by"), item.get("assigned_to")) and not is_global_role_code(profile["role_code"]):
        raise HTTPException(status_code=403, detail="Only the file creator or assignee can complete this file")

    completed = await get_status_by_code(FileStatusCode.COMPLETED)
    await db.efiling_files.update_one({"id": file_id}, {"$set": {"status_id": completed["id"], "updated_at": _now()}})
    await db.efiling_file_movements.update_many(
        {"file_id": file_id, "is_completed": False},
        {"$set": {"is_completed": True, "completed_at": _now()}},
    )
    movement = FileMovement(
        file_id=file_id, from_user_id=profile_id, action_type="complete",
        remarks=data.remarks or "File completed", sla_hours=0,
    )
    await db.efiling_file_movements.insert_one(movement.model_dump())
    if item.get("created_by") != profile_id:
        await create_notification(
            item["created_by"], "file_completed", "File completed",
            f"File {item['file_number']} has been completed",
            file_id=file_id,
        )
    return {"message": "File completed successfully", "file_id": file_id, "status_id": completed["id"]}


# ── Attachments ───────────────────────────────────────────

async def upload_attachment(file_id: str, filename: str, content_type: str, data: bytes, current_user: User) -> Attachment:
    await _require_access(file_id, current_user)
    validate_document(filename, content_type, len(data))
    attachment = Attachment(
        file_id=file_id, file_name=filename, file_path="", link="",
        file_size=len(data), content_type=content_type, uploaded_by=current_user.id,
    )
    ext = os.path.splitext(filename or "")[1].lower()
    relative = store_bytes(EFILING_ATTACHMENT_DIR, f"{attachment.id}{ext}", data)
    attachment.file_path = relative
    attachment.link = public_link(relative)
    await db.efiling_attachments.insert_one(attachment.model_dump())
    return attachment


async def get_attachments(file_id: str, current_user: User) -> list:
    await _require_access(file_id, current_user)
    return await db.efiling_attachments.find(
        {"file_id": file_id, "is_active": True}, {"_id": 0}
    ).sort("created_at", -1).to_list(500)


async def delete_attachment(attachment_id: str, current_user: User) -> dict:
    attachment = await db.efiling_attachments.find_one({"id": attachment_id, "is_active": True}, {"_id": 0})
    if not attachment:
        raise HTTPException(status_code=404, detail="Attachment not found")
    await _require_access(attachment["file_id"], current_user)
    await db.efiling_attachments.update_one(
        {"id": attachment_id}, {"$set": {"is_active": False, "deleted_at": _now(), "deleted_by": current_user.id}}
    )
    return {"message": "Attachment deleted successfully"}


# ── Comments ──────────────────────────────────────────────

def _comment_text(data: CommentInput) -> str:
    text = (data.text or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="Comment text is required")
    return text


async def _own_comment(file_id: str, comment_id: str, current_user: User, verb: str) -> dict:
    """The active comment, provided the caller wrote it or is admin-level."""
    await _require_access(file_id, current_user)
    comment = await db.efiling_file_comments.find_one(
        {"id": comment_id, "file_id": file_id, "is_active": True}, {"_id": 0}
    )
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    if comment["user_id"] != current_user.id and not is_admin_level(current_user):
        raise HTTPException(status_code=403, detail=f"Unauthorized to {verb} this comment")
    return comment


async def add_comment(file_id: str, data: CommentInput, current_user: User) -> FileComment:
    text = _comment_text(data)
    await _require_access(file_id, current_user)
    comment = FileComment(
        file_id=file_id, user_id=current_user.id, user_name=current_user.name,
        user_role=current_user.role, text=text,
    )
    await db.efiling_file_comments.insert_one(comment.model_dump())
    return comment


async def get_comments(file_id: str, current_user: User) -> list:
    await _require_access(file_id, current_user)
    return await db.efiling_file_comments.find(
        {"file_id": file_id, "is_active": True}, {"_id": 0}
    ).sort("created_at", 1).to_list(1000)


async def update_comment(file_id: str, comment_id: str, data: CommentInput, current_user: User) -> dict:
    text = _comment_text(data)
    comment = await _own_comment(file_id, comment_id, current_user, "edit")
    update = {"text": text, "edited": True, "edited_at": _now()}
    await db.efiling_file_comments.update_one({"id": comment_id}, {"$set": update})
    return {**comment, **update}


async def delete_comment(file_id: str, comment_id: str, current_user: User) -> dict:
    await _own_comment(file_id, comment_id, current_user, "delete")
    await db.efiling_file_comments.update_one({"id": comment_id}, {"$set": {"is_active": False}})
    return {"message": "Comment deleted successfully"}


# ── Timeline ──────────────────────────────────────────────

async def _profile_names(profile_ids) -> dict:
    profiles = await db.efiling_users.find(
        {"id": {"$in": [p for p in profile_ids if p]}}, {"_id": 0, "id": 1, "user_id": 1}
    ).to_list(5000)
    users = await db.users.find(
        {"id": {"$in": [p["user_id"] for p in profiles]}}, {"_id": 0, "id": 1, "name": 1}
    ).to_list(5000)
    user_names = {u["id"]: u.get("name") for u in users}
    return {p["id"]: user_names.get(p["user_id"]) for p in profiles}


async def get_timeline(file_id: str, current_user: User) -> dict:
    """Creation, movements, signatures, attachments and comments, oldest first."""
    item = await _require_access(file_id, current_user)
    movements = await db.efiling_file_movements.find({"file_id": file_id}, {"_id": 0}).to_list(1000)
    signatures = await db.efiling_file_signatures.find({"file_id": file_id, "is_active": True}, {"_id": 0}).to_list(500)
    attachments = await db.efiling_attachments.find({"file_id": file_id, "is_active": True}, {"_id": 0}).to_list(500)
    comments = await db.efiling_file_comments.find({"file_id": file_id, "is_active": True}, {"_id": 0}).to_list(1000)

    names = await _profile_names(
        {item.get("created_by")} | {m.get("from_user_id") for m in movements} | {m.get("to_user_id") for m in movements}
    )
    people = await db.users.find(
        {"id": {"$in": list({s["user_id"] for s in signatures} | {a["uploaded_by"] for a in attachments})}},
        {"_id": 0, "id": 1, "name": 1},
    ).to_list(1000)
    user_names = {u["id"]: u.get("name") for u in people}

    events = [{
        "type": "CREATED", "title": "File Created", "timestamp": item["created_at"],
        "meta": {"by": names.get(item.get("created_by")), "file_number": item["file_number"]},
    }]
    for m in movements:
        sender, recipient = names.get(m.get("from_user_id")), names.get(m.get("to_user_id"))
        if m.get("action_type") == "complete":
            events.append({
                "type": "COMPLETED", "title": "File Completed", "timestamp": m["created_at"],
                "meta": {"by": sender, "remarks": m.get("remarks")},
            })
            continue
        events.append({
            "type": "ASSIGNED", "title": f"Marked to {recipient or 'user'}", "timestamp": m["created_at"],
            "meta": {"from": sender, "to": recipient, "remarks": m.get("remarks")},
        })
    for s in signatures:
        name = user_names.get(s["user_id"])
        events.append({
            "type": "SIGNED", "title": f"Signature by {name or 'user'}", "timestamp": s["signed_at"],
            "meta": {"method": s.get("signature_method"), "remarks": s.get("remarks")},
        })
    for a in attachments:
        events.append({
            "type": "ATTACHED", "title": f"Attached {a['file_name']}", "timestamp": a["created_at"],
            "meta": {"by": user_names.get(a["uploaded_by"]), "link": a.get("link")},
        })
    for c in comments:
        events.append({
            "type": "COMMENTED", "title": f"Comment by {c['user_name']}", "timestamp": c["created_at"],
            "meta": {"text": c["text"], "edited": c.get("edited", False)},
        })

    events.sort(key=lambda e: e["timestamp"])
    return {"file_id": file_id, "events": events}
