import re
import math
import logging
from fastapi import HTTPException
from typing import List, Optional
from datetime import date, timedelta

from database import db
from models.auth import User
from models.media import Media, MediaType, MediaUpdate, ChunkFinalize
from models.work_request import ApprovalStatus
from core.auth import is_admin_level
from core.uploads import (
    MEDIA_RULES, validate_media_file, store_media, remove_stored_file,
    save_chunk, assemble_chunks, discard_chunks, chunk_session_dir, check_chunk_owner, format_file_size,
    resolve_upload_path,
)
from config import UPLOAD_DIR, EFILING_ATTACHMENT_DIR
from controllers.notification_controller import notify_many, admin_level_user_ids
from controllers.work_request_controller import find_request
from controllers.efiling_file_controller import user_can_access_file

logger = logging.getLogger(__name__)


# ── Upload permission ─────────────────────────────────────

def upload_decision(request: dict, user: User, media_type: str) -> dict:
    """Whether ``user`` may attach ``media_type`` to ``request``, with a reason."""
    if media_type == MediaType.BEFORE_CONTENT:
        return {"allowed": True, "reason": "Before content can always be uploaded"}

    status = request.get("approval_status")
    admin = is_admin_level(user)
    ceo = user.user_type == "user" and user.role == "ceo"
    sm_agent = user.user_type == "socialmedia"

    if status == ApprovalStatus.REJECTED:
        if ceo or admin:
            return {"allowed": True, "reason": "Rejected request: CEO and administrators may upload"}
        return {"allowed": False, "reason": "Request was rejected; only the CEO or administrators can upload media"}
    if status == ApprovalStatus.PENDING:
        if sm_agent:
            return {"allowed": True, "reason": "Pending request: social media agents may upload"}
        return {"allowed": False, "reason": "Request is pending approval; only social media agents can upload media"}
    if status == ApprovalStatus.APPROVED:
        if request.get("creator_id") == user.id or ceo or admin or sm_agent:
            return {"allowed": True, "reason": "Request is approved"}
        return {"allowed": False, "reason": "Only the creator, CEO, administrators or social media agents can upload media"}
    return {"allowed": False, "reason": f"Unknown approval status: {status}"}


async def get_upload_permission(request_id: str, media_type: str, current_user: User) -> dict:
    if media_type not in MediaType.ALL:
        raise HTTPException(status_code=400, detail=f"Invalid media type: {media_type}")
    request = await find_request(request_id)
    decision = upload_decision(request, current_user, media_type)
    return {
        "can_upload": decision["allowed"],
        "requested_media_type": media_type,
        "is_media_type_allowed": decision["allowed"],
        "allowed_media_types": [t for t in MediaType.ALL if upload_decision(request, current_user, t)["allowed"]],
        "approval_status": request.get("approval_status"),
        "reason": decision["reason"],
    }


async def _require_upload_permission(request: dict, user: User, media_type: str):
    decision = upload_decision(request, user, media_type)
    if not decision["allowed"]:
        raise HTTPException(status_code=403, detail=decision["reason"])


async def _notify_upload(request: dict, media_type: str, count: int, user: User):
    label = MediaType.LABELS.get(media_type, media_type)
    noun = label if count == 1 else f"{count} {label} files"
    await notify_many(
        await admin_level_user_ids(), "media",
        f"New {noun} uploaded for request #{request['request_no']} by {user.name}.",
        request["id"], exclude=user.id,
    )


def _coordinate(values: Optional[List[str]], i: int) -> Optional[float]:
    if not values or i >= len(values) or values[i] in (None, "", "null", "undefined"):
        return None
    try:
        return float(values[i])
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid coordinate: {values[i]}")


# ── Uploads ───────────────────────────────────────────────

async def upload_media(
    work_request_id: str,
    media_type: str,
    files: list,
    descriptions: List[str],
    current_user: User,
    latitudes: Optional[List[str]] = None,
    longitudes: Optional[List[str]] = None,
) -> list:
    """Store uploaded files for a request. ``files`` holds (filename, content_type, bytes) tuples."""
    if media_type not in MediaType.ALL:
        raise HTTPException(status_code=400, detail=f"Invalid media type: {media_type}")
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")
    if len(descriptions) != len(files) or any(not (d or "").strip() for d in descriptions):
        raise HTTPException(status_code=400, detail="A description is required for every file")

    request = await find_request(work_request_id)
    await _require_upload_permission(request, current_user, media_type)
    for filename, content_type, data in files:
        validate_media_file(media_type, filename, content_type, len(data))

    created = []
    for i, (filename, content_type, data) in enumerate(files):
        stored = store_media(media_type, filename, data)
        media = Media(
            work_request_id=request["id"],
            media_type=media_type,
            content_type=content_type,
            description=descriptions[i].strip(),
            latitude=_coordinate(latitudes, i),
            longitude=_coordinate(longitudes, i),
            creator_id=current_user.id,
            creator_type=current_user.user_type,
            **stored,
        )
        await db.media.insert_one(media.model_dump())
        created.append(media)
    logger.info(f"{len(created)} {media_type} file(s) stored for request #{request['request_no']}")
    await _notify_upload(request, media_type, len(created), current_user)
    return created


async def get_media_list(
    page: int = 1,
    limit: int = 25,
    work_request_id: Optional[str] = None,
    media_type: Optional[str] = None,
    creator_id: Optional[str] = None,
    filter: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    query = {}
    if work_request_id:
        query["work_request_id"] = work_request_id
    if media_type:
        query["media_type"] = media_type
    if creator_id:
        query["creator_id"] = creator_id
    if filter:
        pattern = {"$regex": re.escape(filter), "$options": "i"}
        clauses = [{"description": pattern}, {"file_name": pattern}]
        if filter.strip().isdigit():
            request = await db.work_requests.find_one({"request_no": int(filter.strip())}, {"_id": 0, "id": 1})
            if request:
                clauses.append({"work_request_id": request["id"]})
        query["$or"] = clauses
    if date_from or date_to:
        created = {}
        if date_from:
            created["$gte"] = date_from.isoformat()
        if date_to:
            created["$lt"] = (date_to + timedelta(days=1)).isoformat()
        query["created_at"] = created

    total = await db.media.count_documents(query)
    cursor = db.media.find(query, {"_id": 0}).sort([("created_at", -1), ("id", -1)])
    if limit > 0:
        cursor = cursor.skip((page - 1) * limit).limit(limit)
    items = await cursor.to_list(limit if limit > 0 else max(total, 1))

    request_nos = {}
    ids = list({m["work_request_id"] for m in items})
    if ids:
        docs = await db.work_requests.find({"id": {"$in": ids}}, {"_id": 0, "id": 1, "request_no": 1, "address": 1}).to_list(len(ids))
        request_nos = {d["id"]: d for d in docs}
    for m in items:
        request = request_nos.get(m["work_request_id"], {})
        m["request_no"] = request.get("request_no")
        m["address"] = request.get("address")

    return {
        "data": items,
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit > 0 else 1,
        "limit": limit,
    }


async def get_media(media_id: str) -> dict:
    item = await db.media.find_one({"id": media_id}, {"_id": 0})
    if not item:
        raise HTTPException(status_code=404, detail="Media not found")
    return item


async def update_media(media_id: str, data: MediaUpdate) -> dict:
    await get_media(media_id)
    updates = {k: v for k, v in data.model_dump().items() if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "work_request_id" in updates:
        updates["work_request_id"] = (await find_request(updates["work_request_id"]))["id"]
    await db.media.update_one({"id": media_id}, {"$set": updates})
    return await get_media(media_id)


async def delete_media(media_id: str) -> dict:
    item = await get_media(media_id)
    file_removed = remove_stored_file(item.get("file_path"))
    await db.media.delete_one({"id": media_id})
    return {"message": "Media deleted", "file_removed": file_removed}


# ── Chunked uploads ───────────────────────────────────────

async def _register_assembled(stored: dict, request: dict, media_type: str, content_type: Optional[str],
                              description: Optional[str], user: User) -> Media:
    media = Media(
        work_request_id=request["id"],
        media_type=media_type,
        content_type=content_type,
        description=description,
        creator_id=user.id,
        creator_type=user.user_type,
        **stored,
    )
    await db.media.insert_one(media.model_dump())
    await _notify_upload(request, media_type, 1, user)
    return media


async def upload_chunk(
    upload_id: str,
    chunk_index: int,
    total_chunks: int,
    file_name: str,
    file_type: str,
    file_size: int,
    data: bytes,
    current_user: User,
    media_type: str = MediaType.FINAL_VIDEO,
    work_request_id: Optional[str] = None,
    description: Optional[str] = None,
) -> dict:
    if media_type not in MEDIA_RULES:
        raise HTTPException(status_code=400, detail=f"Invalid media type: {media_type}")
    allowed_types, max_size = MEDIA_RULES[media_type]
    if file_type not in allowed_types:
        raise HTTPException(status_code=400, detail=f"File type {file_type} is not allowed")
    if file_size > max_size:
        raise HTTPException(status_code=400, detail=f"File size exceeds limit of {format_file_size(max_size)}")
    if total_chunks < 1 or not 0 <= chunk_index < total_chunks:
        raise HTTPException(status_code=400, detail="Invalid chunk index")

    request = None
    if work_request_id:
        request = await find_request(work_request_id)
        await _require_upload_permission(request, current_user, media_type)

    save_chunk(upload_id, chunk_index, data, current_user.id)

    if chunk_index == total_chunks - 1:
        session_dir = chunk_session_dir(upload_id)
        if all((session_dir / f"chunk_{i}").is_file() for i in range(total_chunks)):
            stored = assemble_chunks(upload_id, total_chunks, file_name, media_type, file_size)
            result = {**stored, "message": "File uploaded successfully", "completed": True}
            if request:
                media = await _register_assembled(stored, request, media_type, file_type, description, current_user)
                result["media"] = media.model_dump()
            return result

    return {
        "completed": False,
        "chunk_index": chunk_index,
        "total_chunks": total_chunks,
        "message": f"Chunk {chunk_index + 1} of {total_chunks} uploaded successfully",
    }


async def finalize_chunks(data: ChunkFinalize, current_user: User) -> dict:
    if data.media_type not in MEDIA_RULES:
        raise HTTPException(status_code=400, detail=f"Invalid media type: {data.media_type}")
    check_chunk_owner(data.upload_id, current_user.id)
    request = None
    if data.work_request_id:
        request = await find_request(data.work_request_id)
        await _require_upload_permission(request, current_user, data.media_type)

    stored = assemble_chunks(data.upload_id, data.total_chunks, data.file_name, data.media_type, data.file_size)
    result = {**stored, "message": "File uploaded and finalized successfully", "completed": True}
    if request:
        media = await _register_assembled(stored, request, data.media_type, None, data.description, current_user)
        result["media"] = media.model_dump()
    return result


async def cancel_chunks(upload_id: str, current_user: User) -> dict:
    check_chunk_owner(upload_id, current_user.id)
    if not discard_chunks(upload_id):
        raise HTTPException(status_code=404, detail="Upload session not found or expired")
    return {"message": "Chunks cleaned up successfully"}


# ── File serving ──────────────────────────────────────────

async def resolve_served_file(file_path: str, current_user: User):
    segments = [s for s in file_path.split("/") if s != ""]
    target = resolve_upload_path(segments)
    parts = target.relative_to(UPLOAD_DIR.resolve()).parts
    prefix = tuple(EFILING_ATTACHMENT_DIR.split("/"))
    if parts[:len(prefix)] == prefix and not is_admin_level(current_user):
        attachment_id = parts[-1].split(".")[0]
        attachment = await db.efiling_attachments.find_one({"id": attachment_id, "is_active": True}, {"_id": 0})
        if not attachment:
            raise HTTPException(status_code=404, detail="File not found")
        if not await user_can_access_file(attachment["file_id"], current_user):
            raise HTTPException(status_code=403, detail="Forbidden - You do not have access to this file")
    return target
