from fastapi import APIRouter, Depends, Request, UploadFile, File, Form, Query
from fastapi.responses import FileResponse
from datetime import date
from typing import List, Optional
from models.auth import User
from models.media import MediaUpdate, ChunkFinalize, MediaType
from core.auth import get_current_user, check_permission
from controllers import media_controller
from controllers.audit_controller import log_audit, get_client_ip as _ip, get_user_agent as _ua

router = APIRouter(tags=["media"])
files_router = APIRouter(tags=["uploads"])


# ── Media ─────────────────────────────────────────────────

@router.post("/media/upload", status_code=201)
async def upload_media(
    request: Request,
    work_request_id: str = Form(...),
    media_type: str = Form(...),
    files: List[UploadFile] = File(...),
    descriptions: List[str] = Form(...),
    latitudes: Optional[List[str]] = Form(None),
    longitudes: Optional[List[str]] = Form(None),
    current_user: User = Depends(check_permission("media", "create")),
):
    payload = [(f.filename, f.content_type, await f.read()) for f in files]
    result = await media_controller.upload_media(
        work_request_id, media_type, payload, descriptions, current_user, latitudes, longitudes,
    )
    await log_audit(current_user.id, current_user.name, current_user.role, "CREATE", "media", media_type, f"Uploaded {len(result)} {MediaType.LABELS.get(media_type, media_type)} file(s)", work_request_id, _ip(request), _ua(request))
    return result


@router.get("/media")
async def get_media_list(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=0),
    work_request_id: Optional[str] = None,
    media_type: Optional[str] = None,
    creator_id: Optional[str] = None,
    filter: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: User = Depends(check_permission("media", "view")),
):
    return await media_controller.get_media_list(page, limit, work_request_id, media_type, creator_id, filter, date_from, date_to)


# ── Chunked uploads ───────────────────────────────────────

@router.post("/media/chunks")
async def upload_chunk(
    upload_id: str = Form(...),
    chunk_index: int = Form(...),
    total_chunks: int = Form(...),
    file_name: str = Form(...),
    file_type: str = Form(...),
    file_size: int = Form(0),
    media_type: str = Form(MediaType.FINAL_VIDEO),
    work_request_id: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    chunk: UploadFile = File(...),
    current_user: User = Depends(check_permission("media", "create")),
):
    return await media_controller.upload_chunk(
        upload_id, chunk_index, total_chunks, file_name, file_type, file_size,
        await chunk.read(), current_user, media_type, work_request_id, description,
    )


@router.post("/media/chunks/finalize")
async def finalize_chunks(data: ChunkFinalize, request: Request, current_user: User = Depends(check_permission("media", "create"))):
    result = await media_controller.finalize_chunks(data, current_user)
    await log_audit(current_user.id, current_user.name, current_user.role, "CREATE", "media", data.media_type, f"Assembled chunked upload '{data.file_name}'", data.work_request_id, _ip(request), _ua(request))
    return result


@router.delete("/media/chunks/{upload_id}")
async def cancel_chunks(upload_id: str, current_user: User = Depends(check_permission("media", "create"))):
    return await media_controller.cancel_chunks(upload_id, current_user)


@router.get("/media/{media_id}")
async def get_media(media_id: str, current_user: User = Depends(check_permission("media", "view"))):
    return await media_controller.get_media(media_id)


@router.put("/media/{media_id}")
async def update_media(media_id: str, data: MediaUpdate, request: Request, current_user: User = Depends(check_permission("media", "edit"))):
    result = await media_controller.update_media(media_id, data)
    await log_audit(current_user.id, current_user.name, current_user.role, "UPDATE", "media", result["media_type"], "Updated media", media_id, _ip(request), _ua(request))
    return result


@router.delete("/media/{media_id}")
async def delete_media(media_id: str, request: Request, current_user: User = Depends(check_permission("media", "delete"))):
    result = await media_controller.delete_media(media_id)
    await log_audit(current_user.id, current_user.name, current_user.role, "DELETE", "media", "media", "Deleted media", media_id, _ip(request), _ua(request))
    return result


# ── File serving ──────────────────────────────────────────

@files_router.get("/uploads/{file_path:path}")
async def serve_upload(file_path: str, current_user: User = Depends(get_current_user)):
    target = await media_controller.resolve_served_file(file_path, current_user)
    return FileResponse(target)
