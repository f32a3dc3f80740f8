from fastapi import APIRouter, Depends, Request, UploadFile, File, Query
from typing import Optional
from models.auth import User
from models.efiling import EfilingFileCreate, EfilingFileUpdate, MarkToInput, SignInput, CompleteInput, CommentInput
from core.auth import check_permission
from controllers import efiling_file_controller as files
from controllers import efiling_notification_controller as notifications
from controllers.audit_controller import log_audit, get_client_ip as _ip, get_user_agent as _ua

router = APIRouter(prefix="/efiling", tags=["efiling"])


async def _audit(current_user, request, action, description, resource_id=None, resource="file"):
    await log_audit(current_user.id, current_user.name, current_user.role, action, "efiling", resource, description, resource_id, _ip(request), _ua(request))


# ── Files ─────────────────────────────────────────────────

@router.get("/files")
async def get_files(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=500),
    department_id: Optional[str] = None,
    status_id: Optional[str] = None,
    assigned_to: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    current_user: User = Depends(check_permission("efiling", "view")),
):
    return await files.get_files(
        current_user, page=page, limit=limit, department_id=department_id,
        status_id=status_id, assigned_to=assigned_to, priority=priority, search=search,
    )


@router.post("/files", status_code=201)
async def create_file(data: EfilingFileCreate, request: Request, current_user: User = Depends(check_permission("efiling", "create"))):
    result = await files.create_file(data, current_user)
    await _audit(current_user, request, "CREATE", f"Created file {result.file_number}", result.id)
    return result


@router.get("/files/{file_id}")
async def get_file(file_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await files.get_file(file_id, current_user)


@router.put("/files/{file_id}")
async def update_file(file_id: str, data: EfilingFileUpdate, request: Request, current_user: User = Depends(check_permission("efiling", "edit"))):
    result = await files.update_file(file_id, data, current_user)
    await _audit(current_user, request, "UPDATE", f"Updated file {result['file_number']}", file_id)
    return result


@router.delete("/files/{file_id}")
async def delete_file(file_id: str, request: Request, current_user: User = Depends(check_permission("efiling", "delete"))):
    result = await files.delete_file(file_id, current_user)
    await _audit(current_user, request, "DELETE", "Deleted file", file_id)
    return result


# ── Routing ───────────────────────────────────────────────

@router.get("/files/{file_id}/marking-recipients")
async def get_marking_recipients(file_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await files.get_marking_recipients(file_id, current_user)


@router.post("/files/{file_id}/mark-to")
async def mark_to(file_id: str, data: MarkToInput, request: Request, current_user: User = Depends(check_permission("efiling", "edit"))):
    result = await files.mark_to(file_id, data, current_user)
    await _audit(current_user, request, "UPDATE", f"Marked file to {len(result['movements'])} user(s)", file_id)
    return result


@router.get("/files/{file_id}/mark-to")
async def get_movements(file_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await files.get_movements(file_id, current_user)


# ── Signing ───────────────────────────────────────────────

@router.post("/files/{file_id}/sign", status_code=201)
async def sign_file(file_id: str, data: SignInput, request: Request, current_user: User = Depends(check_permission("efiling", "edit"))):
    result = await files.sign_file(file_id, data, current_user)
    await _audit(current_user, request, "APPROVE", f"Signed file ({data.method})", file_id)
    return result


@router.get("/files/{file_id}/signatures")
async def get_file_signatures(file_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await files.get_signatures(file_id, current_user)


@router.post("/files/{file_id}/complete")
async def complete_file(file_id: str, request: Request, data: Optional[CompleteInput] = None, current_user: User = Depends(check_permission("efiling", "edit"))):
    result = await files.complete_file(file_id, data or CompleteInput(), current_user)
    await _audit(current_user, request, "UPDATE", "Completed file", file_id)
    return result


# ── Attachments ───────────────────────────────────────────

@router.post("/files/{file_id}/attachments", status_code=201)
async def upload_attachment(file_id: str, request: Request, file: UploadFile = File(...), current_user: User = Depends(check_permission("efiling", "edit"))):
    result = await files.upload_attachment(file_id, file.filename, file.content_type, await file.read(), current_user)
    await _audit(current_user, request, "CREATE", f"Attached '{file.filename}'", result.id, resource="attachment")
    return result


@router.get("/files/{file_id}/attachments")
async def get_attachments(file_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await files.get_attachments(file_id, current_user)


@router.delete("/attachments/{attachment_id}")
async def delete_attachment(attachment_id: str, request: Request, current_user: User = Depends(check_permission("efiling", "edit"))):
    result = await files.delete_attachment(attachment_id, current_user)
    await _audit(current_user, request, "DELETE", "Deleted attachment", attachment_id, resource="attachment")
    return result


# ── Comments & timeline ───────────────────────────────────

@router.get("/files/{file_id}/comments")
async def get_comments(file_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await files.get_comments(file_id, current_user)


@router.post("/files/{file_id}/comments", status_code=201)
async def add_comment(file_id: str, data: CommentInput, request: Request, current_user: User = Depends(check_permission("efiling", "view"))):
    result = await files.add_comment(file_id, data, current_user)
    await _audit(current_user, request, "CREATE", "Added comment to file", result.id, resource="comment")
    return result


@router.put("/files/{file_id}/comments/{comment_id}")
async def update_comment(file_id: str, comment_id: str, data: CommentInput, request: Request, current_user: User = Depends(check_permission("efiling", "view"))):
    result = await files.update_comment(file_id, comment_id, data, current_user)
    await _audit(current_user, request, "UPDATE", "Edited comment", comment_id, resource="comment")
    return result


@router.delete("/files/{file_id}/comments/{comment_id}")
async def delete_comment(file_id: str, comment_id: str, request: Request, current_user: User = Depends(check_permission("efiling", "view"))):
    result = await files.delete_comment(file_id, comment_id, current_user)
    await _audit(current_user, request, "DELETE", "Deleted comment", comment_id, resource="comment")
    return result


@router.get("/files/{file_id}/timeline")
async def get_timeline(file_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await files.get_timeline(file_id, current_user)


# ── Notifications ─────────────────────────────────────────

@router.get("/notifications")
async def get_notifications(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    unread_only: bool = False,
    current_user: User = Depends(check_permission("efiling", "view")),
):
    return await notifications.get_notifications(current_user, limit, offset, unread_only)


@router.post("/notifications/{notification_id}/{action}")
async def notification_action(notification_id: str, action: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await notifications.apply_action(notification_id, action, current_user)
