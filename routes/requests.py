from fastapi import APIRouter, Depends, HTTPException, Query, Request
from datetime import date
from typing import Optional
from models.auth import User
from models.work_request import WorkRequestCreate, WorkRequestUpdate
from core.auth import check_permission, is_admin_level
from controllers import work_request_controller, media_controller
from controllers.audit_controller import log_audit, get_client_ip as _ip, get_user_agent as _ua

router = APIRouter(prefix="/requests", tags=["requests"])


@router.get("")
async def get_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(0, ge=0),
    filter: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    creator_id: Optional[str] = None,
    creator_type: Optional[str] = None,
    assigned_sm_agent_id: Optional[str] = None,
    approval_status: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    scope: Optional[str] = None,
    current_user: User = Depends(check_permission("requests", "view")),
):
    return await work_request_controller.get_requests(
        current_user, page=page, limit=limit, filter=filter,
        date_from=date_from, date_to=date_to,
        creator_id=creator_id, creator_type=creator_type,
        assigned_sm_agent_id=assigned_sm_agent_id, approval_status=approval_status,
        sort_by=sort_by, sort_order=sort_order, scope=scope,
    )


@router.post("", status_code=201)
async def create_request(data: WorkRequestCreate, request: Request, current_user: User = Depends(check_permission("requests", "create"))):
    result = await work_request_controller.create_request(data, current_user)
    await log_audit(current_user.id, current_user.name, current_user.role, "CREATE", "requests", "work_request", f"Created work request #{result.request_no}", result.id, _ip(request), _ua(request))
    return {"message": "Work request submitted successfully", "id": result.id, "request_no": result.request_no, "request": result}


@router.get("/{request_id}")
async def get_request(request_id: str, scope: Optional[str] = None, current_user: User = Depends(check_permission("requests", "view"))):
    return await work_request_controller.get_request(request_id, current_user, scope)


@router.put("/{request_id}")
async def update_request(request_id: str, data: WorkRequestUpdate, request: Request, current_user: User = Depends(check_permission("requests", "edit"))):
    result = await work_request_controller.update_request(request_id, data, current_user)
    await log_audit(current_user.id, current_user.name, current_user.role, "UPDATE", "requests", "work_request", f"Updated work request #{result['request_no']}", result["id"], _ip(request), _ua(request))
    return {"message": "Work request updated successfully", "request": result}


@router.delete("/{request_id}")
async def delete_request(request_id: str, request: Request, current_user: User = Depends(check_permission("requests", "delete"))):
    if not is_admin_level(current_user):
        raise HTTPException(status_code=403, detail="Only administrators can delete work requests")
    result = await work_request_controller.delete_request(request_id)
    await log_audit(current_user.id, current_user.name, current_user.role, "DELETE", "requests", "work_request", "Deleted work request", request_id, _ip(request), _ua(request))
    return result


@router.get("/{request_id}/upload-permission")
async def get_upload_permission(
    request_id: str,
    type: str = Query(...),
    current_user: User = Depends(check_permission("requests", "view")),
):
    return await media_controller.get_upload_permission(request_id, type, current_user)
