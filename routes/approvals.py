from fastapi import APIRouter, Depends, Query, Request
from typing import Optional
from models.auth import User
from models.approval import CEApprovalInput, ExecutiveApprovalInput, ReactivateInput, ApproverType
from core.auth import check_role
from controllers import approval_controller
from controllers.audit_controller import log_audit, get_client_ip as _ip, get_user_agent as _ua

router = APIRouter(tags=["approvals"])


# ── CE ────────────────────────────────────────────────────

@router.get("/ce/requests")
async def ce_get_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=500),
    approval_status: Optional[str] = None,
    current_user: User = Depends(check_role(["ce"])),
):
    return await approval_controller.ce_get_requests(current_user, page, limit, approval_status)


@router.get("/ce/requests/{request_id}")
async def ce_get_request(request_id: str, current_user: User = Depends(check_role(["ce"]))):
    return await approval_controller.ce_get_request(request_id, current_user)


@router.post("/ce/requests/{request_id}/approve")
async def ce_approve(request_id: str, data: CEApprovalInput, request: Request, current_user: User = Depends(check_role(["ce"]))):
    result = await approval_controller.ce_approve(request_id, data, current_user)
    action = "APPROVE" if data.approval_status == "approved" else "REJECT"
    await log_audit(current_user.id, current_user.name, current_user.role, action, "approvals", "work_request", f"CE {data.approval_status} work request", request_id, _ip(request), _ua(request))
    return result


@router.get("/ce/dashboard")
async def ce_dashboard(current_user: User = Depends(check_role(["ce"]))):
    return await approval_controller.ce_dashboard(current_user)


# ── CEO ───────────────────────────────────────────────────

@router.get("/ceo/requests")
async def ceo_get_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=500),
    approval_status: Optional[str] = None,
    current_user: User = Depends(check_role(["ceo"])),
):
    return await approval_controller.ceo_get_requests(current_user, page, limit, approval_status)


@router.post("/ceo/approve-request")
async def ceo_approve(data: ExecutiveApprovalInput, request: Request, current_user: User = Depends(check_role(["ceo"]))):
    result = await approval_controller.executive_approve(data, current_user, ApproverType.CEO)
    await log_audit(current_user.id, current_user.name, current_user.role, "APPROVE", "approvals", "work_request", f"CEO soft approval: {data.approval_status}", data.work_request_id, _ip(request), _ua(request))
    return result


@router.post("/ceo/reactivate-request")
async def reactivate_request(data: ReactivateInput, request: Request, current_user: User = Depends(check_role(["ceo", "admin", "manager"]))):
    result = await approval_controller.reactivate_request(data, current_user)
    await log_audit(current_user.id, current_user.name, current_user.role, "UPDATE", "approvals", "work_request", "Reactivated rejected work request", data.work_request_id, _ip(request), _ua(request))
    return result


# ── COO ───────────────────────────────────────────────────

@router.get("/coo/requests")
async def coo_get_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=500),
    approval_status: Optional[str] = None,
    current_user: User = Depends(check_role(["coo"])),
):
    return await approval_controller.coo_get_requests(current_user, page, limit, approval_status)


@router.post("/coo/approve-request")
async def coo_approve(data: ExecutiveApprovalInput, request: Request, current_user: User = Depends(check_role(["coo"]))):
    result = await approval_controller.executive_approve(data, current_user, ApproverType.COO)
    await log_audit(current_user.id, current_user.name, current_user.role, "APPROVE", "approvals", "work_request", f"COO soft approval: {data.approval_status}", data.work_request_id, _ip(request), _ua(request))
    return result
