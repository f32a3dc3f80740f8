import math
import logging
from fastapi import HTTPException
from typing import Optional
from datetime import datetime, timezone

from database import db
from models.auth import User
from models.approval import (
    SoftApproval, ApproverType, SoftApprovalStatus,
    CEApprovalInput, ExecutiveApprovalInput, ReactivateInput,
)
from models.media import MediaType
from models.work_request import ApprovalStatus
from core.whatsapp import send_whatsapp_message, is_configured as whatsapp_configured
from controllers.notification_controller import notify
from controllers.work_request_controller import find_request, enrich_requests, get_requests

logger = logging.getLogger(__name__)

# CEO soft decision -> request approval_status
CEO_DECISION_STATUS = {
    SoftApprovalStatus.APPROVED: ApprovalStatus.APPROVED,
    SoftApprovalStatus.NOT_APPROVED: ApprovalStatus.REJECTED,
    SoftApprovalStatus.PENDING: ApprovalStatus.PENDING,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def upsert_soft_approval(work_request_id: str, approver: User, approver_type: str,
                               status: str, comments: Optional[str], approved_at: Optional[str]) -> dict:
    """Create or replace the approval held by ``approver_type`` on a request."""
    existing = await db.work_request_approvals.find_one(
        {"work_request_id": work_request_id, "approver_type": approver_type}, {"_id": 0}
    )
    if existing:
        await db.work_request_approvals.update_one({"id": existing["id"]}, {"$set": {
            "approver_id": approver.id,
            "approval_status": status,
            "comments": comments,
            "approved_at": approved_at,
            "updated_at": _now(),
        }})
        return await db.work_request_approvals.find_one({"id": existing["id"]}, {"_id": 0})
    approval = SoftApproval(
        work_request_id=work_request_id,
        approver_id=approver.id,
        approver_type=approver_type,
        approval_status=status,
        comments=comments,
        approved_at=approved_at,
    )
    await db.work_request_approvals.insert_one(approval.model_dump())
    return approval.model_dump()


# ── CE ────────────────────────────────────────────────────

def _ce_scope(user: User) -> dict:
    scope = user.ce_scope.model_dump() if user.ce_scope else {}
    if not scope.get("complaint_type_ids"):
        raise HTTPException(status_code=404, detail="CE user not found or no departments assigned.")
    return scope


def _has_geography(scope: dict) -> bool:
    return any(scope.get(k) for k in ("zone_ids", "division_ids", "district_ids", "town_ids"))


async def _ce_query(scope: dict) -> dict:
    clauses = [{"complaint_type_id": {"$in": scope["complaint_type_ids"]}}]
    if _has_geography(scope):
        geo = []
        if scope.get("zone_ids"):
            geo.append({"zone_id": {"$in": scope["zone_ids"]}})
        if scope.get("division_ids"):
            geo.append({"division_id": {"$in": scope["division_ids"]}})
        if scope.get("district_ids"):
            geo.append({"district_id": {"$in": scope["district_ids"]}})
            towns = await db.towns.find({"district_id": {"$in": scope["district_ids"]}}, {"_id": 0, "id": 1}).to_list(5000)
            if towns:
                geo.append({"town_id": {"$in": [t["id"] for t in towns]}})
        if scope.get("town_ids"):
            geo.append({"town_id": {"$in": scope["town_ids"]}})
        clauses.append({"$or": geo})
    return {"$and": clauses}


async def ce_can_access(scope: dict, request: dict) -> bool:
    if request.get("complaint_type_id") not in scope.get("complaint_type_ids", []):
        return False
    if not _has_geography(scope):
        return True
    if request.get("zone_id") and request["zone_id"] in scope.get("zone_ids", []):
        return True
    if request.get("division_id") and request["division_id"] in scope.get("division_ids", []):
        return True
    if scope.get("district_ids"):
        district_id = request.get("district_id")
        if not district_id and request.get("town_id"):
            town = await db.towns.find_one({"id": request["town_id"]}, {"_id": 0, "district_id": 1})
            district_id = (town or {}).get("district_id")
        if district_id and district_id in scope["district_ids"]:
            return True
    if request.get("town_id") and request["town_id"] in scope.get("town_ids", []):
        return True
    return False


async def ce_approve(request_id: str, data: CEApprovalInput, current_user: User) -> dict:
    if data.approval_status not in (SoftApprovalStatus.APPROVED, SoftApprovalStatus.NOT_APPROVED):
        raise HTTPException(status_code=400, detail="Invalid approval status. Must be 'approved' or 'not_approved'.")
    scope = _ce_scope(current_user)
    request = await find_request(request_id)
    if request.get("complaint_type_id") not in scope["complaint_type_ids"]:
        raise HTTPException(status_code=403, detail="You don't have permission to approve this request. It's not in your assigned departments.")
    if not await ce_can_access(scope, request):
        raise HTTPException(status_code=403, detail="You don't have permission to approve this request. It's not within your assigned geographic scope.")
    approved_at = _now() if data.approval_status == SoftApprovalStatus.APPROVED else None
    approval = await upsert_soft_approval(request["id"], current_user, ApproverType.CE, data.approval_status, data.comments, approved_at)
    return {"message": f"Work request {data.approval_status} successfully", "data": approval}


async def _ce_status_clause(approval_status: Optional[str]) -> Optional[dict]:
    if not approval_status:
        return None
    decided = await db.work_request_approvals.find(
        {"approver_type": ApproverType.CE, "approval_status": {"$in": [SoftApprovalStatus.APPROVED, SoftApprovalStatus.NOT_APPROVED]}},
        {"_id": 0, "work_request_id": 1, "approval_status": 1},
    ).to_list(100000)
    if approval_status == SoftApprovalStatus.PENDING:
        return {"id": {"$nin": [a["work_request_id"] for a in decided]}}
    return {"id": {"$in": [a["work_request_id"] for a in decided if a["approval_status"] == approval_status]}}


async def ce_get_requests(current_user: User, page: int = 1, limit: int = 25, approval_status: Optional[str] = None) -> dict:
    scope = _ce_scope(current_user)
    query = await _ce_query(scope)
    status_clause = await _ce_status_clause(approval_status)
    if status_clause:
        query["$and"].append(status_clause)
    total = await db.work_requests.count_documents(query)
    rows = await db.work_requests.find(query, {"_id": 0}) \
        .sort([("request_date", -1), ("created_at", -1)]) \
        .skip((page - 1) * limit) \
        .limit(limit) \
        .to_list(limit)
    return {
        "data": await enrich_requests(rows),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit else 1,
        "limit": limit,
    }


async def ce_get_request(request_id: str, current_user: User) -> dict:
    scope = _ce_scope(current_user)
    request = await find_request(request_id)
    if not await ce_can_access(scope, request):
        raise HTTPException(status_code=403, detail="Request is outside your assigned scope")
    return (await enrich_requests([request]))[0]


async def ce_dashboard(current_user: User) -> dict:
    scope = _ce_scope(current_user)
    query = await _ce_query(scope)
    ids = [r["id"] for r in await db.work_requests.find(query, {"_id": 0, "id": 1}).to_list(100000)]
    approvals = await db.work_request_approvals.find(
        {"approver_type": ApproverType.CE, "work_request_id": {"$in": ids}}, {"_id": 0, "approval_status": 1}
    ).to_list(len(ids) or 1)
    approved = sum(1 for a in approvals if a["approval_status"] == SoftApprovalStatus.APPROVED)
    not_approved = sum(1 for a in approvals if a["approval_status"] == SoftApprovalStatus.NOT_APPROVED)
    return {
        "total_requests": len(ids),
        "approved": approved,
        "not_approved": not_approved,
        "pending": len(ids) - approved - not_approved,
        "departments": len(scope["complaint_type_ids"]),
    }


# ── CEO / COO ─────────────────────────────────────────────

def _decision_message(approver_label: str, status: str, request_no) -> str:
    if status == SoftApprovalStatus.APPROVED:
        verb = "approved"
    elif status == SoftApprovalStatus.NOT_APPROVED:
        verb = "did not approve"
    else:
        verb = "updated approval status for"
    return f"{approver_label} {verb} your work request #{request_no}"


async def _send_whatsapp(user_id: str, message: str):
    if not whatsapp_configured():
        return
    creator = await db.users.find_one({"id": user_id}, {"_id": 0, "phone": 1})
    if not creator or not creator.get("phone"):
        return
    result = await send_whatsapp_message(creator["phone"], message)
    if not result["success"]:
        logger.warning(f"WhatsApp notification to {user_id} failed: {result.get('error')}")


async def executive_approve(data: ExecutiveApprovalInput, current_user: User, approver_type: str) -> dict:
    comments = (data.comments or "").strip()
    if not comments:
        raise HTTPException(status_code=400, detail="Work request ID, comments, and approval status are required")
    if data.approval_status not in CEO_DECISION_STATUS:
        raise HTTPException(status_code=400, detail="Invalid approval status")
    request = await find_request(data.work_request_id)

    approved_at = None if data.approval_status == SoftApprovalStatus.PENDING else _now()
    approval = await upsert_soft_approval(request["id"], current_user, approver_type, data.approval_status, comments, approved_at)

    if approver_type == ApproverType.CEO:
        await db.work_requests.update_one({"id": request["id"]}, {"$set": {
            "approval_status": CEO_DECISION_STATUS[data.approval_status],
            "updated_at": _now(),
        }})

    message = _decision_message(approver_type.upper(), data.approval_status, request["request_no"])
    await notify(request["creator_id"], f"{approver_type}_soft_approval", message, request["id"])
    if approver_type == ApproverType.CEO:
        await _send_whatsapp(request["creator_id"], f"{message}. Comments: {comments}")
    return {"message": "Soft approval added successfully", "data": approval}


async def reactivate_request(data: ReactivateInput, current_user: User) -> dict:
    request = await find_request(data.work_request_id)
    if request.get("approval_status") != ApprovalStatus.REJECTED:
        raise HTTPException(status_code=404, detail="Rejected request not found")
    actor = "CEO" if current_user.role == "ceo" else "Admin"
    note = f"Request reactivated by {actor} on {_now()}"

    await db.work_requests.update_one({"id": request["id"]}, {"$set": {
        "approval_status": ApprovalStatus.PENDING,
        "updated_at": _now(),
    }})
    ceo_approval = await db.work_request_approvals.find_one(
        {"work_request_id": request["id"], "approver_type": ApproverType.CEO}, {"_id": 0}
    )
    if ceo_approval:
        comments = f"{ceo_approval.get('comments') or ''}\n\n{note}".lstrip()
        await db.work_request_approvals.update_one({"id": ceo_approval["id"]}, {"$set": {
            "approval_status": SoftApprovalStatus.PENDING,
            "comments": comments,
            "approved_at": None,
            "updated_at": _now(),
        }})

    await notify(
        request["creator_id"], "ceo_reactivation",
        f"Your work request #{request['request_no']} has been reactivated and is now pending CEO approval again.",
        request["id"],
    )
    return {"message": "Request reactivated successfully", "approval_status": ApprovalStatus.PENDING}


async def ceo_get_requests(current_user: User, page: int = 1, limit: int = 25, approval_status: Optional[str] = None) -> dict:
    return await get_requests(current_user, page=page, limit=limit, approval_status=approval_status)


async def coo_get_requests(current_user: User, page: int = 1, limit: int = 25, approval_status: Optional[str] = None) -> dict:
    result = await get_requests(current_user, page=page, limit=limit, approval_status=approval_status)
    ids = [r["id"] for r in result["data"]]
    media = await db.media.find(
        {"work_request_id": {"$in": ids}}, {"_id": 0, "work_request_id": 1, "media_type": 1}
    ).to_list(100000)
    counts = {}
    for m in media:
        key = (m["work_request_id"], m["media_type"])
        counts[key] = counts.get(key, 0) + 1
    for r in result["data"]:
        r["media_counts"] = {t: counts.get((r["id"], t), 0) for t in MediaType.ALL}
    return result
