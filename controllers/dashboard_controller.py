from datetime import datetime, timezone
from database import db
from models.auth import User
from models.media import MediaType
from models.work_request import ApprovalStatus
from core.geography import get_user_geography
from controllers.work_request_controller import enrich_requests


async def get_dashboard_stats() -> dict:
    # ── Requests ──────────────────────────────────────────
    total_requests = await db.work_requests.count_documents({})

    statuses = await db.statuses.find({}, {"_id": 0}).sort("order", 1).to_list(100)
    by_status = []
    for status in statuses:
        count = await db.work_requests.count_documents({"status_id": status["id"]})
        by_status.append({"status_id": status["id"], "status": status["name"], "count": count})

    by_approval = {
        state: await db.work_requests.count_documents({"approval_status": state})
        for state in (ApprovalStatus.PENDING, ApprovalStatus.APPROVED, ApprovalStatus.REJECTED)
    }

    this_month_prefix = datetime.now(timezone.utc).strftime("%Y-%m")
    requests_this_month = await db.work_requests.count_documents(
        {"request_date": {"$regex": f"^{this_month_prefix}"}}
    )

    # ── Media ─────────────────────────────────────────────
    media_by_type = {t: await db.media.count_documents({"media_type": t}) for t in MediaType.ALL}

    # ── Complaint types ───────────────────────────────────
    types = await db.complaint_types.find({}, {"_id": 0, "id": 1, "type_name": 1}).to_list(1000)
    rows = await db.work_requests.find({}, {"_id": 0, "complaint_type_id": 1}).to_list(100000)
    type_counts = {}
    for r in rows:
        type_counts[r.get("complaint_type_id")] = type_counts.get(r.get("complaint_type_id"), 0) + 1
    by_complaint_type = sorted(
        [{"complaint_type_id": t["id"], "type_name": t["type_name"], "count": type_counts.get(t["id"], 0)} for t in types],
        key=lambda x: -x["count"],
    )

    # Recent requests (last 5)
    recent = await db.work_requests.find({}, {"_id": 0}) \
        .sort([("request_date", -1), ("created_at", -1)]).limit(5).to_list(5)

    return {
        "requests": {
            "total": total_requests,
            "this_month": requests_this_month,
            "by_status": by_status,
            "by_approval_status": by_approval,
        },
        "media": {"total": sum(media_by_type.values()), "by_type": media_by_type},
        "by_complaint_type": by_complaint_type,
        "recent_requests": await enrich_requests(recent),
    }


async def get_efiling_stats(current_user: User) -> dict:
    statuses = await db.efiling_file_statuses.find({}, {"_id": 0}).sort("created_at", 1).to_list(100)
    files_by_status = []
    for status in statuses:
        count = await db.efiling_files.count_documents({"status_id": status["id"]})
        files_by_status.append({"code": status["code"], "name": status["name"], "count": count})

    assigned_to_me = 0
    overdue_movements = 0
    unread_notifications = 0
    geography = await get_user_geography(current_user.id)
    if geography:
        profile_id = geography["efiling_user_id"]
        assigned_to_me = await db.efiling_files.count_documents({"assigned_to": profile_id})
        overdue_movements = await db.efiling_file_movements.count_documents({
            "to_user_id": profile_id,
            "is_completed": False,
            "sla_deadline": {"$lt": datetime.now(timezone.utc).isoformat()},
        })
        unread_notifications = await db.efiling_notifications.count_documents(
            {"efiling_user_id": profile_id, "is_read": False, "is_dismissed": False}
        )

    return {
        "total_files": await db.efiling_files.count_documents({}),
        "files_by_status": files_by_status,
        "assigned_to_me": assigned_to_me,
        "overdue_movements": overdue_movements,
        "unread_notifications": unread_notifications,
    }
