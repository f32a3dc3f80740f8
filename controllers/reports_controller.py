from fastapi import HTTPException
from fastapi.responses import FileResponse
from typing import Optional
from datetime import date, datetime, timezone, timedelta

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment

from database import db
from config import EXPORT_DIR
from models.efiling import FileStatusCode
from controllers.work_request_controller import enrich_requests

TOP_N = 10


def style_excel_header(ws, row=1):
    header_font = Font(bold=True, color="FFFFFF", size=10)
    header_fill = PatternFill(start_color="1e293b", end_color="1e293b", fill_type="solid")
    for cell in ws[row]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")


def auto_column_width(ws):
    for col in ws.columns:
        max_len = max((len(str(cell.value or "")) for cell in col), default=0)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 3, 40)


def _date_query(date_from: Optional[date], date_to: Optional[date]) -> dict:
    if not date_from and not date_to:
        return {}
    bounds = {}
    if date_from:
        bounds["$gte"] = date_from.isoformat()
    if date_to:
        bounds["$lt"] = (date_to + timedelta(days=1)).isoformat()
    return {"request_date": bounds}


def _top(counts: dict, label: str) -> list:
    rows = [{label: k or "Unknown", "count": v} for k, v in counts.items()]
    return sorted(rows, key=lambda r: -r["count"])[:TOP_N]


def _tally(rows: list, key: str) -> dict:
    counts = {}
    for r in rows:
        counts[r.get(key)] = counts.get(r.get(key), 0) + 1
    return counts


async def get_request_report(date_from: Optional[date] = None, date_to: Optional[date] = None) -> dict:
    rows = await enrich_requests(await db.work_requests.find(_date_query(date_from, date_to), {"_id": 0}).to_list(100000))
    by_status = _tally(rows, "status_name")
    total = len(rows)
    completed = by_status.get("Completed", 0)

    monthly = {}
    for r in rows:
        month = (r.get("request_date") or "")[:7]
        if month:
            monthly[month] = monthly.get(month, 0) + 1

    by_department = _top(_tally(rows, "complaint_type"), "department")
    by_district = _top(_tally(rows, "district_name"), "district")
    return {
        "report_type": "requests",
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": {
            "total_requests": total,
            "completed": completed,
            "pending": by_status.get("Pending", 0),
            "in_progress": by_status.get("In Progress", 0),
            "completion_rate": round(completed / total * 100, 1) if total else 0,
            "total_users": await db.users.count_documents({"user_type": "user"}),
            "total_agents": await db.users.count_documents({"user_type": {"$in": ["agent", "socialmedia"]}}),
            "top_department": by_department[0]["department"] if by_department else None,
            "top_district": by_district[0]["district"] if by_district else None,
        },
        "by_status": _top(by_status, "status"),
        "by_department": by_department,
        "by_district": by_district,
        "by_town": _top(_tally(rows, "town_name"), "town"),
        "monthly_trends": [{"month": m, "count": monthly[m]} for m in sorted(monthly)][-12:],
    }


async def get_department_performance() -> dict:
    depts = await db.efiling_departments.find({}, {"_id": 0}).sort("name", 1).to_list(1000)
    completed = await db.efiling_file_statuses.find_one({"code": FileStatusCode.COMPLETED}, {"_id": 0, "id": 1})
    completed_id = (completed or {}).get("id")
    now = datetime.now(timezone.utc).isoformat()

    performance = []
    for d in depts:
        total = await db.efiling_files.count_documents({"department_id": d["id"]})
        done = await db.efiling_files.count_documents({"department_id": d["id"], "status_id": completed_id}) if completed_id else 0
        overdue = await db.efiling_file_movements.count_documents(
            {"to_department_id": d["id"], "is_completed": False, "sla_deadline": {"$lt": now}}
        )
        performance.append({
            "department_id": d["id"],
            "department_name": d["name"],
            "total_files": total,
            "completed_files": done,
            "open_files": total - done,
            "overdue_movements": overdue,
            "completion_rate": round(done / total * 100, 1) if total else 0,
        })
    return {"report_type": "department_performance", "generated_at": now, "departments": performance}


async def export_report(report_type: str, format: str = "excel",
                        date_from: Optional[date] = None, date_to: Optional[date] = None) -> FileResponse:
    if format != "excel":
        raise HTTPException(status_code=400, detail=f"Unsupported export format: {format}")
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    wb = Workbook()
    ws = wb.active

    if report_type == "requests":
        ws.title = "Work Requests"
        ws.append(["Request No", "Date", "Department", "Subtype", "District", "Town", "Division", "Address",
                   "Status", "Approval", "Creator", "Executive Engineer", "Contractor", "CE", "CEO", "COO"])
        style_excel_header(ws)
        rows = await db.work_requests.find(_date_query(date_from, date_to), {"_id": 0}) \
            .sort("request_no", 1).to_list(100000)
        for r in await enrich_requests(rows):
            ws.append([
                r.get("request_no"), (r.get("request_date") or "")[:10], r.get("complaint_type"), r.get("complaint_subtype"),
                r.get("district_name"), r.get("town_name"), r.get("division_name"), r.get("address"),
                r.get("status_name"), r.get("approval_status"), r.get("creator_name"),
                r.get("executive_engineer_name"), r.get("contractor_name"),
                r.get("ce_approval_status"), r.get("ceo_approval_status"), r.get("coo_approval_status"),
            ])
    elif report_type == "department-performance":
        ws.title = "Department Performance"
        ws.append(["Department", "Total Files", "Completed", "Open", "Overdue Movements", "Completion %"])
        style_excel_header(ws)
        for d in (await get_department_performance())["departments"]:
            ws.append([d["department_name"], d["total_files"], d["completed_files"], d["open_files"],
                       d["overdue_movements"], d["completion_rate"]])
    else:
        raise HTTPException(status_code=400, detail=f"Unknown report type: {report_type}")

    auto_column_width(ws)
    filepath = EXPORT_DIR / f"{report_type}_{timestamp}.xlsx"
    wb.save(str(filepath))
    return FileResponse(str(filepath), filename=f"{report_type}_{timestamp}.xlsx", media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
