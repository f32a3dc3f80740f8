from fastapi import APIRouter, Depends, HTTPException
from datetime import date
from typing import Optional
from models.auth import User
from core.auth import get_current_user, is_admin_level
from controllers import reports_controller

router = APIRouter(prefix="/reports", tags=["reports"])


def _require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not is_admin_level(current_user):
        raise HTTPException(status_code=403, detail="Admin or Manager access required")
    return current_user


@router.get("/requests")
async def get_request_report(date_from: Optional[date] = None, date_to: Optional[date] = None, current_user: User = Depends(_require_admin)):
    return await reports_controller.get_request_report(date_from, date_to)


@router.get("/department-performance")
async def get_department_performance(current_user: User = Depends(_require_admin)):
    return await reports_controller.get_department_performance()


@router.get("/export/{report_type}")
async def export_report(
    report_type: str,
    format: str = "excel",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    current_user: User = Depends(_require_admin),
):
    return await reports_controller.export_report(report_type, format, date_from, date_to)
