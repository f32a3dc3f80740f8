from fastapi import APIRouter, Depends
from models.auth import User
from core.auth import check_permission
from controllers import dashboard_controller

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard/stats")
async def get_dashboard_stats(current_user: User = Depends(check_permission("dashboard", "view"))):
    return await dashboard_controller.get_dashboard_stats()


@router.get("/efiling/dashboard/stats")
async def get_efiling_stats(current_user: User = Depends(check_permission("efiling", "view"))):
    return await dashboard_controller.get_efiling_stats(current_user)
