from fastapi import APIRouter, Depends, Query, HTTPException
from datetime import date
from core.auth import get_current_user, is_admin_level
from models.auth import User
from controllers import audit_controller

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("")
async def get_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    module: str = Query(None),
    action: str = Query(None),
    user_id: str = Query(None),
    date_from: date = Query(None),
    date_to: date = Query(None),
    search: str = Query(None),
    current_user: User = Depends(get_current_user),
):
    if not is_admin_level(current_user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return await audit_controller.get_audit_logs(
        page=page, limit=limit, module=module, action=action,
        user_id=user_id, date_from=date_from, date_to=date_to, search=search,
    )
