from fastapi import APIRouter, Depends, Query, Request
from models.auth import User, UserCreate, UserUpdate, CEScope
from core.auth import check_permission
from controllers import users_controller
from controllers.audit_controller import log_audit, get_client_ip as _ip, get_user_agent as _ua

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
async def get_users(
    role: str = Query(None),
    user_type: str = Query(None),
    search: str = Query(None),
    current_user: User = Depends(check_permission("users", "view")),
):
    return await users_controller.get_users(role=role, user_type=user_type, search=search)


@router.get("/{user_id}")
async def get_user(user_id: str, current_user: User = Depends(check_permission("users", "view"))):
    return await users_controller.get_user(user_id)


@router.post("", response_model=User, status_code=201)
async def create_user(data: UserCreate, request: Request, current_user: User = Depends(check_permission("users", "create"))):
    result = await users_controller.create_user(data)
    await log_audit(current_user.id, current_user.name, current_user.role, "CREATE", "users", "user", f"Created user '{data.email}'", result.id, _ip(request), _ua(request))
    return result


@router.put("/{user_id}")
async def update_user(user_id: str, data: UserUpdate, request: Request, current_user: User = Depends(check_permission("users", "edit"))):
    result = await users_controller.update_user(user_id, data)
    await log_audit(current_user.id, current_user.name, current_user.role, "UPDATE", "users", "user", "Updated user", user_id, _ip(request), _ua(request))
    return result


@router.delete("/{user_id}")
async def deactivate_user(user_id: str, request: Request, current_user: User = Depends(check_permission("users", "delete"))):
    result = await users_controller.deactivate_user(user_id, current_user.id)
    await log_audit(current_user.id, current_user.name, current_user.role, "DELETE", "users", "user", "Deactivated user", user_id, _ip(request), _ua(request))
    return result


@router.get("/{user_id}/ce-scope")
async def get_ce_scope(user_id: str, current_user: User = Depends(check_permission("users", "view"))):
    return await users_controller.get_ce_scope(user_id)


@router.put("/{user_id}/ce-scope")
async def set_ce_scope(user_id: str, scope: CEScope, request: Request, current_user: User = Depends(check_permission("users", "edit"))):
    result = await users_controller.set_ce_scope(user_id, scope)
    await log_audit(current_user.id, current_user.name, current_user.role, "UPDATE", "users", "ce_scope", "Updated CE scope", user_id, _ip(request), _ua(request))
    return result
