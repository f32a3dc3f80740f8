from fastapi import APIRouter, Depends, Request
from typing import Optional
from models.auth import User
from models.efiling import (
    DepartmentCreate, EfilingRoleCreate, EfilingUserCreate, SlaRuleCreate,
    FileCategoryCreate, FileStatusCreate,
)
from core.auth import check_permission
from controllers import efiling_admin_controller as admin
from controllers.audit_controller import log_audit, get_client_ip as _ip, get_user_agent as _ua

router = APIRouter(prefix="/efiling", tags=["efiling-admin"])


async def _audit(current_user, request, action, resource, description, resource_id=None):
    await log_audit(current_user.id, current_user.name, current_user.role, action, "efiling_admin", resource, description, resource_id, _ip(request), _ua(request))


# ── Departments ───────────────────────────────────────────

@router.get("/departments")
async def get_departments(department_type: Optional[str] = None, current_user: User = Depends(check_permission("efiling", "view"))):
    return await admin.list_items("efiling_departments", {"department_type": department_type})


@router.post("/departments", status_code=201)
async def create_department(data: DepartmentCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "create"))):
    result = await admin.create_item("efiling_departments", data)
    await _audit(current_user, request, "CREATE", "department", f"Created department '{data.name}'", result.id)
    return result


@router.put("/departments/{item_id}")
async def update_department(item_id: str, data: DepartmentCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "edit"))):
    result = await admin.update_item("efiling_departments", item_id, data)
    await _audit(current_user, request, "UPDATE", "department", f"Updated department '{data.name}'", item_id)
    return result


@router.delete("/departments/{item_id}")
async def delete_department(item_id: str, request: Request, current_user: User = Depends(check_permission("efiling_admin", "delete"))):
    result = await admin.delete_item("efiling_departments", item_id)
    await _audit(current_user, request, "DELETE", "department", "Deleted department", item_id)
    return result


# ── Roles ─────────────────────────────────────────────────

@router.get("/roles")
async def get_roles(department_id: Optional[str] = None, current_user: User = Depends(check_permission("efiling", "view"))):
    return await admin.list_items("efiling_roles", {"department_id": department_id})


@router.post("/roles", status_code=201)
async def create_role(data: EfilingRoleCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "create"))):
    result = await admin.create_item("efiling_roles", data)
    await _audit(current_user, request, "CREATE", "role", f"Created e-filing role '{result.code}'", result.id)
    return result


@router.put("/roles/{item_id}")
async def update_role(item_id: str, data: EfilingRoleCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "edit"))):
    result = await admin.update_item("efiling_roles", item_id, data)
    await _audit(current_user, request, "UPDATE", "role", f"Updated e-filing role '{result['code']}'", item_id)
    return result


@router.delete("/roles/{item_id}")
async def delete_role(item_id: str, request: Request, current_user: User = Depends(check_permission("efiling_admin", "delete"))):
    result = await admin.delete_item("efiling_roles", item_id)
    await _audit(current_user, request, "DELETE", "role", "Deleted e-filing role", item_id)
    return result


# ── User profiles ─────────────────────────────────────────

@router.get("/users")
async def get_profiles(
    department_id: Optional[str] = None,
    efiling_role_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(check_permission("efiling", "view")),
):
    return await admin.list_items("efiling_users", {
        "department_id": department_id, "efiling_role_id": efiling_role_id, "is_active": is_active,
    })


@router.post("/users", status_code=201)
async def create_profile(data: EfilingUserCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "create"))):
    result = await admin.create_item("efiling_users", data)
    await _audit(current_user, request, "CREATE", "efiling_user", "Created e-filing profile", result.id)
    return result


@router.put("/users/{item_id}")
async def update_profile(item_id: str, data: EfilingUserCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "edit"))):
    result = await admin.update_item("efiling_users", item_id, data)
    await _audit(current_user, request, "UPDATE", "efiling_user", "Updated e-filing profile", item_id)
    return result


@router.delete("/users/{item_id}")
async def delete_profile(item_id: str, request: Request, current_user: User = Depends(check_permission("efiling_admin", "delete"))):
    result = await admin.delete_item("efiling_users", item_id)
    await _audit(current_user, request, "DELETE", "efiling_user", "Deleted e-filing profile", item_id)
    return result


# ── SLA matrix ────────────────────────────────────────────

@router.get("/sla-matrix")
async def get_sla_matrix(current_user: User = Depends(check_permission("efiling_admin", "view"))):
    return await admin.list_items("efiling_sla_matrix")


@router.post("/sla-matrix", status_code=201)
async def create_sla_rule(data: SlaRuleCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "create"))):
    result = await admin.create_item("efiling_sla_matrix", data)
    await _audit(current_user, request, "CREATE", "sla_rule", f"Created SLA rule {result.from_role_code} -> {result.to_role_code}", result.id)
    return result


@router.put("/sla-matrix/{item_id}")
async def update_sla_rule(item_id: str, data: SlaRuleCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "edit"))):
    result = await admin.update_item("efiling_sla_matrix", item_id, data)
    await _audit(current_user, request, "UPDATE", "sla_rule", "Updated SLA rule", item_id)
    return result


@router.delete("/sla-matrix/{item_id}")
async def delete_sla_rule(item_id: str, request: Request, current_user: User = Depends(check_permission("efiling_admin", "delete"))):
    result = await admin.delete_item("efiling_sla_matrix", item_id)
    await _audit(current_user, request, "DELETE", "sla_rule", "Deleted SLA rule", item_id)
    return result


# ── Categories ────────────────────────────────────────────

@router.get("/categories")
async def get_categories(
    department_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(check_permission("efiling", "view")),
):
    return await admin.get_categories(department_id, is_active)


@router.post("/categories", status_code=201)
async def create_category(data: FileCategoryCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "create"))):
    result = await admin.create_item("efiling_file_categories", data)
    await _audit(current_user, request, "CREATE", "category", f"Created category '{data.name}'", result.id)
    return result


@router.put("/categories/{item_id}")
async def update_category(item_id: str, data: FileCategoryCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "edit"))):
    result = await admin.update_item("efiling_file_categories", item_id, data)
    await _audit(current_user, request, "UPDATE", "category", f"Updated category '{data.name}'", item_id)
    return result


@router.delete("/categories/{item_id}")
async def delete_category(item_id: str, request: Request, current_user: User = Depends(check_permission("efiling_admin", "delete"))):
    result = await admin.delete_item("efiling_file_categories", item_id)
    await _audit(current_user, request, "DELETE", "category", "Deleted category", item_id)
    return result


# ── Statuses ──────────────────────────────────────────────

@router.get("/statuses")
async def get_statuses(current_user: User = Depends(check_permission("efiling", "view"))):
    return await admin.get_statuses()


@router.get("/statuses/code/{code}")
async def get_status_by_code(code: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await admin.get_status_by_code(code)


@router.post("/statuses", status_code=201)
async def create_status(data: FileStatusCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "create"))):
    result = await admin.create_item("efiling_file_statuses", data)
    await _audit(current_user, request, "CREATE", "status", f"Created status '{result.code}'", result.id)
    return result


@router.put("/statuses/{item_id}")
async def update_status(item_id: str, data: FileStatusCreate, request: Request, current_user: User = Depends(check_permission("efiling_admin", "edit"))):
    result = await admin.update_item("efiling_file_statuses", item_id, data)
    await _audit(current_user, request, "UPDATE", "status", f"Updated status '{result['code']}'", item_id)
    return result


@router.delete("/statuses/{item_id}")
async def delete_status(item_id: str, request: Request, current_user: User = Depends(check_permission("efiling_admin", "delete"))):
    result = await admin.delete_item("efiling_file_statuses", item_id)
    await _audit(current_user, request, "DELETE", "status", "Deleted status", item_id)
    return result
