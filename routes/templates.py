from fastapi import APIRouter, Depends, Request
from typing import Optional
from models.auth import User
from models.efiling import TemplateCreate, TemplateUpdate, UserSignatureCreate
from core.auth import check_permission
from controllers import template_controller, signature_controller
from controllers.audit_controller import log_audit, get_client_ip as _ip, get_user_agent as _ua

router = APIRouter(prefix="/efiling", tags=["templates"])


# ── Templates ─────────────────────────────────────────────

@router.get("/templates")
async def get_templates(
    department_id: Optional[str] = None,
    role_id: Optional[str] = None,
    template_type: Optional[str] = None,
    include_system: bool = True,
    current_user: User = Depends(check_permission("efiling", "view")),
):
    templates = await template_controller.get_templates(current_user, department_id, role_id, template_type, include_system)
    return {"templates": templates}


@router.get("/templates/{template_id}")
async def get_template(template_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await template_controller.get_template(template_id)


@router.post("/templates", status_code=201)
async def create_template(data: TemplateCreate, request: Request, current_user: User = Depends(check_permission("efiling", "create"))):
    result = await template_controller.create_template(data, current_user)
    await log_audit(current_user.id, current_user.name, current_user.role, "CREATE", "efiling", "template", f"Created template '{data.name}'", result.id, _ip(request), _ua(request))
    return result


@router.put("/templates/{template_id}")
async def update_template(template_id: str, data: TemplateUpdate, request: Request, current_user: User = Depends(check_permission("efiling", "edit"))):
    result = await template_controller.update_template(template_id, data, current_user)
    await log_audit(current_user.id, current_user.name, current_user.role, "UPDATE", "efiling", "template", f"Updated template '{result['name']}'", template_id, _ip(request), _ua(request))
    return result


@router.delete("/templates/{template_id}")
async def delete_template(template_id: str, request: Request, current_user: User = Depends(check_permission("efiling", "delete"))):
    result = await template_controller.delete_template(template_id, current_user)
    await log_audit(current_user.id, current_user.name, current_user.role, "DELETE", "efiling", "template", "Deleted template", template_id, _ip(request), _ua(request))
    return result


@router.post("/templates/{template_id}/use")
async def use_template(template_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await template_controller.use_template(template_id)


# ── Signature library ─────────────────────────────────────

@router.get("/signatures")
async def get_signatures(current_user: User = Depends(check_permission("efiling", "view"))):
    return await signature_controller.get_signatures(current_user)


@router.post("/signatures", status_code=201)
async def save_signature(data: UserSignatureCreate, current_user: User = Depends(check_permission("efiling", "view"))):
    return await signature_controller.save_signature(data, current_user)


@router.delete("/signatures/{signature_id}")
async def delete_signature(signature_id: str, current_user: User = Depends(check_permission("efiling", "view"))):
    return await signature_controller.delete_signature(signature_id, current_user)
