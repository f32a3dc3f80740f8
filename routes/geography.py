from fastapi import APIRouter, Depends, Request
from typing import Optional
from models.auth import User
from models.geography import (
    DistrictCreate, TownCreate, SubtownCreate, DivisionCreate, ZoneCreate,
    ComplaintTypeCreate, ComplaintSubtypeCreate,
)
from core.auth import check_permission
from controllers import geography_controller as geo
from controllers.audit_controller import log_audit, get_client_ip as _ip, get_user_agent as _ua

router = APIRouter(tags=["geography"])


async def _audit(current_user, request, action, resource, description, resource_id=None):
    await log_audit(current_user.id, current_user.name, current_user.role, action, "geography", resource, description, resource_id, _ip(request), _ua(request))


# ── Districts ─────────────────────────────────────────────

@router.get("/districts")
async def get_districts(current_user: User = Depends(check_permission("geography", "view"))):
    return await geo.list_locations("districts")


@router.post("/districts", status_code=201)
async def create_district(data: DistrictCreate, request: Request, current_user: User = Depends(check_permission("geography", "create"))):
    result = await geo.create_location("districts", data)
    await _audit(current_user, request, "CREATE", "district", f"Created district '{data.name}'", result.id)
    return result


@router.put("/districts/{item_id}")
async def update_district(item_id: str, data: DistrictCreate, request: Request, current_user: User = Depends(check_permission("geography", "edit"))):
    result = await geo.update_location("districts", item_id, data)
    await _audit(current_user, request, "UPDATE", "district", f"Updated district '{data.name}'", item_id)
    return result


@router.delete("/districts/{item_id}")
async def delete_district(item_id: str, request: Request, current_user: User = Depends(check_permission("geography", "delete"))):
    result = await geo.delete_location("districts", item_id)
    await _audit(current_user, request, "DELETE", "district", "Deleted district", item_id)
    return result


# ── Towns ─────────────────────────────────────────────────

@router.get("/towns")
async def get_towns(district_id: Optional[str] = None, current_user: User = Depends(check_permission("geography", "view"))):
    return await geo.list_locations("towns", {"district_id": district_id})


@router.post("/towns", status_code=201)
async def create_town(data: TownCreate, request: Request, current_user: User = Depends(check_permission("geography", "create"))):
    result = await geo.create_location("towns", data)
    await _audit(current_user, request, "CREATE", "town", f"Created town '{data.name}'", result.id)
    return result


@router.put("/towns/{item_id}")
async def update_town(item_id: str, data: TownCreate, request: Request, current_user: User = Depends(check_permission("geography", "edit"))):
    result = await geo.update_location("towns", item_id, data)
    await _audit(current_user, request, "UPDATE", "town", f"Updated town '{data.name}'", item_id)
    return result


@router.delete("/towns/{item_id}")
async def delete_town(item_id: str, request: Request, current_user: User = Depends(check_permission("geography", "delete"))):
    result = await geo.delete_location("towns", item_id)
    await _audit(current_user, request, "DELETE", "town", "Deleted town", item_id)
    return result


# ── Subtowns ──────────────────────────────────────────────

@router.get("/subtowns")
async def get_subtowns(town_id: Optional[str] = None, current_user: User = Depends(check_permission("geography", "view"))):
    return await geo.list_locations("subtowns", {"town_id": town_id})


@router.post("/subtowns", status_code=201)
async def create_subtown(data: SubtownCreate, request: Request, current_user: User = Depends(check_permission("geography", "create"))):
    result = await geo.create_location("subtowns", data)
    await _audit(current_user, request, "CREATE", "subtown", f"Created subtown '{data.name}'", result.id)
    return result


@router.put("/subtowns/{item_id}")
async def update_subtown(item_id: str, data: SubtownCreate, request: Request, current_user: User = Depends(check_permission("geography", "edit"))):
    result = await geo.update_location("subtowns", item_id, data)
    await _audit(current_user, request, "UPDATE", "subtown", f"Updated subtown '{data.name}'", item_id)
    return result


@router.delete("/subtowns/{item_id}")
async def delete_subtown(item_id: str, request: Request, current_user: User = Depends(check_permission("geography", "delete"))):
    result = await geo.delete_location("subtowns", item_id)
    await _audit(current_user, request, "DELETE", "subtown", "Deleted subtown", item_id)
    return result


# ── Divisions & zones ─────────────────────────────────────

@router.get("/divisions")
async def get_divisions(zone_id: Optional[str] = None, current_user: User = Depends(check_permission("geography", "view"))):
    return await geo.list_locations("divisions", {"zone_id": zone_id})


@router.post("/divisions", status_code=201)
async def create_division(data: DivisionCreate, request: Request, current_user: User = Depends(check_permission("geography", "create"))):
    result = await geo.create_location("divisions", data)
    await _audit(current_user, request, "CREATE", "division", f"Created division '{data.name}'", result.id)
    return result


@router.put("/divisions/{item_id}")
async def update_division(item_id: str, data: DivisionCreate, request: Request, current_user: User = Depends(check_permission("geography", "edit"))):
    result = await geo.update_location("divisions", item_id, data)
    await _audit(current_user, request, "UPDATE", "division", f"Updated division '{data.name}'", item_id)
    return result


@router.delete("/divisions/{item_id}")
async def delete_division(item_id: str, request: Request, current_user: User = Depends(check_permission("geography", "delete"))):
    result = await geo.delete_location("divisions", item_id)
    await _audit(current_user, request, "DELETE", "division", "Deleted division", item_id)
    return result


@router.get("/zones")
async def get_zones(current_user: User = Depends(check_permission("geography", "view"))):
    return await geo.list_locations("zones")


@router.post("/zones", status_code=201)
async def create_zone(data: ZoneCreate, request: Request, current_user: User = Depends(check_permission("geography", "create"))):
    result = await geo.create_location("zones", data)
    await _audit(current_user, request, "CREATE", "zone", f"Created zone '{data.name}'", result.id)
    return result


@router.put("/zones/{item_id}")
async def update_zone(item_id: str, data: ZoneCreate, request: Request, current_user: User = Depends(check_permission("geography", "edit"))):
    result = await geo.update_location("zones", item_id, data)
    await _audit(current_user, request, "UPDATE", "zone", f"Updated zone '{data.name}'", item_id)
    return result


@router.delete("/zones/{item_id}")
async def delete_zone(item_id: str, request: Request, current_user: User = Depends(check_permission("geography", "delete"))):
    result = await geo.delete_location("zones", item_id)
    await _audit(current_user, request, "DELETE", "zone", "Deleted zone", item_id)
    return result


# ── Complaint types ───────────────────────────────────────

@router.get("/complaint-types")
async def get_complaint_types(current_user: User = Depends(check_permission("complaint_types", "view"))):
    return await geo.get_complaint_types()


@router.get("/complaint-types/{type_id}")
async def get_complaint_type(type_id: str, current_user: User = Depends(check_permission("complaint_types", "view"))):
    return await geo.get_complaint_type(type_id)


@router.post("/complaint-types", status_code=201)
async def create_complaint_type(data: ComplaintTypeCreate, request: Request, current_user: User = Depends(check_permission("complaint_types", "create"))):
    result = await geo.create_complaint_type(data)
    await log_audit(current_user.id, current_user.name, current_user.role, "CREATE", "complaint_types", "complaint_type", f"Created complaint type '{data.type_name}'", result.id, _ip(request), _ua(request))
    return result


@router.put("/complaint-types/{type_id}")
async def update_complaint_type(type_id: str, data: ComplaintTypeCreate, request: Request, current_user: User = Depends(check_permission("complaint_types", "edit"))):
    result = await geo.update_complaint_type(type_id, data)
    await log_audit(current_user.id, current_user.name, current_user.role, "UPDATE", "complaint_types", "complaint_type", f"Updated complaint type '{data.type_name}'", type_id, _ip(request), _ua(request))
    return result


@router.delete("/complaint-types/{type_id}")
async def delete_complaint_type(type_id: str, request: Request, current_user: User = Depends(check_permission("complaint_types", "delete"))):
    result = await geo.delete_complaint_type(type_id)
    await log_audit(current_user.id, current_user.name, current_user.role, "DELETE", "complaint_types", "complaint_type", "Deleted complaint type", type_id, _ip(request), _ua(request))
    return result


@router.get("/complaint-types/{type_id}/subtypes")
async def get_type_subtypes(type_id: str, current_user: User = Depends(check_permission("complaint_types", "view"))):
    return await geo.get_complaint_subtypes(type_id)


@router.get("/complaint-subtypes")
async def get_complaint_subtypes(complaint_type_id: Optional[str] = None, current_user: User = Depends(check_permission("complaint_types", "view"))):
    return await geo.get_complaint_subtypes(complaint_type_id)


@router.post("/complaint-subtypes", status_code=201)
async def create_complaint_subtype(data: ComplaintSubtypeCreate, request: Request, current_user: User = Depends(check_permission("complaint_types", "create"))):
    result = await geo.create_complaint_subtype(data)
    await log_audit(current_user.id, current_user.name, current_user.role, "CREATE", "complaint_types", "complaint_subtype", f"Created complaint subtype '{data.subtype_name}'", result.id, _ip(request), _ua(request))
    return result


@router.put("/complaint-subtypes/{subtype_id}")
async def update_complaint_subtype(subtype_id: str, data: ComplaintSubtypeCreate, request: Request, current_user: User = Depends(check_permission("complaint_types", "edit"))):
    result = await geo.update_complaint_subtype(subtype_id, data)
    await log_audit(current_user.id, current_user.name, current_user.role, "UPDATE", "complaint_types", "complaint_subtype", f"Updated complaint subtype '{data.subtype_name}'", subtype_id, _ip(request), _ua(request))
    return result


@router.delete("/complaint-subtypes/{subtype_id}")
async def delete_complaint_subtype(subtype_id: str, request: Request, current_user: User = Depends(check_permission("complaint_types", "delete"))):
    result = await geo.delete_complaint_subtype(subtype_id)
    await log_audit(current_user.id, current_user.name, current_user.role, "DELETE", "complaint_types", "complaint_subtype", "Deleted complaint subtype", subtype_id, _ip(request), _ua(request))
    return result


@router.get("/statuses")
async def get_statuses(current_user: User = Depends(check_permission("requests", "view"))):
    return await geo.get_statuses()
