"""
Geographic routing for e-filing "mark to" recipients and geography scoping
of work requests.

Role codes are compared upper-cased. SLA matrix patterns may contain ``*``
wildcards; an empty pattern or ``*`` matches every role.
"""
import re
import logging
from typing import Optional

from fastapi import HTTPException

from database import db

logger = logging.getLogger(__name__)

GLOBAL_ROLE_CODES = {"CEO", "COO"}
DEFAULT_SLA_HOURS = 24
SCOPE_PRIORITY = ["global", "division", "district", "town"]


def normalise_role_code(code) -> str:
    return (code or "").upper()


def is_global_role_code(code) -> bool:
    return normalise_role_code(code) in GLOBAL_ROLE_CODES


def role_pattern_matches(role_code, pattern) -> bool:
    candidate = normalise_role_code(role_code)
    raw = normalise_role_code(pattern)
    if not raw or raw == "*":
        return True
    if "*" not in raw:
        return candidate == raw
    regex = "^" + ".*".join(re.escape(part) for part in raw.split("*")) + "$"
    return re.match(regex, candidate) is not None


def _same(a, b) -> bool:
    return bool(a) and bool(b) and str(a) == str(b)


def scope_matches(scope, file_location: dict, user_location: dict) -> bool:
    level = (scope or "district").lower()
    if level == "global":
        return True
    if level == "division":
        return _same(file_location.get("division_id"), user_location.get("division_id"))
    if level == "town":
        if file_location.get("town_id") and user_location.get("town_id"):
            return _same(file_location["town_id"], user_location["town_id"])
        # no town on either side: compare districts instead
        return _same(file_location.get("district_id"), user_location.get("district_id"))
    return _same(file_location.get("district_id"), user_location.get("district_id"))


def validate_geographic_match(file: dict, user: dict, level_scope: str = "district") -> bool:
    keys = ("district_id", "town_id", "division_id")
    file_location = {k: (file or {}).get(k) for k in keys}
    user_location = {k: (user or {}).get(k) for k in keys}
    return scope_matches(level_scope, file_location, user_location)


def pick_best_scope(scopes):
    if not scopes:
        return None
    normalised = [(s or "").lower() for s in scopes]
    for level in SCOPE_PRIORITY:
        if level in normalised:
            return level
    return normalised[0]


def build_fallback_rules(department_type) -> list:
    return [{"from_role_code": "*", "to_role_code": "*", "level_scope": (department_type or "district").lower()}]


def dedupe_recipients(recipients: list) -> list:
    seen = set()
    result = []
    for r in recipients:
        if r["id"] in seen:
            continue
        seen.add(r["id"])
        result.append(r)
    return result


async def enrich_profiles(profiles: list) -> list:
    """Attach user, role, department and location names to e-filing profiles."""
    def ids(key):
        return list({p.get(key) for p in profiles if p.get(key)})

    users = await db.users.find({"id": {"$in": ids("user_id")}}, {"_id": 0, "password": 0}).to_list(5000)
    roles = await db.efiling_roles.find({"id": {"$in": ids("efiling_role_id")}}, {"_id": 0}).to_list(1000)
    depts = await db.efiling_departments.find({"id": {"$in": ids("department_id")}}, {"_id": 0}).to_list(1000)
    districts = await db.districts.find({"id": {"$in": ids("district_id")}}, {"_id": 0}).to_list(1000)
    towns = await db.towns.find({"id": {"$in": ids("town_id")}}, {"_id": 0}).to_list(1000)
    divisions = await db.divisions.find({"id": {"$in": ids("division_id")}}, {"_id": 0}).to_list(1000)

    user_map = {u["id"]: u for u in users}
    role_map = {r["id"]: r for r in roles}
    dept_map = {d["id"]: d for d in depts}
    district_map = {d["id"]: d.get("name") for d in districts}
    town_map = {t["id"]: t.get("name") for t in towns}
    division_map = {d["id"]: d.get("name") for d in divisions}

    rows = []
    for p in profiles:
        user = user_map.get(p.get("user_id"), {})
        role = role_map.get(p.get("efiling_role_id"), {})
        dept = dept_map.get(p.get("department_id"), {})
        rows.append({
            **p,
            "user_name": user.get("name"),
            "email": user.get("email"),
            "role_code": normalise_role_code(role.get("code")),
            "role_name": role.get("name"),
            "department_name": dept.get("name"),
            "department_type": dept.get("department_type"),
            "district_name": district_map.get(p.get("district_id")),
            "town_name": town_map.get(p.get("town_id")),
            "division_name": division_map.get(p.get("division_id")),
        })
    rows.sort(key=lambda r: (r.get("user_name") or "").lower())
    return rows


async def get_department_type(department_id, fallback_department_id=None) -> str:
    target = department_id or fallback_department_id
    if not target:
        return "district"
    dept = await db.efiling_departments.find_one({"id": target}, {"_id": 0, "department_type": 1})
    return (dept or {}).get("department_type") or "district"


async def get_allowed_recipients(
    from_user_id: str,
    file_department_id: Optional[str] = None,
    file_district_id: Optional[str] = None,
    file_town_id: Optional[str] = None,
    file_division_id: Optional[str] = None,
) -> list:
    """Return the e-filing profiles ``from_user_id`` may mark a file to."""
    if not from_user_id:
        raise HTTPException(status_code=400, detail="Sender e-filing user is required")

    sender = await db.efiling_users.find_one({"id": from_user_id, "is_active": True}, {"_id": 0})
    if not sender:
        raise HTTPException(status_code=404, detail="Current user not found or inactive")

    role = await db.efiling_roles.find_one({"id": sender.get("efiling_role_id")}, {"_id": 0}) or {}
    from_role_code = normalise_role_code(role.get("code"))

    if from_role_code in GLOBAL_ROLE_CODES:
        profiles = await db.efiling_users.find(
            {"is_active": True, "id": {"$ne": from_user_id}}, {"_id": 0}
        ).to_list(5000)
        rows = await enrich_profiles(profiles)
        return [{**r, "allowed_level_scope": "global", "allowed_reason": "GLOBAL_ROLE"} for r in rows]

    department_type = await get_department_type(file_department_id, sender.get("department_id"))

    base_location = {
        "district_id": file_district_id or sender.get("district_id"),
        "town_id": file_town_id or sender.get("town_id"),
        "division_id": file_division_id or sender.get("division_id"),
    }

    matrix = await db.efiling_sla_matrix.find({"is_active": True}, {"_id": 0}).to_list(1000)
    rules = [r for r in matrix if role_pattern_matches(from_role_code, r.get("from_role_code"))]
    if not rules:
        rules = build_fallback_rules(department_type)

    query = {"is_active": True, "id": {"$ne": from_user_id}}
    location_clauses = [{k: v} for k, v in base_location.items() if v]
    if location_clauses:
        global_depts = await db.efiling_departments.find(
            {"department_type": "global"}, {"_id": 0, "id": 1}
        ).to_list(1000)
        if global_depts:
            location_clauses.append({"department_id": {"$in": [d["id"] for d in global_depts]}})
        query["$or"] = location_clauses

    candidates = await enrich_profiles(await db.efiling_users.find(query, {"_id": 0}).to_list(5000))

    allowed = []
    for candidate in candidates:
        candidate_location = {
            "district_id": candidate.get("district_id"),
            "town_id": candidate.get("town_id"),
            "division_id": candidate.get("division_id"),
        }
        matched = [
            rule.get("level_scope") or department_type
            for rule in rules
            if role_pattern_matches(candidate["role_code"], rule.get("to_role_code"))
            and scope_matches(rule.get("level_scope"), base_location, candidate_location)
        ]
        if matched:
            allowed.append({
                **candidate,
                "allowed_level_scope": pick_best_scope(matched),
                "allowed_reason": "SLA_RULE",
            })
    return dedupe_recipients(allowed)


async def get_sla_hours(from_role_code, to_role_code) -> int:
    from_code = normalise_role_code(from_role_code)
    to_code = normalise_role_code(to_role_code)
    if not from_code or not to_code:
        return DEFAULT_SLA_HOURS
    matrix = await db.efiling_sla_matrix.find({"is_active": True}, {"_id": 0}).to_list(1000)
    for row in matrix:
        if role_pattern_matches(from_code, row.get("from_role_code")) and role_pattern_matches(to_code, row.get("to_role_code")):
            return row.get("sla_hours") or DEFAULT_SLA_HOURS
    return DEFAULT_SLA_HOURS


async def get_user_geography(user_id: str) -> Optional[dict]:
    """E-filing geography for a portal user, or None without an active profile."""
    if not user_id:
        return None
    profile = await db.efiling_users.find_one({"user_id": user_id, "is_active": True}, {"_id": 0})
    if not profile:
        return None
    role = {}
    if profile.get("efiling_role_id"):
        role = await db.efiling_roles.find_one({"id": profile["efiling_role_id"]}, {"_id": 0}) or {}
    return {
        "efiling_user_id": profile["id"],
        "user_id": user_id,
        "efiling_role_id": profile.get("efiling_role_id"),
        "role_code": normalise_role_code(role.get("code")),
        "department_id": profile.get("department_id"),
        "district_id": profile.get("district_id"),
        "town_id": profile.get("town_id"),
        "division_id": profile.get("division_id"),
        "zone_ids": [z for z in role.get("zone_ids", []) if z],
    }


async def resolve_efiling_scope(user_id: str) -> dict:
    geography = await get_user_geography(user_id)
    if not geography:
        raise HTTPException(status_code=403, detail="No active e-filing profile found for current user")
    return {
        "is_global": is_global_role_code(geography["role_code"]),
        "geography": {
            "division_id": geography["division_id"],
            "district_id": geography["district_id"],
            "town_id": geography["town_id"],
            "zone_ids": geography["zone_ids"],
        },
    }


def build_geography_query(geography: dict) -> Optional[dict]:
    """Mongo filter restricting work requests to a geography.

    Zones always apply; a division-based user is restricted to the division,
    otherwise the town, otherwise the district.
    """
    if not geography:
        return None
    segments = []
    if geography.get("zone_ids"):
        segments.append({"zone_id": {"$in": geography["zone_ids"]}})
    if geography.get("division_id"):
        segments.append({"division_id": geography["division_id"]})
    elif geography.get("town_id"):
        segments.append({"town_id": geography["town_id"]})
    elif geography.get("district_id"):
        segments.append({"district_id": geography["district_id"]})
    if not segments:
        return None
    return {"$or": segments}


def record_matches_geography(record: dict, geography: dict) -> bool:
    if not geography:
        return True
    if _same(geography.get("division_id"), record.get("division_id")):
        return True
    if _same(geography.get("town_id"), record.get("town_id")):
        return True
    zone_ids = [str(z) for z in geography.get("zone_ids") or []]
    if zone_ids and record.get("zone_id") and str(record["zone_id"]) in zone_ids:
        return True
    if not geography.get("town_id") and geography.get("district_id"):
        if _same(geography["district_id"], record.get("district_id")):
            return True
    return False


def has_any_geography(geography: dict) -> bool:
    return bool(
        geography.get("division_id") or geography.get("town_id")
        or geography.get("district_id") or geography.get("zone_ids")
    )
