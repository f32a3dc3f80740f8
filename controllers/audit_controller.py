import math
import uuid
import logging
from datetime import date, datetime, timezone, timedelta
from database import db

logger = logging.getLogger(__name__)

PKT = timezone(timedelta(hours=5))

_OS_MARKERS = [
    ("iphone", "iOS"), ("ipad", "iPadOS"), ("android", "Android"),
    ("windows", "Windows"), ("macintosh", "macOS"), ("mac os", "macOS"),
    ("cros", "ChromeOS"), ("linux", "Linux"),
]
_BROWSER_MARKERS = [
    ("edg/", "Edge"), ("opr/", "Opera"), ("firefox", "Firefox"),
    ("chrome", "Chrome"), ("safari", "Safari"),
]


def get_client_ip(request) -> str:
    """Client IP, preferring proxy headers over the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def get_user_agent(request) -> str:
    return request.headers.get("user-agent", "")


def parse_device(ua: str) -> dict:
    """Rough OS / browser / device classification of a User-Agent string."""
    if not ua:
        return {"os": "Unknown", "browser": "Unknown", "device": "Unknown"}
    lowered = ua.lower()
    os_name = next((name for marker, name in _OS_MARKERS if marker in lowered), "Unknown")
    browser = next((name for marker, name in _BROWSER_MARKERS if marker in lowered), "Unknown")
    if "ipad" in lowered or "tablet" in lowered:
        device = "Tablet"
    elif "mobile" in lowered or "iphone" in lowered:
        device = "Mobile"
    else:
        device = "Desktop"
    return {"os": os_name, "browser": browser, "device": device}


async def log_audit(
    user_id: str,
    user_name: str,
    user_role: str,
    action: str,
    module: str,
    resource: str,
    description: str,
    resource_id: str = None,
    ip_address: str = None,
    user_agent: str = None,
):
    """Record an audit entry. Failures are logged and swallowed."""
    try:
        await db.audit_logs.insert_one({
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "user_name": user_name,
            "user_role": user_role,
            "action": action,
            "module": module,
            "resource": resource,
            "resource_id": resource_id,
            "description": description,
            "ip_address": ip_address,
            "device": parse_device(user_agent),
            "timestamp": datetime.now(PKT).isoformat(),
        })
    except Exception as e:
        logger.warning(f"Audit log write failed for {module}/{action}: {e}")


async def get_audit_logs(
    page: int = 1,
    limit: int = 25,
    module: str = None,
    action: str = None,
    user_id: str = None,
    date_from: date = None,
    date_to: date = None,
    search: str = None,
):
    query = {}
    if module:
        query["module"] = module
    if action:
        query["action"] = action
    if user_id:
        query["user_id"] = user_id
    if date_from or date_to:
        # timestamps are ISO strings, compared lexically
        ts = {}
        if date_from:
            ts["$gte"] = date_from.isoformat()
        if date_to:
            ts["$lt"] = (date_to + timedelta(days=1)).isoformat()
        query["timestamp"] = ts
    if search:
        query["description"] = {"$regex": search, "$options": "i"}

    total = await db.audit_logs.count_documents(query)
    skip = (page - 1) * limit
    items = await db.audit_logs.find(query, {"_id": 0}) \
        .sort("timestamp", -1) \
        .skip(skip) \
        .limit(limit) \
        .to_list(limit)

    return {
        "data": items,
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if limit else 1,
        "limit": limit,
    }
