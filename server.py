from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure
import logging
import os
import uuid
from datetime import datetime, timezone

# Load config first (triggers dotenv)
from config import MODULES, DEFAULT_ROLE_PERMISSIONS
from database import db, client
from models.geography import Status
from models.efiling import FileStatus

# Import all routers
from routes.auth import router as auth_router
from routes.dashboard import router as dashboard_router
from routes.rbac import router as rbac_router
from routes.users import router as users_router
from routes.geography import router as geography_router
from routes.requests import router as requests_router
from routes.approvals import router as approvals_router
from routes.media import router as media_router, files_router
from routes.notifications import router as notifications_router
from routes.efiling import router as efiling_router
from routes.efiling_admin import router as efiling_admin_router
from routes.templates import router as templates_router
from routes.audit import router as audit_router
from routes.reports import router as reports_router

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Create the main app
app = FastAPI(title="Municipal Works Portal API")

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register all routers under /api prefix
API_PREFIX = "/api"
app.include_router(auth_router,          prefix=API_PREFIX)
app.include_router(dashboard_router,     prefix=API_PREFIX)
app.include_router(rbac_router,          prefix=API_PREFIX)
app.include_router(users_router,         prefix=API_PREFIX)
app.include_router(geography_router,     prefix=API_PREFIX)
app.include_router(requests_router,      prefix=API_PREFIX)
app.include_router(approvals_router,     prefix=API_PREFIX)
app.include_router(media_router,         prefix=API_PREFIX)
app.include_router(notifications_router, prefix=API_PREFIX)
app.include_router(efiling_router,       prefix=API_PREFIX)
app.include_router(efiling_admin_router, prefix=API_PREFIX)
app.include_router(templates_router,     prefix=API_PREFIX)
app.include_router(audit_router,         prefix=API_PREFIX)
app.include_router(reports_router,       prefix=API_PREFIX)
# Stored links are /uploads/<dir>/<file>
app.include_router(files_router)

WORK_STATUSES = ["Pending", "Assigned", "In Progress", "Completed", "Cancelled"]
EFILING_STATUSES = [
    ("DRAFT", "Draft", "#6B7280"),
    ("IN_PROGRESS", "In Progress", "#3B82F6"),
    ("PENDING_APPROVAL", "Pending Approval", "#F59E0B"),
    ("APPROVED", "Approved", "#10B981"),
    ("REJECTED", "Rejected", "#EF4444"),
    ("COMPLETED", "Completed", "#059669"),
]


# ── Errors ─────────────────────────────────────────────────

@app.exception_handler(ConnectionFailure)
async def database_unavailable(request: Request, exc: ConnectionFailure):
    logger.error(f"Database connection failed on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Database connection failed. Please try again later."})


# ── Root / Health ──────────────────────────────────────────

@app.get("/api/")
async def root():
    return {"message": "Municipal Works Portal API", "version": "1.0.0"}


@app.get("/api/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# ── Startup / Shutdown ─────────────────────────────────────

@app.on_event("startup")
async def seed_default_roles():
    now = datetime.now(timezone.utc).isoformat()
    existing = await db.roles.find_one({"name": "admin"})
    if not existing:
        all_true = {"view": True, "create": True, "edit": True, "delete": True}
        admin_role = {
            "id": str(uuid.uuid4()),
            "name": "admin",
            "label": "Administrator",
            "description": "Full system access",
            "is_system": True,
            "permissions": {m: all_true for m in MODULES},
            "created_at": now,
            "updated_at": now,
        }
        await db.roles.insert_one(admin_role)
        logger.info("Default admin role seeded successfully")

    for name, permissions in DEFAULT_ROLE_PERMISSIONS.items():
        if await db.roles.find_one({"name": name}):
            continue
        await db.roles.insert_one({
            "id": str(uuid.uuid4()),
            "name": name,
            "label": name.replace("_", " ").title(),
            "description": None,
            "is_system": True,
            "permissions": permissions,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"Default role '{name}' seeded")


@app.on_event("startup")
async def seed_statuses():
    for order, name in enumerate(WORK_STATUSES, start=1):
        if not await db.statuses.find_one({"name": name}):
            await db.statuses.insert_one(Status(name=name, order=order).model_dump())
    for code, name, color in EFILING_STATUSES:
        if not await db.efiling_file_statuses.find_one({"code": code}):
            await db.efiling_file_statuses.insert_one(FileStatus(name=name, code=code, color=color).model_dump())


@app.on_event("shutdown")
async def shutdown_db_client():
    client.close()
