"""
Shared fixtures for the Works Portal API tests.

The motor database handle is swapped for an in-memory mongomock database
before any controller is imported, so every ``from database import db``
binds to the mock.
"""
import os
import uuid
import shutil
import asyncio
import tempfile

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "works_portal_test")
os.environ.setdefault("JWT_SECRET", "works_portal_test_secret")
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="works-portal-uploads-")

import pytest
from mongomock_motor import AsyncMongoMockClient

import database

database.db = AsyncMongoMockClient()[os.environ["DB_NAME"]]

from fastapi.testclient import TestClient  # noqa: E402
from server import app  # noqa: E402
from core.auth import get_password_hash, create_access_token  # noqa: E402
from models.auth import User  # noqa: E402
from config import CHUNK_TEMP_DIR  # noqa: E402

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)

COLLECTIONS = [
    "users", "roles", "audit_logs", "counters", "notifications",
    "zones", "divisions", "districts", "towns", "subtowns",
    "complaint_types", "complaint_subtypes", "statuses",
    "work_requests", "work_request_approvals", "media",
    "efiling_departments", "efiling_roles", "efiling_users", "efiling_sla_matrix",
    "efiling_file_categories", "efiling_file_statuses", "efiling_files",
    "efiling_file_movements", "efiling_file_signatures", "efiling_attachments",
    "efiling_notifications", "efiling_templates", "efiling_user_signatures", "efiling_file_comments",
]


def run(coro):
    return asyncio.run(coro)


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


async def _insert(collection: str, doc: dict) -> dict:
    await database.db[collection].insert_one(dict(doc))
    return doc


def insert(collection: str, **fields) -> dict:
    """Insert a document with a fresh id; returns it without ``_id``."""
    doc = {"id": str(uuid.uuid4()), **fields}
    return run(_insert(collection, doc))


@pytest.fixture(autouse=True)
def clean_db():
    async def _clear():
        for name in COLLECTIONS:
            await database.db[name].delete_many({})
    run(_clear())
    # chunk sessions are tied to the user who started them
    shutil.rmtree(CHUNK_TEMP_DIR, ignore_errors=True)
    yield


@pytest.fixture
def client():
    # entering the context runs the startup hooks that seed roles and statuses
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user():
    def _make(role="admin", user_type="user", **fields):
        name = fields.pop("name", role.replace("_", " ").title())
        user = User(
            email=fields.pop("email", f"{role}-{uuid.uuid4().hex[:8]}@worksportal.gov.pk"),
            name=name, role=role, user_type=user_type, **fields,
        )
        doc = user.model_dump()
        run(_insert("users", {**doc, "password": PASSWORD_HASH}))
        return {**doc, "headers": auth_headers(user.id)}
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Admin")


@pytest.fixture
def geo():
    """One zone, division, district, town and subtown, plus two complaint types."""
    zone = insert("zones", name="Zone 1")
    division = insert("divisions", name="North Division", code="ND", zone_id=zone["id"])
    district = insert("districts", name="Central District", code="CD")
    other_district = insert("districts", name="East District", code="ED")
    town = insert("towns", name="Saddar Town", district_id=district["id"])
    other_town = insert("towns", name="Gulshan Town", district_id=other_district["id"])
    subtown = insert("subtowns", name="Saddar UC-1", town_id=town["id"])
    water = insert("complaint_types", type_name="Water Supply")
    sewerage = insert("complaint_types", type_name="Sewerage")
    return {
        "zone": zone, "division": division, "district": district, "other_district": other_district,
        "town": town, "other_town": other_town, "subtown": subtown,
        "water": water, "sewerage": sewerage,
    }


@pytest.fixture
def efiling(geo):
    """Departments, roles, a category and a catch-all SLA rule for e-filing tests."""
    dept = insert("efiling_departments", name="Water & Sewerage", code="WSD", department_type="district", is_active=True)
    exec_dept = insert("efiling_departments", name="Executive Office", code="EXEC", department_type="global", is_active=True)
    roles = {
        code: insert("efiling_roles", name=code, code=code, department_id=dept["id"], zone_ids=[], is_active=True)
        for code in ("XEN", "SE", "AEN", "CEO", "CON_A")
    }
    category = insert("efiling_file_categories", name="General", code="GEN", department_id=None, is_active=True)
    insert("efiling_sla_matrix", from_role_code="*", to_role_code="*", level_scope="district", sla_hours=48, is_active=True)
    return {"dept": dept, "exec_dept": exec_dept, "roles": roles, "category": category, "geo": geo}


@pytest.fixture
def make_profile(make_user, efiling):
    """Create a portal user together with an active e-filing profile."""
    def _make(role_code="XEN", role="assistant", district=None, town=None, department=None, **fields):
        geo = efiling["geo"]
        user = make_user(role, **fields)
        profile = insert(
            "efiling_users",
            user_id=user["id"],
            efiling_role_id=efiling["roles"][role_code]["id"],
            department_id=(department or efiling["dept"])["id"],
            district_id=(district or geo["district"])["id"],
            town_id=(town or geo["town"])["id"],
            division_id=None,
            designation=role_code,
            is_active=True,
        )
        return {**user, "profile": profile}
    return _make
