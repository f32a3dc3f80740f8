"""
Seed script for the Works Portal - creates the admin user and demo lookups
Run: python seed.py
"""
import asyncio
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient
from passlib.context import CryptContext

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

mongo_url = os.environ['MONGO_URL']
client = AsyncIOMotorClient(mongo_url)
db = client[os.environ['DB_NAME']]


def _doc(**fields) -> dict:
    return {"id": str(uuid.uuid4()), "created_at": datetime.now(timezone.utc).isoformat(), **fields}


async def _ensure(collection: str, query: dict, **fields) -> dict:
    """Insert a document unless one matching ``query`` exists; returns the stored document."""
    existing = await db[collection].find_one(query, {"_id": 0})
    if existing:
        print(f"{collection}: {query} already exists, skipping...")
        return existing
    doc = _doc(**query, **fields)
    await db[collection].insert_one(dict(doc))
    print(f"{collection}: created {query}")
    return doc


async def seed():
    print("Starting seed...")

    # ==================== ADMIN USER ====================
    admin = await _ensure(
        "users", {"email": "admin@worksportal.gov.pk"},
        name="Admin", user_type="user", role="admin",
        password=pwd_context.hash("admin123"),
        phone=None, designation="System Administrator", is_active=True,
    )

    # ==================== GEOGRAPHY ====================
    zone = await _ensure("zones", {"name": "Zone 1"})
    division = await _ensure("divisions", {"name": "North Division"}, code="ND", zone_id=zone["id"])
    district = await _ensure("districts", {"name": "Central District"}, code="CD")
    town = await _ensure("towns", {"name": "Saddar Town", "district_id": district["id"]})
    await _ensure("subtowns", {"name": "Saddar UC-1", "town_id": town["id"]})

    # ==================== E-FILING ====================
    dept = await _ensure("efiling_departments", {"code": "WSD"}, name="Water & Sewerage", department_type="district", description=None, is_active=True)
    await _ensure("efiling_departments", {"code": "EXEC"}, name="Executive Office", department_type="global", description=None, is_active=True)
    role = await _ensure("efiling_roles", {"code": "XEN"}, name="Executive Engineer", department_id=dept["id"], zone_ids=[], is_active=True)
    await _ensure(
        "efiling_users", {"user_id": admin["id"]},
        efiling_role_id=role["id"], department_id=dept["id"],
        district_id=district["id"], town_id=town["id"], division_id=division["id"],
        designation="System Administrator", is_active=True,
    )
    await _ensure("efiling_file_categories", {"code": "GEN"}, name="General", description=None, department_id=None, is_active=True)
    await _ensure("efiling_sla_matrix", {"from_role_code": "*", "to_role_code": "*"}, level_scope="district", sla_hours=24, is_active=True)

    # ==================== COMPLAINT TYPES ====================
    water = await _ensure("complaint_types", {"type_name": "Water Supply"}, efiling_department_id=dept["id"])
    await _ensure("complaint_subtypes", {"subtype_name": "Pipeline Leakage", "complaint_type_id": water["id"]})
    await _ensure("complaint_types", {"type_name": "Sewerage"}, efiling_department_id=dept["id"])

    print("\n--- Seed complete! ---")
    print("Login credentials:")
    print("  Admin: admin@worksportal.gov.pk / admin123")
    print("\nNote:")
    print("  - Roles and request statuses are seeded when the API starts")
    print("  - Create staff, agents and e-filing profiles via the Users and E-filing admin modules")

    client.close()


if __name__ == "__main__":
    asyncio.run(seed())
