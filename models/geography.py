from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
import uuid
from datetime import datetime, timezone


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uuid() -> str:
    return str(uuid.uuid4())


# ── Locations ─────────────────────────────────────────────

class DistrictCreate(BaseModel):
    name: str
    code: Optional[str] = None


class District(DistrictCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class TownCreate(BaseModel):
    name: str
    district_id: str


class Town(TownCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class SubtownCreate(BaseModel):
    name: str
    town_id: str


class Subtown(SubtownCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class DivisionCreate(BaseModel):
    name: str
    code: Optional[str] = None
    zone_id: Optional[str] = None


class Division(DivisionCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class ZoneCreate(BaseModel):
    name: str
    description: Optional[str] = None


class Zone(ZoneCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


# ── Complaint types ───────────────────────────────────────

class ComplaintTypeCreate(BaseModel):
    type_name: str
    description: Optional[str] = None
    efiling_department_id: Optional[str] = None


class ComplaintType(ComplaintTypeCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class ComplaintSubtypeCreate(BaseModel):
    subtype_name: str
    complaint_type_id: str
    description: Optional[str] = None


class ComplaintSubtype(ComplaintSubtypeCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class Status(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    name: str
    order: int = 0
