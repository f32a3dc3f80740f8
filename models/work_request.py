from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
import uuid
from datetime import datetime, timezone


class ApprovalStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestLocation(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = ""


class SmAgentAssignment(BaseModel):
    sm_agent_id: str
    status: int = 1


class WorkRequestCreate(BaseModel):
    town_id: Optional[str] = None
    division_id: Optional[str] = None
    subtown_id: Optional[str] = None
    subtown_ids: List[str] = Field(default_factory=list)
    complaint_type_id: str
    complaint_subtype_id: Optional[str] = None
    contact_number: str
    address: str
    description: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    additional_locations: List[RequestLocation] = Field(default_factory=list)
    executive_engineer_id: Optional[str] = None
    contractor_id: Optional[str] = None
    nature_of_work: Optional[str] = None
    budget_code: Optional[str] = None
    file_type: Optional[str] = None


class WorkRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    request_no: int
    town_id: Optional[str] = None
    subtown_id: Optional[str] = None
    subtown_ids: List[str] = Field(default_factory=list)
    division_id: Optional[str] = None
    district_id: Optional[str] = None
    zone_id: Optional[str] = None
    complaint_type_id: str
    complaint_subtype_id: Optional[str] = None
    contact_number: str
    address: str
    description: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    additional_locations: List[RequestLocation] = Field(default_factory=list)
    executive_engineer_id: Optional[str] = None
    contractor_id: Optional[str] = None
    nature_of_work: Optional[str] = None
    budget_code: Optional[str] = None
    file_type: Optional[str] = None
    creator_id: str
    creator_type: str
    status_id: Optional[str] = None
    approval_status: str = ApprovalStatus.PENDING
    assigned_to: Optional[str] = None
    assigned_sm_agents: List[SmAgentAssignment] = Field(default_factory=list)
    request_date: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class WorkRequestUpdate(BaseModel):
    assigned_to: Optional[str] = None
    status_id: Optional[str] = None
    assigned_sm_agents: Optional[List[SmAgentAssignment]] = None
    executive_engineer_id: Optional[str] = None
    contractor_id: Optional[str] = None
    budget_code: Optional[str] = None
    file_type: Optional[str] = None
    nature_of_work: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    town_id: Optional[str] = None
    subtown_id: Optional[str] = None
    complaint_type_id: Optional[str] = None
    complaint_subtype_id: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
