from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
import uuid
from datetime import datetime, timezone


class ApproverType:
    CE = "ce"
    CEO = "ceo"
    COO = "coo"


class SoftApprovalStatus:
    PENDING = "pending"
    APPROVED = "approved"
    NOT_APPROVED = "not_approved"


class SoftApproval(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    work_request_id: str
    approver_id: str
    approver_type: str
    approval_status: str
    comments: Optional[str] = None
    approved_at: Optional[str] = None
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class CEApprovalInput(BaseModel):
    approval_status: str
    comments: Optional[str] = None


class ExecutiveApprovalInput(BaseModel):
    work_request_id: str
    approval_status: str
    comments: Optional[str] = None


class ReactivateInput(BaseModel):
    work_request_id: str
