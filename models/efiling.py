from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
import uuid
from datetime import datetime, timezone


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uuid() -> str:
    return str(uuid.uuid4())


class DepartmentType:
    GLOBAL = "global"
    DIVISION = "division"
    DISTRICT = "district"
    TOWN = "town"

    ALL = [GLOBAL, DIVISION, DISTRICT, TOWN]


class FileStatusCode:
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


# ── Administration ────────────────────────────────────────

class DepartmentCreate(BaseModel):
    name: str
    code: str
    department_type: str = DepartmentType.DISTRICT
    description: Optional[str] = None
    is_active: bool = True


class Department(DepartmentCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class EfilingRoleCreate(BaseModel):
    name: str
    code: str
    department_id: Optional[str] = None
    zone_ids: List[str] = Field(default_factory=list)
    is_active: bool = True


class EfilingRole(EfilingRoleCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class EfilingUserCreate(BaseModel):
    user_id: str
    efiling_role_id: str
    department_id: Optional[str] = None
    district_id: Optional[str] = None
    town_id: Optional[str] = None
    division_id: Optional[str] = None
    designation: Optional[str] = None
    is_active: bool = True


class EfilingUser(EfilingUserCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class SlaRuleCreate(BaseModel):
    from_role_code: str = "*"
    to_role_code: str = "*"
    level_scope: str = DepartmentType.DISTRICT
    sla_hours: int = 24
    is_active: bool = True


class SlaRule(SlaRuleCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class FileCategoryCreate(BaseModel):
    name: str
    code: str
    description: Optional[str] = None
    department_id: Optional[str] = None
    is_active: bool = True


class FileCategory(FileCategoryCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


class FileStatusCreate(BaseModel):
    name: str
    code: str
    description: Optional[str] = None
    color: str = "#6B7280"
    is_active: bool = True


class FileStatus(FileStatusCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_at: str = Field(default_factory=_now)


# ── Files ─────────────────────────────────────────────────

class EfilingFileCreate(BaseModel):
    subject: str
    category_id: str
    department_id: str
    work_request_id: Optional[str] = None
    assigned_to: Optional[str] = None
    remarks: Optional[str] = None
    priority: str = "high"
    confidentiality_level: str = "normal"
    district_id: Optional[str] = None
    town_id: Optional[str] = None
    division_id: Optional[str] = None


class EfilingFile(EfilingFileCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    file_number: str
    status_id: str
    created_by: str
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)


class EfilingFileUpdate(BaseModel):
    subject: Optional[str] = None
    category_id: Optional[str] = None
    department_id: Optional[str] = None
    status_id: Optional[str] = None
    priority: Optional[str] = None
    confidentiality_level: Optional[str] = None
    assigned_to: Optional[str] = None
    remarks: Optional[str] = None


class FileMovement(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    file_id: str
    from_user_id: Optional[str] = None
    to_user_id: Optional[str] = None
    from_department_id: Optional[str] = None
    to_department_id: Optional[str] = None
    action_type: str = "forward"
    remarks: Optional[str] = None
    sla_hours: int = 24
    sla_deadline: Optional[str] = None
    is_completed: bool = False
    created_at: str = Field(default_factory=_now)


class MarkToInput(BaseModel):
    user_ids: List[str]
    remarks: Optional[str] = None


class SignInput(BaseModel):
    method: Optional[str] = None
    signature_text: Optional[str] = None
    signature_id: Optional[str] = None
    remarks: Optional[str] = None


class CompleteInput(BaseModel):
    remarks: Optional[str] = None


class FileSignature(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    file_id: str
    user_id: str
    efiling_user_id: Optional[str] = None
    signature_method: str
    signature_text: Optional[str] = None
    signature_id: Optional[str] = None
    remarks: Optional[str] = None
    is_active: bool = True
    signed_at: str = Field(default_factory=_now)


class Attachment(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    file_id: str
    file_name: str
    file_path: str
    link: str
    file_size: int = 0
    content_type: Optional[str] = None
    uploaded_by: str
    is_active: bool = True
    created_at: str = Field(default_factory=_now)


class CommentInput(BaseModel):
    text: str


class FileComment(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    file_id: str
    user_id: str
    user_name: str
    user_role: str
    text: str
    edited: bool = False
    edited_at: Optional[str] = None
    is_active: bool = True
    created_at: str = Field(default_factory=_now)


class EfilingNotification(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    efiling_user_id: str
    file_id: Optional[str] = None
    type: str
    title: str
    message: str
    priority: str = "normal"
    is_read: bool = False
    is_dismissed: bool = False
    is_archived: bool = False
    action_required: bool = False
    created_at: str = Field(default_factory=_now)


# ── Templates ─────────────────────────────────────────────

class TemplateCreate(BaseModel):
    name: str
    template_type: Optional[str] = None
    title: Optional[str] = None
    subject: Optional[str] = None
    main_content: Optional[str] = None
    category_id: Optional[str] = None
    department_ids: List[str] = Field(default_factory=list)
    role_ids: List[str] = Field(default_factory=list)


class Template(TemplateCreate):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    created_by: Optional[str] = None
    is_system_template: bool = False
    is_active: bool = True
    usage_count: int = 0
    last_used_at: Optional[str] = None
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    template_type: Optional[str] = None
    title: Optional[str] = None
    subject: Optional[str] = None
    main_content: Optional[str] = None
    category_id: Optional[str] = None
    department_ids: Optional[List[str]] = None
    role_ids: Optional[List[str]] = None
    is_active: Optional[bool] = None


# ── Signature library ─────────────────────────────────────

class UserSignatureCreate(BaseModel):
    signature_data: str
    signature_type: str = "drawn"


class UserSignature(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=_uuid)
    user_id: str
    signature_name: str
    signature_type: str
    file_name: str
    file_size: int
    file_type: str = "image/png"
    file_url: str
    is_active: bool = True
    created_at: str = Field(default_factory=_now)
