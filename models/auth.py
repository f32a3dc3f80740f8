from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, List
import uuid
from datetime import datetime, timezone


class UserType:
    USER = "user"
    AGENT = "agent"
    SOCIALMEDIA = "socialmedia"

    ALL = [USER, AGENT, SOCIALMEDIA]


class UserRole:
    ADMIN = "admin"
    MANAGER = "manager"
    CEO = "ceo"
    COO = "coo"
    CE = "ce"
    ASSISTANT = "assistant"
    EXECUTIVE_ENGINEER = "executive_engineer"
    CONTRACTOR = "contractor"
    SM_AGENT = "sm_agent"


class CEScope(BaseModel):
    complaint_type_ids: List[str] = Field(default_factory=list)
    zone_ids: List[str] = Field(default_factory=list)
    division_ids: List[str] = Field(default_factory=list)
    district_ids: List[str] = Field(default_factory=list)
    town_ids: List[str] = Field(default_factory=list)


class UserBase(BaseModel):
    email: EmailStr
    name: str
    user_type: str = UserType.USER
    role: str = UserRole.ASSISTANT
    phone: Optional[str] = None
    designation: Optional[str] = None


class UserCreate(UserBase):
    password: str


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    user_type: Optional[str] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    is_active: Optional[bool] = None


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class User(UserBase):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    ce_scope: Optional[CEScope] = None
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    is_active: bool = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


class UserRoleAssign(BaseModel):
    role: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    designation: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str
