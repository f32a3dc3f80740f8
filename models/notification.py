from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
import uuid
from datetime import datetime, timezone


class NotificationType:
    REQUEST = "request"
    APPROVAL = "approval"
    MEDIA = "media"
    ASSIGNMENT = "assignment"


class Notification(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    type: str
    entity_id: Optional[str] = None
    message: str
    read: bool = False
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class NotificationAction(BaseModel):
    notification_ids: List[str]
    action: str
