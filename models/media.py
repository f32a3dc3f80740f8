from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
import uuid
from datetime import datetime, timezone


class MediaType:
    BEFORE_CONTENT = "before_content"
    IMAGE = "image"
    VIDEO = "video"
    FINAL_VIDEO = "final_video"

    ALL = [BEFORE_CONTENT, IMAGE, VIDEO, FINAL_VIDEO]
    LABELS = {
        BEFORE_CONTENT: "before content",
        IMAGE: "image",
        VIDEO: "video",
        FINAL_VIDEO: "final video",
    }


class Media(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    work_request_id: str
    media_type: str
    file_name: str
    file_path: str
    link: str
    file_size: int = 0
    content_type: Optional[str] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    creator_id: str
    creator_type: str
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class MediaUpdate(BaseModel):
    description: Optional[str] = None
    work_request_id: Optional[str] = None


class ChunkFinalize(BaseModel):
    upload_id: str
    file_name: str
    total_chunks: int = Field(..., ge=1)
    file_size: Optional[int] = None
    media_type: str = MediaType.FINAL_VIDEO
    work_request_id: Optional[str] = None
    description: Optional[str] = None
