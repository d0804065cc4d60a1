from datetime import datetime

from pydantic import BaseModel, Field

from app.chat.entity.chat import new_id, utcnow


class UploadRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    owner_id: str
    file_name: str
    file_type: str
    file_size: int
    url: str
    storage_key: str
    uploaded_at: datetime = Field(default_factory=utcnow)
