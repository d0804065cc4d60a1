from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.chat.entity.chat import new_id, utcnow


class MemoryEntry(BaseModel):
    """A key/value fact about the user, injected into every model call."""

    id: str = Field(default_factory=new_id)
    owner_id: str
    key: str
    value: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def as_prompt_line(self) -> str:
        return f"Memory: {self.key}: {self.value}"
