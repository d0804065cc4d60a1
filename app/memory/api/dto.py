from typing import Optional

from pydantic import BaseModel

from app.memory.entity.memory import MemoryEntry


class CreateMemoryDTO(BaseModel):
    key: str = ""
    value: str = ""


class UpdateMemoryDTO(BaseModel):
    value: str = ""
    key: Optional[str] = None


def memory_payload(entry: MemoryEntry) -> dict:
    return {
        "id": entry.id,
        "key": entry.key,
        "value": entry.value,
        "created_at": entry.created_at.isoformat(),
        "updated_at": entry.updated_at.isoformat() if entry.updated_at else None,
    }
