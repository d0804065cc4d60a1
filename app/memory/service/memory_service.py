from typing import List, Optional

from app.chat.entity.chat import utcnow
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logger import get_logger
from app.memory.entity.memory import MemoryEntry
from app.memory.service.service import IMemoryRepository

logger = get_logger(__name__)


class MemoryService:
    def __init__(self, repository: IMemoryRepository):
        self.repository = repository

    async def list_memories(self, owner_id: str) -> List[MemoryEntry]:
        return await self.repository.list_by_owner(owner_id)

    async def add_memory(self, owner_id: str, key: str, value: str) -> MemoryEntry:
        if not key or not key.strip() or not value or not value.strip():
            raise ValidationError("Missing required fields")
        entry = MemoryEntry(owner_id=owner_id, key=key.strip(), value=value)
        await self.repository.add(entry)
        logger.info(f"Stored memory '{entry.key}' for owner {owner_id}")
        return entry

    async def update_memory(
        self, owner_id: str, memory_id: str, value: str, key: Optional[str] = None
    ) -> MemoryEntry:
        if not value or not value.strip():
            raise ValidationError("Missing required fields")
        entry = await self.repository.get(owner_id, memory_id)
        if entry is None:
            raise NotFoundError(f"Memory {memory_id} not found")
        if key and key.strip():
            entry.key = key.strip()
        entry.value = value
        entry.updated_at = utcnow()
        await self.repository.update(entry)
        return entry

    async def delete_memory(self, owner_id: str, memory_id: str) -> None:
        if not await self.repository.delete(owner_id, memory_id):
            raise NotFoundError(f"Memory {memory_id} not found")

    async def build_context(self, owner_id: str) -> Optional[str]:
        """All entries of the owner as `Memory: key: value` lines, or None when there are none."""
        entries = await self.repository.list_by_owner(owner_id)
        if not entries:
            return None
        return "\n".join(e.as_prompt_line() for e in entries)
