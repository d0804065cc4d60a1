from abc import ABC, abstractmethod
from typing import List, Optional

from app.memory.entity.memory import MemoryEntry


class IMemoryRepository(ABC):
    @abstractmethod
    async def add(self, entry: MemoryEntry) -> MemoryEntry:
        pass

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[MemoryEntry]:
        """Entries of the owner in insertion order."""
        pass

    @abstractmethod
    async def get(self, owner_id: str, memory_id: str) -> Optional[MemoryEntry]:
        pass

    @abstractmethod
    async def update(self, entry: MemoryEntry) -> None:
        pass

    @abstractmethod
    async def delete(self, owner_id: str, memory_id: str) -> bool:
        pass
