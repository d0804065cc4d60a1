from abc import ABC, abstractmethod
from typing import List

from app.upload.entity.upload import UploadRecord


class IUploadRepository(ABC):
    @abstractmethod
    async def add(self, record: UploadRecord) -> UploadRecord:
        pass

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[UploadRecord]:
        pass


class IObjectStore(ABC):
    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store the blob and return its public URL."""
        pass
