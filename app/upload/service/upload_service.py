import re
import time
from typing import Optional

from app.core.exceptions import FileProcessingError, FileTooLargeError, ValidationError
from app.core.logger import get_logger
from app.upload.entity.upload import UploadRecord
from app.upload.service.service import IObjectStore, IUploadRepository
from pkg.file_processor.processor import DEFAULT_MEDIA_TYPE, FileProcessor, media_type_from_name
from pkg.object_store.s3_client import ObjectStoreError

logger = get_logger(__name__)

ALLOWED_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def storage_key(owner_id: str, file_name: str) -> str:
    safe_name = _UNSAFE_NAME_CHARS.sub("_", file_name).strip("_") or "file"
    return f"chat-uploads/{owner_id}/{int(time.time() * 1000)}_{safe_name}"


class UploadService:
    """
    Validates uploads and re-hosts them in the object store.

    Direct uploads carry their bytes; URL uploads are fetched first. Either way
    the blob is checked against the size ceiling and the type allow-list before
    it is stored.
    """

    def __init__(
        self,
        object_store: IObjectStore,
        repository: IUploadRepository,
        file_processor: FileProcessor,
        max_bytes: int,
    ):
        self.object_store = object_store
        self.repository = repository
        self.file_processor = file_processor
        self.max_bytes = max_bytes

    def _resolve_type(self, file_name: str, file_type: Optional[str]) -> str:
        if file_type and file_type != DEFAULT_MEDIA_TYPE:
            return file_type.lower()
        return media_type_from_name(file_name)

    def _too_large(self) -> ValidationError:
        max_mb = self.max_bytes // (1024 * 1024)
        return ValidationError(f"File too large. Maximum size is {max_mb}MB.")

    def _validate(self, file_type: str, file_size: Optional[int]) -> None:
        if file_size is not None and file_size > self.max_bytes:
            raise self._too_large()
        if file_type not in ALLOWED_TYPES:
            raise ValidationError("File type not supported.")

    async def upload_bytes(
        self, owner_id: str, file_name: str, file_type: Optional[str], data: bytes
    ) -> UploadRecord:
        if not file_name:
            raise ValidationError("No file provided")
        media_type = self._resolve_type(file_name, file_type)
        self._validate(media_type, len(data))
        return await self._store(owner_id, file_name, media_type, data)

    async def upload_from_url(
        self,
        owner_id: str,
        file_url: str,
        file_name: Optional[str] = None,
        file_type: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> UploadRecord:
        if not file_url:
            raise ValidationError("Missing fileUrl")
        name = file_name or file_url.rstrip("/").rsplit("/", 1)[-1].split("?", 1)[0] or "file"
        media_type = self._resolve_type(name, file_type)
        self._validate(media_type, file_size)

        try:
            data = await self.file_processor.fetch(file_url, max_bytes=self.max_bytes)
        except FileTooLargeError as e:
            raise self._too_large() from e
        self._validate(media_type, len(data))
        return await self._store(owner_id, name, media_type, data)

    async def _store(self, owner_id: str, file_name: str, media_type: str, data: bytes) -> UploadRecord:
        key = storage_key(owner_id, file_name)
        try:
            url = await self.object_store.put(key, data, media_type)
        except ObjectStoreError as e:
            raise FileProcessingError("File upload failed") from e

        record = UploadRecord(
            owner_id=owner_id,
            file_name=file_name,
            file_type=media_type,
            file_size=len(data),
            url=url,
            storage_key=key,
        )
        await self.repository.add(record)
        logger.info(f"Stored upload {record.id} ({media_type}, {record.file_size} bytes) for owner {owner_id}")
        return record
